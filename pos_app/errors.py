class PosError(Exception):
    """Base error for everything the point-of-sale layer raises."""


class ValidationError(PosError):
    pass


class DataServiceError(PosError):
    """The data service failed (storage, constraint, connectivity)."""


class NotFoundError(DataServiceError):
    pass


class AuthError(PosError):
    pass
