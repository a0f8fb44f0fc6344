from decimal import Decimal, InvalidOperation

from pos_app.errors import ValidationError


def require_positive_number(v: Decimal, name: str = "value") -> None:
    if v <= 0:
        raise ValidationError(f"{name} must be > 0")


def parse_money(text: str, name: str = "value") -> Decimal:
    try:
        v = Decimal(text.strip().replace(",", "."))
    except InvalidOperation:
        raise ValidationError(f"{name} must be a number, e.g. 12.50") from None
    if not v.is_finite():
        raise ValidationError(f"{name} must be a number, e.g. 12.50")
    return v


def parse_id(text: str, name: str = "id") -> int:
    try:
        return int(text.strip().lstrip("#"))
    except ValueError:
        raise ValidationError(f"{name} must be an integer") from None
