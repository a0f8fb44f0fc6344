"""Sample data shared by the test modules."""

from decimal import Decimal

from pos_app.services.ports import CatalogEntry, NewVariant

EMAIL = "caja@tienda.mx"
PASSWORD = "secreto123"


def entry(variant_id: int, price: str, cost: str = "0", name: str = "Playera", variant: str = "Peque") -> CatalogEntry:
    return CatalogEntry(
        variant_id=variant_id,
        product_name=name,
        variant_name=variant,
        category="Playeras",
        unit_price=Decimal(price),
        unit_cost=Decimal(cost),
    )


def seed_sample(store):
    """Creates one category with two products; returns entries keyed by a short name."""
    cat = store.create_category("Playeras")
    shirts = store.create_product(
        cat.id,
        "Playera básica",
        "Algodón",
        [
            NewVariant(name="Bebé", unit_cost=Decimal("4"), unit_price=Decimal("10")),
            NewVariant(name="Peque", unit_cost=Decimal("2"), unit_price=Decimal("5")),
            NewVariant(name="Adulto", unit_cost=Decimal("60"), unit_price=Decimal("100")),
        ],
    )
    pj_cat = store.create_category("Pijamas")
    pyjamas = store.create_product(
        pj_cat.id,
        "Pijama polar",
        "Dos piezas",
        [NewVariant(name="Adulto", unit_cost=Decimal("20"), unit_price=Decimal("30"))],
    )
    store.register_user(EMAIL, PASSWORD)
    return {
        "bebe": shirts[0],
        "peque": shirts[1],
        "adulto": shirts[2],
        "pijama": pyjamas[0],
    }
