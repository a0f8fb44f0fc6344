"""
Creates a user and, optionally, a demo catalog with promotions.

    python -m pos_app.seed admin@tienda.mx secreto --demo
"""
from __future__ import annotations

import argparse
import logging
from decimal import Decimal

from pos_app.constants import PROMO_FIXED, PROMO_FREE_ITEM, PROMO_PERCENT, VARIANTS
from pos_app.db.sqlite import get_store
from pos_app.errors import PosError
from pos_app.services.ports import NewVariant
from pos_app.services.pricing import Promotion

logger = logging.getLogger("pos_app.seed")

DEMO_CATALOG = {
    "Playeras": [
        ("Playera básica", "Algodón", {"bebe": ("60", "120"), "peque": ("70", "140"), "adulto": ("90", "180")}),
        ("Playera estampada", "Diseño de temporada", {"peque": ("85", "170"), "adulto": ("110", "220")}),
    ],
    "Pijamas": [
        ("Pijama polar", "Dos piezas", {"bebe": ("150", "290"), "peque": ("170", "330"), "adulto": ("220", "420")}),
    ],
}

DEMO_PROMOTIONS = [
    Promotion(name="15% en toda la compra", kind=PROMO_PERCENT, value=Decimal("15")),
    Promotion(name="$50 de descuento", kind=PROMO_FIXED, value=Decimal("50")),
    Promotion(name="Compra 4 lleva 1", kind=PROMO_FREE_ITEM, value=Decimal("1")),
]


def seed_demo(store) -> int:
    created = 0
    for category, products in DEMO_CATALOG.items():
        cat = store.create_category(category)
        for name, description, prices in products:
            variants = [
                NewVariant(name=VARIANTS[key], unit_cost=Decimal(cost), unit_price=Decimal(price))
                for key, (cost, price) in prices.items()
            ]
            created += len(store.create_product(cat.id, name, description, variants))
    for promo in DEMO_PROMOTIONS:
        store.create_promotion(promo)
    return created


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Seed the point-of-sale database")
    parser.add_argument("email")
    parser.add_argument("password")
    parser.add_argument("--demo", action="store_true", help="also create a demo catalog and promotions")
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.INFO, format="%(asctime)s | %(levelname)s | %(name)s | %(message)s")

    store = get_store()
    try:
        user = store.register_user(args.email, args.password)
        logger.info("user %s created", user.email)
        if args.demo:
            logger.info("demo catalog: %s variants", seed_demo(store))
    except PosError as e:
        logger.error("seed failed: %s", e)
        return 1
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
