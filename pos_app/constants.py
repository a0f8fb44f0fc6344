PROMO_PERCENT = "porcentaje"
PROMO_FIXED = "cantidad_fija"
PROMO_FREE_ITEM = "producto_gratis"

PROMOTION_KINDS = {
    PROMO_PERCENT: "Descuento %",
    PROMO_FIXED: "Descuento fijo",
    PROMO_FREE_ITEM: "Producto gratis",
}

# minimum number of units in the cart before the cheapest unit becomes free
FREE_ITEM_THRESHOLD = 5

VARIANTS = {
    "bebe": "Bebé",
    "peque": "Peque",
    "adulto": "Adulto",
}

DEFAULT_CATEGORY_COLOR = "#6B5B95"

AUTH_SIGNED_IN = "SIGNED_IN"
AUTH_SIGNED_OUT = "SIGNED_OUT"
