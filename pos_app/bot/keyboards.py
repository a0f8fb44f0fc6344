from aiogram.types import KeyboardButton, ReplyKeyboardMarkup

from pos_app.constants import PROMOTION_KINDS


def main_kb() -> ReplyKeyboardMarkup:
    return ReplyKeyboardMarkup(
        keyboard=[
            [KeyboardButton(text="/help"), KeyboardButton(text="/catalog")],
            [KeyboardButton(text="/cart"), KeyboardButton(text="/promos")],
            [KeyboardButton(text="/report"), KeyboardButton(text="/finish")],
        ],
        resize_keyboard=True,
    )


def promo_kinds_kb() -> ReplyKeyboardMarkup:
    rows = [[KeyboardButton(text=kind)] for kind in PROMOTION_KINDS]
    rows.append([KeyboardButton(text="/cancel")])
    return ReplyKeyboardMarkup(keyboard=rows, resize_keyboard=True, one_time_keyboard=True)
