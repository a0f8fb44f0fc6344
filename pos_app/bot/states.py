from typing import Dict

from aiogram.fsm.state import State, StatesGroup

from pos_app.services.checkout import SaleDraft


class PromoAdd(StatesGroup):
    waiting_name = State()
    waiting_kind = State()
    waiting_value = State()
    waiting_threshold = State()


SALES: Dict[int, SaleDraft] = {}  # user_id -> sale being rung up
