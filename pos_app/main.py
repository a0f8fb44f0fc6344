import asyncio
import logging

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode

from pos_app.bot.handlers import router
from pos_app.config import require_bot_settings, settings
from pos_app.db.sqlite import get_store

logger = logging.getLogger("pos_app")


def _log_auth_change(event: str, session) -> None:
    logger.info("auth %s user=%s", event, session.user.email if session else "-")


async def main() -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    require_bot_settings()
    store = get_store()
    store.subscribe_to_auth_changes(_log_auth_change)

    bot = Bot(token=settings.bot_token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))
    dp = Dispatcher()
    dp.include_router(router)

    await dp.start_polling(bot)


def run() -> None:
    asyncio.run(main())


if __name__ == "__main__":
    run()
