"""
tipdraw.bot.__main__ — ``python -m tipdraw.bot``
=================================================

Reads secrets from ``.env`` and settings from ``config.yaml``, makes sure
the ``guild_documents`` table exists, then runs the bot until interrupted.
"""

from __future__ import annotations

import logging
import os
import sys

from dotenv import load_dotenv

from tipdraw.bot.core import TipDrawBot
from tipdraw.config import load_config
from tipdraw.database.engine import create_db_engine, init_db

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s │ %(levelname)-8s │ %(name)s │ %(message)s",
    datefmt="%H:%M:%S",
)
logger = logging.getLogger("tipdraw")

_PLACEHOLDER_TOKEN = "your-discord-bot-token-here"


def main() -> None:
    load_dotenv()

    token = os.getenv("DISCORD_TOKEN", "")
    if token in ("", _PLACEHOLDER_TOKEN):
        logger.critical("DISCORD_TOKEN is not set.  Copy .env.example → .env and add the bot token.")
        sys.exit(1)
    if not os.getenv("COINMARKETCAP_API_KEY"):
        logger.warning("COINMARKETCAP_API_KEY is not set; CoinMarketCap will be skipped.")

    cfg = load_config(os.getenv("TIPDRAW_CONFIG", "config.yaml"))
    logger.info("Config loaded for %s (tip bot %d)", cfg.community_name, cfg.tip_bot_id)

    engine = create_db_engine()
    init_db(engine)

    bot = TipDrawBot(cfg, engine)
    try:
        bot.run(token, log_handler=None)
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down.")


if __name__ == "__main__":
    main()
