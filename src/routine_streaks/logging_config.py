"""Process-wide logging setup for the CLI, MCP server and cron jobs."""

import logging
import os


def configure_logging() -> None:
    level_name = os.getenv("ROUTINE_STREAKS_LOG_LEVEL", "INFO").upper()
    level = getattr(logging, level_name, logging.INFO)
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s - %(message)s",
    )
    # pywebpush goes through requests; keep its connection chatter quiet
    logging.getLogger("urllib3").setLevel(logging.WARNING)
    logging.getLogger("requests").setLevel(logging.WARNING)
