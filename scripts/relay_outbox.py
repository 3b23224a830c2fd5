"""Publish registration events still pending in the outbox.

Run once, or with ``--interval`` to keep polling.
"""
from __future__ import annotations

import argparse
import importlib
import logging
import sys
import time
from pathlib import Path

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from dotenv import load_dotenv

from config import get_settings_module

from src.sisfo_akademik.sisfo_akademik.container import build_relay
from src.sisfo_akademik.sisfo_akademik.core.constants import DEFAULT_OUTBOX_BATCH_SIZE
from src.sisfo_akademik.sisfo_akademik.database.connection import DatabaseConnection, db_config_from_mapping
from src.sisfo_akademik.sisfo_akademik.observability.logging import configure_logging

logger = logging.getLogger("relay_outbox")


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--limit", type=int, default=DEFAULT_OUTBOX_BATCH_SIZE, help="events per pass")
    parser.add_argument("--interval", type=float, default=0.0, help="seconds between passes; 0 runs once")
    args = parser.parse_args(argv)

    load_dotenv(override=False)
    settings = importlib.import_module(get_settings_module())
    configure_logging(
        service="outbox-relay",
        level=str(getattr(settings, "LOG_LEVEL", "INFO")),
        json_output=bool(getattr(settings, "LOG_JSON", False)),
    )

    timeout = float(getattr(settings, "OPERATION_TIMEOUT_SECONDS", 5.0))
    conn = DatabaseConnection.get_instance(db_config_from_mapping(dict(settings.DB_CONFIG), timeout_seconds=timeout))
    relay, publisher = build_relay(conn, rabbitmq_url=str(getattr(settings, "RABBITMQ_URL", "") or ""), timeout=timeout)
    if publisher is None:
        logger.error("no event bus available; nothing published")
        return 1

    try:
        while True:
            result = relay.dispatch_pending(limit=args.limit)
            logger.info("relay pass published=%d failed=%d", result.published, result.failed)
            if args.interval <= 0:
                return 1 if result.failed else 0
            time.sleep(args.interval)
    except KeyboardInterrupt:
        return 0
    finally:
        publisher.close()


if __name__ == "__main__":
    raise SystemExit(main())
