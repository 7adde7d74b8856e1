#!/usr/bin/env python3
"""Main entry point for the catalog price monitor."""

import argparse
import logging
import sys

from dotenv import load_dotenv
load_dotenv()

from catalog import create_client
from config import DB_PATH, TELEGRAM_BOT_TOKEN
from db import clean_expired_tokens, get_connection, init_db
from errors import AuthError, FetchError, MonitorError
from models import utcnow
from scheduler import PriceMonitor

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)


def main():
    parser = argparse.ArgumentParser(description="Catalog price monitor")
    parser.add_argument(
        "--once", action="store_true", help="Run one check and exit (no scheduler)"
    )
    parser.add_argument(
        "--sync-brands", action="store_true", help="Refresh the brand list from the catalog and exit"
    )
    parser.add_argument(
        "--token-status", action="store_true", help="Show the catalog token status and exit"
    )
    parser.add_argument("--db", type=str, default=DB_PATH, help="SQLite database path")
    args = parser.parse_args()

    conn = None
    try:
        conn = get_connection(args.db)
        init_db(conn)
        removed = clean_expired_tokens(conn, utcnow())
        if removed:
            logger.info(f"Removed {removed} expired tokens")

        client = create_client(conn)
        monitor = PriceMonitor(conn, client)

        if args.token_status:
            client.credentials.get_valid_token()
            for key, value in client.credentials.status().items():
                print(f"{key}: {value}")
            return

        if args.sync_brands:
            monitor.sync_brands()
            return

        if not TELEGRAM_BOT_TOKEN:
            logger.error("TELEGRAM_BOT_TOKEN not set in .env")
            sys.exit(1)

        monitor.initial_load()

        if args.once:
            result = monitor.run_cycle()
            logger.info(f"=== Done: {result.status}, {len(result.changes)} changes ===")
        else:
            monitor.start()
    except (AuthError, FetchError) as e:
        logger.error(f"Catalog unavailable: {e}")
        sys.exit(1)
    except MonitorError as e:
        logger.error(f"Fatal: {e}")
        sys.exit(1)
    finally:
        if conn is not None:
            conn.close()


if __name__ == "__main__":
    main()
