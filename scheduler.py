"""Poll-diff-notify cycle and the APScheduler wrapper that repeats it."""

import logging
import signal
import sqlite3
import sys
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Optional

from apscheduler.schedulers.blocking import BlockingScheduler

from catalog import CatalogClient
from config import BRAND_DELAY, INITIAL_LOAD_DELAY, POLL_INTERVAL_MINUTES
from db import (
    append_change_record,
    clear_change_records,
    count_products,
    get_brands,
    get_products_by_brand,
    get_subscribers_with_preferences,
    replace_products,
    save_brands,
)
from detector import diff_products, summarize
from errors import AuthError, FetchError, PersistenceError
from models import ChangeRecord, utcnow
from notifier import DispatchReport, send_notifications
from router import route

logger = logging.getLogger(__name__)

COMPLETED = "completed"
SKIPPED = "skipped"  # previous cycle still running
AUTH_FAILED = "auth_failed"
NO_BRANDS = "no_brands"


@dataclass
class CycleResult:
    status: str
    brands_checked: int = 0
    brands_failed: int = 0
    changes: list[ChangeRecord] = field(default_factory=list)
    report: Optional[DispatchReport] = None


class PriceMonitor:
    """Runs one check of every brand per trigger, never two at once."""

    def __init__(
        self,
        conn: sqlite3.Connection,
        client: CatalogClient,
        notify: Callable[[dict], DispatchReport] = send_notifications,
        brand_delay: float = BRAND_DELAY,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.conn = conn
        self.client = client
        self.notify = notify
        self.brand_delay = brand_delay
        self.sleep = sleep
        self._cycle_lock = threading.Lock()

    def run_cycle(self) -> CycleResult:
        """Check all brands once. PersistenceError aborts the cycle."""
        if not self._cycle_lock.acquire(blocking=False):
            logger.warning("Previous check still running, skipping this trigger")
            return CycleResult(status=SKIPPED)
        try:
            return self._run_cycle()
        finally:
            self._cycle_lock.release()

    def _run_cycle(self) -> CycleResult:
        started = time.monotonic()
        logger.info("=== Price check starting ===")

        try:
            self.client.credentials.get_valid_token()
        except AuthError as e:
            logger.error(f"Could not authenticate, skipping check: {e}")
            return CycleResult(status=AUTH_FAILED)

        brands = get_brands(self.conn)
        if not brands:
            # the startup load may have failed; take the first snapshot here
            logger.warning("No brands stored, retrying initial load")
            loaded = self.initial_load()
            if not get_brands(self.conn):
                logger.warning("Still no brands, skipping check")
                return CycleResult(status=NO_BRANDS)
            return CycleResult(status=COMPLETED, brands_checked=loaded)

        result = CycleResult(status=COMPLETED)
        now = utcnow()
        for i, brand in enumerate(brands):
            if i > 0:
                self.sleep(self.brand_delay)
            try:
                products = self.client.fetch_pricelist(brand.id)
                old_products = get_products_by_brand(self.conn, brand.id)
                changes = diff_products(old_products, products, brand, now=now)
                replace_products(self.conn, brand.id, products)
            except PersistenceError:
                raise
            except (FetchError, AuthError) as e:
                logger.warning(f"[{brand.name}] Skipped: {e}")
                result.brands_failed += 1
                continue
            except Exception:
                logger.exception(f"[{brand.name}] Unexpected error while checking")
                result.brands_failed += 1
                continue

            result.brands_checked += 1
            if changes:
                logger.info(f"[{brand.name}] {len(changes)} changes")
            result.changes.extend(changes)

        if result.changes:
            counts = summarize(result.changes)
            logger.info(
                "Changes: " + ", ".join(f"{count} {ct}" for ct, count in counts.items() if count)
            )
            for change in result.changes:
                append_change_record(self.conn, change)
            result.report = self._notify(result.changes)
        else:
            logger.info("No changes found")

        logger.info(
            f"=== Price check done in {time.monotonic() - started:.2f}s: "
            f"{result.brands_checked} brands checked, {result.brands_failed} skipped ==="
        )
        return result

    def _notify(self, changes: list[ChangeRecord]) -> Optional[DispatchReport]:
        subscribers = get_subscribers_with_preferences(self.conn)
        if not subscribers:
            logger.warning("No subscribers found")
        routed = route(changes, subscribers)
        try:
            report = self.notify(routed)
        except Exception:
            # staged changes are kept; the next successful dispatch clears them
            logger.exception("Notification dispatch failed")
            return None
        cleared = clear_change_records(self.conn)
        logger.info(f"Sent {report.sent} messages ({report.failed} failed), cleared {cleared} staged changes")
        return report

    # --- Catalog bootstrap ---

    def sync_brands(self) -> int:
        """Refresh the stored brand list from the catalog."""
        brands = self.client.fetch_brands()
        save_brands(self.conn, brands)
        logger.info(f"Synced {len(brands)} brands")
        return len(brands)

    def initial_load(self) -> int:
        """Store the first snapshot of every brand when the store is empty.

        Returns the number of brands loaded. No changes are reported.
        """
        if count_products(self.conn) > 0:
            return 0

        logger.info("=== Product table empty, running initial load ===")
        try:
            self.sync_brands()
        except (AuthError, FetchError) as e:
            logger.error(f"Initial load failed, could not fetch brands: {e}")
            return 0

        loaded = 0
        for i, brand in enumerate(get_brands(self.conn)):
            if i > 0:
                self.sleep(INITIAL_LOAD_DELAY)
            try:
                products = self.client.fetch_pricelist(brand.id)
            except (AuthError, FetchError) as e:
                logger.warning(f"[{brand.name}] Initial load skipped: {e}")
                continue
            replace_products(self.conn, brand.id, products)
            loaded += 1
            logger.info(f"[{brand.name}] Stored {len(products)} products")
        logger.info(f"=== Initial load done: {loaded} brands ===")
        return loaded

    # --- Scheduling ---

    def _scheduled_check(self):
        """Job function called by the scheduler."""
        try:
            self.run_cycle()
        except Exception as e:
            logger.error(f"Price check aborted: {e}")

    def start(self, interval_minutes: int = POLL_INTERVAL_MINUTES):
        """Check immediately, then every ``interval_minutes`` (blocking)."""
        scheduler = BlockingScheduler()
        scheduler.add_job(
            self._scheduled_check,
            "interval",
            minutes=interval_minutes,
            id="price_monitor",
            name="Price Monitor",
            max_instances=1,
            coalesce=True,
        )

        def shutdown(signum, frame):
            logger.info("Shutting down scheduler...")
            scheduler.shutdown(wait=False)
            sys.exit(0)

        signal.signal(signal.SIGINT, shutdown)
        signal.signal(signal.SIGTERM, shutdown)

        logger.info(
            f"Scheduler started. Checking every {interval_minutes} minutes. "
            "Press Ctrl+C to stop."
        )
        # Run immediately on start, then schedule
        self._scheduled_check()
        scheduler.start()
