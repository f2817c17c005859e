"""Daily maintenance for track-route.

Resets the device's directions quota counter once per UTC day so the
engine can call the provider again after midnight.

Run with:  python -m track_route.worker
"""
from __future__ import annotations

import logging
import time
from typing import Optional

from track_route.core.errors import PersistenceError
from track_route.core.models import day_bucket
from track_route.store.base import QuotaStore

log = logging.getLogger(__name__)


def run_cycle(store: QuotaStore, now_ms: Optional[int] = None) -> bool:
    """Run one maintenance cycle. True when the counter was reset."""
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    day = day_bucket(now_ms)
    try:
        if store.reset_if_new_day(day):
            log.info("New day %d: directions quota counter reset", day)
            return True
    except PersistenceError as exc:
        log.warning("Quota reset failed: %s", exc)
    return False


def main() -> None:
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [worker] %(levelname)s %(message)s",
    )

    from track_route.config import settings
    from track_route.services import get_quota_store

    log.info("Worker starting (interval=%ds, device=%s)", settings.worker_interval_s, settings.device_id)
    store = get_quota_store()

    while True:
        try:
            run_cycle(store)
        except Exception as exc:
            log.exception("Worker cycle error: %s", exc)
        time.sleep(settings.worker_interval_s)


if __name__ == "__main__":
    main()
