"""
Problem sync service.

Pulls the latest batch from the remote source and hands it to the
reconciler. The download happens outside any transaction; only the
reconciler's decide-and-write step is transactional. A failed download
or a malformed document leaves local state untouched.
"""

import logging
from datetime import datetime, timedelta
from typing import Optional, Protocol

from config import Config
from core.dto import SyncResult, format_timestamp, parse_timestamp, utc_now
from core.ports import ProblemStore
from core.sync_reconciler import InvalidBatchError, SyncReconciler, parse_batch_payload

logger = logging.getLogger(__name__)

LAST_SYNC_KEY = "last_sync_time"


class BatchSource(Protocol):
    """Anything that can fetch the latest batch document.

    The result must expose success, payload and error attributes.
    """

    def fetch_latest_batch(self):
        ...


class ProblemSyncService:
    """Runs sync attempts and remembers when the last one succeeded."""

    def __init__(
        self,
        source: BatchSource,
        reconciler: SyncReconciler,
        store: ProblemStore,
        interval_hours: Optional[float] = None,
    ):
        """Initialize sync service.

        Args:
            source: Remote batch source
            reconciler: Applies fetched batches
            store: Holds the last-sync timestamp
            interval_hours: Minimum hours between automatic syncs
                (defaults to Config.SYNC_INTERVAL_HOURS)
        """
        self.source = source
        self.reconciler = reconciler
        self.store = store
        self.interval = timedelta(
            hours=Config.SYNC_INTERVAL_HOURS if interval_hours is None else interval_hours
        )

    def get_last_sync_time(self) -> Optional[datetime]:
        value = self.store.get_state(LAST_SYNC_KEY)
        return parse_timestamp(value) if value else None

    def clear_last_sync_time(self) -> None:
        self.store.remove_state(LAST_SYNC_KEY)

    def should_sync(self, now: Optional[datetime] = None) -> bool:
        """True when no sync has succeeded within the interval."""
        last = self.get_last_sync_time()
        if last is None:
            return True
        return (now or utc_now()) - last >= self.interval

    def sync_problems(self) -> SyncResult:
        """Fetch the latest batch and reconcile it.

        Returns:
            SyncResult with the disposition, or with error set when nothing
            usable was fetched

        Raises:
            Store errors from the reconcile step (already rolled back)
        """
        fetched = self.source.fetch_latest_batch()
        if not fetched.success:
            logger.warning(f"Sync fetch failed: {fetched.error}")
            return SyncResult(disposition=None, error=fetched.error)

        try:
            candidate = parse_batch_payload(fetched.payload)
        except InvalidBatchError as e:
            logger.warning(f"Rejected fetched batch: {e}")
            batch_id = fetched.payload.get("id") if isinstance(fetched.payload, dict) else None
            return SyncResult(disposition=None, batch_id=batch_id, error=str(e))

        disposition = self.reconciler.reconcile(candidate)

        synced_at = utc_now()
        self.store.set_state(LAST_SYNC_KEY, format_timestamp(synced_at))
        logger.info(f"Sync finished: {disposition.value} for batch {candidate.id}")
        return SyncResult(
            disposition=disposition,
            batch_id=candidate.id,
            synced_at=synced_at,
        )
