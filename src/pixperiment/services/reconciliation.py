"""Operator-triggered repair jobs for missed or inconsistent uploads."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from pixperiment.domain.errors import InconsistencyError
from pixperiment.domain.payments import CheckoutSession
from pixperiment.services.materializer import UploadMaterializer
from pixperiment.services.payments import PaymentGateway
from pixperiment.services.pricing import PricingService
from pixperiment.services.uploads import (
    ImageStorage,
    PendingUploadRepository,
    UploadRepository,
)

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(tz=UTC)


@dataclass(frozen=True)
class SweepReport:
    """Outcome of replaying recent processor history."""

    scanned: int = 0
    unpaid: int = 0
    already_materialized: int = 0
    materialized: int = 0
    recovered: int = 0
    failures: list[dict[str, str]] = field(default_factory=list)


@dataclass(frozen=True)
class CountReport:
    """Comparison of the cached counter with the upload table."""

    upload_count: int
    highest_order: int
    cached_count: int | None
    missing_orders: list[int]
    resynced: bool


@dataclass
class ReconciliationService:
    """Backfills paid sessions and clears abandoned state.

    Every job is safe to rerun: materialization is keyed on the session id.
    Sequence gaps are reported and left in place; no placeholder is created
    to fill them.
    """

    gateway: PaymentGateway
    materializer: UploadMaterializer
    upload_repository: UploadRepository
    pending_repository: PendingUploadRepository
    storage: ImageStorage
    pricing_service: PricingService
    lookback_hours: int = 24
    retention_minutes: int = 60
    clock: Callable[[], datetime] = field(default=_utcnow)

    def sweep_processor_history(self) -> SweepReport:
        """Materialize paid sessions from the lookback window that have no upload."""
        since = self.clock() - timedelta(hours=self.lookback_hours)
        sessions = self.gateway.list_completed_sessions(since)
        counts = {"unpaid": 0, "already": 0, "materialized": 0, "recovered": 0}
        failures: list[dict[str, str]] = []
        for session in sessions:
            if not session.paid:
                counts["unpaid"] += 1
                continue
            try:
                bucket = self._replay(session)
            except Exception as exc:
                logger.exception("Sweep failed for session %s", session.id)
                failures.append({"session_id": session.id, "error": str(exc)})
                continue
            counts[bucket] += 1
        report = SweepReport(
            scanned=len(sessions),
            unpaid=counts["unpaid"],
            already_materialized=counts["already"],
            materialized=counts["materialized"],
            recovered=counts["recovered"],
            failures=failures,
        )
        logger.info(
            "Processor sweep scanned %s sessions: %s materialized, %s recovered, "
            "%s failed",
            report.scanned,
            report.materialized,
            report.recovered,
            len(report.failures),
        )
        return report

    def _replay(self, session: CheckoutSession) -> str:
        try:
            result = self.materializer.materialize(session)
        except InconsistencyError:
            result = self.materializer.materialize_recovered(session)
            return "recovered" if result.created else "already"
        return "materialized" if result.created else "already"

    def repair_counts(self) -> CountReport:
        """Resync the cached counter and report holes in the order sequence."""
        orders = self.upload_repository.list_upload_orders()
        highest = max(orders, default=0)
        missing = sorted(set(range(1, highest + 1)) - set(orders))
        cached = self.pricing_service.pricing_repository.get_cached_count()
        resynced = cached != highest
        if resynced:
            logger.warning(
                "Cached upload counter %s disagrees with sequence position %s",
                cached,
                highest,
            )
            self.pricing_service.refresh_cache()
        if missing:
            logger.warning("Upload order sequence is missing %s", missing)
        return CountReport(
            upload_count=len(orders),
            highest_order=highest,
            cached_count=cached,
            missing_orders=missing,
            resynced=resynced,
        )

    def collect_pending(self) -> int:
        """Delete pending payloads older than the retention window."""
        cutoff = self.clock() - timedelta(minutes=self.retention_minutes)
        deleted = self.pending_repository.delete_older_than(cutoff)
        logger.info("Deleted %s abandoned pending uploads", deleted)
        return deleted

    def collect_orphan_images(self) -> int:
        """Delete stored images that no upload references."""
        cutoff = self.clock() - timedelta(minutes=self.retention_minutes)
        referenced = self.upload_repository.list_image_urls()
        orphans = [
            stored.path
            for stored in self.storage.list_objects()
            if self.storage.public_url(stored.path) not in referenced
            and stored.created_at is not None
            and stored.created_at < cutoff
        ]
        if orphans:
            self.storage.remove(orphans)
        logger.info("Deleted %s orphan images", len(orphans))
        return len(orphans)
