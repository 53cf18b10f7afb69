from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from django.utils import timezone

from audit.models import AuditLog
from audit.services import record_event

from .ledger import DocumentLedger
from .storage import ArtifactStore


logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    scanned: int = 0
    skipped_recent: int = 0
    orphans: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "scanned": self.scanned,
            "skipped_recent": self.skipped_recent,
            "orphans": list(self.orphans),
            "deleted": list(self.deleted),
        }


def sweep_orphaned_artifacts(
    store: ArtifactStore,
    *,
    grace: timedelta,
    now: Optional[datetime] = None,
    apply: bool = False,
    ledger: Optional[DocumentLedger] = None,
    prefix: str = "documents/",
) -> SweepReport:
    """Find artifacts with no ledger row and, with ``apply``, delete them.

    Objects younger than ``grace`` are left alone: their issuance may still
    be between artifact upload and ledger commit.
    """

    ledger = ledger or DocumentLedger()
    now = now or timezone.now()
    report = SweepReport()

    for locator, modified in store.list_artifacts(prefix):
        report.scanned += 1
        if now - modified < grace:
            report.skipped_recent += 1
            continue
        if ledger.exists_for_locator(locator):
            continue

        report.orphans.append(locator)
        if apply:
            store.delete(locator)
            report.deleted.append(locator)
            record_event(
                event_type=AuditLog.EVENT_DOCUMENT_ORPHANED_ARTIFACT,
                object_type="artifact",
                object_id=locator[-80:],
                metadata={"locator": locator, "action": "deleted"},
            )
            logger.warning("documents.orphan_deleted", extra={"locator": locator})

    logger.info("documents.orphan_sweep", extra={**report.to_dict(), "apply": apply})
    return report
