from __future__ import annotations

import logging
from datetime import timedelta

from celery import shared_task
from django.conf import settings

from .dependencies import get_artifact_store, get_ledger
from .reconciliation import sweep_orphaned_artifacts


logger = logging.getLogger(__name__)


@shared_task(bind=True, autoretry_for=(Exception,), retry_backoff=True, retry_kwargs={"max_retries": 3})
def sweep_orphaned_artifacts_task(self, apply: bool = False, grace_minutes: int | None = None) -> dict:
    if grace_minutes is None:
        grace_minutes = settings.ORPHAN_SWEEP_GRACE_MINUTES
    report = sweep_orphaned_artifacts(
        get_artifact_store(),
        grace=timedelta(minutes=int(grace_minutes)),
        apply=apply,
        ledger=get_ledger(),
    )
    logger.info("documents.orphan_sweep_task_finished", extra={"task_id": self.request.id, "apply": apply})
    return report.to_dict()
