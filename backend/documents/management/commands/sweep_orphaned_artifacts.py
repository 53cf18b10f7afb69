from __future__ import annotations

from datetime import timedelta

from django.conf import settings
from django.core.management.base import BaseCommand

from documents.dependencies import get_artifact_store, get_ledger
from documents.reconciliation import sweep_orphaned_artifacts


class Command(BaseCommand):
    help = (
        "Find stored artifacts that no ledger row references. "
        "By default it runs in dry-run mode. Use --apply to delete them."
    )

    def add_arguments(self, parser):
        parser.add_argument(
            "--apply",
            action="store_true",
            help="Actually delete orphaned artifacts (default: dry-run).",
        )
        parser.add_argument(
            "--grace-minutes",
            type=int,
            default=None,
            help="Ignore artifacts younger than N minutes (default: ORPHAN_SWEEP_GRACE_MINUTES).",
        )

    def handle(self, *args, **options):
        apply = bool(options.get("apply"))
        grace_minutes = options.get("grace_minutes")
        if grace_minutes is None:
            grace_minutes = settings.ORPHAN_SWEEP_GRACE_MINUTES

        report = sweep_orphaned_artifacts(
            get_artifact_store(),
            grace=timedelta(minutes=int(grace_minutes)),
            apply=apply,
            ledger=get_ledger(),
        )

        self.stdout.write(
            f"Scanned {report.scanned} artifact(s); {report.skipped_recent} inside the grace period; "
            f"{len(report.orphans)} orphaned."
        )
        for locator in report.orphans[:20]:
            self.stdout.write(f"- {locator}")
        if not apply:
            if report.orphans:
                self.stdout.write("Dry-run: nothing deleted. Use --apply to delete orphaned artifacts.")
            return
        self.stdout.write(self.style.SUCCESS(f"Deleted {len(report.deleted)} orphaned artifact(s)."))
