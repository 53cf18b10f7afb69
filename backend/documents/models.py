from __future__ import annotations

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class ImmutableDocumentError(ValueError):
    pass


class DocumentQuerySet(models.QuerySet):
    def update(self, **kwargs):
        forbidden = set(kwargs) - Document.MUTABLE_FIELDS
        if forbidden:
            raise ImmutableDocumentError(f"Immutable document fields: {sorted(forbidden)}")
        if "status" in kwargs and kwargs["status"] != Document.Status.REVOKED:
            raise ImmutableDocumentError("Document status can only move to revoked")
        return super().update(**kwargs)

    def delete(self):
        raise ImmutableDocumentError("Issued documents cannot be deleted")


class Document(models.Model):
    """Ledger row for one issued document.

    Identity, subject, issuer, type, locator and snapshots never change after
    creation. Only the status bookkeeping and the download counter do.
    """

    class DocType(models.TextChoices):
        ENROLLMENT_CERTIFICATE = "enrollment_certificate", "Enrollment certificate"
        TRANSCRIPT = "transcript", "Transcript"
        VERIFICATION_LETTER = "verification_letter", "Verification letter"
        PARTICIPATION_CERTIFICATE = "participation_certificate", "Participation certificate"

    class Status(models.TextChoices):
        VALID = "valid", "Valid"
        REVOKED = "revoked", "Revoked"

    MUTABLE_FIELDS = frozenset({"status", "revoked_at", "revoked_by", "revoked_reason", "download_count"})

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    doc_type = models.CharField(max_length=40, choices=DocType.choices)
    subject = models.ForeignKey(
        "students.Student",
        on_delete=models.PROTECT,
        related_name="documents",
    )
    issuer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="issued_documents",
    )
    artifact_locator = models.CharField(max_length=255, unique=True)
    status = models.CharField(max_length=10, choices=Status.choices, default=Status.VALID, db_index=True)
    issued_at = models.DateTimeField(default=timezone.now, db_index=True)

    metadata = models.JSONField(default=dict, blank=True)
    subject_snapshot = models.JSONField(default=dict, blank=True)

    revoked_at = models.DateTimeField(null=True, blank=True)
    revoked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="revoked_documents",
    )
    revoked_reason = models.CharField(max_length=500, blank=True, default="")
    download_count = models.PositiveIntegerField(default=0)

    objects = DocumentQuerySet.as_manager()

    class Meta:
        ordering = ["-issued_at"]
        indexes = [
            models.Index(fields=["subject", "issued_at"], name="documents_subject_issued_idx"),
            models.Index(fields=["issuer", "issued_at"], name="documents_issuer_issued_idx"),
            models.Index(fields=["doc_type", "status"], name="documents_type_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.doc_type}:{self.id} ({self.status})"

    @property
    def is_valid(self) -> bool:
        return self.status == self.Status.VALID

    def save(self, *args, **kwargs):
        if not self._state.adding:
            update_fields = kwargs.get("update_fields")
            if update_fields is None or not set(update_fields) <= self.MUTABLE_FIELDS:
                raise ImmutableDocumentError(
                    "Existing documents may only update status bookkeeping (pass update_fields)"
                )
            if "status" in update_fields and self.status != self.Status.REVOKED:
                raise ImmutableDocumentError("Document status can only move to revoked")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ImmutableDocumentError("Issued documents cannot be deleted")
