from __future__ import annotations

from django.conf import settings
from django.db import models


class VerificationEventQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise ValueError("Verification events are append-only")

    def delete(self):
        raise ValueError("Verification events are append-only")


class VerificationEvent(models.Model):
    """One verification attempt, including failed lookups.

    `document_id` is a plain UUID rather than a foreign key so attempts on
    unknown identifiers are recorded as well.
    """

    class Outcome(models.TextChoices):
        VALID = "valid", "Valid"
        INVALID = "invalid", "Invalid"
        NOT_FOUND = "not_found", "Not found"

    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    document_id = models.UUIDField(db_index=True)
    doc_type = models.CharField(max_length=40, blank=True, default="")
    outcome = models.CharField(max_length=12, choices=Outcome.choices, db_index=True)

    verifier = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="verification_events",
    )

    ip_address = models.CharField(max_length=64, blank=True, default="", db_index=True)
    user_agent = models.CharField(max_length=255, blank=True, default="")

    objects = VerificationEventQuerySet.as_manager()

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["document_id", "created_at"], name="verif_event_doc_created_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValueError("Verification events are append-only")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValueError("Verification events are append-only")

    def __str__(self) -> str:
        return f"{self.created_at:%Y-%m-%d %H:%M:%S} {self.document_id} {self.outcome}"
