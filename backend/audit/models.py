from __future__ import annotations

from django.conf import settings
from django.db import models


class AuditLog(models.Model):
	"""Append-only trail for issuance and administration of documents.

	Note: keep payload small; store details in `metadata`.
	"""

	EVENT_DOCUMENT_ISSUED = "document.issued"
	EVENT_DOCUMENT_REVOKED = "document.revoked"
	EVENT_DOCUMENT_VIEWED = "document.viewed"
	EVENT_DOCUMENT_ORPHANED_ARTIFACT = "document.orphaned_artifact"

	actor = models.ForeignKey(
		settings.AUTH_USER_MODEL,
		on_delete=models.SET_NULL,
		null=True,
		blank=True,
		related_name="audit_logs",
	)

	event_type = models.CharField(max_length=80)
	object_type = models.CharField(max_length=80, blank=True, default="")
	object_id = models.CharField(max_length=80, blank=True, default="")

	path = models.CharField(max_length=300, blank=True, default="")
	method = models.CharField(max_length=10, blank=True, default="")
	status_code = models.PositiveSmallIntegerField(null=True, blank=True)

	ip_address = models.CharField(max_length=64, blank=True, default="")
	user_agent = models.TextField(blank=True, default="")

	metadata = models.JSONField(default=dict, blank=True)

	created_at = models.DateTimeField(auto_now_add=True)

	class Meta:
		ordering = ["-created_at", "-id"]
		indexes = [
			models.Index(fields=["created_at"], name="audit_audit_created_idx"),
			models.Index(fields=["event_type", "created_at"], name="audit_audit_event_created_idx"),
			models.Index(fields=["object_type", "object_id", "created_at"], name="audit_audit_object_idx"),
			models.Index(fields=["actor", "created_at"], name="audit_audit_actor_idx"),
		]

	def save(self, *args, **kwargs):
		if self.pk is not None and not self._state.adding:
			raise ValueError("AuditLog entries are append-only")
		return super().save(*args, **kwargs)

	def delete(self, *args, **kwargs):
		raise ValueError("AuditLog entries are append-only")

	def __str__(self) -> str:
		obj = f"{self.object_type}:{self.object_id}" if self.object_type or self.object_id else "-"
		return f"{self.created_at:%Y-%m-%d %H:%M:%S} {self.event_type} {obj}"
