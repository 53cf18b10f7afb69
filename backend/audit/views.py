from __future__ import annotations

from rest_framework import permissions, viewsets

from users.permissions import IsAdmin

from .models import AuditLog
from .serializers import AuditLogSerializer


class AuditLogViewSet(viewsets.ReadOnlyModelViewSet):
	"""Admin-only read access to the document audit trail.

	`?document=<uuid>` narrows the list to one document's entries.
	"""

	serializer_class = AuditLogSerializer
	permission_classes = [permissions.IsAuthenticated, IsAdmin]
	filterset_fields = ["event_type", "object_type", "object_id", "actor"]

	def get_queryset(self):
		qs = AuditLog.objects.select_related("actor").all().order_by("-created_at", "-id")
		document_id = (self.request.query_params.get("document") or "").strip()
		if document_id:
			qs = qs.filter(object_type="document", object_id=document_id)
		return qs
