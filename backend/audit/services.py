from __future__ import annotations

from typing import Any, Optional

from django.http import HttpRequest

from .models import AuditLog


def _get_ip(request: HttpRequest) -> str:
	xff = (request.META.get("HTTP_X_FORWARDED_FOR") or "").strip()
	if xff:
		# XFF can contain multiple IPs: client, proxy1, proxy2...
		return xff.split(",")[0].strip()
	return (request.META.get("REMOTE_ADDR") or "").strip()


def record_event(
	*,
	event_type: str,
	actor=None,
	object_type: str = "",
	object_id: str | int = "",
	status_code: Optional[int] = None,
	metadata: Optional[dict[str, Any]] = None,
	path: str = "",
	method: str = "",
	ip_address: str = "",
	user_agent: str = "",
) -> AuditLog:
	"""Write one audit entry without needing an HTTP request.

	Used by services that run outside a view (issuance, reconciliation).
	"""

	if actor is not None and not getattr(actor, "is_authenticated", False):
		actor = None

	obj_id_str = str(object_id) if object_id is not None else ""
	return AuditLog.objects.create(
		actor=actor,
		event_type=event_type,
		object_type=object_type or "",
		object_id=obj_id_str,
		path=path or "",
		method=method or "",
		status_code=status_code,
		ip_address=ip_address or "",
		user_agent=(user_agent or "")[:4000],
		metadata=metadata or {},
	)


def log_event(
	request: HttpRequest,
	*,
	event_type: str,
	object_type: str = "",
	object_id: str | int = "",
	status_code: Optional[int] = None,
	metadata: Optional[dict[str, Any]] = None,
) -> Optional[AuditLog]:
	user = getattr(request, "user", None)
	if not getattr(user, "is_authenticated", False):
		return None

	return record_event(
		actor=user,
		event_type=event_type,
		object_type=object_type,
		object_id=object_id,
		status_code=status_code,
		metadata=metadata,
		path=(getattr(request, "path", "") or ""),
		method=(getattr(request, "method", "") or ""),
		ip_address=_get_ip(request),
		user_agent=(request.META.get("HTTP_USER_AGENT") or ""),
	)


def request_context(request: HttpRequest) -> dict[str, str]:
	"""Request fields for `record_event` when the caller is not a view."""

	return {
		"path": (getattr(request, "path", "") or ""),
		"method": (getattr(request, "method", "") or ""),
		"ip_address": _get_ip(request),
		"user_agent": (request.META.get("HTTP_USER_AGENT") or ""),
	}
