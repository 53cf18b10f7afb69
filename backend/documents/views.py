from __future__ import annotations

import logging

from django.conf import settings
from django.http import HttpResponse
from rest_framework import status
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from audit.models import AuditLog
from audit.services import log_event, request_context
from users.permissions import IsAdmin

from .authorization import Principal, authorize_document_read, document_scope
from .dependencies import get_artifact_store, get_issuance_service, get_ledger
from .exceptions import NotFoundError, ValidationError
from .models import Document
from .serializers import REQUEST_SERIALIZERS, DocumentSerializer, RevokeDocumentSerializer
from .storage import LocalArtifactStore


logger = logging.getLogger(__name__)

LIST_FILTER_PARAMS = ("status", "subject", "issuer", "issued_after", "issued_before")


def _int_param(request, name: str, default: int) -> int:
    raw = (request.query_params.get(name) or "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError as e:
        raise ValidationError(f"Invalid {name}.", details={name: raw}) from e


class IssueDocumentAPIView(APIView):
    """POST /api/documents/<type>/: issue one document of the given type."""

    permission_classes = [IsAuthenticated]

    def get(self, request, doc_slug: str):
        # Malformed document ids land on this route.
        raise NotFoundError("Document not found.")

    def post(self, request, doc_slug: str):
        serializer_class = REQUEST_SERIALIZERS.get(doc_slug)
        if serializer_class is None:
            raise NotFoundError("Unknown document type.", details={"type": doc_slug})

        serializer = serializer_class(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = get_issuance_service().issue(
            Principal.from_user(request.user),
            serializer.to_request(),
            audit_context=request_context(request),
        )
        return Response(result.to_dict(), status=status.HTTP_200_OK)


class DocumentListAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        principal = Principal.from_user(request.user)

        filters = {}
        doc_type = (request.query_params.get("type") or "").strip()
        if doc_type:
            filters["doc_type"] = doc_type.replace("-", "_")
        for name in LIST_FILTER_PARAMS:
            value = (request.query_params.get(name) or "").strip()
            if value:
                filters[name] = value

        page = get_ledger().list_by(
            filters,
            page=_int_param(request, "page", 1),
            page_size=_int_param(request, "page_size", 20),
            scope=document_scope(principal),
        )
        return Response(
            {
                "count": page.total,
                "page": page.page,
                "page_size": page.page_size,
                "results": DocumentSerializer(page.items, many=True).data,
            }
        )


class DocumentDetailAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, document_id):
        ledger = get_ledger()
        doc = ledger.get_by_id(document_id)
        authorize_document_read(Principal.from_user(request.user), doc).enforce()

        download_url = get_artifact_store().signed_url(
            doc.artifact_locator,
            settings.DOCUMENT_DOWNLOAD_URL_TTL_SECONDS,
        )
        ledger.record_download(doc)
        doc.refresh_from_db(fields=["download_count"])

        log_event(
            request,
            event_type=AuditLog.EVENT_DOCUMENT_VIEWED,
            object_type="document",
            object_id=str(doc.id),
            status_code=200,
        )

        data = DocumentSerializer(doc).data
        data["downloadUrl"] = download_url
        return Response(data)


class RevokeDocumentAPIView(APIView):
    permission_classes = [IsAuthenticated, IsAdmin]

    def put(self, request, document_id):
        serializer = RevokeDocumentSerializer(data=request.data or {})
        serializer.is_valid(raise_exception=True)
        reason = serializer.validated_data.get("reason", "")

        change = get_ledger().transition(
            document_id,
            Document.Status.REVOKED,
            actor=request.user,
            reason=reason,
        )
        if change.changed:
            log_event(
                request,
                event_type=AuditLog.EVENT_DOCUMENT_REVOKED,
                object_type="document",
                object_id=str(change.document.id),
                status_code=200,
                metadata={"reason": change.document.revoked_reason},
            )
            logger.info(
                "documents.revoked",
                extra={"document_id": str(change.document.id), "actor_id": request.user.id},
            )

        return Response(DocumentSerializer(change.document).data)


class ArtifactDownloadAPIView(APIView):
    """Serve a locally stored artifact for a signed, unexpired token."""

    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request, token: str):
        store = get_artifact_store()
        if not isinstance(store, LocalArtifactStore):
            raise NotFoundError("Not found.")

        locator = store.resolve_token(token)
        pdf_bytes = store.open(locator)

        filename = locator.rsplit("/", 1)[-1]
        resp = HttpResponse(pdf_bytes, content_type="application/pdf")
        resp["Content-Disposition"] = f'inline; filename="{filename}"'
        resp["Cache-Control"] = "private, no-store"
        return resp
