from __future__ import annotations

from django.http import HttpResponsePermanentRedirect
from django.urls import reverse
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from documents.dependencies import get_verification_service
from documents.exceptions import NotFoundError
from documents.ledger import parse_document_id
from unidocs_backend.authentication import OptionalJWTAuthentication

from .serializers import VerificationHistoryEntrySerializer
from .throttles import PublicVerifyRateThrottle


def _get_client_ip(request) -> str:
    # Best-effort extraction behind reverse proxies.
    xff = request.META.get("HTTP_X_FORWARDED_FOR")
    if xff:
        return xff.split(",")[0].strip()
    return str(request.META.get("REMOTE_ADDR") or "").strip()


def _parse_or_404(raw: str):
    parsed = parse_document_id(raw)
    if parsed is None:
        raise NotFoundError("Invalid document identifier.")
    return parsed


class PublicVerifyAPIView(APIView):
    """GET /api/verify/<id>/: public verdict for a document identifier.

    A bearer token is optional; an invalid one is ignored rather than rejected.
    """

    authentication_classes = [OptionalJWTAuthentication]
    permission_classes = [AllowAny]
    throttle_classes = [PublicVerifyRateThrottle]

    def get(self, request, document_id: str, format=None):
        cleaned = str(document_id or "").strip()
        if cleaned and cleaned != document_id:
            # Some QR scanners append newlines/spaces. Redirect to canonical URL.
            return HttpResponsePermanentRedirect(reverse("public-verify", kwargs={"document_id": cleaned}))

        parsed = _parse_or_404(cleaned)
        verdict = get_verification_service().verify(
            parsed,
            caller=request.user,
            source_address=_get_client_ip(request),
            user_agent=str(request.META.get("HTTP_USER_AGENT") or ""),
        )
        return Response(verdict.to_dict())


class VerificationHistoryAPIView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, document_id: str, format=None):
        parsed = _parse_or_404(str(document_id or "").strip())
        entries = get_verification_service().history(parsed)
        return Response(
            {
                "documentId": str(parsed),
                "verifications": VerificationHistoryEntrySerializer(entries, many=True).data,
            }
        )
