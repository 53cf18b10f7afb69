"""Public verification of issued documents.

Every call records exactly one ``VerificationEvent`` and returns a verdict;
unknown and revoked documents are negative verdicts, never errors.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from documents.ledger import DocumentLedger, parse_document_id
from documents.models import Document

from .models import VerificationEvent
from .payload_policy import public_subject_summary, sanitize_public_metadata


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Verdict:
    valid: bool
    reason: str = ""
    document: Optional[dict[str, Any]] = None
    message: str = ""

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"valid": self.valid, "message": self.message}
        if self.reason:
            data["reason"] = self.reason
        if self.document is not None:
            data["document"] = self.document
        return data


@dataclass(frozen=True)
class HistoryEntry:
    id: int
    outcome: str
    verified_at: Any
    ip_address: str
    verifier: Optional[dict[str, Any]] = field(default=None)


class VerificationService:
    def __init__(self, *, ledger: DocumentLedger, history_limit: int = 50):
        self.ledger = ledger
        self.history_limit = history_limit

    def verify(self, document_id: uuid.UUID, *, caller=None, source_address: str = "", user_agent: str = "") -> Verdict:
        doc = self.ledger.find(document_id)

        if doc is None:
            verdict = Verdict(valid=False, reason="not_found", message="Document not found")
            outcome = VerificationEvent.Outcome.NOT_FOUND
        elif doc.status != Document.Status.VALID:
            verdict = Verdict(
                valid=False,
                reason="revoked",
                message="Document has been revoked or is no longer valid",
                document={"id": str(doc.id), "type": doc.doc_type, "status": doc.status},
            )
            outcome = VerificationEvent.Outcome.INVALID
        else:
            issuer = doc.issuer
            verdict = Verdict(
                valid=True,
                message="Document is authentic and valid",
                document={
                    "id": str(doc.id),
                    "type": doc.doc_type,
                    "status": doc.status,
                    "issuedAt": doc.issued_at.isoformat(),
                    "subject": public_subject_summary(doc.subject_snapshot),
                    "issuer": issuer.get_full_name() or issuer.username,
                    "metadata": sanitize_public_metadata(doc.doc_type, doc.metadata),
                },
            )
            outcome = VerificationEvent.Outcome.VALID

        VerificationEvent.objects.create(
            document_id=document_id,
            doc_type=doc.doc_type if doc is not None else "",
            outcome=outcome,
            verifier=caller if getattr(caller, "is_authenticated", False) else None,
            ip_address=(source_address or "")[:64],
            user_agent=(user_agent or "")[:255],
        )
        logger.info(
            "verification.checked",
            extra={"document_id": str(document_id), "outcome": str(outcome)},
        )
        return verdict

    def history(self, document_id: Any, *, limit: Optional[int] = None) -> list[HistoryEntry]:
        parsed = parse_document_id(document_id)
        if parsed is None:
            return []

        limit = limit or self.history_limit
        events = (
            VerificationEvent.objects.filter(document_id=parsed)
            .select_related("verifier")
            .order_by("-created_at", "-id")[:limit]
        )
        out = []
        for ev in events:
            verifier = None
            if ev.verifier is not None:
                verifier = {
                    "id": ev.verifier.id,
                    "name": ev.verifier.get_full_name() or ev.verifier.username,
                }
            out.append(
                HistoryEntry(
                    id=ev.id,
                    outcome=ev.outcome,
                    verified_at=ev.created_at,
                    ip_address=ev.ip_address,
                    verifier=verifier,
                )
            )
        return out
