from __future__ import annotations

from typing import Any

from documents.models import Document


def _mask_document_number(value: Any) -> str:
    """Returns a privacy-preserving representation for student numbers.

    Keeps only the last 4 characters (prefer digits when present).
    """

    raw = str(value or "").strip()
    if not raw:
        return ""

    digits = "".join(ch for ch in raw if ch.isdigit())
    tail = digits[-4:] if digits else raw[-4:]
    if not tail:
        return ""
    return f"****{tail}"


_ALLOWED_PUBLIC_METADATA_KEYS: dict[str, set[str]] = {
    Document.DocType.ENROLLMENT_CERTIFICATE: {
        "semester",
        "academicYear",
        "enrollmentDate",
    },
    Document.DocType.TRANSCRIPT: {
        "gpa",
        "totalCredits",
        "completedCredits",
    },
    Document.DocType.PARTICIPATION_CERTIFICATE: {
        "courseCode",
        "courseName",
        "instructor",
        "semester",
        "academicYear",
        "hoursAttended",
        "totalHours",
        "attendancePercentage",
    },
    Document.DocType.VERIFICATION_LETTER: {
        "academicYear",
        "enrollmentStatus",
    },
}


def sanitize_public_metadata(doc_type: str, metadata: dict[str, Any] | None) -> dict[str, Any]:
    """Whitelists the issuance metadata returned by public verification.

    Purposes, internal ids and anything not listed for the type are dropped.
    """

    if not isinstance(metadata, dict):
        return {}

    allowed = _ALLOWED_PUBLIC_METADATA_KEYS.get(str(doc_type) or "", set())

    sanitized: dict[str, Any] = {}
    for key in sorted(allowed):
        if key not in metadata:
            continue
        value = metadata.get(key)
        if isinstance(value, str):
            value = value.strip()
            if value:
                sanitized[key] = value
            continue
        if isinstance(value, (int, float, bool)) or value is None:
            sanitized[key] = value
    return sanitized


def public_subject_summary(snapshot: dict[str, Any] | None) -> dict[str, Any]:
    snapshot = snapshot if isinstance(snapshot, dict) else {}
    return {
        "name": str(snapshot.get("name") or "").strip(),
        "studentNumber": _mask_document_number(snapshot.get("studentNumber")),
        "program": str(snapshot.get("program") or "").strip(),
        "faculty": str(snapshot.get("faculty") or "").strip(),
    }
