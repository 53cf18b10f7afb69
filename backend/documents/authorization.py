"""Capability checks for issuing and reading documents.

Checks return a ``Decision`` instead of raising so callers can consume them
uniformly; ``Decision.enforce`` turns a refusal into ``ForbiddenError``.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional

from django.db.models import Q

from users.models import User

from .exceptions import ForbiddenError
from .models import Document


SELF_SERVICE_TYPES = frozenset(
    {
        Document.DocType.ENROLLMENT_CERTIFICATE,
        Document.DocType.TRANSCRIPT,
        Document.DocType.VERIFICATION_LETTER,
    }
)


@dataclass(frozen=True)
class Principal:
    user_id: int
    role: str
    student_id: Optional[int] = None
    pedagogue_id: Optional[int] = None
    user: Any = field(default=None, compare=False, repr=False)

    @classmethod
    def from_user(cls, user) -> "Principal":
        student_id = None
        pedagogue_id = None
        if user.role == User.ROLE_STUDENT and hasattr(user, "student_profile"):
            student_id = user.student_profile.pk
        if user.role == User.ROLE_PEDAGOGUE and hasattr(user, "pedagogue_profile"):
            pedagogue_id = user.pedagogue_profile.pk
        return cls(user_id=user.pk, role=user.role, student_id=student_id, pedagogue_id=pedagogue_id, user=user)

    @property
    def is_admin(self) -> bool:
        return self.role == User.ROLE_ADMIN


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""

    @classmethod
    def allow(cls) -> "Decision":
        return cls(allowed=True)

    @classmethod
    def forbid(cls, reason: str) -> "Decision":
        return cls(allowed=False, reason=reason)

    def enforce(self) -> None:
        if not self.allowed:
            raise ForbiddenError(self.reason or None)


def resolve_subject_id(principal: Principal, request) -> Optional[int]:
    """Target subject of an issuance request; self-service defaults to the caller."""

    requested = getattr(request, "student_id", None)
    if requested is None and request.doc_type in SELF_SERVICE_TYPES:
        return principal.student_id
    return requested


def authorize_issuance(principal: Principal, request, *, directory) -> Decision:
    if request.doc_type in SELF_SERVICE_TYPES:
        if principal.role != User.ROLE_STUDENT:
            return Decision.forbid("Only students can request this document.")
        if principal.student_id is None:
            return Decision.forbid("Your account has no student record.")
        if resolve_subject_id(principal, request) != principal.student_id:
            return Decision.forbid("Students can only request their own documents.")
        return Decision.allow()

    if request.doc_type == Document.DocType.PARTICIPATION_CERTIFICATE:
        if principal.role != User.ROLE_PEDAGOGUE or principal.pedagogue_id is None:
            return Decision.forbid("Only pedagogues can issue participation certificates.")
        if not directory.teaches(principal.pedagogue_id, request.course_id):
            return Decision.forbid("You are not authorized to issue certificates for this course.")
        return Decision.allow()

    return Decision.forbid(f"Unsupported document type: {request.doc_type}")


def authorize_document_read(principal: Principal, document: Document) -> Decision:
    if principal.is_admin:
        return Decision.allow()
    if principal.student_id is not None and document.subject_id == principal.student_id:
        return Decision.allow()
    if document.issuer_id == principal.user_id:
        return Decision.allow()
    return Decision.forbid("You do not have access to this document.")


def document_scope(principal: Principal) -> Optional[Q]:
    """Rows a caller may list; None means unrestricted."""

    if principal.is_admin:
        return None
    if principal.role == User.ROLE_STUDENT:
        if principal.student_id is None:
            return Q(pk__in=[])
        return Q(subject_id=principal.student_id)
    if principal.role == User.ROLE_PEDAGOGUE:
        return Q(issuer_id=principal.user_id)
    return Q(pk__in=[])
