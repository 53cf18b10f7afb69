"""System of record for issued documents.

Every read goes to the database; nothing here caches document state.
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Mapping, Optional

import django_filters
from django.db import IntegrityError, transaction
from django.db.models import F, Q, QuerySet
from django.utils import timezone

from .exceptions import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from .models import Document


MAX_PAGE_SIZE = 100


@dataclass(frozen=True)
class DocumentRecord:
    id: uuid.UUID
    doc_type: str
    subject_id: int
    issuer_id: int
    artifact_locator: str
    issued_at: datetime
    metadata: dict[str, Any] = field(default_factory=dict)
    subject_snapshot: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class LedgerPage:
    items: list[Document]
    total: int
    page: int
    page_size: int


@dataclass(frozen=True)
class StatusChange:
    document: Document
    changed: bool


class DocumentFilterSet(django_filters.FilterSet):
    doc_type = django_filters.ChoiceFilter(choices=Document.DocType.choices)
    status = django_filters.ChoiceFilter(choices=Document.Status.choices)
    subject = django_filters.NumberFilter(field_name="subject_id")
    issuer = django_filters.NumberFilter(field_name="issuer_id")
    issued_after = django_filters.IsoDateTimeFilter(field_name="issued_at", lookup_expr="gte")
    issued_before = django_filters.IsoDateTimeFilter(field_name="issued_at", lookup_expr="lt")

    class Meta:
        model = Document
        fields = ["doc_type", "status", "subject", "issuer", "issued_after", "issued_before"]


def parse_document_id(value: Any) -> Optional[uuid.UUID]:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value).strip())
    except (TypeError, ValueError, AttributeError):
        return None


class DocumentLedger:
    def create(self, record: DocumentRecord) -> Document:
        clash = Document.objects.filter(Q(pk=record.id) | Q(artifact_locator=record.artifact_locator))
        if clash.exists():
            raise ConflictError(details={"documentId": str(record.id)})

        try:
            with transaction.atomic():
                return Document.objects.create(
                    id=record.id,
                    doc_type=record.doc_type,
                    subject_id=record.subject_id,
                    issuer_id=record.issuer_id,
                    artifact_locator=record.artifact_locator,
                    status=Document.Status.VALID,
                    issued_at=record.issued_at,
                    metadata=dict(record.metadata),
                    subject_snapshot=dict(record.subject_snapshot),
                )
        except IntegrityError as e:
            raise ConflictError(details={"documentId": str(record.id)}) from e

    def get_by_id(self, document_id: Any) -> Document:
        parsed = parse_document_id(document_id)
        if parsed is None:
            raise NotFoundError("Document not found.")
        try:
            return Document.objects.select_related("subject", "subject__user", "issuer").get(pk=parsed)
        except Document.DoesNotExist as e:
            raise NotFoundError("Document not found.") from e

    def find(self, document_id: Any) -> Optional[Document]:
        try:
            return self.get_by_id(document_id)
        except NotFoundError:
            return None

    def exists_for_locator(self, locator: str) -> bool:
        return Document.objects.filter(artifact_locator=locator).exists()

    def transition(self, document_id: Any, new_status: str, *, actor=None, reason: str = "") -> StatusChange:
        """Apply a status change under a row lock.

        valid -> revoked records who/when/why; revoked -> revoked and
        valid -> valid are no-ops; revoked -> valid is rejected.
        """

        if new_status not in Document.Status.values:
            raise ValidationError(f"Unknown status: {new_status}")
        parsed = parse_document_id(document_id)
        if parsed is None:
            raise NotFoundError("Document not found.")

        with transaction.atomic():
            try:
                doc = Document.objects.select_for_update().get(pk=parsed)
            except Document.DoesNotExist as e:
                raise NotFoundError("Document not found.") from e

            if doc.status == new_status:
                return StatusChange(document=doc, changed=False)
            if doc.status == Document.Status.REVOKED:
                raise InvalidTransitionError("A revoked document cannot become valid again.")

            doc.status = Document.Status.REVOKED
            doc.revoked_at = timezone.now()
            doc.revoked_by = actor if getattr(actor, "is_authenticated", False) else None
            doc.revoked_reason = (reason or "").strip()[:500]
            doc.save(update_fields=["status", "revoked_at", "revoked_by", "revoked_reason"])
            return StatusChange(document=doc, changed=True)

    def set_status(self, document_id: Any, new_status: str, *, actor=None, reason: str = "") -> Document:
        return self.transition(document_id, new_status, actor=actor, reason=reason).document

    def record_download(self, document: Document) -> None:
        Document.objects.filter(pk=document.pk).update(download_count=F("download_count") + 1)

    def list_by(
        self,
        filters: Mapping[str, Any] | None = None,
        *,
        page: int = 1,
        page_size: int = 20,
        scope: Q | None = None,
    ) -> LedgerPage:
        if page < 1 or page_size < 1 or page_size > MAX_PAGE_SIZE:
            raise ValidationError(
                "Invalid pagination.",
                details={"page": page, "page_size": page_size, "max_page_size": MAX_PAGE_SIZE},
            )

        qs: QuerySet[Document] = Document.objects.select_related("subject", "subject__user", "issuer")
        if scope is not None:
            qs = qs.filter(scope)

        fs = DocumentFilterSet(data=dict(filters or {}), queryset=qs)
        if not fs.is_valid():
            raise ValidationError(
                "Invalid filters.",
                details={k: [str(m) for m in v] for k, v in fs.errors.items()},
            )

        qs = fs.qs.order_by("-issued_at", "-id")
        total = qs.count()
        start = (page - 1) * page_size
        items = list(qs[start : start + page_size])
        return LedgerPage(items=items, total=total, page=page, page_size=page_size)
