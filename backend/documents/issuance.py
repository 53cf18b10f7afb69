"""Issuance workflow.

authorize -> gather -> render -> persist artifact -> commit ledger row ->
audit -> signed URL. Each step runs only if the previous one succeeded.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Optional

from django.db import DatabaseError
from django.utils import timezone

from audit.models import AuditLog
from audit.services import record_event

from .authorization import Principal, authorize_issuance, resolve_subject_id
from .exceptions import DocumentError, NotFoundError, RenderError, StorageError
from .gathering import SubjectDirectory
from .ledger import DocumentLedger, DocumentRecord
from .models import Document
from .rendering import (
    EnrollmentCertificateFields,
    ParticipationCertificateFields,
    TemplateRenderer,
    TranscriptFields,
    TranscriptRow,
    VerificationLetterFields,
    attendance_percentage,
)
from .storage import ArtifactStore, artifact_key


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class IssuanceResult:
    document_id: uuid.UUID
    doc_type: str
    download_url: str
    generated_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "documentId": str(self.document_id),
            "type": str(self.doc_type),
            "downloadUrl": self.download_url,
            "generatedAt": self.generated_at.isoformat(),
        }


@dataclass(frozen=True)
class _Gathered:
    profile: Any
    academic_year: str
    course: Any = None
    transcript: Any = None


class IssuanceService:
    def __init__(
        self,
        *,
        ledger: DocumentLedger,
        store: ArtifactStore,
        renderer: TemplateRenderer,
        directory: SubjectDirectory,
        url_ttl_seconds: int = 3600,
        id_factory: Callable[[], uuid.UUID] = uuid.uuid4,
        clock: Callable[[], datetime] = timezone.now,
    ):
        self.ledger = ledger
        self.store = store
        self.renderer = renderer
        self.directory = directory
        self.url_ttl_seconds = url_ttl_seconds
        self.id_factory = id_factory
        self.clock = clock

    def issue(self, principal: Principal, request, *, audit_context: Optional[dict[str, str]] = None) -> IssuanceResult:
        doc_type = request.doc_type
        audit_context = audit_context or {}

        decision = authorize_issuance(principal, request, directory=self.directory)
        if not decision.allowed:
            logger.warning(
                "documents.issuance_forbidden",
                extra={"user_id": principal.user_id, "type": str(doc_type), "reason": decision.reason},
            )
        decision.enforce()

        gathered = self._gather(principal, request)

        document_id = self.id_factory()
        generated_at = self.clock()
        fields, metadata = self._compose(request, gathered, str(document_id), generated_at)

        try:
            pdf_bytes = self.renderer.render(doc_type, fields)
        except RenderError as e:
            logger.error(
                "documents.render_failed",
                extra={"document_id": str(document_id), "type": str(doc_type), "cause": str(e.detail)},
            )
            raise

        try:
            locator = self.store.put(pdf_bytes, artifact_key(doc_type, document_id))
        except StorageError:
            logger.error("documents.artifact_put_failed", extra={"document_id": str(document_id)})
            raise

        try:
            self.ledger.create(
                DocumentRecord(
                    id=document_id,
                    doc_type=doc_type,
                    subject_id=gathered.profile.id,
                    issuer_id=principal.user_id,
                    artifact_locator=locator,
                    issued_at=generated_at,
                    metadata=metadata,
                    subject_snapshot=gathered.profile.snapshot(),
                )
            )
        except (DocumentError, DatabaseError) as e:
            self._report_orphan(principal, document_id, locator, e, audit_context)
            raise

        # The ledger row is committed; failures below are logged only.
        try:
            record_event(
                actor=principal.user,
                event_type=AuditLog.EVENT_DOCUMENT_ISSUED,
                object_type="document",
                object_id=str(document_id),
                metadata={"type": str(doc_type), "subjectId": gathered.profile.id},
                **audit_context,
            )
        except DatabaseError:
            logger.exception("documents.issued_audit_failed", extra={"document_id": str(document_id)})
        logger.info(
            "documents.issued",
            extra={"document_id": str(document_id), "type": str(doc_type), "issuer_id": principal.user_id},
        )

        try:
            download_url = self.store.signed_url(locator, self.url_ttl_seconds)
        except DocumentError:
            logger.exception("documents.download_url_failed", extra={"document_id": str(document_id)})
            download_url = ""
        return IssuanceResult(
            document_id=document_id,
            doc_type=doc_type,
            download_url=download_url,
            generated_at=generated_at,
        )

    def _report_orphan(self, principal, document_id, locator, error, audit_context) -> None:
        logger.error(
            "documents.orphaned_artifact",
            extra={"document_id": str(document_id), "locator": locator, "error": type(error).__name__},
        )
        try:
            record_event(
                actor=principal.user,
                event_type=AuditLog.EVENT_DOCUMENT_ORPHANED_ARTIFACT,
                object_type="document",
                object_id=str(document_id),
                metadata={"locator": locator, "error": type(error).__name__},
                **audit_context,
            )
        except DatabaseError:
            logger.exception("documents.orphaned_artifact_audit_failed", extra={"document_id": str(document_id)})

    def _gather(self, principal: Principal, request) -> _Gathered:
        subject_id = resolve_subject_id(principal, request)
        if subject_id is None:
            raise NotFoundError("Student not found.")
        profile = self.directory.get_student(subject_id)

        if request.doc_type == Document.DocType.PARTICIPATION_CERTIFICATE:
            course = self.directory.get_course(request.course_id)
            return _Gathered(
                profile=profile,
                course=course,
                academic_year=self.directory.academic_year_for(profile.id, course.id),
            )

        transcript = None
        if request.doc_type == Document.DocType.TRANSCRIPT:
            transcript = self.directory.transcript(profile.id, program_total_credits=profile.program_total_credits)
        return _Gathered(
            profile=profile,
            transcript=transcript,
            academic_year=self.directory.academic_year_for(profile.id),
        )

    def _compose(self, request, gathered: _Gathered, document_id: str, generated_at: datetime):
        p = gathered.profile
        identity = {
            "document_id": document_id,
            "generated_at": generated_at,
            "student_name": p.name,
            "student_number": p.student_number,
        }

        if request.doc_type == Document.DocType.ENROLLMENT_CERTIFICATE:
            semester = p.study_year or 1
            fields = EnrollmentCertificateFields(
                **identity,
                program=p.program,
                faculty=p.faculty,
                semester=semester,
                academic_year=gathered.academic_year,
                enrollment_date=p.enrollment_date,
                purpose=(request.purpose or "").strip(),
            )
            metadata = {
                "semester": semester,
                "academicYear": gathered.academic_year,
                "enrollmentDate": p.enrollment_date.isoformat() if p.enrollment_date else None,
                "purpose": fields.purpose,
            }
            return fields, metadata

        if request.doc_type == Document.DocType.TRANSCRIPT:
            t = gathered.transcript
            fields = TranscriptFields(
                **identity,
                program=p.program,
                faculty=p.faculty,
                gpa=t.gpa,
                total_credits=t.total_credits,
                completed_credits=t.completed_credits,
                rows=tuple(
                    TranscriptRow(code=r.code, name=r.name, grade=r.grade, credits=r.credits, semester=r.semester)
                    for r in t.rows
                ),
            )
            metadata = {
                "gpa": str(t.gpa),
                "totalCredits": t.total_credits,
                "completedCredits": t.completed_credits,
                "subjectCount": len(t.rows),
            }
            return fields, metadata

        if request.doc_type == Document.DocType.VERIFICATION_LETTER:
            fields = VerificationLetterFields(
                **identity,
                program=p.program,
                faculty=p.faculty,
                enrollment_status=p.status,
                academic_year=gathered.academic_year,
                purpose=request.purpose.strip(),
            )
            metadata = {
                "purpose": fields.purpose,
                "enrollmentStatus": p.status,
                "academicYear": gathered.academic_year,
            }
            return fields, metadata

        course = gathered.course
        fields = ParticipationCertificateFields(
            **identity,
            course_name=course.name,
            course_code=course.code,
            instructor=course.instructor,
            semester=course.semester,
            academic_year=gathered.academic_year,
            hours_attended=request.hours_attended,
            total_hours=request.total_hours,
        )
        metadata = {
            "courseId": course.id,
            "courseCode": course.code,
            "courseName": course.name,
            "instructor": course.instructor,
            "semester": course.semester,
            "academicYear": gathered.academic_year,
            "hoursAttended": request.hours_attended,
            "totalHours": request.total_hours,
            "attendancePercentage": (
                attendance_percentage(request.hours_attended, request.total_hours)
                if request.total_hours and request.total_hours > 0
                else None
            ),
        }
        return fields, metadata
