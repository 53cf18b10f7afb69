from __future__ import annotations

import os
import threading
import time
import uuid
from concurrent.futures import ThreadPoolExecutor
from datetime import date, datetime, timedelta
from datetime import timezone as dt_timezone
from decimal import Decimal
from io import StringIO
from unittest import mock

from botocore.exceptions import ClientError
from django.core.management import call_command
from django.db import DatabaseError, connection
from django.test import TestCase, TransactionTestCase
from django.utils import timezone
from rest_framework.test import APITestCase

from audit.models import AuditLog
from audit.services import record_event
from students.models import Student

from .authorization import Principal, authorize_document_read, authorize_issuance
from .exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    RenderError,
    StorageError,
    ValidationError,
    api_exception_handler,
)
from .gathering import SubjectDirectory
from .issuance import IssuanceService
from .ledger import DocumentLedger, DocumentRecord
from .models import Document, ImmutableDocumentError
from .reconciliation import sweep_orphaned_artifacts
from .rendering import (
    EnrollmentCertificateFields,
    Letterhead,
    ParticipationCertificateFields,
    TemplateRenderer,
    TranscriptFields,
    TranscriptRow,
    VerificationLetterFields,
    attendance_percentage,
)
from .serializers import ParticipationCertificateRequest, TranscriptRequest, VerificationLetterRequest
from .storage import LocalArtifactStore, S3ArtifactStore, artifact_key
from .tasks import sweep_orphaned_artifacts_task
from .testing import UniversityFixtures, fake_pdf_backend


LETTERHEAD = Letterhead(
    institution="Polytechnic University of Tirana",
    faculty="Faculty of Information Technology",
    contact_line="Tel: +355 4 2222 222 | Email: info@fti.edu.al",
    signature_left="Dean Signature",
    signature_right="Faculty Seal",
)


def _renderer(backend=fake_pdf_backend) -> TemplateRenderer:
    return TemplateRenderer(letterhead=LETTERHEAD, verify_base_url="https://docs.example.edu/", pdf_backend=backend)


def _participation_fields(**overrides) -> ParticipationCertificateFields:
    values = dict(
        document_id="3f1c9a52-7d7e-4d2e-9a57-1f2f0b1d2c3e",
        generated_at=datetime(2024, 11, 5, 10, 0, tzinfo=dt_timezone.utc),
        student_name="Arta Krasniqi",
        student_number="S2024001",
        course_name="Data Structures",
        course_code="CS201",
        instructor="Petrit Hoxha",
        semester=3,
        academic_year="2024-2025",
        hours_attended=45,
        total_hours=48,
    )
    values.update(overrides)
    return ParticipationCertificateFields(**values)


class TemplateRendererTests(TestCase):
    def test_attendance_percentage_has_one_decimal(self):
        self.assertEqual(attendance_percentage(45, 48), "93.8")
        self.assertEqual(attendance_percentage(48, 48), "100.0")
        self.assertEqual(attendance_percentage(0, 10), "0.0")

    def test_participation_layout(self):
        html = _renderer().build_html(Document.DocType.PARTICIPATION_CERTIFICATE, _participation_fields())

        self.assertIn("CERTIFICATE OF PARTICIPATION", html)
        self.assertIn("ARTA KRASNIQI", html)
        self.assertIn("Attendance: 45/48 hours (93.8%)", html)
        self.assertIn("Instructor: Petrit Hoxha", html)
        self.assertIn("Dean Signature", html)
        self.assertIn("Faculty Seal", html)
        self.assertIn("Scan the QR code to verify authenticity", html)
        self.assertIn("3f1c9a52-7d7e-4d2e-9a57-1f2f0b1d2c3e", html)
        self.assertIn("data:image/png;base64,", html)

    def test_qr_points_to_public_verification_page(self):
        renderer = _renderer()
        self.assertEqual(renderer.verification_url("abc"), "https://docs.example.edu/verify/abc")

    def test_render_returns_backend_bytes(self):
        pdf = _renderer().render(Document.DocType.PARTICIPATION_CERTIFICATE, _participation_fields())
        self.assertTrue(pdf.startswith(b"%PDF"))

    def test_each_type_has_its_own_title(self):
        generated_at = timezone.now()
        identity = dict(document_id="d1", generated_at=generated_at, student_name="Arta Krasniqi", student_number="S1")
        cases = [
            (
                Document.DocType.ENROLLMENT_CERTIFICATE,
                EnrollmentCertificateFields(
                    **identity,
                    program="Computer Engineering",
                    faculty="FTI",
                    semester=2,
                    academic_year="2024-2025",
                    enrollment_date=date(2023, 10, 1),
                ),
                "CERTIFICATE OF ENROLLMENT",
            ),
            (
                Document.DocType.TRANSCRIPT,
                TranscriptFields(
                    **identity,
                    program="Computer Engineering",
                    faculty="FTI",
                    gpa=Decimal("7.00"),
                    total_credits=180,
                    completed_credits=6,
                    rows=(TranscriptRow(code="CS201", name="Data Structures", grade=Decimal("9"), credits=6, semester="1 - 2023-2024"),),
                ),
                "OFFICIAL TRANSCRIPT",
            ),
            (
                Document.DocType.VERIFICATION_LETTER,
                VerificationLetterFields(
                    **identity,
                    program="Computer Engineering",
                    faculty="FTI",
                    enrollment_status="Active",
                    academic_year="2024-2025",
                    purpose="Visa application",
                ),
                "STUDENT VERIFICATION LETTER",
            ),
        ]
        for doc_type, fields, title in cases:
            with self.subTest(doc_type=doc_type):
                self.assertIn(title, _renderer().build_html(doc_type, fields))

    def test_transcript_lists_rows(self):
        fields = TranscriptFields(
            document_id="d1",
            generated_at=timezone.now(),
            student_name="Arta Krasniqi",
            student_number="S1",
            program="Computer Engineering",
            faculty="FTI",
            gpa=Decimal("7.00"),
            total_credits=180,
            completed_credits=6,
            rows=(TranscriptRow(code="CS201", name="Data Structures", grade=Decimal("9"), credits=6, semester="1 - 2023-2024"),),
        )
        html = _renderer().build_html(Document.DocType.TRANSCRIPT, fields)
        self.assertIn("CS201 - Data Structures", html)
        self.assertIn("GPA: 7.00", html)

    def test_out_of_domain_input_raises_render_error(self):
        cases = {
            "blank name": _participation_fields(student_name="  "),
            "missing student id": _participation_fields(student_number=""),
            "zero total hours": _participation_fields(total_hours=0, hours_attended=0),
            "negative hours": _participation_fields(hours_attended=-1),
            "attended above total": _participation_fields(hours_attended=49, total_hours=48),
            "missing instructor": _participation_fields(instructor=""),
        }
        for label, fields in cases.items():
            with self.subTest(label):
                with self.assertRaises(RenderError):
                    _renderer().render(Document.DocType.PARTICIPATION_CERTIFICATE, fields)

    def test_gpa_and_credits_are_range_checked(self):
        base = dict(
            document_id="d1",
            generated_at=timezone.now(),
            student_name="Arta",
            student_number="S1",
            program="CE",
            faculty="FTI",
            total_credits=180,
            completed_credits=6,
        )
        with self.assertRaises(RenderError):
            _renderer().build_html(Document.DocType.TRANSCRIPT, TranscriptFields(**base, gpa=Decimal("10.5")))
        with self.assertRaises(RenderError):
            _renderer().build_html(
                Document.DocType.TRANSCRIPT,
                TranscriptFields(**{**base, "completed_credits": -1}, gpa=Decimal("7")),
            )

    def test_blank_purpose_is_rejected(self):
        fields = VerificationLetterFields(
            document_id="d1",
            generated_at=timezone.now(),
            student_name="Arta",
            student_number="S1",
            program="CE",
            faculty="FTI",
            enrollment_status="Active",
            academic_year="2024-2025",
            purpose="   ",
        )
        with self.assertRaises(RenderError):
            _renderer().build_html(Document.DocType.VERIFICATION_LETTER, fields)

    def test_fields_must_match_document_type(self):
        with self.assertRaises(RenderError):
            _renderer().build_html(Document.DocType.TRANSCRIPT, _participation_fields())

    def test_backend_failures_become_render_errors(self):
        def failing_backend(*, html, base_url=None, extra_css=""):
            raise ValueError("Remote URLs are not allowed in PDF rendering")

        with self.assertRaises(RenderError) as ctx:
            _renderer(failing_backend).render(Document.DocType.PARTICIPATION_CERTIFICATE, _participation_fields())
        self.assertIsInstance(ctx.exception.__cause__, ValueError)

    def test_empty_backend_output_is_a_render_error(self):
        with self.assertRaises(RenderError):
            _renderer(lambda **kwargs: b"").render(Document.DocType.PARTICIPATION_CERTIFICATE, _participation_fields())


class LocalArtifactStoreTests(UniversityFixtures, TestCase):
    def setUp(self):
        super().setUp()
        self.store = LocalArtifactStore(self.storage_root)

    def test_put_is_write_once(self):
        key = artifact_key("transcript", "abc")
        self.assertEqual(key, "documents/transcript/abc.pdf")
        self.assertEqual(self.store.put(b"%PDF-1", key), key)
        with self.assertRaises(StorageError):
            self.store.put(b"%PDF-2", key)
        self.assertEqual(self.store.open(key), b"%PDF-1")

    def test_signed_url_fails_closed_for_missing_object(self):
        with self.assertRaises(NotFoundError):
            self.store.signed_url("documents/transcript/missing.pdf", 60)

    def test_signed_url_round_trip_and_expiry(self):
        key = self.store.put(b"%PDF", artifact_key("transcript", "abc"))
        url = self.store.signed_url(key, 60)
        self.assertTrue(url.startswith("/api/documents/artifacts/"))
        token = url.rstrip("/").rsplit("/", 1)[-1]
        self.assertEqual(self.store.resolve_token(token), key)

        expired = self.store.signed_url(key, -10).rstrip("/").rsplit("/", 1)[-1]
        with self.assertRaises(NotFoundError):
            self.store.resolve_token(expired)
        with self.assertRaises(NotFoundError):
            self.store.resolve_token(token + "x")

    def test_rejects_path_traversal(self):
        with self.assertRaises(StorageError):
            self.store.put(b"x", "../outside.pdf")

    def test_list_artifacts(self):
        self.store.put(b"a", "documents/transcript/a.pdf")
        self.store.put(b"b", "documents/verification_letter/b.pdf")
        listed = [locator for locator, _ in self.store.list_artifacts("documents/")]
        self.assertEqual(listed, ["documents/transcript/a.pdf", "documents/verification_letter/b.pdf"])


class S3ArtifactStoreTests(TestCase):
    def setUp(self):
        self.client_mock = mock.Mock()
        self.store = S3ArtifactStore(bucket="unidocs", client=self.client_mock)

    def test_missing_object_is_not_found(self):
        self.client_mock.head_object.side_effect = ClientError({"Error": {"Code": "404"}}, "HeadObject")
        self.assertFalse(self.store.exists("documents/transcript/x.pdf"))
        with self.assertRaises(NotFoundError):
            self.store.signed_url("documents/transcript/x.pdf", 60)
        self.client_mock.generate_presigned_url.assert_not_called()

    def test_signed_url_is_presigned_get(self):
        self.client_mock.head_object.return_value = {}
        self.client_mock.generate_presigned_url.return_value = "https://minio.local/unidocs/x?sig"
        self.assertEqual(self.store.signed_url("documents/transcript/x.pdf", 3600), "https://minio.local/unidocs/x?sig")
        self.client_mock.generate_presigned_url.assert_called_once_with(
            "get_object",
            Params={"Bucket": "unidocs", "Key": "documents/transcript/x.pdf"},
            ExpiresIn=3600,
        )

    def test_put_refuses_existing_key_and_wraps_errors(self):
        self.client_mock.head_object.return_value = {}
        with self.assertRaises(StorageError):
            self.store.put(b"x", "documents/transcript/x.pdf")
        self.client_mock.put_object.assert_not_called()

        self.client_mock.head_object.side_effect = ClientError({"Error": {"Code": "404"}}, "HeadObject")
        self.client_mock.put_object.side_effect = ClientError({"Error": {"Code": "500"}}, "PutObject")
        with self.assertRaises(StorageError):
            self.store.put(b"x", "documents/transcript/y.pdf")


class DocumentLedgerTests(UniversityFixtures, TestCase):
    def setUp(self):
        super().setUp()
        self.ledger = DocumentLedger()

    def _record(self, **overrides) -> DocumentRecord:
        doc_id = overrides.pop("id", None) or uuid.uuid4()
        values = dict(
            id=doc_id,
            doc_type=Document.DocType.TRANSCRIPT,
            subject_id=self.student.pk,
            issuer_id=self.student_user.pk,
            artifact_locator=artifact_key("transcript", doc_id),
            issued_at=timezone.now(),
            metadata={"gpa": "7.00"},
            subject_snapshot={"name": "Arta Krasniqi"},
        )
        values.update(overrides)
        return DocumentRecord(**values)

    def test_create_and_get(self):
        doc = self.ledger.create(self._record())
        fetched = self.ledger.get_by_id(str(doc.id))
        self.assertEqual(fetched.status, Document.Status.VALID)
        self.assertEqual(fetched.metadata, {"gpa": "7.00"})

    def test_duplicate_identifier_conflicts(self):
        record = self._record()
        self.ledger.create(record)
        with self.assertRaises(ConflictError):
            self.ledger.create(record)
        with self.assertRaises(ConflictError):
            self.ledger.create(self._record(artifact_locator=record.artifact_locator))
        self.assertEqual(Document.objects.count(), 1)

    def test_unknown_or_malformed_id_is_not_found(self):
        with self.assertRaises(NotFoundError):
            self.ledger.get_by_id(uuid.uuid4())
        with self.assertRaises(NotFoundError):
            self.ledger.get_by_id("not-a-uuid")

    def test_revocation_is_monotonic(self):
        doc = self.ledger.create(self._record())

        revoked = self.ledger.set_status(doc.id, Document.Status.REVOKED, actor=self.admin_user, reason="Issued in error")
        self.assertEqual(revoked.status, Document.Status.REVOKED)
        self.assertEqual(revoked.revoked_by, self.admin_user)
        first_revoked_at = revoked.revoked_at

        change = self.ledger.transition(doc.id, Document.Status.REVOKED, actor=self.admin_user)
        self.assertFalse(change.changed)
        self.assertEqual(self.ledger.get_by_id(doc.id).revoked_at, first_revoked_at)

        with self.assertRaises(InvalidTransitionError):
            self.ledger.set_status(doc.id, Document.Status.VALID)
        self.assertEqual(self.ledger.get_by_id(doc.id).status, Document.Status.REVOKED)

    def test_valid_to_valid_is_a_no_op(self):
        doc = self.ledger.create(self._record())
        change = self.ledger.transition(doc.id, Document.Status.VALID)
        self.assertFalse(change.changed)

    def test_revoked_document_cannot_be_restored_by_direct_writes(self):
        doc = self.ledger.set_status(self.ledger.create(self._record()).id, Document.Status.REVOKED)

        with self.assertRaises(ImmutableDocumentError):
            Document.objects.filter(pk=doc.pk).update(status=Document.Status.VALID)

        doc.status = Document.Status.VALID
        with self.assertRaises(ImmutableDocumentError):
            doc.save(update_fields=["status"])

        self.assertEqual(self.ledger.get_by_id(doc.id).status, Document.Status.REVOKED)

    def test_issued_fields_are_immutable(self):
        doc = self.ledger.create(self._record())

        doc.metadata = {"gpa": "10.00"}
        with self.assertRaises(ImmutableDocumentError):
            doc.save()
        with self.assertRaises(ImmutableDocumentError):
            doc.save(update_fields=["metadata"])
        with self.assertRaises(ImmutableDocumentError):
            Document.objects.filter(pk=doc.pk).update(doc_type=Document.DocType.VERIFICATION_LETTER)
        with self.assertRaises(ImmutableDocumentError):
            doc.delete()
        with self.assertRaises(ImmutableDocumentError):
            Document.objects.filter(pk=doc.pk).delete()

        self.assertEqual(self.ledger.get_by_id(doc.id).metadata, {"gpa": "7.00"})

    def test_list_by_filters_and_paginates_newest_first(self):
        now = timezone.now()
        old = self.ledger.create(self._record(issued_at=now - timedelta(days=3)))
        mid = self.ledger.create(self._record(issued_at=now - timedelta(days=2)))
        new = self.ledger.create(
            self._record(issued_at=now - timedelta(days=1), doc_type=Document.DocType.VERIFICATION_LETTER)
        )
        self.ledger.set_status(mid.id, Document.Status.REVOKED)

        page = self.ledger.list_by({}, page=1, page_size=2)
        self.assertEqual(page.total, 3)
        self.assertEqual([d.id for d in page.items], [new.id, mid.id])
        self.assertEqual([d.id for d in self.ledger.list_by({}, page=2, page_size=2).items], [old.id])

        self.assertEqual([d.id for d in self.ledger.list_by({"status": "revoked"}).items], [mid.id])
        self.assertEqual([d.id for d in self.ledger.list_by({"doc_type": "verification_letter"}).items], [new.id])
        after = (now - timedelta(days=2, hours=12)).isoformat()
        self.assertEqual(self.ledger.list_by({"issued_after": after}).total, 2)

    def test_list_by_rejects_invalid_filters(self):
        with self.assertRaises(ValidationError):
            self.ledger.list_by({"status": "bogus"})
        with self.assertRaises(ValidationError):
            self.ledger.list_by({"issued_after": "yesterday"})
        with self.assertRaises(ValidationError):
            self.ledger.list_by({}, page=0)


class GatheringTests(UniversityFixtures, TestCase):
    def test_transcript_summary(self):
        summary = SubjectDirectory().transcript(self.student.pk, program_total_credits=self.program.total_credits)
        self.assertEqual(summary.gpa, Decimal("7.00"))
        self.assertEqual(summary.completed_credits, 6)
        self.assertEqual(summary.total_credits, 180)
        self.assertEqual([r.code for r in summary.rows], ["CS201", "CS305"])
        self.assertEqual(summary.rows[0].semester, "1 - 2023-2024")

    def test_total_credits_fall_back_to_attempted(self):
        summary = SubjectDirectory().transcript(self.student.pk)
        self.assertEqual(summary.total_credits, 10)

    def test_academic_year_uses_latest_enrollment(self):
        directory = SubjectDirectory()
        self.assertEqual(directory.academic_year_for(self.student.pk, self.course.pk), "2024-2025")
        with self.settings(CURRENT_ACADEMIC_YEAR="2030-2031"):
            self.assertEqual(directory.academic_year_for(self.other_student.pk, self.course.pk), "2030-2031")

    def test_unknown_student_and_course(self):
        with self.assertRaises(NotFoundError):
            SubjectDirectory().get_student(999999)
        with self.assertRaises(NotFoundError):
            SubjectDirectory().get_course(999999)


class AuthorizationTests(UniversityFixtures, TestCase):
    def test_principal_from_user(self):
        p = Principal.from_user(self.student_user)
        self.assertEqual(p.student_id, self.student.pk)
        self.assertIsNone(p.pedagogue_id)
        self.assertEqual(Principal.from_user(self.pedagogue_user).pedagogue_id, self.pedagogue.pk)

    def test_issuance_decisions(self):
        directory = SubjectDirectory()
        student = Principal.from_user(self.student_user)
        pedagogue = Principal.from_user(self.pedagogue_user)
        admin = Principal.from_user(self.admin_user)

        self.assertTrue(authorize_issuance(student, TranscriptRequest(), directory=directory).allowed)
        self.assertFalse(
            authorize_issuance(student, TranscriptRequest(student_id=self.other_student.pk), directory=directory).allowed
        )
        self.assertFalse(authorize_issuance(pedagogue, TranscriptRequest(), directory=directory).allowed)
        self.assertFalse(authorize_issuance(admin, TranscriptRequest(), directory=directory).allowed)

        own_course = ParticipationCertificateRequest(
            student_id=self.student.pk, course_id=self.course.pk, hours_attended=45, total_hours=48
        )
        foreign_course = ParticipationCertificateRequest(
            student_id=self.student.pk, course_id=self.other_course.pk, hours_attended=45, total_hours=48
        )
        self.assertTrue(authorize_issuance(pedagogue, own_course, directory=directory).allowed)
        decision = authorize_issuance(pedagogue, foreign_course, directory=directory)
        self.assertFalse(decision.allowed)
        self.assertIn("not authorized", decision.reason)
        self.assertFalse(authorize_issuance(student, own_course, directory=directory).allowed)


class IssuanceServiceTests(UniversityFixtures, TestCase):
    def _service(self, **overrides) -> IssuanceService:
        values = dict(
            ledger=DocumentLedger(),
            store=LocalArtifactStore(self.storage_root),
            renderer=_renderer(),
            directory=SubjectDirectory(),
        )
        values.update(overrides)
        return IssuanceService(**values)

    def test_identifier_factory_does_not_collide(self):
        factory = self._service().id_factory
        ids = {factory() for _ in range(10_000)}
        self.assertEqual(len(ids), 10_000)

    def test_two_issuances_yield_two_documents(self):
        service = self._service()
        principal = Principal.from_user(self.student_user)
        first = service.issue(principal, TranscriptRequest())
        second = service.issue(principal, TranscriptRequest())

        self.assertNotEqual(first.document_id, second.document_id)
        self.assertEqual(Document.objects.count(), 2)
        self.assertEqual(
            set(Document.objects.values_list("artifact_locator", flat=True)),
            {artifact_key("transcript", first.document_id), artifact_key("transcript", second.document_id)},
        )

    def test_colliding_identifier_leaves_single_row(self):
        fixed = uuid.uuid4()
        service = self._service(id_factory=lambda: fixed)
        principal = Principal.from_user(self.student_user)
        service.issue(principal, TranscriptRequest())
        with self.assertRaises((ConflictError, StorageError)):
            service.issue(principal, TranscriptRequest())
        self.assertEqual(Document.objects.count(), 1)

    def test_forbidden_request_has_no_side_effects(self):
        service = self._service()
        request = ParticipationCertificateRequest(
            student_id=self.student.pk, course_id=self.other_course.pk, hours_attended=10, total_hours=20
        )
        with self.assertLogs("documents.issuance", level="WARNING"):
            with self.assertRaises(ForbiddenError):
                service.issue(Principal.from_user(self.pedagogue_user), request)
        self.assertEqual(Document.objects.count(), 0)
        self.assertEqual(list(LocalArtifactStore(self.storage_root).list_artifacts()), [])

    def test_render_failure_writes_nothing(self):
        Student.objects.filter(pk=self.student.pk).update(program=None)
        service = self._service()
        with self.assertLogs("documents.issuance", level="ERROR") as logs:
            with self.assertRaises(RenderError):
                service.issue(Principal.from_user(self.student_user), TranscriptRequest())
        self.assertTrue(any("documents.render_failed" in line for line in logs.output))
        self.assertEqual(Document.objects.count(), 0)
        self.assertEqual(list(LocalArtifactStore(self.storage_root).list_artifacts()), [])

    def test_pdf_backend_failure_is_logged_and_writes_nothing(self):
        def failing_backend(*, html, base_url=None, extra_css=""):
            raise ValueError("Remote URLs are not allowed in PDF rendering")

        service = self._service(renderer=_renderer(failing_backend))
        with self.assertLogs("documents.issuance", level="ERROR") as logs:
            with self.assertRaises(RenderError):
                service.issue(Principal.from_user(self.student_user), TranscriptRequest())
        self.assertTrue(any("documents.render_failed" in line for line in logs.output))
        self.assertEqual(Document.objects.count(), 0)

    def test_audit_failure_after_commit_still_returns_document(self):
        service = self._service()
        with mock.patch("documents.issuance.record_event", side_effect=DatabaseError("audit table unavailable")):
            with self.assertLogs("documents.issuance", level="ERROR") as logs:
                result = service.issue(Principal.from_user(self.student_user), TranscriptRequest())

        self.assertTrue(any("documents.issued_audit_failed" in line for line in logs.output))
        self.assertTrue(Document.objects.filter(pk=result.document_id).exists())
        self.assertTrue(result.download_url.startswith("/api/documents/artifacts/"))

    def test_download_url_failure_after_commit_still_returns_document(self):
        class NoUrlStore(LocalArtifactStore):
            def signed_url(self, locator, ttl_seconds):
                raise StorageError()

        service = self._service(store=NoUrlStore(self.storage_root))
        with self.assertLogs("documents.issuance", level="ERROR") as logs:
            result = service.issue(Principal.from_user(self.student_user), TranscriptRequest())

        self.assertTrue(any("documents.download_url_failed" in line for line in logs.output))
        self.assertEqual(result.download_url, "")
        self.assertEqual(Document.objects.get(pk=result.document_id).status, Document.Status.VALID)

    def test_storage_failure_writes_no_ledger_row(self):
        class BrokenStore(LocalArtifactStore):
            def put(self, data, suggested_key):
                raise StorageError()

        service = self._service(store=BrokenStore(self.storage_root))
        with self.assertRaises(StorageError):
            service.issue(Principal.from_user(self.student_user), TranscriptRequest())
        self.assertEqual(Document.objects.count(), 0)

    def test_ledger_failure_after_put_reports_orphan(self):
        class FailingLedger(DocumentLedger):
            def create(self, record):
                raise ConflictError()

        fixed = uuid.uuid4()
        store = LocalArtifactStore(self.storage_root)
        service = self._service(ledger=FailingLedger(), store=store, id_factory=lambda: fixed)

        with self.assertLogs("documents.issuance", level="ERROR") as logs:
            with self.assertRaises(ConflictError):
                service.issue(Principal.from_user(self.student_user), TranscriptRequest())

        self.assertTrue(any("documents.orphaned_artifact" in line for line in logs.output))
        self.assertTrue(store.exists(artifact_key("transcript", fixed)))
        self.assertTrue(
            AuditLog.objects.filter(
                event_type=AuditLog.EVENT_DOCUMENT_ORPHANED_ARTIFACT, object_id=str(fixed)
            ).exists()
        )

    def test_participation_certificate_for_taught_course(self):
        request = ParticipationCertificateRequest(
            student_id=self.student.pk, course_id=self.course.pk, hours_attended=45, total_hours=48
        )
        result = self._service().issue(Principal.from_user(self.pedagogue_user), request)

        doc = Document.objects.get(pk=result.document_id)
        self.assertEqual(doc.issuer_id, self.pedagogue_user.pk)
        self.assertEqual(doc.subject_id, self.student.pk)
        self.assertEqual(doc.metadata["attendancePercentage"], "93.8")
        self.assertEqual(doc.metadata["academicYear"], "2024-2025")
        self.assertEqual(doc.subject_snapshot["studentNumber"], "S2024001")

    def test_verification_letter_records_purpose(self):
        result = self._service().issue(
            Principal.from_user(self.student_user),
            VerificationLetterRequest(purpose="  Scholarship application  "),
        )
        doc = Document.objects.get(pk=result.document_id)
        self.assertEqual(doc.metadata["purpose"], "Scholarship application")
        self.assertEqual(doc.metadata["enrollmentStatus"], "Active")


class ConcurrentIssuanceTests(UniversityFixtures, TransactionTestCase):
    def test_concurrent_issuances_yield_two_documents(self):
        # Both requests finish gathering and meet inside the PDF backend before either writes.
        barrier = threading.Barrier(2, timeout=30)
        # SQLite allows one writer at a time.
        write_lock = threading.Lock()

        def rendezvous_backend(*, html, base_url=None, extra_css=""):
            barrier.wait()
            return fake_pdf_backend(html=html, base_url=base_url, extra_css=extra_css)

        class SerializedLedger(DocumentLedger):
            def create(self, record):
                with write_lock:
                    return super().create(record)

        def serialized_record_event(**kwargs):
            with write_lock:
                return record_event(**kwargs)

        service = IssuanceService(
            ledger=SerializedLedger(),
            store=LocalArtifactStore(self.storage_root),
            renderer=_renderer(rendezvous_backend),
            directory=SubjectDirectory(),
        )
        principal = Principal.from_user(self.student_user)

        def issue():
            try:
                return service.issue(principal, TranscriptRequest())
            finally:
                connection.close()

        with mock.patch("documents.issuance.record_event", side_effect=serialized_record_event):
            with ThreadPoolExecutor(max_workers=2) as pool:
                futures = [pool.submit(issue) for _ in range(2)]
                results = [f.result(timeout=60) for f in futures]

        ids = {str(r.document_id) for r in results}
        self.assertEqual(len(ids), 2)
        self.assertEqual(Document.objects.count(), 2)
        self.assertEqual({str(pk) for pk in Document.objects.values_list("id", flat=True)}, ids)
        locators = set(Document.objects.values_list("artifact_locator", flat=True))
        self.assertEqual(locators, {artifact_key("transcript", doc_id) for doc_id in ids})
        store = LocalArtifactStore(self.storage_root)
        for locator in locators:
            self.assertTrue(store.exists(locator))


class IssueDocumentAPITests(UniversityFixtures, APITestCase):
    def test_student_issues_enrollment_certificate(self):
        self.client.force_authenticate(user=self.student_user)
        res = self.client.post("/api/documents/enrollment-certificate/", {}, format="json")

        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["type"], "enrollment_certificate")
        self.assertTrue(res.data["downloadUrl"].startswith("/api/documents/artifacts/"))
        self.assertIn("generatedAt", res.data)

        doc = Document.objects.get(pk=res.data["documentId"])
        self.assertEqual(doc.issuer_id, self.student_user.pk)
        self.assertEqual(doc.subject_id, self.student.pk)
        self.assertEqual(doc.metadata["semester"], 2)
        self.assertTrue(
            AuditLog.objects.filter(event_type=AuditLog.EVENT_DOCUMENT_ISSUED, object_id=str(doc.id)).exists()
        )

        download = self.client.get(res.data["downloadUrl"])
        self.assertEqual(download.status_code, 200)
        self.assertEqual(download["Content-Type"], "application/pdf")
        self.assertTrue(download.content.startswith(b"%PDF"))

    def test_transcript_metadata(self):
        self.client.force_authenticate(user=self.student_user)
        res = self.client.post("/api/documents/transcript/", {}, format="json")
        self.assertEqual(res.status_code, 200)
        doc = Document.objects.get(pk=res.data["documentId"])
        self.assertEqual(doc.metadata["gpa"], "7.00")
        self.assertEqual(doc.metadata["completedCredits"], 6)
        self.assertEqual(doc.metadata["totalCredits"], 180)

    def test_verification_letter_purpose_boundary(self):
        self.client.force_authenticate(user=self.student_user)

        res = self.client.post("/api/documents/verification-letter/", {"purpose": "123456789"}, format="json")
        self.assertEqual(res.status_code, 400)
        self.assertEqual(res.data["code"], "validation_error")
        self.assertIn("purpose", res.data["details"])

        res = self.client.post("/api/documents/verification-letter/", {"purpose": "   123456789   "}, format="json")
        self.assertEqual(res.status_code, 400)

        res = self.client.post("/api/documents/verification-letter/", {"purpose": "1234567890"}, format="json")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(Document.objects.count(), 1)

    def test_participation_certificate_requires_teaching_relationship(self):
        self.client.force_authenticate(user=self.pedagogue_user)
        body = {"studentId": self.student.pk, "courseId": self.other_course.pk, "hoursAttended": 45, "totalHours": 48}
        res = self.client.post("/api/documents/participation-certificate/", body, format="json")
        self.assertEqual(res.status_code, 403)
        self.assertEqual(res.data["code"], "forbidden")
        self.assertEqual(Document.objects.count(), 0)

        body["courseId"] = self.course.pk
        res = self.client.post("/api/documents/participation-certificate/", body, format="json")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(Document.objects.get(pk=res.data["documentId"]).issuer_id, self.pedagogue_user.pk)

    def test_participation_certificate_validation(self):
        self.client.force_authenticate(user=self.pedagogue_user)
        cases = {
            "attended above total": {"studentId": self.student.pk, "courseId": self.course.pk, "hoursAttended": 50, "totalHours": 48},
            "zero total": {"studentId": self.student.pk, "courseId": self.course.pk, "hoursAttended": 0, "totalHours": 0},
            "negative attended": {"studentId": self.student.pk, "courseId": self.course.pk, "hoursAttended": -1, "totalHours": 10},
            "missing student": {"courseId": self.course.pk, "hoursAttended": 1, "totalHours": 10},
        }
        for label, body in cases.items():
            with self.subTest(label):
                res = self.client.post("/api/documents/participation-certificate/", body, format="json")
                self.assertEqual(res.status_code, 400)
                self.assertEqual(res.data["code"], "validation_error")

    def test_unknown_student_is_not_found(self):
        self.client.force_authenticate(user=self.pedagogue_user)
        body = {"studentId": 999999, "courseId": self.course.pk, "hoursAttended": 1, "totalHours": 10}
        res = self.client.post("/api/documents/participation-certificate/", body, format="json")
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.data["code"], "not_found")

    def test_role_and_subject_checks(self):
        self.client.force_authenticate(user=self.student_user)
        res = self.client.post("/api/documents/transcript/", {"studentId": self.other_student.pk}, format="json")
        self.assertEqual(res.status_code, 403)

        self.client.force_authenticate(user=self.pedagogue_user)
        res = self.client.post("/api/documents/transcript/", {}, format="json")
        self.assertEqual(res.status_code, 403)

        self.client.force_authenticate(user=self.admin_user)
        res = self.client.post("/api/documents/enrollment-certificate/", {}, format="json")
        self.assertEqual(res.status_code, 403)
        self.assertEqual(Document.objects.count(), 0)

    def test_unknown_type_and_anonymous(self):
        res = self.client.post("/api/documents/transcript/", {}, format="json")
        self.assertEqual(res.status_code, 401)
        self.assertEqual(res.data["code"], "not_authenticated")

        self.client.force_authenticate(user=self.student_user)
        res = self.client.post("/api/documents/diploma/", {}, format="json")
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.data["code"], "not_found")

    def test_render_failure_is_generic_500(self):
        Student.objects.filter(pk=self.student.pk).update(program=None)
        self.client.force_authenticate(user=self.student_user)
        with self.assertLogs("documents.issuance", level="ERROR"):
            res = self.client.post("/api/documents/transcript/", {}, format="json")
        self.assertEqual(res.status_code, 500)
        self.assertEqual(res.data["code"], "issuance_failed")
        self.assertEqual(res.data["message"], "The document could not be generated.")
        self.assertEqual(Document.objects.count(), 0)


class DocumentReadAndRevokeAPITests(UniversityFixtures, APITestCase):
    def setUp(self):
        super().setUp()
        self.client.force_authenticate(user=self.student_user)
        res = self.client.post("/api/documents/transcript/", {}, format="json")
        self.document_id = res.data["documentId"]

        self.client.force_authenticate(user=self.pedagogue_user)
        body = {"studentId": self.other_student.pk, "courseId": self.course.pk, "hoursAttended": 10, "totalHours": 20}
        res = self.client.post("/api/documents/participation-certificate/", body, format="json")
        self.participation_id = res.data["documentId"]
        self.client.force_authenticate(user=None)

    def test_subject_reads_document_with_fresh_url(self):
        self.client.force_authenticate(user=self.student_user)
        res = self.client.get(f"/api/documents/{self.document_id}/")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["status"], "valid")
        self.assertEqual(res.data["downloadCount"], 1)
        self.assertTrue(res.data["downloadUrl"].startswith("/api/documents/artifacts/"))
        self.assertTrue(
            AuditLog.objects.filter(event_type=AuditLog.EVENT_DOCUMENT_VIEWED, object_id=self.document_id).exists()
        )

    def test_read_access_is_limited(self):
        self.client.force_authenticate(user=self.other_student_user)
        res = self.client.get(f"/api/documents/{self.document_id}/")
        self.assertEqual(res.status_code, 403)

        self.client.force_authenticate(user=self.pedagogue_user)
        self.assertEqual(self.client.get(f"/api/documents/{self.participation_id}/").status_code, 200)
        self.assertEqual(self.client.get(f"/api/documents/{self.document_id}/").status_code, 403)

        self.client.force_authenticate(user=self.admin_user)
        self.assertEqual(self.client.get(f"/api/documents/{self.document_id}/").status_code, 200)
        self.assertEqual(self.client.get(f"/api/documents/{uuid.uuid4()}/").status_code, 404)

    def test_list_is_role_scoped(self):
        self.client.force_authenticate(user=self.student_user)
        res = self.client.get("/api/documents/")
        self.assertEqual(res.status_code, 200)
        self.assertEqual([r["id"] for r in res.data["results"]], [self.document_id])

        self.client.force_authenticate(user=self.pedagogue_user)
        res = self.client.get("/api/documents/")
        self.assertEqual([r["id"] for r in res.data["results"]], [self.participation_id])

        self.client.force_authenticate(user=self.admin_user)
        res = self.client.get("/api/documents/")
        self.assertEqual(res.data["count"], 2)
        res = self.client.get("/api/documents/", {"type": "participation-certificate"})
        self.assertEqual([r["id"] for r in res.data["results"]], [self.participation_id])
        res = self.client.get("/api/documents/", {"status": "bogus"})
        self.assertEqual(res.status_code, 400)

    def test_revoke_is_admin_only_and_idempotent(self):
        self.client.force_authenticate(user=self.student_user)
        res = self.client.put(f"/api/documents/{self.document_id}/revoke/", {}, format="json")
        self.assertEqual(res.status_code, 403)

        self.client.force_authenticate(user=self.admin_user)
        res = self.client.put(f"/api/documents/{self.document_id}/revoke/", {"reason": "Issued in error"}, format="json")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["status"], "revoked")
        self.assertEqual(res.data["revokedReason"], "Issued in error")

        res = self.client.put(f"/api/documents/{self.document_id}/revoke/", {}, format="json")
        self.assertEqual(res.status_code, 200)
        self.assertEqual(res.data["status"], "revoked")
        self.assertEqual(
            AuditLog.objects.filter(event_type=AuditLog.EVENT_DOCUMENT_REVOKED, object_id=self.document_id).count(),
            1,
        )

        res = self.client.put(f"/api/documents/{uuid.uuid4()}/revoke/", {}, format="json")
        self.assertEqual(res.status_code, 404)

    def test_malformed_document_id_is_not_found(self):
        self.client.force_authenticate(user=self.student_user)
        res = self.client.get("/api/documents/not-a-uuid/")
        self.assertEqual(res.status_code, 404)
        self.assertEqual(res.data["code"], "not_found")

    def test_invalid_download_token(self):
        res = self.client.get("/api/documents/artifacts/not-a-token/")
        self.assertEqual(res.status_code, 404)


class ReconciliationTests(UniversityFixtures, TestCase):
    def setUp(self):
        super().setUp()
        self.store = LocalArtifactStore(self.storage_root)
        self.ledger = DocumentLedger()
        self.now = timezone.now()

        old = time.time() - 3 * 3600
        self.orphan = self.store.put(b"%PDF", "documents/transcript/orphan.pdf")
        os.utime(self.storage_root / self.orphan, (old, old))
        self.recent_orphan = self.store.put(b"%PDF", "documents/transcript/recent.pdf")

        doc_id = uuid.uuid4()
        self.referenced = self.store.put(b"%PDF", artifact_key("transcript", doc_id))
        os.utime(self.storage_root / self.referenced, (old, old))
        self.ledger.create(
            DocumentRecord(
                id=doc_id,
                doc_type=Document.DocType.TRANSCRIPT,
                subject_id=self.student.pk,
                issuer_id=self.student_user.pk,
                artifact_locator=self.referenced,
                issued_at=self.now,
            )
        )

    def test_dry_run_reports_only(self):
        report = sweep_orphaned_artifacts(self.store, grace=timedelta(minutes=60), ledger=self.ledger)
        self.assertEqual(report.scanned, 3)
        self.assertEqual(report.skipped_recent, 1)
        self.assertEqual(report.orphans, [self.orphan])
        self.assertEqual(report.deleted, [])
        self.assertTrue(self.store.exists(self.orphan))

    def test_apply_deletes_old_orphans_only(self):
        report = sweep_orphaned_artifacts(self.store, grace=timedelta(minutes=60), ledger=self.ledger, apply=True)
        self.assertEqual(report.deleted, [self.orphan])
        self.assertFalse(self.store.exists(self.orphan))
        self.assertTrue(self.store.exists(self.recent_orphan))
        self.assertTrue(self.store.exists(self.referenced))
        self.assertTrue(AuditLog.objects.filter(event_type=AuditLog.EVENT_DOCUMENT_ORPHANED_ARTIFACT).exists())

    def test_management_command(self):
        out = StringIO()
        call_command("sweep_orphaned_artifacts", stdout=out)
        self.assertIn("1 orphaned", out.getvalue())
        self.assertTrue(self.store.exists(self.orphan))

        call_command("sweep_orphaned_artifacts", "--apply", "--grace-minutes", "0", stdout=out)
        self.assertFalse(self.store.exists(self.orphan))
        self.assertFalse(self.store.exists(self.recent_orphan))
        self.assertTrue(self.store.exists(self.referenced))

    def test_celery_task(self):
        result = sweep_orphaned_artifacts_task.apply(kwargs={"apply": False}).get()
        self.assertEqual(result["orphans"], [self.orphan])


class ExceptionHandlerTests(TestCase):
    def test_unexpected_errors_become_internal_error(self):
        with self.assertLogs("documents.exceptions", level="ERROR"):
            response = api_exception_handler(RuntimeError("boom"), {"view": None})
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.data["code"], "internal_error")

    def test_document_errors_keep_their_code(self):
        response = api_exception_handler(ConflictError(details={"documentId": "x"}), {"view": None})
        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data, {"code": "conflict", "message": ConflictError.default_detail, "details": {"documentId": "x"}})


class AuthorizeReadTests(UniversityFixtures, TestCase):
    def test_subject_issuer_and_admin_only(self):
        doc = DocumentLedger().create(
            DocumentRecord(
                id=uuid.uuid4(),
                doc_type=Document.DocType.PARTICIPATION_CERTIFICATE,
                subject_id=self.student.pk,
                issuer_id=self.pedagogue_user.pk,
                artifact_locator="documents/participation_certificate/x.pdf",
                issued_at=timezone.now(),
            )
        )
        allowed = {
            "subject": self.student_user,
            "issuer": self.pedagogue_user,
            "admin": self.admin_user,
        }
        for label, user in allowed.items():
            with self.subTest(label):
                self.assertTrue(authorize_document_read(Principal.from_user(user), doc).allowed)
        for user in (self.other_student_user, self.other_pedagogue_user):
            self.assertFalse(authorize_document_read(Principal.from_user(user), doc).allowed)
