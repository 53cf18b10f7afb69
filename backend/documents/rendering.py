"""Document layout and PDF rendering.

Each document type has one frozen field set. ``TemplateRenderer.build_html``
lays the fields out with Django templates and ``render`` turns the HTML into
PDF bytes through the configured backend (WeasyPrint by default).
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal
from io import BytesIO
from typing import Callable, ClassVar, Union

from django.conf import settings
from django.template.loader import render_to_string
from django.utils.module_loading import import_string

from .exceptions import RenderError
from .models import Document
from .pdf import WeasyPrintUnavailableError


logger = logging.getLogger(__name__)

PdfBackend = Callable[..., bytes]


@dataclass(frozen=True)
class Letterhead:
    institution: str
    faculty: str
    contact_line: str
    signature_left: str
    signature_right: str

    @classmethod
    def from_settings(cls) -> "Letterhead":
        return cls(
            institution=settings.INSTITUTION_NAME,
            faculty=settings.INSTITUTION_FACULTY,
            contact_line=settings.INSTITUTION_CONTACT_LINE,
            signature_left=settings.SIGNATURE_LEFT_LABEL,
            signature_right=settings.SIGNATURE_RIGHT_LABEL,
        )


def _require_text(name: str, value) -> None:
    if value is None or not str(value).strip():
        raise RenderError(f"Missing required field: {name}", details={"field": name})


def _require_present(name: str, value) -> None:
    if value is None:
        raise RenderError(f"Missing required field: {name}", details={"field": name})


def attendance_percentage(hours_attended, total_hours) -> str:
    """`attended / total * 100` with one decimal, rounding half up (45/48 -> "93.8")."""

    pct = Decimal(str(hours_attended)) * 100 / Decimal(str(total_hours))
    return str(pct.quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class IdentityFields:
    document_id: str
    generated_at: datetime
    student_name: str
    student_number: str

    doc_type: ClassVar[str] = ""
    title: ClassVar[str] = ""
    template_name: ClassVar[str] = ""

    def validate(self) -> None:
        _require_text("document_id", self.document_id)
        _require_present("generated_at", self.generated_at)
        _require_text("student_name", self.student_name)
        _require_text("student_number", self.student_number)


@dataclass(frozen=True)
class EnrollmentCertificateFields(IdentityFields):
    program: str
    faculty: str
    semester: int
    academic_year: str
    enrollment_date: date
    purpose: str = ""

    doc_type: ClassVar[str] = Document.DocType.ENROLLMENT_CERTIFICATE
    title: ClassVar[str] = "CERTIFICATE OF ENROLLMENT"
    template_name: ClassVar[str] = "documents/pdf/enrollment_certificate.html"

    def validate(self) -> None:
        super().validate()
        _require_text("program", self.program)
        _require_text("faculty", self.faculty)
        _require_present("semester", self.semester)
        _require_text("academic_year", self.academic_year)
        _require_present("enrollment_date", self.enrollment_date)


@dataclass(frozen=True)
class TranscriptRow:
    code: str
    name: str
    grade: Decimal
    credits: int
    semester: str


@dataclass(frozen=True)
class TranscriptFields(IdentityFields):
    program: str
    faculty: str
    gpa: Decimal
    total_credits: int
    completed_credits: int
    rows: tuple[TranscriptRow, ...] = field(default_factory=tuple)

    doc_type: ClassVar[str] = Document.DocType.TRANSCRIPT
    title: ClassVar[str] = "OFFICIAL TRANSCRIPT"
    template_name: ClassVar[str] = "documents/pdf/transcript.html"

    def validate(self) -> None:
        super().validate()
        _require_text("program", self.program)
        _require_text("faculty", self.faculty)
        _require_present("gpa", self.gpa)
        if not (0 <= Decimal(str(self.gpa)) <= 10):
            raise RenderError("GPA out of range", details={"field": "gpa"})
        for name in ("total_credits", "completed_credits"):
            value = getattr(self, name)
            _require_present(name, value)
            if value < 0:
                raise RenderError(f"Negative credits: {name}", details={"field": name})
        for row in self.rows:
            _require_text("rows.code", row.code)
            _require_text("rows.name", row.name)
            if row.credits is None or row.credits < 0:
                raise RenderError("Negative credits in transcript row", details={"field": "rows.credits"})
            if row.grade is None or not (0 <= Decimal(str(row.grade)) <= 10):
                raise RenderError("Grade out of range in transcript row", details={"field": "rows.grade"})


@dataclass(frozen=True)
class ParticipationCertificateFields(IdentityFields):
    course_name: str
    course_code: str
    instructor: str
    semester: int
    academic_year: str
    hours_attended: int
    total_hours: int

    doc_type: ClassVar[str] = Document.DocType.PARTICIPATION_CERTIFICATE
    title: ClassVar[str] = "CERTIFICATE OF PARTICIPATION"
    template_name: ClassVar[str] = "documents/pdf/participation_certificate.html"

    def validate(self) -> None:
        super().validate()
        _require_text("course_name", self.course_name)
        _require_text("course_code", self.course_code)
        _require_text("instructor", self.instructor)
        _require_present("semester", self.semester)
        _require_text("academic_year", self.academic_year)
        _require_present("hours_attended", self.hours_attended)
        _require_present("total_hours", self.total_hours)
        if self.total_hours <= 0:
            raise RenderError("Total hours must be positive", details={"field": "total_hours"})
        if self.hours_attended < 0:
            raise RenderError("Hours attended cannot be negative", details={"field": "hours_attended"})
        if self.hours_attended > self.total_hours:
            raise RenderError("Hours attended exceed total hours", details={"field": "hours_attended"})

    @property
    def attendance_percentage(self) -> str:
        return attendance_percentage(self.hours_attended, self.total_hours)


@dataclass(frozen=True)
class VerificationLetterFields(IdentityFields):
    program: str
    faculty: str
    enrollment_status: str
    academic_year: str
    purpose: str

    doc_type: ClassVar[str] = Document.DocType.VERIFICATION_LETTER
    title: ClassVar[str] = "STUDENT VERIFICATION LETTER"
    template_name: ClassVar[str] = "documents/pdf/verification_letter.html"

    def validate(self) -> None:
        super().validate()
        _require_text("program", self.program)
        _require_text("faculty", self.faculty)
        _require_text("enrollment_status", self.enrollment_status)
        _require_text("academic_year", self.academic_year)
        _require_text("purpose", self.purpose)


RenderFields = Union[
    EnrollmentCertificateFields,
    TranscriptFields,
    ParticipationCertificateFields,
    VerificationLetterFields,
]

FIELDS_BY_TYPE: dict[str, type] = {
    cls.doc_type: cls
    for cls in (
        EnrollmentCertificateFields,
        TranscriptFields,
        ParticipationCertificateFields,
        VerificationLetterFields,
    )
}


def qr_png_data_uri(text: str) -> str:
    # Avoid temp files; embed QR as a data URI.
    import qrcode  # noqa: PLC0415

    img = qrcode.make(text)
    buf = BytesIO()
    img.save(buf, format="PNG")
    b64 = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"data:image/png;base64,{b64}"


def load_pdf_backend() -> PdfBackend:
    return import_string(settings.DOCUMENTS_PDF_BACKEND)


class TemplateRenderer:
    def __init__(self, *, letterhead: Letterhead, verify_base_url: str, pdf_backend: PdfBackend):
        self.letterhead = letterhead
        self.verify_base_url = (verify_base_url or "").rstrip("/")
        self.pdf_backend = pdf_backend

    def verification_url(self, document_id) -> str:
        return f"{self.verify_base_url}/verify/{document_id}"

    def _check(self, doc_type: str, fields: RenderFields) -> None:
        expected = FIELDS_BY_TYPE.get(doc_type)
        if expected is None:
            raise RenderError(f"Unknown document type: {doc_type}", details={"type": doc_type})
        if not isinstance(fields, expected):
            raise RenderError(
                f"Fields {type(fields).__name__} do not match document type {doc_type}",
                details={"type": doc_type},
            )
        fields.validate()

    def build_html(self, doc_type: str, fields: RenderFields) -> str:
        self._check(doc_type, fields)

        verify_url = self.verification_url(fields.document_id)
        try:
            qr_data_uri = qr_png_data_uri(verify_url)
        except (ImportError, OSError, ValueError) as e:
            raise RenderError("QR code generation failed", details={"documentId": fields.document_id}) from e

        ctx = {
            "letterhead": self.letterhead,
            "title": fields.title,
            "fields": fields,
            "verify_url": verify_url,
            "qr_data_uri": qr_data_uri,
        }
        return render_to_string(fields.template_name, ctx)

    def render(self, doc_type: str, fields: RenderFields) -> bytes:
        html = self.build_html(doc_type, fields)
        try:
            pdf_bytes = self.pdf_backend(html=html, base_url=str(settings.BASE_DIR))
        except WeasyPrintUnavailableError as e:
            raise RenderError("PDF backend unavailable", details={"documentId": fields.document_id}) from e
        except Exception as e:
            raise RenderError(
                f"PDF backend failed: {type(e).__name__}",
                details={"documentId": fields.document_id},
            ) from e
        if not pdf_bytes:
            raise RenderError("PDF backend returned no content", details={"documentId": fields.document_id})
        return pdf_bytes
