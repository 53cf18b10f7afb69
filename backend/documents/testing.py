"""Helpers shared by the test suites.

`fake_pdf_backend` stands in for WeasyPrint so tests do not need the
native Pango/Cairo libraries; `UniversityFixtures` seeds a small faculty.
"""

from __future__ import annotations

import hashlib
import tempfile
from datetime import date
from decimal import Decimal
from pathlib import Path

from django.test import override_settings

from academic.models import CourseEnrollment, Grade, Program, Subject
from pedagogues.models import Pedagogue
from students.models import Student
from users.models import User


def fake_pdf_backend(*, html: str, base_url: str | None = None, extra_css: str = "") -> bytes:
    digest = hashlib.sha256(html.encode("utf-8")).hexdigest()
    return f"%PDF-1.4\n% fake {digest}\n%%EOF\n".encode("ascii")


class UniversityFixtures:
    """Mixin for TestCase classes: private storage in a temp dir plus seed data."""

    password = "pass1234"

    def setUp(self):
        super().setUp()
        tmp = tempfile.TemporaryDirectory()
        self.addCleanup(tmp.cleanup)
        self.storage_root = Path(tmp.name)

        overrides = override_settings(
            PRIVATE_STORAGE_ROOT=self.storage_root,
            ARTIFACT_STORE_BACKEND="local",
            DOCUMENTS_PDF_BACKEND="documents.testing.fake_pdf_backend",
            PUBLIC_SITE_URL="https://docs.example.edu",
        )
        overrides.enable()
        self.addCleanup(overrides.disable)

        self.program = Program.objects.create(
            name="Computer Engineering",
            faculty="Faculty of Information Technology",
            total_credits=180,
        )

        self.admin_user = User.objects.create_user(
            username="admin1", password=self.password, role=User.ROLE_ADMIN, first_name="Ada", last_name="Admin"
        )

        self.pedagogue_user = User.objects.create_user(
            username="ped1", password=self.password, role=User.ROLE_PEDAGOGUE, first_name="Petrit", last_name="Hoxha"
        )
        self.pedagogue = Pedagogue.objects.create(user=self.pedagogue_user, staff_number="P-001")

        self.other_pedagogue_user = User.objects.create_user(
            username="ped2", password=self.password, role=User.ROLE_PEDAGOGUE, first_name="Mira", last_name="Leka"
        )
        self.other_pedagogue = Pedagogue.objects.create(user=self.other_pedagogue_user, staff_number="P-002")

        self.student_user = User.objects.create_user(
            username="stud1", password=self.password, role=User.ROLE_STUDENT, first_name="Arta", last_name="Krasniqi"
        )
        self.student = Student.objects.create(
            user=self.student_user,
            student_number="S2024001",
            program=self.program,
            study_year=2,
            enrollment_date=date(2023, 10, 1),
        )

        self.other_student_user = User.objects.create_user(
            username="stud2", password=self.password, role=User.ROLE_STUDENT, first_name="Dritan", last_name="Shehu"
        )
        self.other_student = Student.objects.create(
            user=self.other_student_user,
            student_number="S2024002",
            program=self.program,
            study_year=1,
            enrollment_date=date(2024, 10, 1),
        )

        self.course = Subject.objects.create(
            code="CS201",
            name="Data Structures",
            credits=6,
            recommended_semester=3,
            program=self.program,
            pedagogue=self.pedagogue,
        )
        self.other_course = Subject.objects.create(
            code="CS305",
            name="Databases",
            credits=4,
            recommended_semester=5,
            program=self.program,
            pedagogue=self.other_pedagogue,
        )

        CourseEnrollment.objects.create(student=self.student, subject=self.course, academic_year="2023-2024", semester=3)
        CourseEnrollment.objects.create(student=self.student, subject=self.course, academic_year="2024-2025", semester=3)

        Grade.objects.create(
            student=self.student, subject=self.course, value=Decimal("9"), academic_year="2023-2024", semester=1
        )
        Grade.objects.create(
            student=self.student, subject=self.other_course, value=Decimal("4"), academic_year="2023-2024", semester=2
        )
        Grade.objects.create(
            student=self.student, subject=self.other_course, value=None, academic_year="2024-2025", semester=1
        )
