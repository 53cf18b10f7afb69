from datetime import date

from django.db import IntegrityError
from django.test import TestCase

from academic.models import Program
from users.models import User

from .models import Student


class StudentModelTests(TestCase):
    def setUp(self):
        self.program = Program.objects.create(name="Computer Engineering", faculty="Faculty of Information Technology")
        self.user = User.objects.create_user(
            username="stud1", password="pass1234", role=User.ROLE_STUDENT, first_name="Arta", last_name="Krasniqi"
        )

    def test_defaults_and_display(self):
        student = Student.objects.create(
            user=self.user, student_number="S2024001", program=self.program, enrollment_date=date(2023, 10, 1)
        )
        self.assertEqual(student.status, Student.STATUS_ACTIVE)
        self.assertEqual(student.get_status_display(), "Active")
        self.assertEqual(student.full_name, "Arta Krasniqi")
        self.assertEqual(str(student), "Arta Krasniqi (S2024001)")
        self.assertEqual(self.user.student_profile, student)

    def test_student_number_is_unique(self):
        Student.objects.create(user=self.user, student_number="S2024001", enrollment_date=date(2023, 10, 1))
        other = User.objects.create_user(username="stud2", password="pass1234", role=User.ROLE_STUDENT)
        with self.assertRaises(IntegrityError):
            Student.objects.create(user=other, student_number="S2024001", enrollment_date=date(2024, 10, 1))

    def test_program_is_optional(self):
        student = Student.objects.create(user=self.user, student_number="S2024001", enrollment_date=date(2023, 10, 1))
        self.program.delete()
        student.refresh_from_db()
        self.assertIsNone(student.program)
