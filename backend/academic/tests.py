from decimal import Decimal

from django.core.exceptions import ValidationError
from django.test import TestCase

from academic.models import Grade, Program, Subject
from documents.testing import UniversityFixtures


class ProgramModelTest(TestCase):
    def test_str_includes_degree(self):
        program = Program.objects.create(name="Computer Engineering", faculty="FTI")
        self.assertEqual(str(program), "Computer Engineering (Bachelor)")


class GradeModelTest(UniversityFixtures, TestCase):
    def test_grade_scale_is_validated(self):
        grade = Grade(
            student=self.student, subject=self.course, value=Decimal("3"), academic_year="2024-2025", semester=1
        )
        with self.assertRaises(ValidationError):
            grade.full_clean()

        grade.value = Decimal("10")
        grade.full_clean()

    def test_subject_keeps_grades_ordered(self):
        codes = list(Grade.objects.filter(student=self.student).values_list("subject__code", "academic_year"))
        self.assertEqual(codes, [("CS201", "2023-2024"), ("CS305", "2023-2024"), ("CS305", "2024-2025")])

    def test_pedagogue_subjects(self):
        self.assertEqual(list(self.pedagogue.subjects.all()), [self.course])
        self.assertEqual(str(Subject.objects.get(code="CS305")), "CS305 - Databases")
