"""Read-only access to the student, program and course collaborators."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from django.conf import settings

from academic.models import CourseEnrollment, Grade, Subject
from students.models import Student

from .exceptions import NotFoundError


@dataclass(frozen=True)
class StudentProfile:
    id: int
    name: str
    student_number: str
    program: str
    faculty: str
    program_total_credits: Optional[int]
    study_year: Optional[int]
    enrollment_date: Optional[date]
    status: str

    def snapshot(self) -> dict:
        return {
            "name": self.name,
            "studentNumber": self.student_number,
            "program": self.program,
            "faculty": self.faculty,
        }


@dataclass(frozen=True)
class CourseInfo:
    id: int
    code: str
    name: str
    semester: Optional[int]
    instructor: str


@dataclass(frozen=True)
class GradeRow:
    code: str
    name: str
    grade: Decimal
    credits: int
    semester: str


@dataclass(frozen=True)
class TranscriptSummary:
    rows: tuple[GradeRow, ...]
    gpa: Decimal
    total_credits: int
    completed_credits: int


class SubjectDirectory:
    def get_student(self, student_id: int) -> StudentProfile:
        try:
            student = Student.objects.select_related("user", "program").get(pk=student_id)
        except (Student.DoesNotExist, ValueError, TypeError) as e:
            raise NotFoundError("Student not found.", details={"studentId": student_id}) from e

        program = student.program
        return StudentProfile(
            id=student.pk,
            name=student.full_name,
            student_number=student.student_number,
            program=program.name if program else "",
            faculty=program.faculty if program else "",
            program_total_credits=program.total_credits if program else None,
            study_year=student.study_year,
            enrollment_date=student.enrollment_date,
            status=student.get_status_display(),
        )

    def get_course(self, course_id: int) -> CourseInfo:
        try:
            subject = Subject.objects.select_related("pedagogue__user").get(pk=course_id)
        except (Subject.DoesNotExist, ValueError, TypeError) as e:
            raise NotFoundError("Course not found.", details={"courseId": course_id}) from e

        return CourseInfo(
            id=subject.pk,
            code=subject.code,
            name=subject.name,
            semester=subject.recommended_semester,
            instructor=subject.pedagogue.full_name if subject.pedagogue else "",
        )

    def teaches(self, pedagogue_id: int, course_id: int) -> bool:
        return Subject.objects.filter(pk=course_id, pedagogue_id=pedagogue_id).exists()

    def academic_year_for(self, student_id: int, course_id: Optional[int] = None) -> str:
        """Most recent enrollment year, falling back to CURRENT_ACADEMIC_YEAR."""

        qs = CourseEnrollment.objects.filter(student_id=student_id)
        if course_id is not None:
            qs = qs.filter(subject_id=course_id)
        latest = qs.order_by("-created_at", "-id").values_list("academic_year", flat=True).first()
        return latest or settings.CURRENT_ACADEMIC_YEAR

    def transcript(self, student_id: int, *, program_total_credits: Optional[int] = None) -> TranscriptSummary:
        grades = (
            Grade.objects.filter(student_id=student_id, value__isnull=False)
            .select_related("subject")
            .order_by("academic_year", "semester", "subject__name")
        )

        rows = []
        weighted = Decimal("0")
        attempted = 0
        completed = 0
        passing = Decimal(str(settings.PASSING_GRADE))
        for g in grades:
            credits = g.subject.credits or 0
            rows.append(
                GradeRow(
                    code=g.subject.code,
                    name=g.subject.name,
                    grade=g.value,
                    credits=credits,
                    semester=f"{g.semester} - {g.academic_year}",
                )
            )
            weighted += g.value * credits
            attempted += credits
            if g.value >= passing:
                completed += credits

        gpa = (weighted / attempted) if attempted else Decimal("0")
        return TranscriptSummary(
            rows=tuple(rows),
            gpa=gpa.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP),
            total_credits=program_total_credits if program_total_credits else attempted,
            completed_credits=completed,
        )
