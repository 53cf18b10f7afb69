from decimal import Decimal

from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models


class Program(models.Model):
    DEGREE_BACHELOR = "BACHELOR"
    DEGREE_MASTER = "MASTER"
    DEGREE_PHD = "PHD"

    DEGREE_CHOICES = (
        (DEGREE_BACHELOR, "Bachelor"),
        (DEGREE_MASTER, "Master"),
        (DEGREE_PHD, "PhD"),
    )

    name = models.CharField(max_length=200, verbose_name="Program name")
    faculty = models.CharField(max_length=200)
    degree_type = models.CharField(max_length=20, choices=DEGREE_CHOICES, default=DEGREE_BACHELOR)
    duration_years = models.PositiveSmallIntegerField(null=True, blank=True)
    total_credits = models.PositiveIntegerField(null=True, blank=True, verbose_name="Total credits")

    class Meta:
        ordering = ["name"]

    def __str__(self) -> str:
        return f"{self.name} ({self.get_degree_type_display()})"


class Subject(models.Model):
    """A course of a program, taught by at most one pedagogue."""

    code = models.CharField(max_length=20, unique=True)
    name = models.CharField(max_length=200)
    credits = models.PositiveSmallIntegerField(default=0)
    recommended_semester = models.PositiveSmallIntegerField(null=True, blank=True)
    program = models.ForeignKey(
        Program, related_name="subjects", on_delete=models.SET_NULL, null=True, blank=True
    )
    pedagogue = models.ForeignKey(
        "pedagogues.Pedagogue",
        related_name="subjects",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
    )

    class Meta:
        ordering = ["code"]

    def __str__(self) -> str:
        return f"{self.code} - {self.name}"


class CourseEnrollment(models.Model):
    student = models.ForeignKey("students.Student", related_name="course_enrollments", on_delete=models.CASCADE)
    subject = models.ForeignKey(Subject, related_name="enrollments", on_delete=models.CASCADE)
    academic_year = models.CharField(max_length=9, verbose_name="Academic year")  # e.g. "2024-2025"
    semester = models.PositiveSmallIntegerField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        unique_together = ("student", "subject", "academic_year")
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:
        return f"{self.student} - {self.subject} ({self.academic_year})"


class Grade(models.Model):
    student = models.ForeignKey("students.Student", related_name="grades", on_delete=models.CASCADE)
    subject = models.ForeignKey(Subject, related_name="grades", on_delete=models.CASCADE)
    value = models.DecimalField(
        max_digits=4,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(Decimal("4")), MaxValueValidator(Decimal("10"))],
    )
    academic_year = models.CharField(max_length=9)
    semester = models.PositiveSmallIntegerField()
    exam_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["academic_year", "semester", "subject__name"]

    def __str__(self) -> str:
        return f"{self.student} - {self.subject}: {self.value}"
