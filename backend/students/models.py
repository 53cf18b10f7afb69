from django.conf import settings
from django.db import models


class Student(models.Model):
    STATUS_ACTIVE = "ACTIVE"
    STATUS_INACTIVE = "INACTIVE"
    STATUS_GRADUATED = "GRADUATED"

    STATUS_CHOICES = (
        (STATUS_ACTIVE, "Active"),
        (STATUS_INACTIVE, "Inactive"),
        (STATUS_GRADUATED, "Graduated"),
    )

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="student_profile",
    )
    student_number = models.CharField(max_length=50, unique=True, verbose_name="Student ID")
    program = models.ForeignKey(
        "academic.Program", related_name="students", on_delete=models.SET_NULL, null=True, blank=True
    )
    study_year = models.PositiveSmallIntegerField(null=True, blank=True, verbose_name="Year of study")
    enrollment_date = models.DateField(verbose_name="Enrollment date")
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_ACTIVE)

    # Identification
    father_name = models.CharField(max_length=100, blank=True)
    birth_date = models.DateField(null=True, blank=True)
    birth_place = models.CharField(max_length=100, blank=True)
    address = models.CharField(max_length=255, blank=True)
    phone = models.CharField(max_length=20, blank=True)

    def __str__(self) -> str:
        return f"{self.full_name} ({self.student_number})"

    @property
    def full_name(self) -> str:
        return self.user.get_full_name().strip()
