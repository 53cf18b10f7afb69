from django.contrib.auth.models import AbstractUser
from django.db import models


class User(AbstractUser):
    ROLE_STUDENT = "student"
    ROLE_PEDAGOGUE = "pedagogue"
    ROLE_ADMIN = "admin"

    ROLES = (
        (ROLE_STUDENT, "Student"),
        (ROLE_PEDAGOGUE, "Pedagogue"),
        (ROLE_ADMIN, "Administrator"),
    )

    role = models.CharField(max_length=20, choices=ROLES)
    email = models.EmailField(unique=True, blank=True, null=True, verbose_name="Email address")

    REQUIRED_FIELDS = ["email", "role"]

    def __str__(self) -> str:
        return f"{self.username} ({self.get_role_display()})"

    def save(self, *args, **kwargs):
        # Blank emails are stored as NULL so the unique constraint only applies to real addresses.
        if not self.email:
            self.email = None
        super().save(*args, **kwargs)
