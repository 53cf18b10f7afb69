from django.conf import settings
from django.db import models


class Pedagogue(models.Model):
    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        primary_key=True,
        related_name="pedagogue_profile",
    )
    staff_number = models.CharField(max_length=50, blank=True, unique=True, null=True, verbose_name="Staff number")
    department = models.CharField(max_length=200, blank=True)
    academic_title = models.CharField(max_length=100, blank=True, verbose_name="Academic title")
    specialization = models.CharField(max_length=200, blank=True)

    def __str__(self):
        return f"{self.full_name} - {self.department}"

    @property
    def full_name(self) -> str:
        return self.user.get_full_name() or self.user.username
