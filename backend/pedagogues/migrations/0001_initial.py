import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
    ]

    operations = [
        migrations.CreateModel(
            name="Pedagogue",
            fields=[
                (
                    "user",
                    models.OneToOneField(
                        on_delete=django.db.models.deletion.CASCADE,
                        primary_key=True,
                        related_name="pedagogue_profile",
                        serialize=False,
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "staff_number",
                    models.CharField(blank=True, max_length=50, null=True, unique=True, verbose_name="Staff number"),
                ),
                ("department", models.CharField(blank=True, max_length=200)),
                ("academic_title", models.CharField(blank=True, max_length=100, verbose_name="Academic title")),
                ("specialization", models.CharField(blank=True, max_length=200)),
            ],
        ),
    ]
