import uuid

import django.db.models.deletion
import django.utils.timezone
from django.conf import settings
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("students", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Document",
            fields=[
                ("id", models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                (
                    "doc_type",
                    models.CharField(
                        choices=[
                            ("enrollment_certificate", "Enrollment certificate"),
                            ("transcript", "Transcript"),
                            ("verification_letter", "Verification letter"),
                            ("participation_certificate", "Participation certificate"),
                        ],
                        max_length=40,
                    ),
                ),
                ("artifact_locator", models.CharField(max_length=255, unique=True)),
                (
                    "status",
                    models.CharField(
                        choices=[("valid", "Valid"), ("revoked", "Revoked")],
                        db_index=True,
                        default="valid",
                        max_length=10,
                    ),
                ),
                ("issued_at", models.DateTimeField(db_index=True, default=django.utils.timezone.now)),
                ("metadata", models.JSONField(blank=True, default=dict)),
                ("subject_snapshot", models.JSONField(blank=True, default=dict)),
                ("revoked_at", models.DateTimeField(blank=True, null=True)),
                ("revoked_reason", models.CharField(blank=True, default="", max_length=500)),
                ("download_count", models.PositiveIntegerField(default=0)),
                (
                    "issuer",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="issued_documents",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "revoked_by",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="revoked_documents",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "subject",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.PROTECT,
                        related_name="documents",
                        to="students.student",
                    ),
                ),
            ],
            options={
                "ordering": ["-issued_at"],
                "indexes": [
                    models.Index(fields=["subject", "issued_at"], name="documents_subject_issued_idx"),
                    models.Index(fields=["issuer", "issued_at"], name="documents_issuer_issued_idx"),
                    models.Index(fields=["doc_type", "status"], name="documents_type_status_idx"),
                ],
            },
        ),
    ]
