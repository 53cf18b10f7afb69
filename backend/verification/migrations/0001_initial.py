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
            name="VerificationEvent",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("created_at", models.DateTimeField(auto_now_add=True, db_index=True)),
                ("document_id", models.UUIDField(db_index=True)),
                ("doc_type", models.CharField(blank=True, default="", max_length=40)),
                (
                    "outcome",
                    models.CharField(
                        choices=[("valid", "Valid"), ("invalid", "Invalid"), ("not_found", "Not found")],
                        db_index=True,
                        max_length=12,
                    ),
                ),
                ("ip_address", models.CharField(blank=True, db_index=True, default="", max_length=64)),
                ("user_agent", models.CharField(blank=True, default="", max_length=255)),
                (
                    "verifier",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="verification_events",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at", "-id"],
                "indexes": [
                    models.Index(fields=["document_id", "created_at"], name="verif_event_doc_created_idx"),
                ],
            },
        ),
    ]
