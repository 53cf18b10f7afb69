import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ("pedagogues", "0001_initial"),
    ]

    operations = [
        migrations.CreateModel(
            name="Program",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=200, verbose_name="Program name")),
                ("faculty", models.CharField(max_length=200)),
                (
                    "degree_type",
                    models.CharField(
                        choices=[("BACHELOR", "Bachelor"), ("MASTER", "Master"), ("PHD", "PhD")],
                        default="BACHELOR",
                        max_length=20,
                    ),
                ),
                ("duration_years", models.PositiveSmallIntegerField(blank=True, null=True)),
                ("total_credits", models.PositiveIntegerField(blank=True, null=True, verbose_name="Total credits")),
            ],
            options={
                "ordering": ["name"],
            },
        ),
        migrations.CreateModel(
            name="Subject",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("code", models.CharField(max_length=20, unique=True)),
                ("name", models.CharField(max_length=200)),
                ("credits", models.PositiveSmallIntegerField(default=0)),
                ("recommended_semester", models.PositiveSmallIntegerField(blank=True, null=True)),
                (
                    "program",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="subjects",
                        to="academic.program",
                    ),
                ),
                (
                    "pedagogue",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.SET_NULL,
                        related_name="subjects",
                        to="pedagogues.pedagogue",
                    ),
                ),
            ],
            options={
                "ordering": ["code"],
            },
        ),
    ]
