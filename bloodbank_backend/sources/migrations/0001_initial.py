from django.db import migrations, models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Organization",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                (
                    "registration_number",
                    models.CharField(
                        blank=True,
                        help_text="Official registration/licence number (optional). If set, must be unique.",
                        max_length=64,
                        null=True,
                    ),
                ),
                ("address", models.TextField(blank=True, default="")),
                ("phone", models.CharField(blank=True, default="", max_length=50)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
                "abstract": False,
                "indexes": [models.Index(fields=["is_active"], name="sources_org_active_idx")],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("registration_number__isnull", False)),
                        fields=("registration_number",),
                        name="uniq_organization_registration_number",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Hospital",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                (
                    "registration_number",
                    models.CharField(
                        blank=True,
                        help_text="Official registration/licence number (optional). If set, must be unique.",
                        max_length=64,
                        null=True,
                    ),
                ),
                ("address", models.TextField(blank=True, default="")),
                ("phone", models.CharField(blank=True, default="", max_length=50)),
                ("email", models.EmailField(blank=True, default="", max_length=254)),
                ("is_active", models.BooleanField(default=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["name"],
                "abstract": False,
                "indexes": [models.Index(fields=["is_active"], name="sources_hosp_active_idx")],
                "constraints": [
                    models.UniqueConstraint(
                        condition=models.Q(("registration_number__isnull", False)),
                        fields=("registration_number",),
                        name="uniq_hospital_registration_number",
                    )
                ],
            },
        ),
    ]
