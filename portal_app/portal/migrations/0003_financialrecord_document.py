from __future__ import annotations

import django.db.models.deletion
from django.conf import settings
from django.db import migrations, models

import portal.models


class Migration(migrations.Migration):
    dependencies = [
        migrations.swappable_dependency(settings.AUTH_USER_MODEL),
        ("portal", "0002_create_email_templates"),
    ]

    operations = [
        migrations.CreateModel(
            name="FinancialRecord",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                (
                    "type",
                    models.CharField(choices=[("income", "Income"), ("expense", "Expense")], max_length=16),
                ),
                ("description", models.CharField(max_length=255)),
                ("amount", models.DecimalField(decimal_places=2, max_digits=12)),
                ("category", models.CharField(max_length=64)),
                ("transaction_date", models.DateField()),
                ("reference_number", models.CharField(blank=True, default="", max_length=64)),
                ("recorded_by", models.CharField(blank=True, default="", max_length=255)),
                ("recorded_by_name", models.CharField(blank=True, default="", max_length=255)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ("-transaction_date", "-id"),
                "indexes": [models.Index(fields=["transaction_date"], name="fin_txn_date")],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("amount__gt", 0)),
                        name="chk_financialrecord_amount_positive",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="Document",
            fields=[
                ("id", models.BigAutoField(auto_created=True, primary_key=True, serialize=False, verbose_name="ID")),
                ("name", models.CharField(max_length=255)),
                (
                    "kind",
                    models.CharField(
                        choices=[
                            ("folder", "Folder"),
                            ("pdf", "PDF"),
                            ("doc", "Document"),
                            ("image", "Image"),
                            ("spreadsheet", "Spreadsheet"),
                            ("other", "Other"),
                        ],
                        max_length=16,
                    ),
                ),
                ("file", models.FileField(blank=True, upload_to=portal.models.document_upload_to)),
                ("size", models.PositiveBigIntegerField(blank=True, null=True)),
                ("mime_type", models.CharField(blank=True, default="", max_length=255)),
                ("created_by_name", models.CharField(blank=True, default="", max_length=255)),
                ("shared", models.BooleanField(default=False)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "owner",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="documents",
                        to=settings.AUTH_USER_MODEL,
                    ),
                ),
                (
                    "parent",
                    models.ForeignKey(
                        blank=True,
                        null=True,
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="children",
                        to="portal.document",
                    ),
                ),
            ],
            options={
                "ordering": ("name", "id"),
                "indexes": [models.Index(fields=["owner", "parent"], name="doc_owner_parent")],
            },
        ),
        migrations.AlterField(
            model_name="activitylogentry",
            name="category",
            field=models.CharField(
                choices=[
                    ("faculty", "Faculty"),
                    ("election", "Election"),
                    ("poll", "Poll"),
                    ("announcement", "Announcement"),
                    ("registration", "Registration"),
                    ("finance", "Finance"),
                    ("document", "Document"),
                ],
                db_index=True,
                max_length=32,
            ),
        ),
    ]
