import django.db.models.deletion
from django.db import migrations, models

import preflight.models


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Shop",
            fields=[
                (
                    "id",
                    models.CharField(
                        default=preflight.models.generate_id,
                        editable=False,
                        max_length=64,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("shop_domain", models.CharField(max_length=255, unique=True)),
                (
                    "plan",
                    models.CharField(
                        choices=[
                            ("free", "Free"),
                            ("starter", "Starter"),
                            ("pro", "Pro"),
                            ("enterprise", "Enterprise"),
                        ],
                        default="free",
                        max_length=32,
                    ),
                ),
                (
                    "storage_provider",
                    models.CharField(
                        choices=[
                            ("local", "Local"),
                            ("bunny", "Bunny CDN"),
                            ("r2", "Cloudflare R2"),
                            ("s3", "Amazon S3"),
                        ],
                        default="local",
                        max_length=32,
                    ),
                ),
                ("storage_config", models.JSONField(blank=True, default=dict)),
                ("settings", models.JSONField(blank=True, default=dict)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
            ],
            options={
                "ordering": ["shop_domain"],
            },
        ),
        migrations.CreateModel(
            name="Upload",
            fields=[
                (
                    "id",
                    models.CharField(
                        default=preflight.models.generate_id,
                        editable=False,
                        max_length=64,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                (
                    "status",
                    models.CharField(
                        choices=[
                            ("draft", "Draft"),
                            ("uploaded", "Uploaded"),
                            ("blocked", "Blocked"),
                            ("needs_review", "Needs Review"),
                            ("ready", "Ready"),
                            ("pending_approval", "Pending Approval"),
                        ],
                        default="draft",
                        max_length=32,
                    ),
                ),
                ("preflight_summary", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "shop",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="uploads",
                        to="preflight.shop",
                    ),
                ),
            ],
            options={
                "ordering": ["-created_at"],
            },
        ),
        migrations.CreateModel(
            name="UploadItem",
            fields=[
                (
                    "id",
                    models.CharField(
                        default=preflight.models.generate_id,
                        editable=False,
                        max_length=64,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("location", models.CharField(default="front", max_length=64)),
                ("original_name", models.CharField(blank=True, max_length=255)),
                ("storage_key", models.CharField(max_length=1024)),
                ("preview_key", models.CharField(blank=True, max_length=1024)),
                ("thumbnail_key", models.CharField(blank=True, max_length=1024, null=True)),
                ("detected_type", models.CharField(blank=True, max_length=128, null=True)),
                ("file_size", models.BigIntegerField(blank=True, null=True)),
                (
                    "preflight_status",
                    models.CharField(
                        choices=[
                            ("pending", "Pending"),
                            ("ok", "OK"),
                            ("warning", "Warning"),
                            ("error", "Error"),
                        ],
                        default="pending",
                        max_length=16,
                    ),
                ),
                ("preflight_result", models.JSONField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "upload",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="items",
                        to="preflight.upload",
                    ),
                ),
            ],
            options={
                "ordering": ["created_at"],
                "indexes": [
                    models.Index(fields=["upload", "preflight_status"], name="preflight_item_status_idx"),
                ],
            },
        ),
    ]
