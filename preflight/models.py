import uuid

from django.db import models


def generate_id() -> str:
    return uuid.uuid4().hex


class Shop(models.Model):
    class Plan(models.TextChoices):
        FREE = "free", "Free"
        STARTER = "starter", "Starter"
        PRO = "pro", "Pro"
        ENTERPRISE = "enterprise", "Enterprise"

    class StorageProvider(models.TextChoices):
        LOCAL = "local", "Local"
        BUNNY = "bunny", "Bunny CDN"
        R2 = "r2", "Cloudflare R2"
        S3 = "s3", "Amazon S3"

    id = models.CharField(primary_key=True, max_length=64, default=generate_id, editable=False)
    shop_domain = models.CharField(max_length=255, unique=True)
    plan = models.CharField(max_length=32, choices=Plan.choices, default=Plan.FREE)
    storage_provider = models.CharField(
        max_length=32, choices=StorageProvider.choices, default=StorageProvider.LOCAL
    )
    storage_config = models.JSONField(blank=True, default=dict)
    settings = models.JSONField(blank=True, default=dict)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["shop_domain"]

    def __str__(self) -> str:
        return f"{self.shop_domain} ({self.plan})"

    @property
    def auto_approve(self) -> bool:
        return bool((self.settings or {}).get("autoApprove", True))


class Upload(models.Model):
    class Status(models.TextChoices):
        DRAFT = "draft", "Draft"
        UPLOADED = "uploaded", "Uploaded"
        BLOCKED = "blocked", "Blocked"
        NEEDS_REVIEW = "needs_review", "Needs Review"
        READY = "ready", "Ready"
        PENDING_APPROVAL = "pending_approval", "Pending Approval"

    id = models.CharField(primary_key=True, max_length=64, default=generate_id, editable=False)
    shop = models.ForeignKey(Shop, related_name="uploads", on_delete=models.CASCADE)
    status = models.CharField(max_length=32, choices=Status.choices, default=Status.DRAFT)
    preflight_summary = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"Upload {self.id} ({self.status})"


class UploadItem(models.Model):
    class PreflightStatus(models.TextChoices):
        PENDING = "pending", "Pending"
        OK = "ok", "OK"
        WARNING = "warning", "Warning"
        ERROR = "error", "Error"

    id = models.CharField(primary_key=True, max_length=64, default=generate_id, editable=False)
    upload = models.ForeignKey(Upload, related_name="items", on_delete=models.CASCADE)
    location = models.CharField(max_length=64, default="front")
    original_name = models.CharField(max_length=255, blank=True)
    storage_key = models.CharField(max_length=1024)
    preview_key = models.CharField(max_length=1024, blank=True)
    thumbnail_key = models.CharField(max_length=1024, null=True, blank=True)
    detected_type = models.CharField(max_length=128, null=True, blank=True)
    file_size = models.BigIntegerField(null=True, blank=True)
    preflight_status = models.CharField(
        max_length=16, choices=PreflightStatus.choices, default=PreflightStatus.PENDING
    )
    preflight_result = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at"]
        indexes = [
            models.Index(fields=["upload", "preflight_status"], name="preflight_item_status_idx"),
        ]

    def __str__(self) -> str:
        return f"{self.original_name or self.storage_key} ({self.preflight_status})"

    def save(self, *args, **kwargs):
        # The preview always points at the untouched original.
        self.preview_key = self.storage_key
        super().save(*args, **kwargs)

    @property
    def is_terminal(self) -> bool:
        return self.preflight_status != self.PreflightStatus.PENDING

    def job_payload(self) -> dict:
        return {
            "upload_id": self.upload_id,
            "shop_id": self.upload.shop_id,
            "item_id": self.id,
            "storage_key": self.storage_key,
        }
