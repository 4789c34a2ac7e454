from rest_framework import serializers

from .models import Upload, UploadItem


class UploadItemSerializer(serializers.ModelSerializer):
    storageKey = serializers.CharField(source="storage_key", read_only=True)
    previewKey = serializers.CharField(source="preview_key", read_only=True)
    thumbnailKey = serializers.CharField(source="thumbnail_key", read_only=True, allow_null=True)
    originalName = serializers.CharField(source="original_name", read_only=True)
    detectedType = serializers.CharField(source="detected_type", read_only=True, allow_null=True)
    fileSize = serializers.IntegerField(source="file_size", read_only=True, allow_null=True)
    preflightStatus = serializers.CharField(source="preflight_status", read_only=True)
    preflightResult = serializers.JSONField(source="preflight_result", read_only=True)

    class Meta:
        model = UploadItem
        fields = [
            "id",
            "location",
            "originalName",
            "storageKey",
            "previewKey",
            "thumbnailKey",
            "detectedType",
            "fileSize",
            "preflightStatus",
            "preflightResult",
        ]


class UploadStatusSerializer(serializers.ModelSerializer):
    uploadId = serializers.CharField(source="id", read_only=True)
    overallPreflight = serializers.SerializerMethodField()
    preflightSummary = serializers.JSONField(source="preflight_summary", read_only=True)
    items = UploadItemSerializer(many=True, read_only=True)
    createdAt = serializers.DateTimeField(source="created_at", read_only=True)
    updatedAt = serializers.DateTimeField(source="updated_at", read_only=True)

    class Meta:
        model = Upload
        fields = [
            "uploadId",
            "status",
            "overallPreflight",
            "preflightSummary",
            "items",
            "createdAt",
            "updatedAt",
        ]

    def get_overallPreflight(self, obj: Upload) -> str:
        statuses = [item.preflight_status for item in obj.items.all()]
        if not statuses or UploadItem.PreflightStatus.PENDING in statuses:
            return UploadItem.PreflightStatus.PENDING
        if UploadItem.PreflightStatus.ERROR in statuses:
            return UploadItem.PreflightStatus.ERROR
        if UploadItem.PreflightStatus.WARNING in statuses:
            return UploadItem.PreflightStatus.WARNING
        return UploadItem.PreflightStatus.OK
