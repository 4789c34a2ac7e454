from rest_framework import permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView

from .models import Upload
from .serializers import UploadStatusSerializer
from .tasks import queue_upload_preflight


class UploadCompleteView(APIView):
    permission_classes = [permissions.AllowAny]

    def post(self, request, upload_id: str, *args, **kwargs):
        upload = Upload.objects.filter(pk=upload_id).first()
        if upload is None:
            return Response({"detail": "Upload not found."}, status=status.HTTP_404_NOT_FOUND)

        if upload.status != Upload.Status.DRAFT:
            return Response(
                {"detail": "Upload already completed."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        if not upload.items.exists():
            return Response(
                {"detail": "Upload has no items."},
                status=status.HTTP_400_BAD_REQUEST,
            )

        queued = queue_upload_preflight(upload)
        return Response(
            {
                "uploadId": upload.id,
                "status": upload.status,
                "queued": queued,
                "message": "Upload complete. Preflight checks started.",
            },
            status=status.HTTP_202_ACCEPTED,
        )


class UploadStatusView(APIView):
    permission_classes = [permissions.AllowAny]

    def get(self, request, upload_id: str, *args, **kwargs):
        upload = Upload.objects.prefetch_related("items").filter(pk=upload_id).first()
        if upload is None:
            return Response({"detail": "Upload not found."}, status=status.HTTP_404_NOT_FOUND)
        return Response(UploadStatusSerializer(upload).data)
