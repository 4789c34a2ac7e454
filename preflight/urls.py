from django.urls import path

from .views import UploadCompleteView, UploadStatusView

urlpatterns = [
    path("uploads/<str:upload_id>/complete/", UploadCompleteView.as_view(), name="upload-complete"),
    path("uploads/<str:upload_id>/status/", UploadStatusView.as_view(), name="upload-status"),
]
