from django.urls import path

from .consumers import PreflightProgressConsumer

websocket_urlpatterns = [
    path("ws/preflight/<str:upload_id>/", PreflightProgressConsumer.as_asgi(), name="preflight-progress"),
]
