from channels.generic.websocket import AsyncJsonWebsocketConsumer


class PreflightProgressConsumer(AsyncJsonWebsocketConsumer):
    async def connect(self):
        self.upload_id = self.scope["url_route"]["kwargs"]["upload_id"]
        self.group_name = f"preflight_{self.upload_id}"
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

    async def disconnect(self, close_code):
        await self.channel_layer.group_discard(self.group_name, self.channel_name)

    async def receive_json(self, content, **kwargs):
        # Progress updates are server -> client only.
        pass

    async def preflight_progress(self, event):
        await self.send_json(event.get("payload", {}))
