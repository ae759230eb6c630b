import json

from channels.generic.websocket import AsyncWebsocketConsumer

from care.services.notifications import user_group_name


class NotificationsConsumer(AsyncWebsocketConsumer):
    """Pushes a user's new notifications; anonymous sockets are refused."""

    async def connect(self):
        user = self.scope.get("user")
        if user is None or not user.is_authenticated:
            await self.close(code=4401)
            return
        self.group = user_group_name(user.id)
        await self.channel_layer.group_add(self.group, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "message": "connected"}))

    async def disconnect(self, close_code):
        group = getattr(self, "group", None)
        if group:
            await self.channel_layer.group_discard(group, self.channel_name)

    async def receive(self, text_data=None, bytes_data=None):
        # clients may ping to keep proxies from closing the socket
        if text_data and text_data.strip().lower() == "ping":
            await self.send(json.dumps({"type": "pong"}))

    async def notification_created(self, event):
        # event: {"type": "notification.created", "payload": {...}}
        await self.send(json.dumps({"type": "notification", "notification": event["payload"]}))
