import json
from urllib.parse import parse_qs

from channels.generic.websocket import AsyncWebsocketConsumer

STAFF_ROLES = {"receptionist", "admin", "super"}


class AppointmentUpdatesConsumer(AsyncWebsocketConsumer):
    """Pushes appointment changes of one hospital to its front-desk screens."""

    async def connect(self):
        user = self.scope.get("user")
        if not (user and user.is_authenticated and getattr(user, "role", None) in STAFF_ROLES):
            await self.close(code=4403)
            return
        hospital_id = getattr(user, "hospital_id", None) or self._requested_hospital()
        if not hospital_id:
            await self.close(code=4400)
            return
        self.group = f"appointments.{hospital_id}"
        await self.channel_layer.group_add(self.group, self.channel_name)
        await self.accept()
        await self.send(json.dumps({"type": "welcome", "hospitalId": hospital_id}))

    def _requested_hospital(self):
        # super admins pick the hospital with ?hospitalId=
        query = parse_qs(self.scope.get("query_string", b"").decode())
        values = query.get("hospitalId") or [None]
        return values[0]

    async def disconnect(self, close_code):
        group = getattr(self, "group", None)
        if group:
            await self.channel_layer.group_discard(group, self.channel_name)

    async def appointment_changed(self, event):
        # event: {"type": "appointment.changed", "event": "created"|"updated", "appointmentId": ...}
        await self.send(json.dumps(event))
