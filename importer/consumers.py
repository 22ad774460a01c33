import time
import uuid

from channels.generic.websocket import AsyncJsonWebsocketConsumer

from .progress import progress_group_name


class ImportProgressConsumer(AsyncJsonWebsocketConsumer):
    """
    Websocket endpoint for import progress.

    Clients send ``{"action": "join", "job_id": ...}`` to start receiving
    updates for a job and ``{"action": "leave", "job_id": ...}`` to stop.
    Subscribing never touches the job itself.
    """

    async def connect(self):
        self.job_groups = set()
        await self.accept()

    async def disconnect(self, code):
        for group in self.job_groups:
            await self.channel_layer.group_discard(group, self.channel_name)
        self.job_groups = set()

    async def receive_json(self, content, **kwargs):
        action = content.get("action") if isinstance(content, dict) else None
        job_id = content.get("job_id") if isinstance(content, dict) else None

        try:
            job_id = str(uuid.UUID(str(job_id)))
        except ValueError:
            await self.send_json({"event": "error", "error": "Invalid job_id"})
            return

        group = progress_group_name(job_id)

        if action == "join":
            await self.channel_layer.group_add(group, self.channel_name)
            self.job_groups.add(group)
            await self.send_json({"event": "joined", "job_id": job_id})
        elif action == "leave":
            await self.channel_layer.group_discard(group, self.channel_name)
            self.job_groups.discard(group)
            await self.send_json({"event": "left", "job_id": job_id})
        else:
            await self.send_json({"event": "error", "error": "Unknown action"})

    async def import_progress(self, message):
        await self.send_json(
            {
                "event": "progress",
                "job_id": message["job_id"],
                "snapshot": message["snapshot"],
                "message_timestamp": int(time.time()),
            }
        )
