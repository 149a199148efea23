# realtime/consumers.py
import logging

from asgiref.sync import async_to_sync
from channels.generic.websocket import JsonWebsocketConsumer

from projects.models import Project
from projects.policies import ProjectPolicy
from .relay import group_name

logger = logging.getLogger("taskboard.realtime")


class ProjectEventsConsumer(JsonWebsocketConsumer):
    """
    Follows one project's task events.

    Only users who can access the project are admitted; everyone else
    is closed before the handshake completes.
    """

    def connect(self):
        self.project_id = self.scope["url_route"]["kwargs"]["project_id"]
        self.group = None
        user = self.scope.get("user")

        project = (
            Project.objects.filter(pk=self.project_id)
            .prefetch_related("memberships")
            .first()
        )
        if project is None or not ProjectPolicy.can_access_project(user, project):
            logger.warning(
                f"Realtime subscription refused: project={self.project_id}, "
                f"user={getattr(user, 'id', None)}"
            )
            self.close()
            return

        self.group = group_name(self.project_id)
        async_to_sync(self.channel_layer.group_add)(self.group, self.channel_name)
        self.accept()

    def disconnect(self, code):
        if self.group:
            async_to_sync(self.channel_layer.group_discard)(self.group, self.channel_name)

    def receive_json(self, content, **kwargs):
        # clients only listen
        pass

    def project_event(self, message):
        self.send_json({"event": message["event"], "payload": message["payload"]})
