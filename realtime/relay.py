# realtime/relay.py
"""
Project-scoped event relay.

Callers only depend on `publish(project_id, event, payload)`. Delivery
is fire-and-forget: subscribers joined to the project's group at the
moment of publishing receive the event once; nothing is stored or
replayed.
"""
import json
import logging

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.conf import settings
from django.core.serializers.json import DjangoJSONEncoder
from django.utils.module_loading import import_string

logger = logging.getLogger("taskboard.realtime")

DEFAULT_RELAY_CLASS = "realtime.relay.ChannelLayerRelay"


def group_name(project_id) -> str:
    return f"project_{project_id}"


def _jsonable(payload):
    # Channel layers msgpack/pickle their messages; keep payloads plain JSON types
    return json.loads(json.dumps(payload, cls=DjangoJSONEncoder))


class ProjectRelay:
    """Base relay. Subclasses deliver `event` to everyone following `project_id`."""

    def publish(self, project_id, event, payload):
        raise NotImplementedError


class ChannelLayerRelay(ProjectRelay):
    """Sends to the Channels group of the project; consumers forward it to sockets."""

    def __init__(self, channel_layer=None):
        self.channel_layer = channel_layer or get_channel_layer()

    def publish(self, project_id, event, payload):
        if self.channel_layer is None:
            logger.warning(f"No channel layer configured, dropping event={event} project={project_id}")
            return

        async_to_sync(self.channel_layer.group_send)(
            group_name(project_id),
            {
                "type": "project.event",
                "event": event,
                "payload": _jsonable(payload),
            },
        )


def get_relay() -> ProjectRelay:
    path = getattr(settings, "REALTIME_RELAY_CLASS", DEFAULT_RELAY_CLASS)
    return import_string(path)()


def publish(project_id, event, payload):
    """
    Publish an event to a project's subscribers.

    Never raises: a failed push is logged and the caller's request
    carries on.
    """
    try:
        get_relay().publish(project_id, event, {**payload, "project_id": project_id})
    except Exception as exc:
        logger.warning(f"Realtime publish failed: event={event}, project={project_id}, error={exc}")
        return False

    logger.debug(f"Realtime event published: event={event}, project={project_id}")
    return True
