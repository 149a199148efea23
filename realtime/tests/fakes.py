from realtime.relay import ProjectRelay


class RecordingRelay(ProjectRelay):
    """Keeps every published event in memory. Call `reset()` in setUp."""

    published = []

    def publish(self, project_id, event, payload):
        RecordingRelay.published.append((project_id, event, payload))

    @classmethod
    def reset(cls):
        cls.published = []

    @classmethod
    def events(cls):
        return [event for _, event, _ in cls.published]


class FailingRelay(ProjectRelay):
    def publish(self, project_id, event, payload):
        raise ConnectionError("channel layer unavailable")
