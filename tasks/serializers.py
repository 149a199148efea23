from collections.abc import Mapping

from django.contrib.auth import get_user_model
from rest_framework import serializers

from projects.models import Project
from users.serializers import UserSummarySerializer
from . import lifecycle
from .models import (
    Subtask,
    Task,
    TaskAttachment,
    TaskComment,
    TaskDependency,
    TimeEntry,
)

User = get_user_model()


# -----------------------------------------
# OWNED COLLECTIONS
# -----------------------------------------
class TaskCommentSerializer(serializers.ModelSerializer):
    author = UserSummarySerializer(read_only=True)

    class Meta:
        model = TaskComment
        fields = ["id", "author", "content", "is_edited", "edited_at", "created_at"]
        read_only_fields = fields


class SubtaskSerializer(serializers.ModelSerializer):
    class Meta:
        model = Subtask
        fields = ["id", "title", "completed", "completed_at", "completed_by"]
        read_only_fields = fields


class TaskDependencySerializer(serializers.ModelSerializer):
    depends_on_title = serializers.CharField(source="depends_on.title", read_only=True)

    class Meta:
        model = TaskDependency
        fields = ["id", "depends_on", "depends_on_title", "relation"]
        read_only_fields = fields


class TimeEntrySerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = TimeEntry
        fields = ["id", "user", "start_time", "end_time", "duration", "description", "date"]
        read_only_fields = fields


class TaskAttachmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = TaskAttachment
        fields = [
            "id",
            "filename",
            "original_name",
            "mimetype",
            "size",
            "url",
            "uploaded_by",
            "uploaded_at",
        ]
        read_only_fields = fields


# -----------------------------------------
# TASK (read)
# -----------------------------------------
class TaskProjectSerializer(serializers.ModelSerializer):
    class Meta:
        model = Project
        fields = ["id", "name", "color"]
        read_only_fields = fields


class TaskSummarySerializer(serializers.ModelSerializer):
    """List rows for analytics: no nested collections."""
    project = TaskProjectSerializer(read_only=True)
    assignee = UserSummarySerializer(read_only=True)
    is_overdue = serializers.BooleanField(read_only=True)

    class Meta:
        model = Task
        fields = [
            "id",
            "title",
            "status",
            "priority",
            "project",
            "assignee",
            "due_date",
            "progress",
            "is_overdue",
            "updated_at",
        ]
        read_only_fields = fields


class TaskSerializer(serializers.ModelSerializer):
    project = TaskProjectSerializer(read_only=True)
    assignee = UserSummarySerializer(read_only=True)
    reporter = UserSummarySerializer(read_only=True)
    watchers = UserSummarySerializer(many=True, read_only=True)

    is_overdue = serializers.BooleanField(read_only=True)
    days_remaining = serializers.IntegerField(read_only=True, allow_null=True)
    subtask_progress = serializers.IntegerField(read_only=True)

    class Meta:
        model = Task
        fields = [
            "id",
            "title",
            "description",
            "status",
            "priority",
            "project",
            "assignee",
            "reporter",
            "watchers",
            "labels",
            "due_date",
            "estimated_hours",
            "actual_hours",
            "progress",
            "completed_at",
            "archived_at",
            "is_archived",
            "is_overdue",
            "days_remaining",
            "subtask_progress",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class TaskDetailSerializer(TaskSerializer):
    comments = TaskCommentSerializer(many=True, read_only=True)
    subtasks = SubtaskSerializer(many=True, read_only=True)
    dependencies = TaskDependencySerializer(many=True, read_only=True)
    time_entries = TimeEntrySerializer(many=True, read_only=True)
    attachments = TaskAttachmentSerializer(many=True, read_only=True)

    class Meta(TaskSerializer.Meta):
        fields = TaskSerializer.Meta.fields + [
            "comments",
            "subtasks",
            "dependencies",
            "time_entries",
            "attachments",
        ]
        read_only_fields = fields


# -----------------------------------------
# TASK (write)
# Types are parsed here; bounds, enums and label shape are checked by
# tasks.lifecycle. When parsing fails the lifecycle checks still run on
# the fields that did parse, so every violation is reported in one response.
# -----------------------------------------
class TaskUpdateSerializer(serializers.Serializer):
    IMMUTABLE_FIELDS = ("project", "reporter")

    title = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    description = serializers.CharField(required=False, allow_blank=True, trim_whitespace=False)
    assignee = serializers.PrimaryKeyRelatedField(
        queryset=User.objects.filter(is_active=True),
        required=False,
        allow_null=True,
    )
    priority = serializers.CharField(required=False)
    status = serializers.CharField(required=False)
    due_date = serializers.DateTimeField(required=False, allow_null=True)
    estimated_hours = serializers.FloatField(required=False, allow_null=True)
    actual_hours = serializers.FloatField(required=False)
    progress = serializers.IntegerField(required=False)
    labels = serializers.ListField(child=serializers.DictField(), required=False)
    is_archived = serializers.BooleanField(required=False)

    def _immutable_errors(self, data):
        return {
            field: ["This field cannot be changed."]
            for field in self.IMMUTABLE_FIELDS
            if field in data
        }

    def to_internal_value(self, data):
        try:
            return super().to_internal_value(data)
        except serializers.ValidationError as exc:
            if not isinstance(data, Mapping) or not isinstance(exc.detail, dict):
                raise
            errors = dict(exc.detail)

        rest = data.copy()
        for field in errors:
            rest.pop(field, None)
        try:
            parsed = super().to_internal_value(rest)
        except serializers.ValidationError:
            parsed = {}

        try:
            lifecycle.validate_task_fields(
                {k: v for k, v in parsed.items() if k in lifecycle.UPDATABLE_FIELDS}
            )
        except serializers.ValidationError as exc:
            for field, messages in exc.detail.items():
                errors.setdefault(field, messages)

        for field, messages in self._immutable_errors(data).items():
            errors.setdefault(field, messages)
        raise serializers.ValidationError(errors)

    def validate(self, attrs):
        errors = self._immutable_errors(self.initial_data)
        if errors:
            raise serializers.ValidationError(errors)
        return attrs


class TaskCreateSerializer(TaskUpdateSerializer):
    IMMUTABLE_FIELDS = ()

    project = serializers.PrimaryKeyRelatedField(queryset=Project.objects.all())


class TaskListQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, default=1, min_value=1)
    limit = serializers.IntegerField(required=False, default=10, min_value=1, max_value=100)
    status = serializers.ChoiceField(choices=Task.STATUS_CHOICES, required=False)
    priority = serializers.ChoiceField(choices=Task.PRIORITY_CHOICES, required=False)
    project = serializers.IntegerField(required=False, min_value=1)
    assignee = serializers.IntegerField(required=False, min_value=1)
    search = serializers.CharField(required=False, allow_blank=True, max_length=100)


class CommentCreateSerializer(serializers.Serializer):
    content = serializers.CharField(allow_blank=True, trim_whitespace=False)


class SubtaskCreateSerializer(serializers.Serializer):
    title = serializers.CharField(allow_blank=True, trim_whitespace=False)


class SubtaskUpdateSerializer(serializers.Serializer):
    completed = serializers.BooleanField()


class DependencyCreateSerializer(serializers.Serializer):
    depends_on = serializers.IntegerField(min_value=1)
    relation = serializers.CharField(required=False, default=TaskDependency.TYPE_RELATES_TO)


class TimeEntryCreateSerializer(serializers.Serializer):
    start_time = serializers.DateTimeField()
    end_time = serializers.DateTimeField(required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_blank=True, default="")
