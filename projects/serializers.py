from rest_framework import serializers

from core.sanitizers import sanitize_html, sanitize_title
from users.serializers import UserSummarySerializer
from .models import Project, ProjectMembership

TAG_MAX_LENGTH = 30


class ProjectMemberSerializer(serializers.ModelSerializer):
    user = UserSummarySerializer(read_only=True)

    class Meta:
        model = ProjectMembership
        fields = ['user', 'role', 'joined_at']
        read_only_fields = fields


class ProjectBudgetSerializer(serializers.Serializer):
    allocated = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, required=False)
    spent = serializers.DecimalField(max_digits=14, decimal_places=2, min_value=0, required=False)
    currency = serializers.CharField(max_length=3, required=False)


class ProjectSettingsSerializer(serializers.Serializer):
    is_public = serializers.BooleanField(required=False)
    allow_comments = serializers.BooleanField(required=False)
    auto_archive = serializers.BooleanField(required=False)


class ProjectSerializer(serializers.ModelSerializer):
    owner = UserSummarySerializer(read_only=True)
    members = ProjectMemberSerializer(source='memberships', many=True, read_only=True)
    budget = serializers.SerializerMethodField()
    settings = serializers.SerializerMethodField()
    days_remaining = serializers.IntegerField(read_only=True, allow_null=True)
    task_count = serializers.SerializerMethodField()
    completed_task_count = serializers.SerializerMethodField()

    class Meta:
        model = Project
        fields = [
            'id',
            'name',
            'description',
            'status',
            'priority',
            'start_date',
            'end_date',
            'deadline',
            'owner',
            'members',
            'tags',
            'color',
            'budget',
            'progress',
            'is_archived',
            'settings',
            'days_remaining',
            'task_count',
            'completed_task_count',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_budget(self, obj):
        return {
            'allocated': obj.budget_allocated,
            'spent': obj.budget_spent,
            'currency': obj.budget_currency,
        }

    def get_settings(self, obj):
        return {
            'is_public': obj.is_public,
            'allow_comments': obj.allow_comments,
            'auto_archive': obj.auto_archive,
        }

    # Counts are annotated by list/detail querysets; fall back to a query otherwise
    def get_task_count(self, obj):
        count = getattr(obj, 'task_count', None)
        if count is None:
            count = obj.tasks.filter(is_archived=False).count()
        return count

    def get_completed_task_count(self, obj):
        count = getattr(obj, 'completed_task_count', None)
        if count is None:
            count = obj.tasks.filter(is_archived=False, status='completed').count()
        return count


class ProjectWriteSerializer(serializers.ModelSerializer):
    """
    Create/update payload.

    `budget` and `settings` are accepted as nested objects and flattened
    onto the model fields in `validated_data`.
    """
    tags = serializers.ListField(
        child=serializers.CharField(max_length=TAG_MAX_LENGTH, allow_blank=False),
        required=False,
    )
    budget = ProjectBudgetSerializer(required=False)
    settings = ProjectSettingsSerializer(required=False)

    class Meta:
        model = Project
        fields = [
            'name',
            'description',
            'status',
            'priority',
            'start_date',
            'end_date',
            'deadline',
            'tags',
            'color',
            'budget',
            'progress',
            'is_archived',
            'settings',
        ]

    def validate_name(self, value):
        name = sanitize_title(value)
        if not name:
            raise serializers.ValidationError("Project name is required")
        return name

    def validate_description(self, value):
        description = sanitize_html(value)
        if len(description) > 500:
            raise serializers.ValidationError("Description cannot exceed 500 characters")
        return description

    def validate_tags(self, value):
        tags = [sanitize_title(tag) for tag in value]
        if any(not tag for tag in tags):
            raise serializers.ValidationError("Tags cannot be empty")
        return tags

    def validate(self, attrs):
        budget = attrs.pop('budget', None) or {}
        for key, value in budget.items():
            attrs[f'budget_{key}'] = value

        attrs.update(attrs.pop('settings', None) or {})

        start = attrs.get('start_date', getattr(self.instance, 'start_date', None))
        end = attrs.get('end_date')
        if start and end and end < start:
            raise serializers.ValidationError({'end_date': ["End date cannot be before start date"]})
        return attrs


class MemberAddSerializer(serializers.Serializer):
    user_id = serializers.IntegerField(min_value=1)
    role = serializers.CharField(required=False, default=ProjectMembership.ROLE_MEMBER)


class MemberRoleSerializer(serializers.Serializer):
    role = serializers.CharField()
