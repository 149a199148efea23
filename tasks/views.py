import math

from django.db.models import Q
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import NotFoundError
from projects.models import Project
from projects.policies import ProjectPolicy
from . import analytics, services
from .models import Task
from .serializers import (
    CommentCreateSerializer,
    DependencyCreateSerializer,
    SubtaskCreateSerializer,
    SubtaskSerializer,
    SubtaskUpdateSerializer,
    TaskCommentSerializer,
    TaskCreateSerializer,
    TaskDependencySerializer,
    TaskDetailSerializer,
    TaskListQuerySerializer,
    TaskSerializer,
    TaskUpdateSerializer,
    TimeEntryCreateSerializer,
    TimeEntrySerializer,
)

LIST_SELECT = ("project", "assignee", "reporter")
LIST_PREFETCH = ("watchers", "subtasks")


def _detail_queryset():
    return (
        Task.objects.select_related(*LIST_SELECT)
        .prefetch_related(
            *LIST_PREFETCH,
            "comments__author",
            "dependencies__depends_on",
            "time_entries__user",
            "attachments",
        )
    )


def _detail_data(task_id):
    return TaskDetailSerializer(_detail_queryset().get(pk=task_id)).data


class TaskListCreateView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        params = TaskListQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)
        filters = params.validated_data

        qs = services.accessible_tasks(request.user)

        project_id = filters.get("project")
        if project_id:
            project = (
                Project.objects.filter(pk=project_id)
                .prefetch_related("memberships")
                .first()
            )
            if project is None:
                raise NotFoundError("Project not found")
            ProjectPolicy.ensure_can_access_project(request.user, project)
            qs = qs.filter(project=project)

        if filters.get("status"):
            qs = qs.filter(status=filters["status"])
        if filters.get("priority"):
            qs = qs.filter(priority=filters["priority"])
        if filters.get("assignee"):
            qs = qs.filter(assignee_id=filters["assignee"])

        search = filters.get("search")
        if search:
            qs = qs.filter(Q(title__icontains=search) | Q(description__icontains=search))

        page = filters["page"]
        limit = filters["limit"]
        total = qs.count()
        pages = math.ceil(total / limit)

        offset = (page - 1) * limit
        rows = (
            qs.select_related(*LIST_SELECT)
            .prefetch_related(*LIST_PREFETCH)
            .order_by("-created_at", "-id")[offset: offset + limit]
        )

        return Response({
            "tasks": TaskSerializer(rows, many=True).data,
            "pagination": {
                "current": page,
                "pages": pages,
                "total": total,
                "hasNext": page < pages,
                "hasPrev": page > 1,
            },
        })

    def post(self, request):
        serializer = TaskCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        fields = dict(serializer.validated_data)
        project = fields.pop("project")
        project = Project.objects.prefetch_related("memberships").get(pk=project.pk)

        task = services.create_task(request.user, project, fields)
        return Response(
            {"message": "Task created successfully", "task": _detail_data(task.id)},
            status=status.HTTP_201_CREATED,
        )


class TaskDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, task_id):
        task = services.get_task_for_user(request.user, task_id, queryset=_detail_queryset())
        return Response(TaskDetailSerializer(task).data)

    def put(self, request, task_id):
        task = services.get_task_for_user(request.user, task_id)

        serializer = TaskUpdateSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        task = services.update_task(request.user, task, dict(serializer.validated_data))
        return Response({"message": "Task updated successfully", "task": _detail_data(task.id)})

    patch = put

    def delete(self, request, task_id):
        task = services.get_task_for_user(request.user, task_id)
        services.delete_task(request.user, task)
        return Response({"message": "Task deleted successfully"})


class TaskCommentView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, task_id):
        task = services.get_task_for_user(request.user, task_id)

        serializer = CommentCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        comment = services.comment_on_task(request.user, task, serializer.validated_data["content"])
        return Response(
            {"message": "Comment added successfully", "comment": TaskCommentSerializer(comment).data},
            status=status.HTTP_201_CREATED,
        )


class TaskSubtaskCreateView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, task_id):
        task = services.get_task_for_user(request.user, task_id)

        serializer = SubtaskCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        subtask = services.add_subtask(request.user, task, serializer.validated_data["title"])
        return Response(
            {"message": "Subtask added successfully", "subtask": SubtaskSerializer(subtask).data},
            status=status.HTTP_201_CREATED,
        )


class TaskSubtaskDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def patch(self, request, task_id, subtask_id):
        task = services.get_task_for_user(request.user, task_id)

        serializer = SubtaskUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        subtask = services.set_subtask_completed(
            request.user, task, subtask_id, serializer.validated_data["completed"]
        )
        return Response({"message": "Subtask updated successfully", "subtask": SubtaskSerializer(subtask).data})


class TaskDependencyView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, task_id):
        task = services.get_task_for_user(request.user, task_id)

        serializer = DependencyCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        dependency = services.add_dependency(
            request.user,
            task,
            serializer.validated_data["depends_on"],
            serializer.validated_data["relation"],
        )
        return Response(
            {"message": "Dependency added successfully", "dependency": TaskDependencySerializer(dependency).data},
            status=status.HTTP_201_CREATED,
        )


class TaskTimeEntryView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, task_id):
        task = services.get_task_for_user(request.user, task_id)

        serializer = TimeEntryCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        entry = services.log_time(
            request.user,
            task,
            data["start_time"],
            data.get("end_time"),
            data.get("description", ""),
        )
        return Response(
            {"message": "Time logged successfully", "time_entry": TimeEntrySerializer(entry).data},
            status=status.HTTP_201_CREATED,
        )


class TaskWatchView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, task_id):
        task = services.get_task_for_user(request.user, task_id)
        services.watch_task(request.user, task)
        return Response({"message": "Watching task", "watching": True})

    def delete(self, request, task_id):
        task = services.get_task_for_user(request.user, task_id)
        services.unwatch_task(request.user, task)
        return Response({"message": "Stopped watching task", "watching": False})


class TaskDashboardView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "analytics"

    def get(self, request):
        return Response(analytics.get_dashboard_stats(request.user))
