from django.db.models import Count, Q
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from core.exceptions import NotFoundError
from tasks.analytics import get_project_stats
from . import services
from .models import Project
from .policies import ProjectPolicy
from .serializers import (
    MemberAddSerializer,
    MemberRoleSerializer,
    ProjectSerializer,
    ProjectWriteSerializer,
)


def _project_queryset():
    return (
        Project.objects.select_related("owner")
        .prefetch_related("memberships__user")
        .annotate(
            task_count=Count("tasks", filter=Q(tasks__is_archived=False), distinct=True),
            completed_task_count=Count(
                "tasks",
                filter=Q(tasks__is_archived=False, tasks__status="completed"),
                distinct=True,
            ),
        )
    )


def get_project_or_404(project_id) -> Project:
    project = _project_queryset().filter(pk=project_id).first()
    if project is None:
        raise NotFoundError("Project not found")
    return project


def _project_data(project_id):
    return ProjectSerializer(_project_queryset().get(pk=project_id)).data


class ProjectListCreateView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request):
        include_archived = request.query_params.get("archived", "").lower() in ("1", "true", "yes")
        member_of = services.accessible_projects(request.user, include_archived=include_archived)

        qs = _project_queryset().filter(pk__in=member_of.values("id"))

        status_param = request.query_params.get("status")
        if status_param:
            qs = qs.filter(status=status_param)

        qs = qs.order_by("-created_at", "-id")
        return Response(ProjectSerializer(qs, many=True).data)

    def post(self, request):
        serializer = ProjectWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        project = services.create_project(request.user, serializer.validated_data)
        return Response(
            {"message": "Project created successfully", "project": _project_data(project.id)},
            status=status.HTTP_201_CREATED,
        )


class ProjectDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def get(self, request, project_id):
        project = get_project_or_404(project_id)
        ProjectPolicy.ensure_can_access_project(request.user, project)
        return Response(ProjectSerializer(project).data)

    def put(self, request, project_id):
        project = get_project_or_404(project_id)
        ProjectPolicy.ensure_can_manage_project(request.user, project)

        serializer = ProjectWriteSerializer(project, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)

        services.update_project(request.user, project, serializer.validated_data)
        return Response({"message": "Project updated successfully", "project": _project_data(project.id)})

    patch = put

    def delete(self, request, project_id):
        project = get_project_or_404(project_id)
        services.delete_project(request.user, project)
        return Response({"message": "Project and all associated tasks deleted successfully"})


class ProjectMembersView(APIView):
    permission_classes = [IsAuthenticated]

    def post(self, request, project_id):
        project = get_project_or_404(project_id)
        ProjectPolicy.ensure_can_manage_project(request.user, project)

        serializer = MemberAddSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        services.add_member(
            request.user,
            project,
            serializer.validated_data["user_id"],
            serializer.validated_data["role"],
        )
        return Response(
            {"message": "Member added successfully", "project": _project_data(project.id)},
            status=status.HTTP_201_CREATED,
        )


class ProjectMemberDetailView(APIView):
    permission_classes = [IsAuthenticated]

    def patch(self, request, project_id, user_id):
        project = get_project_or_404(project_id)
        ProjectPolicy.ensure_can_manage_project(request.user, project)

        serializer = MemberRoleSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        services.change_member_role(request.user, project, user_id, serializer.validated_data["role"])
        return Response({"message": "Member role updated successfully", "project": _project_data(project.id)})

    def delete(self, request, project_id, user_id):
        project = get_project_or_404(project_id)
        services.remove_member(request.user, project, user_id)
        return Response({"message": "Member removed successfully"})


class ProjectAnalyticsView(APIView):
    permission_classes = [IsAuthenticated]
    throttle_scope = "analytics"

    def get(self, request, project_id):
        project = get_project_or_404(project_id)
        ProjectPolicy.ensure_can_access_project(request.user, project)
        return Response(get_project_stats(project))
