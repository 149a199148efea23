# tasks/analytics.py
"""
Task statistics for dashboards.

Each figure is one grouped or aggregate query over the viewer's scope;
task lists are serialized with their relations pre-joined.
"""
from django.db.models import Count, Q
from django.db.models.functions import ExtractIsoYear, ExtractWeek

from core import datetime_utils
from core.constants import (
    COMPLETION_TREND_DAYS,
    RECENT_ACTIVITY_DAYS,
    RECENT_ACTIVITY_LIMIT,
    RECENT_TASKS_LIMIT,
)
from projects.models import Project
from projects.services import accessible_projects
from .models import Task
from .serializers import TaskSummarySerializer


def _display_name(first_name, last_name, username):
    name = f"{first_name or ''} {last_name or ''}".strip()
    return name or username


def _group_counts(qs, field):
    rows = qs.values(field).annotate(count=Count("id")).order_by(field)
    return [{field: row[field], "count": row["count"]} for row in rows]


def _assignee_counts(qs):
    rows = (
        qs.filter(assignee__isnull=False)
        .values("assignee", "assignee__first_name", "assignee__last_name", "assignee__username")
        .annotate(count=Count("id"))
        .order_by("-count", "assignee")
    )
    return [
        {
            "assignee_id": row["assignee"],
            "name": _display_name(
                row["assignee__first_name"],
                row["assignee__last_name"],
                row["assignee__username"],
            ),
            "count": row["count"],
        }
        for row in rows
    ]


def _task_counts(qs, now):
    return qs.aggregate(
        total=Count("id"),
        completed=Count("id", filter=Q(status=Task.STATUS_COMPLETED)),
        in_progress=Count("id", filter=Q(status=Task.STATUS_IN_PROGRESS)),
        todo=Count("id", filter=Q(status=Task.STATUS_TODO)),
        overdue=Count(
            "id",
            filter=Q(due_date__lt=now) & ~Q(status=Task.STATUS_COMPLETED),
        ),
    )


def _recent(qs, limit):
    # newest first; ties keep insertion order
    rows = qs.select_related("project", "assignee").order_by("-updated_at", "id")[:limit]
    return TaskSummarySerializer(rows, many=True).data


def get_dashboard_stats(user, now=None):
    """Overview across every project the user owns or belongs to."""
    now = now or datetime_utils.now()
    tasks = Task.objects.filter(
        project__in=accessible_projects(user).values("id"),
        is_archived=False,
    )

    overdue = (
        tasks.filter(due_date__lt=now)
        .exclude(status=Task.STATUS_COMPLETED)
        .count()
    )
    recent = tasks.filter(updated_at__gte=datetime_utils.days_ago(RECENT_ACTIVITY_DAYS, now))

    return {
        "status_stats": _group_counts(tasks, "status"),
        "priority_stats": _group_counts(tasks, "priority"),
        "assignee_stats": _assignee_counts(tasks),
        "overdue_tasks": overdue,
        "recent_activity": _recent(recent, RECENT_ACTIVITY_LIMIT),
        "total_tasks": tasks.count(),
    }


def get_project_stats(project, now=None):
    """Breakdown for one project. Caller checks access."""
    now = now or datetime_utils.now()
    tasks = Task.objects.filter(project=project, is_archived=False)

    return {
        "task_stats": _task_counts(tasks, now),
        "priority_stats": _group_counts(tasks, "priority"),
        "member_stats": _assignee_counts(tasks),
        "recent_tasks": _recent(tasks, RECENT_TASKS_LIMIT),
        "project": {
            "id": project.id,
            "name": project.name,
            "progress": project.progress,
            "days_remaining": datetime_utils.days_until(project.deadline, now),
        },
    }


def get_user_stats(user, now=None):
    """Personal stats over the tasks assigned to `user`."""
    now = now or datetime_utils.now()
    tasks = Task.objects.filter(assignee=user, is_archived=False)

    weekly = (
        tasks.filter(
            status=Task.STATUS_COMPLETED,
            completed_at__gte=datetime_utils.days_ago(COMPLETION_TREND_DAYS, now),
        )
        .annotate(year=ExtractIsoYear("completed_at"), week=ExtractWeek("completed_at"))
        .values("year", "week")
        .annotate(count=Count("id"))
        .order_by("year", "week")
    )

    return {
        "task_stats": _task_counts(tasks, now),
        "priority_stats": _group_counts(tasks, "priority"),
        "recent_tasks": _recent(tasks, RECENT_TASKS_LIMIT),
        "project_count": accessible_projects(user, include_archived=False).count(),
        "owned_projects_count": Project.objects.filter(owner=user, is_archived=False).count(),
        "weekly_stats": [
            {"year": row["year"], "week": row["week"], "count": row["count"]}
            for row in weekly
        ],
        "user": {
            "name": user.full_name,
            "role": user.role,
            "department": user.department,
            "join_date": user.date_joined,
        },
    }
