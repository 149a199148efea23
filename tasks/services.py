# tasks/services.py
"""
Task operations as seen from the API.

Each operation: load -> check ProjectPolicy -> apply lifecycle rules ->
persist -> publish one project event once the transaction commits.
"""
import logging

from django.db import transaction

from core.constants import (
    EVENT_COMMENT_ADDED,
    EVENT_TASK_CREATED,
    EVENT_TASK_DELETED,
    EVENT_TASK_UPDATED,
)
from core.exceptions import NotFoundError
from projects.policies import ProjectPolicy
from projects.services import accessible_projects
from realtime import relay
from . import lifecycle
from .models import Subtask, Task
from .serializers import TaskCommentSerializer, TaskSerializer

logger = logging.getLogger("taskboard.tasks")


def _publish_on_commit(project_id, event, build_payload):
    # payload is built after commit so it reflects the stored row
    transaction.on_commit(lambda: relay.publish(project_id, event, build_payload()))


def _task_payload(task_id):
    def build():
        task = (
            Task.objects.select_related("project", "assignee", "reporter")
            .prefetch_related("watchers", "subtasks")
            .filter(pk=task_id)
            .first()
        )
        return {"task": TaskSerializer(task).data if task else None}
    return build


# ─────────────────────────────────────────────────────────────
# Lookups
# ─────────────────────────────────────────────────────────────

def accessible_tasks(user):
    """Non-archived tasks in projects the user owns or belongs to."""
    return Task.objects.filter(
        project__in=accessible_projects(user).values("id"),
        is_archived=False,
    )


def get_task_for_user(user, task_id, queryset=None) -> Task:
    """Load a task and check project access (404 before 403)."""
    qs = queryset if queryset is not None else Task.objects.all()
    task = (
        qs.select_related("project")
        .prefetch_related("project__memberships")
        .filter(pk=task_id)
        .first()
    )
    if task is None:
        raise NotFoundError("Task not found")

    ProjectPolicy.ensure_can_access_project(user, task.project)
    return task


# ─────────────────────────────────────────────────────────────
# Task CRUD
# ─────────────────────────────────────────────────────────────

def create_task(actor, project, fields) -> Task:
    ProjectPolicy.ensure_can_access_project(actor, project)

    task = lifecycle.prepare_new_task(project, actor, fields)
    with transaction.atomic():
        task.save()
        _publish_on_commit(project.id, EVENT_TASK_CREATED, _task_payload(task.id))

    logger.info(f"Task created: task={task.id}, project={project.id}, actor={actor.id}")
    return task


def update_task(actor, task, fields) -> Task:
    ProjectPolicy.ensure_can_access_project(actor, task.project)

    old_status = task.status
    lifecycle.apply_task_update(task, fields)

    with transaction.atomic():
        task.save()
        _publish_on_commit(task.project_id, EVENT_TASK_UPDATED, _task_payload(task.id))

    if task.status != old_status:
        logger.info(
            f"Task status changed: task={task.id}, from={old_status}, "
            f"to={task.status}, actor={actor.id}"
        )
    logger.info(f"Task updated: task={task.id}, actor={actor.id}, fields={sorted(fields)}")
    return task


def delete_task(actor, task):
    project = task.project
    ProjectPolicy.ensure_can_delete_task(actor, task, project)

    task_id = task.id
    with transaction.atomic():
        task.delete()
        transaction.on_commit(
            lambda: relay.publish(project.id, EVENT_TASK_DELETED, {"task_id": task_id})
        )

    logger.info(f"Task deleted: task={task_id}, project={project.id}, actor={actor.id}")


# ─────────────────────────────────────────────────────────────
# Comments
# ─────────────────────────────────────────────────────────────

def comment_on_task(actor, task, content):
    ProjectPolicy.ensure_can_access_project(actor, task.project)

    with transaction.atomic():
        comment = lifecycle.add_comment(task, actor, content)

        def build_payload():
            return {"task_id": task.id, "comment": TaskCommentSerializer(comment).data}

        _publish_on_commit(task.project_id, EVENT_COMMENT_ADDED, build_payload)

    logger.info(f"Comment added: task={task.id}, comment={comment.id}, actor={actor.id}")
    return comment


# ─────────────────────────────────────────────────────────────
# Subtasks, dependencies, time, watchers
# All of these count as a task update for subscribers.
# ─────────────────────────────────────────────────────────────

def _touch(task):
    # bump updated_at so recent-activity views pick the change up
    task.save(update_fields=["updated_at"])
    _publish_on_commit(task.project_id, EVENT_TASK_UPDATED, _task_payload(task.id))


def add_subtask(actor, task, title) -> Subtask:
    ProjectPolicy.ensure_can_access_project(actor, task.project)

    with transaction.atomic():
        subtask = lifecycle.add_subtask(task, title)
        _touch(task)

    logger.info(f"Subtask added: task={task.id}, subtask={subtask.id}, actor={actor.id}")
    return subtask


def set_subtask_completed(actor, task, subtask_id, completed) -> Subtask:
    ProjectPolicy.ensure_can_access_project(actor, task.project)

    subtask = task.subtasks.filter(pk=subtask_id).first()
    if subtask is None:
        raise NotFoundError("Subtask not found")

    with transaction.atomic():
        lifecycle.set_subtask_completed(subtask, completed, actor)
        _touch(task)

    logger.info(
        f"Subtask updated: task={task.id}, subtask={subtask.id}, "
        f"completed={subtask.completed}, actor={actor.id}"
    )
    return subtask


def add_dependency(actor, task, depends_on_id, relation):
    ProjectPolicy.ensure_can_access_project(actor, task.project)
    other = get_task_for_user(actor, depends_on_id)

    with transaction.atomic():
        dependency = lifecycle.add_dependency(task, other, relation)
        _touch(task)

    logger.info(
        f"Dependency added: task={task.id}, depends_on={other.id}, "
        f"relation={dependency.relation}, actor={actor.id}"
    )
    return dependency


def log_time(actor, task, start_time, end_time=None, description=""):
    ProjectPolicy.ensure_can_access_project(actor, task.project)

    with transaction.atomic():
        entry = lifecycle.log_time(task, actor, start_time, end_time, description)
        _touch(task)

    logger.info(f"Time logged: task={task.id}, minutes={entry.duration}, actor={actor.id}")
    return entry


def watch_task(actor, task) -> bool:
    ProjectPolicy.ensure_can_access_project(actor, task.project)

    with transaction.atomic():
        changed = lifecycle.watch(task, actor)
        if changed:
            _touch(task)
    return changed


def unwatch_task(actor, task) -> bool:
    ProjectPolicy.ensure_can_access_project(actor, task.project)

    with transaction.atomic():
        changed = lifecycle.unwatch(task, actor)
        if changed:
            _touch(task)
    return changed
