# projects/services.py
"""
Project membership management.

Every operation checks the caller through ProjectPolicy first, then
enforces the membership invariants:
- the owner is always a member with ROLE_OWNER
- a user appears at most once per project
- the owner cannot be removed or demoted
"""
import logging

from django.contrib.auth import get_user_model
from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import Q

from core.exceptions import (
    CascadeDeleteError,
    ConflictError,
    NotFoundError,
    ValidationError,
)
from tasks.models import Task
from .models import Project, ProjectMembership
from .policies import ProjectPolicy

logger = logging.getLogger("taskboard.projects")

User = get_user_model()


def accessible_projects(user, include_archived=True):
    """Projects where `user` is the owner or a member (any role)."""
    member_of = ProjectMembership.objects.filter(user=user).values("project_id")
    qs = Project.objects.filter(Q(owner=user) | Q(id__in=member_of))
    if not include_archived:
        qs = qs.filter(is_archived=False)
    return qs


def ensure_owner_membership(project) -> bool:
    """
    Make sure the owner is listed in members with ROLE_OWNER.

    Idempotent: returns True only when a row was inserted or corrected.
    """
    membership, created = ProjectMembership.objects.get_or_create(
        project=project,
        user_id=project.owner_id,
        defaults={"role": ProjectMembership.ROLE_OWNER},
    )
    if created:
        return True

    if membership.role != ProjectMembership.ROLE_OWNER:
        membership.role = ProjectMembership.ROLE_OWNER
        membership.save(update_fields=["role"])
        return True

    return False


def _validate_assignable_role(role):
    if role not in ProjectMembership.ASSIGNABLE_ROLES:
        raise ValidationError(
            {"role": [f"Invalid role. Valid roles: {', '.join(ProjectMembership.ASSIGNABLE_ROLES)}"]}
        )


# ─────────────────────────────────────────────────────────────
# Project CRUD
# ─────────────────────────────────────────────────────────────

def create_project(owner, attrs) -> Project:
    """
    Create a project owned by `owner`.

    The owner membership is written in the same transaction, so a project
    never exists without its owner in the member list.
    """
    with transaction.atomic():
        project = Project.objects.create(owner=owner, **attrs)
        ensure_owner_membership(project)

    logger.info(f"Project created: project={project.id}, owner={owner.id}")
    return project


def update_project(actor, project, attrs) -> Project:
    ProjectPolicy.ensure_can_manage_project(actor, project)

    for field, value in attrs.items():
        setattr(project, field, value)
    project.save()

    logger.info(
        f"Project updated: project={project.id}, actor={actor.id}, fields={sorted(attrs)}"
    )
    return project


def delete_project_with_tasks(project):
    """
    Remove a project and every task in it, with no permission check.

    Two explicit phases inside one transaction: tasks first, then the
    project row (Task.project is PROTECT, so the order is mandatory).
    Any failure rolls both phases back. Returns the number of tasks deleted.
    """
    project_id = project.id
    try:
        with transaction.atomic():
            _, per_model = Task.objects.filter(project=project).delete()
            project.delete()
    except DatabaseError as exc:
        logger.error(f"Project cascade delete failed: project={project_id}, error={exc}")
        raise CascadeDeleteError() from exc

    return per_model.get(Task._meta.label, 0)


def delete_project(actor, project):
    """Owner-only delete of a project and its tasks."""
    ProjectPolicy.ensure_can_delete_project(actor, project)

    project_id = project.id
    tasks_deleted = delete_project_with_tasks(project)

    logger.info(
        f"Project deleted: project={project_id}, actor={actor.id}, tasks_deleted={tasks_deleted}"
    )


# ─────────────────────────────────────────────────────────────
# Membership
# ─────────────────────────────────────────────────────────────

def add_member(actor, project, user_id, role=ProjectMembership.ROLE_MEMBER) -> Project:
    ProjectPolicy.ensure_can_manage_project(actor, project)
    _validate_assignable_role(role)

    user = User.objects.filter(pk=user_id).first()
    if user is None:
        raise NotFoundError("User not found")

    if user.id == project.owner_id or project.memberships.filter(user=user).exists():
        logger.warning(f"Duplicate member rejected: project={project.id}, user={user.id}")
        raise ConflictError("User is already a member of this project")

    try:
        with transaction.atomic():
            ProjectMembership.objects.create(project=project, user=user, role=role)
    except IntegrityError:
        # lost a race with a concurrent add of the same user
        raise ConflictError("User is already a member of this project")

    logger.info(f"Member added: project={project.id}, user={user.id}, role={role}, actor={actor.id}")
    return project


def remove_member(actor, project, user_id) -> Project:
    ProjectPolicy.ensure_can_manage_project(actor, project)

    if user_id == project.owner_id:
        logger.warning(f"Owner removal rejected: project={project.id}, actor={actor.id}")
        raise ConflictError("Cannot remove project owner")

    removed, _ = ProjectMembership.objects.filter(project=project, user_id=user_id).delete()

    if removed:
        logger.info(f"Member removed: project={project.id}, user={user_id}, actor={actor.id}")
    return project


def change_member_role(actor, project, user_id, role) -> Project:
    ProjectPolicy.ensure_can_manage_project(actor, project)
    _validate_assignable_role(role)

    if user_id == project.owner_id:
        raise ConflictError("Cannot change the project owner's role")

    membership = ProjectMembership.objects.filter(project=project, user_id=user_id).first()
    if membership is None:
        raise NotFoundError("User is not a member of this project")

    membership.role = role
    membership.save(update_fields=["role"])

    logger.info(f"Member role changed: project={project.id}, user={user_id}, role={role}, actor={actor.id}")
    return project
