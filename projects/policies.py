# projects/policies.py
"""
Centralized project/task policy layer.

All permission checks for projects and tasks are defined here.
Services and views should use these methods instead of inline
permission logic.

Predicates are pure: they only read the given objects (membership rows
come from `project.memberships.all()`, so a `prefetch_related` cache is
honored) and never write.
"""
import logging
from typing import Optional

from core.exceptions import AccessDeniedError
from .models import ProjectMembership

logger = logging.getLogger("taskboard.projects")

MANAGEMENT_ROLES = (
    ProjectMembership.ROLE_OWNER,
    ProjectMembership.ROLE_ADMIN,
)


def _is_authenticated(user) -> bool:
    return bool(user) and getattr(user, "is_authenticated", False)


class ProjectPolicy:
    """
    Permission checks for projects and the tasks inside them.
    All `can_*` methods return bool; `ensure_*` raise AccessDeniedError.
    """

    @staticmethod
    def is_owner(user, project) -> bool:
        if not _is_authenticated(user) or project is None:
            return False
        return project.owner_id == user.id

    @staticmethod
    def member_role(user, project) -> Optional[str]:
        """Role of `user` in `project`, or None when not a member."""
        if not _is_authenticated(user) or project is None:
            return None
        for membership in project.memberships.all():
            if membership.user_id == user.id:
                return membership.role
        return None

    # ─────────────────────────────────────────────────────────────
    # Projects
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def can_access_project(user, project) -> bool:
        """Owner or any member (any role) may read and work in the project."""
        if ProjectPolicy.is_owner(user, project):
            return True
        return ProjectPolicy.member_role(user, project) is not None

    @staticmethod
    def can_manage_project(user, project) -> bool:
        """Owner or admin members may edit the project and its members."""
        if ProjectPolicy.is_owner(user, project):
            return True
        return ProjectPolicy.member_role(user, project) == ProjectMembership.ROLE_ADMIN

    @staticmethod
    def can_delete_project(user, project) -> bool:
        """Only the owner can delete a project."""
        return ProjectPolicy.is_owner(user, project)

    # ─────────────────────────────────────────────────────────────
    # Tasks
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def can_delete_task(user, task, project) -> bool:
        """Project owner or the task's reporter."""
        if not _is_authenticated(user) or task is None:
            return False
        if ProjectPolicy.is_owner(user, project):
            return True
        return task.reporter_id == user.id

    # ─────────────────────────────────────────────────────────────
    # Guards
    # ─────────────────────────────────────────────────────────────

    @staticmethod
    def _deny(user, project, action, message):
        logger.warning(
            f"Access denied: action={action}, project={getattr(project, 'id', None)}, "
            f"user={getattr(user, 'id', None)}"
        )
        raise AccessDeniedError(message)

    @staticmethod
    def ensure_can_access_project(user, project):
        if not ProjectPolicy.can_access_project(user, project):
            ProjectPolicy._deny(user, project, "access", "Access denied")

    @staticmethod
    def ensure_can_manage_project(user, project):
        if not ProjectPolicy.can_manage_project(user, project):
            ProjectPolicy._deny(user, project, "manage", "Only the project owner or an admin can do this")

    @staticmethod
    def ensure_can_delete_project(user, project):
        if not ProjectPolicy.can_delete_project(user, project):
            ProjectPolicy._deny(user, project, "delete", "Only project owner can delete the project")

    @staticmethod
    def ensure_can_delete_task(user, task, project):
        if not ProjectPolicy.can_delete_task(user, task, project):
            ProjectPolicy._deny(
                user, project, "delete_task",
                "Only the project owner or the task reporter can delete this task",
            )
