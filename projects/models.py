from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator, RegexValidator
from django.db import models
from django.utils import timezone

from core.datetime_utils import days_until
from core.sanitizers import HEX_COLOR_RE

hex_color_validator = RegexValidator(HEX_COLOR_RE, "Please enter a valid hex color")


class Project(models.Model):
    """
    A body of work owned by one user and shared with members.

    The owner is always present in `memberships` with ROLE_OWNER; that row
    is written by projects.services.create_project.
    """
    STATUS_PLANNING = "planning"
    STATUS_ACTIVE = "active"
    STATUS_ON_HOLD = "on-hold"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_PLANNING, "Planning"),
        (STATUS_ACTIVE, "Active"),
        (STATUS_ON_HOLD, "On hold"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    PRIORITY_LOW = "low"
    PRIORITY_MEDIUM = "medium"
    PRIORITY_HIGH = "high"
    PRIORITY_URGENT = "urgent"

    PRIORITY_CHOICES = [
        (PRIORITY_LOW, "Low"),
        (PRIORITY_MEDIUM, "Medium"),
        (PRIORITY_HIGH, "High"),
        (PRIORITY_URGENT, "Urgent"),
    ]

    name = models.CharField(max_length=100)
    description = models.TextField(max_length=500, blank=True, default="")

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PLANNING)
    priority = models.CharField(max_length=20, choices=PRIORITY_CHOICES, default=PRIORITY_MEDIUM)

    start_date = models.DateTimeField(default=timezone.now)
    end_date = models.DateTimeField(null=True, blank=True)
    deadline = models.DateTimeField(null=True, blank=True)

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="owned_projects",
    )

    tags = models.JSONField(default=list, blank=True)
    color = models.CharField(max_length=7, default="#2196F3", validators=[hex_color_validator])

    # Budget
    budget_allocated = models.DecimalField(
        max_digits=14, decimal_places=2, default=0, validators=[MinValueValidator(0)]
    )
    budget_spent = models.DecimalField(
        max_digits=14, decimal_places=2, default=0, validators=[MinValueValidator(0)]
    )
    budget_currency = models.CharField(max_length=3, default="USD")

    progress = models.PositiveSmallIntegerField(
        default=0, validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    is_archived = models.BooleanField(default=False)

    # Settings
    is_public = models.BooleanField(default=False)
    allow_comments = models.BooleanField(default=True)
    auto_archive = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["owner"], name="project_owner_idx"),
            models.Index(fields=["status"], name="project_status_idx"),
            models.Index(fields=["priority"], name="project_priority_idx"),
            models.Index(fields=["is_archived"], name="project_archived_idx"),
            models.Index(fields=["-created_at"], name="project_created_idx"),
        ]

    def __str__(self):
        return self.name

    @property
    def days_remaining(self):
        return days_until(self.deadline)


class ProjectMembership(models.Model):
    """
    Per-project role for a user.
    A user appears at most once in a project's member list.
    """
    ROLE_OWNER = "owner"
    ROLE_ADMIN = "admin"
    ROLE_MEMBER = "member"
    ROLE_VIEWER = "viewer"

    ROLE_CHOICES = [
        (ROLE_OWNER, "Owner"),
        (ROLE_ADMIN, "Admin"),
        (ROLE_MEMBER, "Member"),
        (ROLE_VIEWER, "Viewer"),
    ]

    # Roles that can be granted through the members API
    ASSIGNABLE_ROLES = (ROLE_ADMIN, ROLE_MEMBER, ROLE_VIEWER)

    project = models.ForeignKey(
        Project,
        on_delete=models.CASCADE,
        related_name="memberships",
    )
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="project_memberships",
    )
    role = models.CharField(max_length=16, choices=ROLE_CHOICES, default=ROLE_MEMBER)
    joined_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["joined_at", "id"]
        unique_together = ("project", "user")
        indexes = [
            models.Index(fields=["user"], name="membership_user_idx"),
        ]

    def __str__(self):
        return f"{self.user} @ {self.project} ({self.role})"
