from django.conf import settings
from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone


class Task(models.Model):
    """
    A unit of work inside a project.

    completed_at / progress / archived_at are maintained by
    tasks.lifecycle; overdue, days remaining and subtask progress are
    derived on read and never stored.
    """
    STATUS_TODO = "todo"
    STATUS_IN_PROGRESS = "in-progress"
    STATUS_REVIEW = "review"
    STATUS_COMPLETED = "completed"
    STATUS_CANCELLED = "cancelled"

    STATUS_CHOICES = [
        (STATUS_TODO, "To do"),
        (STATUS_IN_PROGRESS, "In progress"),
        (STATUS_REVIEW, "Review"),
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

    TITLE_MAX_LENGTH = 200
    DESCRIPTION_MAX_LENGTH = 2000
    MAX_HOURS = 1000

    title = models.CharField(max_length=TITLE_MAX_LENGTH)
    description = models.TextField(max_length=DESCRIPTION_MAX_LENGTH, blank=True, default="")

    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_TODO)
    priority = models.CharField(max_length=20, choices=PRIORITY_CHOICES, default=PRIORITY_MEDIUM)

    # PROTECT: tasks are removed explicitly by projects.services.delete_project
    project = models.ForeignKey(
        "projects.Project",
        on_delete=models.PROTECT,
        related_name="tasks",
    )
    assignee = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="assigned_tasks",
    )
    reporter = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="reported_tasks",
    )
    watchers = models.ManyToManyField(
        settings.AUTH_USER_MODEL,
        blank=True,
        related_name="watched_tasks",
    )

    # [{"name": "...", "color": "#RRGGBB"}]
    labels = models.JSONField(default=list, blank=True)

    due_date = models.DateTimeField(null=True, blank=True)
    estimated_hours = models.FloatField(
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(MAX_HOURS)],
    )
    actual_hours = models.FloatField(
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(MAX_HOURS)],
    )
    progress = models.PositiveSmallIntegerField(
        default=0,
        validators=[MinValueValidator(0), MaxValueValidator(100)],
    )

    completed_at = models.DateTimeField(null=True, blank=True)
    archived_at = models.DateTimeField(null=True, blank=True)
    is_archived = models.BooleanField(default=False)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["project"], name="task_project_idx"),
            models.Index(fields=["assignee"], name="task_assignee_idx"),
            models.Index(fields=["reporter"], name="task_reporter_idx"),
            models.Index(fields=["status"], name="task_status_idx"),
            models.Index(fields=["priority"], name="task_priority_idx"),
            models.Index(fields=["due_date"], name="task_due_date_idx"),
            models.Index(fields=["-created_at"], name="task_created_idx"),
            models.Index(fields=["is_archived"], name="task_archived_idx"),
        ]

    def __str__(self):
        return self.title

    # Derived fields (see tasks.lifecycle)
    @property
    def is_overdue(self) -> bool:
        from .lifecycle import is_overdue
        return is_overdue(self)

    @property
    def days_remaining(self):
        from .lifecycle import days_remaining
        return days_remaining(self)

    @property
    def subtask_progress(self) -> int:
        from .lifecycle import subtask_progress
        return subtask_progress(self)


class TaskComment(models.Model):
    CONTENT_MAX_LENGTH = 1000

    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name="comments")
    author = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="task_comments",
    )
    content = models.TextField(max_length=CONTENT_MAX_LENGTH)
    is_edited = models.BooleanField(default=False)
    edited_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at", "id"]

    def __str__(self):
        return f"{self.author} on {self.task}"


class TaskAttachment(models.Model):
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name="attachments")
    filename = models.CharField(max_length=255)
    original_name = models.CharField(max_length=255, blank=True, default="")
    mimetype = models.CharField(max_length=100, blank=True, default="")
    size = models.PositiveBigIntegerField(default=0)
    url = models.URLField(max_length=1024)
    uploaded_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="task_attachments",
    )
    uploaded_at = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["uploaded_at", "id"]

    def __str__(self):
        return self.original_name or self.filename


class Subtask(models.Model):
    TITLE_MAX_LENGTH = 100

    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name="subtasks")
    title = models.CharField(max_length=TITLE_MAX_LENGTH)
    completed = models.BooleanField(default=False)
    completed_at = models.DateTimeField(null=True, blank=True)
    completed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="completed_subtasks",
    )

    class Meta:
        ordering = ["id"]

    def __str__(self):
        return self.title


class TaskDependency(models.Model):
    TYPE_BLOCKS = "blocks"
    TYPE_BLOCKED_BY = "blocked-by"
    TYPE_RELATES_TO = "relates-to"

    TYPE_CHOICES = [
        (TYPE_BLOCKS, "Blocks"),
        (TYPE_BLOCKED_BY, "Blocked by"),
        (TYPE_RELATES_TO, "Relates to"),
    ]

    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name="dependencies")
    depends_on = models.ForeignKey(Task, on_delete=models.CASCADE, related_name="dependents")
    relation = models.CharField(max_length=16, choices=TYPE_CHOICES, default=TYPE_RELATES_TO)

    class Meta:
        ordering = ["id"]
        unique_together = ("task", "depends_on")
        verbose_name_plural = "Task dependencies"

    def __str__(self):
        return f"{self.task_id} {self.relation} {self.depends_on_id}"


class TimeEntry(models.Model):
    task = models.ForeignKey(Task, on_delete=models.CASCADE, related_name="time_entries")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="time_entries",
    )
    start_time = models.DateTimeField()
    end_time = models.DateTimeField(null=True, blank=True)
    duration = models.PositiveIntegerField(null=True, blank=True, help_text="Minutes")
    description = models.CharField(max_length=500, blank=True, default="")
    date = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["start_time", "id"]
        verbose_name_plural = "Time entries"

    def __str__(self):
        return f"{self.user} on {self.task} ({self.duration or 0} min)"
