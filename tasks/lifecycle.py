# tasks/lifecycle.py
"""
Task lifecycle rules.

- Every present field is validated before anything is mutated; all
  violations are reported together.
- Transition into `completed` stamps completed_at and forces progress
  to 100. Transition away from `completed` clears completed_at.
- Archiving stamps archived_at, un-archiving clears it.
- Overdue, days remaining and subtask progress are derived on read.

Functions here do not check permissions; tasks.services does that
before calling in.
"""
from datetime import datetime
from numbers import Number
from typing import Optional

from django.db import IntegrityError, transaction

from core import datetime_utils
from core.exceptions import ConflictError, ValidationError
from core.sanitizers import is_hex_color, sanitize_html, sanitize_text, sanitize_title
from .models import Subtask, Task, TaskComment, TaskDependency, TimeEntry

DEFAULT_LABEL_COLOR = "#757575"
LABEL_NAME_MAX_LENGTH = 30
TIME_ENTRY_DESCRIPTION_MAX_LENGTH = 500

UPDATABLE_FIELDS = (
    "title",
    "description",
    "assignee",
    "priority",
    "status",
    "due_date",
    "estimated_hours",
    "actual_hours",
    "progress",
    "labels",
    "is_archived",
)

STATUS_VALUES = [value for value, _ in Task.STATUS_CHOICES]
PRIORITY_VALUES = [value for value, _ in Task.PRIORITY_CHOICES]
RELATION_VALUES = [value for value, _ in TaskDependency.TYPE_CHOICES]


# ─────────────────────────────────────────────────────────────
# Validation
# ─────────────────────────────────────────────────────────────

def _is_number(value) -> bool:
    return isinstance(value, Number) and not isinstance(value, bool)


def _clean_title(value, errors):
    title = sanitize_title(value)
    if not title:
        errors["title"] = ["Task title is required"]
    elif len(title) > Task.TITLE_MAX_LENGTH:
        errors["title"] = [f"Title cannot exceed {Task.TITLE_MAX_LENGTH} characters"]
    return title


def _clean_description(value, errors):
    description = sanitize_html(value)
    if len(description) > Task.DESCRIPTION_MAX_LENGTH:
        errors["description"] = [
            f"Description cannot exceed {Task.DESCRIPTION_MAX_LENGTH} characters"
        ]
    return description


def _clean_choice(field, value, allowed, errors):
    if value not in allowed:
        errors[field] = [f"Invalid {field}. Valid values: {', '.join(allowed)}"]
    return value


def _clean_hours(field, value, errors):
    if value is None:
        if field == "actual_hours":
            errors[field] = ["This field may not be null."]
        return value
    if not _is_number(value) or not 0 <= value <= Task.MAX_HOURS:
        errors[field] = [f"Hours must be between 0 and {Task.MAX_HOURS}"]
    return value


def _clean_progress(value, errors):
    if not _is_number(value) or not 0 <= value <= 100:
        errors["progress"] = ["Progress must be between 0 and 100"]
        return value
    return int(value)


def _clean_due_date(value, errors):
    if value is not None and not isinstance(value, datetime):
        errors["due_date"] = ["Due date must be a datetime"]
    return value


def _clean_labels(value, errors):
    if not isinstance(value, (list, tuple)):
        errors["labels"] = ["Labels must be a list"]
        return value

    cleaned, problems = [], []
    for index, label in enumerate(value):
        if not isinstance(label, dict):
            problems.append(f"Label {index} must be an object with a name")
            continue
        name = sanitize_title(label.get("name"))
        color = label.get("color") or DEFAULT_LABEL_COLOR
        if not name:
            problems.append(f"Label {index} needs a name")
        elif len(name) > LABEL_NAME_MAX_LENGTH:
            problems.append(f"Label name cannot exceed {LABEL_NAME_MAX_LENGTH} characters")
        if not is_hex_color(color):
            problems.append(f"Label {index} has an invalid color")
        cleaned.append({"name": name, "color": color})

    if problems:
        errors["labels"] = problems
    return cleaned


def validate_task_fields(fields) -> dict:
    """
    Validate and sanitize a subset of task fields.

    Returns the cleaned values. Raises ValidationError listing every
    offending field when anything fails.
    """
    errors = {}
    cleaned = {}

    for field, value in fields.items():
        if field not in UPDATABLE_FIELDS:
            errors[field] = ["This field cannot be set."]
        elif field == "title":
            cleaned[field] = _clean_title(value, errors)
        elif field == "description":
            cleaned[field] = _clean_description(value, errors)
        elif field == "status":
            cleaned[field] = _clean_choice(field, value, STATUS_VALUES, errors)
        elif field == "priority":
            cleaned[field] = _clean_choice(field, value, PRIORITY_VALUES, errors)
        elif field in ("estimated_hours", "actual_hours"):
            cleaned[field] = _clean_hours(field, value, errors)
        elif field == "progress":
            cleaned[field] = _clean_progress(value, errors)
        elif field == "due_date":
            cleaned[field] = _clean_due_date(value, errors)
        elif field == "labels":
            cleaned[field] = _clean_labels(value, errors)
        elif field == "is_archived":
            cleaned[field] = bool(value)
        else:
            # assignee: resolved to a User (or None) by the caller
            cleaned[field] = value

    if errors:
        raise ValidationError(errors)
    return cleaned


# ─────────────────────────────────────────────────────────────
# Task state
# ─────────────────────────────────────────────────────────────

def _apply_status(task, old_status, now):
    if task.status == Task.STATUS_COMPLETED and old_status != Task.STATUS_COMPLETED:
        if task.completed_at is None:
            task.completed_at = now
        task.progress = 100
    elif task.status != Task.STATUS_COMPLETED and old_status == Task.STATUS_COMPLETED:
        task.completed_at = None


def _apply_archive(task, was_archived, now):
    if task.is_archived and not was_archived:
        task.archived_at = now
    elif not task.is_archived and was_archived:
        task.archived_at = None


def apply_task_update(task: Task, fields, now: Optional[datetime] = None) -> Task:
    """
    Apply a partial update to `task` in memory.

    The caller saves. On validation failure the task is left untouched.
    """
    cleaned = validate_task_fields(fields)
    now = now or datetime_utils.now()

    old_status = task.status
    was_archived = task.is_archived

    for field, value in cleaned.items():
        setattr(task, field, value)

    # completion overrides any progress sent in the same update
    _apply_status(task, old_status, now)
    _apply_archive(task, was_archived, now)
    return task


def prepare_new_task(project, reporter, fields, now: Optional[datetime] = None) -> Task:
    """Build an unsaved task; reporter is always the creator."""
    if "title" not in fields:
        fields = {**fields, "title": ""}

    cleaned = validate_task_fields(fields)
    now = now or datetime_utils.now()

    task = Task(project=project, reporter=reporter, **cleaned)
    _apply_status(task, None, now)
    _apply_archive(task, False, now)
    return task


# ─────────────────────────────────────────────────────────────
# Derived fields
# ─────────────────────────────────────────────────────────────

def is_overdue(task: Task, now: Optional[datetime] = None) -> bool:
    if task.due_date is None or task.status == Task.STATUS_COMPLETED:
        return False
    return task.due_date < (now or datetime_utils.now())


def days_remaining(task: Task, now: Optional[datetime] = None) -> Optional[int]:
    return datetime_utils.days_until(task.due_date, now)


def subtask_progress(task: Task) -> int:
    """Percentage of completed subtasks, rounded half up. 0 without subtasks."""
    if task.pk is None:
        return 0
    subtasks = list(task.subtasks.all())
    if not subtasks:
        return 0
    completed = sum(1 for subtask in subtasks if subtask.completed)
    return int(100 * completed / len(subtasks) + 0.5)


# ─────────────────────────────────────────────────────────────
# Owned collections
# ─────────────────────────────────────────────────────────────

def add_comment(task: Task, author, content) -> TaskComment:
    content = sanitize_html(content)
    if not content:
        raise ValidationError({"content": ["Comment content is required"]})
    if len(content) > TaskComment.CONTENT_MAX_LENGTH:
        raise ValidationError(
            {"content": [f"Comment cannot exceed {TaskComment.CONTENT_MAX_LENGTH} characters"]}
        )
    return TaskComment.objects.create(task=task, author=author, content=content)


def add_subtask(task: Task, title) -> Subtask:
    title = sanitize_title(title)
    if not title:
        raise ValidationError({"title": ["Subtask title is required"]})
    if len(title) > Subtask.TITLE_MAX_LENGTH:
        raise ValidationError(
            {"title": [f"Subtask title cannot exceed {Subtask.TITLE_MAX_LENGTH} characters"]}
        )
    return Subtask.objects.create(task=task, title=title)


def set_subtask_completed(subtask: Subtask, completed: bool, user, now: Optional[datetime] = None) -> Subtask:
    completed = bool(completed)
    if subtask.completed == completed:
        return subtask

    subtask.completed = completed
    if completed:
        subtask.completed_at = now or datetime_utils.now()
        subtask.completed_by = user
    else:
        subtask.completed_at = None
        subtask.completed_by = None
    subtask.save(update_fields=["completed", "completed_at", "completed_by"])
    return subtask


def add_dependency(task: Task, other: Task, relation=TaskDependency.TYPE_RELATES_TO) -> TaskDependency:
    errors = {}
    if other.pk == task.pk:
        errors["depends_on"] = ["A task cannot depend on itself"]
    if relation not in RELATION_VALUES:
        errors["relation"] = [f"Invalid relation. Valid values: {', '.join(RELATION_VALUES)}"]
    if errors:
        raise ValidationError(errors)

    if TaskDependency.objects.filter(task=task, depends_on=other).exists():
        raise ConflictError("Dependency already exists")

    try:
        with transaction.atomic():
            return TaskDependency.objects.create(task=task, depends_on=other, relation=relation)
    except IntegrityError:
        raise ConflictError("Dependency already exists")


def log_time(task: Task, user, start_time, end_time=None, description="") -> TimeEntry:
    """Record time spent; duration is whole minutes between start and end."""
    errors = {}
    if not isinstance(start_time, datetime):
        errors["start_time"] = ["Start time is required"]
    if end_time is not None and not isinstance(end_time, datetime):
        errors["end_time"] = ["End time must be a datetime"]

    description = sanitize_text(description)
    if len(description) > TIME_ENTRY_DESCRIPTION_MAX_LENGTH:
        errors["description"] = [
            f"Description cannot exceed {TIME_ENTRY_DESCRIPTION_MAX_LENGTH} characters"
        ]
    if errors:
        raise ValidationError(errors)

    duration = None
    if end_time is not None:
        if end_time < start_time:
            raise ValidationError({"end_time": ["End time cannot be before start time"]})
        duration = int((end_time - start_time).total_seconds() // 60)

    return TimeEntry.objects.create(
        task=task,
        user=user,
        start_time=start_time,
        end_time=end_time,
        duration=duration,
        description=description,
        date=start_time,
    )


def watch(task: Task, user) -> bool:
    """Add `user` to watchers. Returns False when already watching."""
    if task.watchers.filter(pk=user.pk).exists():
        return False
    task.watchers.add(user)
    return True


def unwatch(task: Task, user) -> bool:
    if not task.watchers.filter(pk=user.pk).exists():
        return False
    task.watchers.remove(user)
    return True
