# core/constants.py

# --- Lifecycle events pushed to project subscribers ---

EVENT_TASK_CREATED = "task-created"
EVENT_TASK_UPDATED = "task-updated"
EVENT_TASK_DELETED = "task-deleted"
EVENT_COMMENT_ADDED = "comment-added"

# --- Analytics windows ---

RECENT_ACTIVITY_DAYS = 7
RECENT_ACTIVITY_LIMIT = 10
RECENT_TASKS_LIMIT = 5
COMPLETION_TREND_DAYS = 28
