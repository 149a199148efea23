from django.urls import path

from .views import (
    TaskCommentView,
    TaskDashboardView,
    TaskDependencyView,
    TaskDetailView,
    TaskListCreateView,
    TaskSubtaskCreateView,
    TaskSubtaskDetailView,
    TaskTimeEntryView,
    TaskWatchView,
)

urlpatterns = [
    path("", TaskListCreateView.as_view(), name="task-list"),
    path("analytics/dashboard/", TaskDashboardView.as_view(), name="task-dashboard"),
    path("<int:task_id>/", TaskDetailView.as_view(), name="task-detail"),
    path("<int:task_id>/comments/", TaskCommentView.as_view(), name="task-comments"),
    path("<int:task_id>/subtasks/", TaskSubtaskCreateView.as_view(), name="task-subtasks"),
    path(
        "<int:task_id>/subtasks/<int:subtask_id>/",
        TaskSubtaskDetailView.as_view(),
        name="task-subtask-detail",
    ),
    path("<int:task_id>/dependencies/", TaskDependencyView.as_view(), name="task-dependencies"),
    path("<int:task_id>/time-entries/", TaskTimeEntryView.as_view(), name="task-time-entries"),
    path("<int:task_id>/watch/", TaskWatchView.as_view(), name="task-watch"),
]
