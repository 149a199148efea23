from django.contrib import admin

from .models import Subtask, Task, TaskAttachment, TaskComment, TaskDependency, TimeEntry


class SubtaskInline(admin.TabularInline):
    model = Subtask
    extra = 0


class TaskCommentInline(admin.TabularInline):
    model = TaskComment
    extra = 0
    readonly_fields = ('created_at',)


@admin.register(Task)
class TaskAdmin(admin.ModelAdmin):
    list_display = ('title', 'project', 'status', 'priority', 'assignee', 'due_date', 'is_archived')
    list_filter = ('status', 'priority', 'is_archived', 'project')
    search_fields = ('title', 'description', 'project__name', 'assignee__username')
    readonly_fields = ('completed_at', 'archived_at', 'created_at', 'updated_at')
    date_hierarchy = 'created_at'
    inlines = [SubtaskInline, TaskCommentInline]


@admin.register(TaskDependency)
class TaskDependencyAdmin(admin.ModelAdmin):
    list_display = ('task', 'relation', 'depends_on')
    list_filter = ('relation',)


@admin.register(TimeEntry)
class TimeEntryAdmin(admin.ModelAdmin):
    list_display = ('task', 'user', 'start_time', 'end_time', 'duration')
    search_fields = ('task__title', 'user__username')


@admin.register(TaskAttachment)
class TaskAttachmentAdmin(admin.ModelAdmin):
    list_display = ('original_name', 'task', 'mimetype', 'size', 'uploaded_at')
    search_fields = ('original_name', 'filename', 'task__title')
