from django.contrib import admin

from .models import Project, ProjectMembership
from .services import delete_project_with_tasks, ensure_owner_membership


class ProjectMembershipInline(admin.TabularInline):
    model = ProjectMembership
    extra = 0
    autocomplete_fields = ('user',)


@admin.register(Project)
class ProjectAdmin(admin.ModelAdmin):
    list_display = ('name', 'owner', 'status', 'priority', 'progress', 'deadline', 'is_archived')
    list_filter = ('status', 'priority', 'is_archived')
    search_fields = ('name', 'description', 'owner__username')
    date_hierarchy = 'created_at'
    inlines = [ProjectMembershipInline]

    def save_related(self, request, form, formsets, change):
        super().save_related(request, form, formsets, change)
        ensure_owner_membership(form.instance)

    # Task.project is PROTECT; go through the explicit cascade
    def delete_model(self, request, obj):
        delete_project_with_tasks(obj)

    def delete_queryset(self, request, queryset):
        for project in queryset:
            delete_project_with_tasks(project)


@admin.register(ProjectMembership)
class ProjectMembershipAdmin(admin.ModelAdmin):
    list_display = ('project', 'user', 'role', 'joined_at')
    list_filter = ('role',)
    search_fields = ('project__name', 'user__username')
