from django.urls import path

from .views import (
    ProjectAnalyticsView,
    ProjectDetailView,
    ProjectListCreateView,
    ProjectMemberDetailView,
    ProjectMembersView,
)

urlpatterns = [
    path("", ProjectListCreateView.as_view(), name="project-list"),
    path("<int:project_id>/", ProjectDetailView.as_view(), name="project-detail"),
    path("<int:project_id>/members/", ProjectMembersView.as_view(), name="project-members"),
    path(
        "<int:project_id>/members/<int:user_id>/",
        ProjectMemberDetailView.as_view(),
        name="project-member-detail",
    ),
    path("<int:project_id>/analytics/", ProjectAnalyticsView.as_view(), name="project-analytics"),
]
