from django.urls import path

from .views import (
    ProjectListCreateView,
    ProjectDetailView,
    ProjectAdminsView,
    ProjectMembersView,
)

urlpatterns = [
    path("", ProjectListCreateView.as_view(), name="project-list-create"),
    path("<int:project_id>/", ProjectDetailView.as_view(), name="project-detail"),
    path("<int:project_id>/admins/", ProjectAdminsView.as_view(), name="project-admins"),
    path("<int:project_id>/admins/<int:user_id>/", ProjectAdminsView.as_view(), name="project-admin-detail"),
    path("<int:project_id>/members/", ProjectMembersView.as_view(), name="project-members"),
    path("<int:project_id>/members/<int:user_id>/", ProjectMembersView.as_view(), name="project-member-detail"),
]
