from django.urls import path

from .views import (
    ProjectTicketListCreateView,
    TicketDetailView,
    TicketAssignView,
    TicketCommentListCreateView,
    TicketCommentDetailView,
)

urlpatterns = [
    path("projects/<int:project_id>/tickets/", ProjectTicketListCreateView.as_view(), name="project-tickets"),
    path("tickets/<int:ticket_id>/", TicketDetailView.as_view(), name="ticket-detail"),
    path("tickets/<int:ticket_id>/assign/", TicketAssignView.as_view(), name="ticket-assign"),
    path("tickets/<int:ticket_id>/assign/<int:user_id>/", TicketAssignView.as_view(), name="ticket-unassign"),
    path("tickets/<int:ticket_id>/comments/", TicketCommentListCreateView.as_view(), name="ticket-comments"),
    path(
        "tickets/<int:ticket_id>/comments/<int:comment_id>/",
        TicketCommentDetailView.as_view(),
        name="ticket-comment-detail",
    ),
]
