from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from rest_framework import status

from core.pagination import paginate
from .serializers import (
    AssignSerializer,
    CommentSerializer,
    CommentWriteSerializer,
    TicketSerializer,
    TicketWriteSerializer,
)
from .services import CommentService, TicketService


class ProjectTicketListCreateView(APIView):
    """
    GET  /api/projects/<project_id>/tickets/?status=&priority=&assignee=&search=&limit=&offset=
    POST /api/projects/<project_id>/tickets/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, project_id):
        params = request.query_params
        qs = TicketService.list_tickets(
            project_id=project_id,
            user=request.user,
            status=params.get("status"),
            priority=params.get("priority"),
            assignee=params.get("assignee"),
            search=params.get("search"),
        )
        page, meta = paginate(qs, request)
        return Response({**meta, "results": TicketSerializer(page, many=True).data})

    def post(self, request, project_id):
        serializer = TicketWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        ticket = TicketService.create_ticket(
            project_id=project_id,
            user=request.user,
            **serializer.validated_data,
        )
        return Response(TicketSerializer(ticket).data, status=status.HTTP_201_CREATED)


class TicketDetailView(APIView):
    """
    GET / PUT / PATCH / DELETE /api/tickets/<ticket_id>/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, ticket_id):
        ticket = TicketService.get_ticket_for(ticket_id=ticket_id, user=request.user)
        return Response(TicketSerializer(ticket).data)

    def put(self, request, ticket_id):
        return self._update(request, ticket_id, partial=False)

    def patch(self, request, ticket_id):
        return self._update(request, ticket_id, partial=True)

    def _update(self, request, ticket_id, partial):
        serializer = TicketWriteSerializer(data=request.data, partial=partial)
        serializer.is_valid(raise_exception=True)

        ticket = TicketService.update_ticket(
            ticket_id=ticket_id,
            user=request.user,
            **serializer.validated_data,
        )
        return Response(TicketSerializer(ticket).data)

    def delete(self, request, ticket_id):
        TicketService.delete_ticket(ticket_id=ticket_id, user=request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)


class TicketAssignView(APIView):
    """
    POST   /api/tickets/<ticket_id>/assign/            {"user_ids": [...]}
    DELETE /api/tickets/<ticket_id>/assign/<user_id>/
    """
    permission_classes = [IsAuthenticated]

    def post(self, request, ticket_id):
        serializer = AssignSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        ticket = TicketService.assign_users(
            ticket_id=ticket_id,
            user=request.user,
            user_ids=serializer.validated_data["user_ids"],
        )
        return Response(TicketSerializer(ticket).data)

    def delete(self, request, ticket_id, user_id):
        ticket = TicketService.unassign_user(ticket_id=ticket_id, user=request.user, target_id=user_id)
        return Response(TicketSerializer(ticket).data)


class TicketCommentListCreateView(APIView):
    """
    GET  /api/tickets/<ticket_id>/comments/
    POST /api/tickets/<ticket_id>/comments/
    """
    permission_classes = [IsAuthenticated]

    def get(self, request, ticket_id):
        qs = CommentService.list_comments(ticket_id=ticket_id, user=request.user)
        page, meta = paginate(qs, request)
        return Response({**meta, "results": CommentSerializer(page, many=True).data})

    def post(self, request, ticket_id):
        serializer = CommentWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        comment = CommentService.create_comment(
            ticket_id=ticket_id,
            user=request.user,
            content=serializer.validated_data["content"],
            parent_id=serializer.validated_data.get("parent"),
        )
        return Response(CommentSerializer(comment).data, status=status.HTTP_201_CREATED)


class TicketCommentDetailView(APIView):
    """
    PUT / PATCH / DELETE /api/tickets/<ticket_id>/comments/<comment_id>/
    """
    permission_classes = [IsAuthenticated]

    def put(self, request, ticket_id, comment_id):
        serializer = CommentWriteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        comment = CommentService.update_comment(
            ticket_id=ticket_id,
            comment_id=comment_id,
            user=request.user,
            content=serializer.validated_data["content"],
        )
        return Response(CommentSerializer(comment).data)

    patch = put

    def delete(self, request, ticket_id, comment_id):
        CommentService.delete_comment(ticket_id=ticket_id, comment_id=comment_id, user=request.user)
        return Response(status=status.HTTP_204_NO_CONTENT)
