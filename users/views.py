# users/views.py

from rest_framework import viewsets
from rest_framework.decorators import action
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.contrib.auth import get_user_model

from core.exceptions import NotFound, ValidationFailed
from .serializers import UserSerializer, UserSummarySerializer

User = get_user_model()


class UserViewSet(viewsets.GenericViewSet):
    """
    Current-user and email lookup only. There is no list or retrieve,
    so the router registers no directory or per-id routes.
    """
    queryset = User.objects.filter(is_active=True)
    serializer_class = UserSerializer
    permission_classes = [IsAuthenticated]

    @action(detail=False, methods=['get'])
    def me(self, request):
        """
        GET /api/users/me/
        Return current user info
        """
        serializer = self.get_serializer(request.user)
        return Response(serializer.data)

    @action(detail=False, methods=['get'])
    def search(self, request):
        """
        GET /api/users/search/?email=<email>
        Exact, case-insensitive email lookup used when adding project members.
        """
        email = (request.query_params.get('email') or '').strip()
        if not email:
            raise ValidationFailed("email query param is required")

        user = User.objects.filter(email__iexact=email, is_active=True).first()
        if user is None:
            raise NotFound("User not found")

        return Response(UserSummarySerializer(user).data)
