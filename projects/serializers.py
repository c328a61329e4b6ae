from rest_framework import serializers

from users.serializers import UserSummarySerializer
from .models import VISIBILITY_CHOICES, Project, ProjectMembership


class BoardSettingsSerializer(serializers.Serializer):
    visibility = serializers.ChoiceField(choices=VISIBILITY_CHOICES, required=False)
    allow_guest_comments = serializers.BooleanField(required=False)
    default_ticket_status = serializers.CharField(required=False)


class ProjectWriteSerializer(serializers.Serializer):
    """Input shape for create / update; the services do the real checks."""
    name = serializers.CharField(min_length=3, max_length=100)
    description = serializers.CharField(max_length=2000, required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=Project.STATUS_CHOICES, required=False)
    board_settings = BoardSettingsSerializer(required=False)


class ProjectSerializer(serializers.ModelSerializer):
    owner = UserSummarySerializer(read_only=True)
    admins = serializers.SerializerMethodField()
    members = serializers.SerializerMethodField()
    stats = serializers.SerializerMethodField()
    user_role = serializers.SerializerMethodField()

    class Meta:
        model = Project
        fields = [
            'id',
            'name',
            'description',
            'status',
            'owner',
            'admins',
            'members',
            'board_settings',
            'stats',
            'user_role',
            'archived_at',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def _users_with_role(self, obj, role):
        return [
            UserSummarySerializer(m.user).data
            for m in obj.memberships.all()
            if m.role == role
        ]

    def get_admins(self, obj):
        return self._users_with_role(obj, ProjectMembership.ROLE_ADMIN)

    def get_members(self, obj):
        return self._users_with_role(obj, ProjectMembership.ROLE_MEMBER)

    def get_stats(self, obj):
        return obj.stats

    def get_user_role(self, obj):
        request = self.context.get('request')
        if request is None or not request.user.is_authenticated:
            return None
        return obj.get_user_role(request.user)


class MembershipChangeSerializer(serializers.Serializer):
    user_id = serializers.IntegerField()
