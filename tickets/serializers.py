from rest_framework import serializers

from users.serializers import UserSummarySerializer
from .models import Comment, Ticket


class TicketWriteSerializer(serializers.Serializer):
    """Input shape for create / update; status rules live in the state machine."""
    title = serializers.CharField(min_length=3, max_length=200)
    description = serializers.CharField(max_length=5000, required=False, allow_blank=True)
    status = serializers.ChoiceField(choices=Ticket.STATUS_CHOICES, required=False)
    priority = serializers.ChoiceField(choices=Ticket.PRIORITY_CHOICES, required=False)
    assignees = serializers.ListField(child=serializers.IntegerField(), required=False)
    estimated_date = serializers.DateTimeField()
    tags = serializers.ListField(
        child=serializers.CharField(max_length=50),
        required=False,
    )
    position = serializers.IntegerField(required=False)


class TicketSerializer(serializers.ModelSerializer):
    creator = UserSummarySerializer(read_only=True)
    assignees = UserSummarySerializer(many=True, read_only=True)
    is_overdue = serializers.SerializerMethodField()
    days_until_deadline = serializers.SerializerMethodField()

    class Meta:
        model = Ticket
        fields = [
            'id',
            'project',
            'title',
            'description',
            'status',
            'priority',
            'assignees',
            'creator',
            'estimated_date',
            'started_at',
            'completed_at',
            'tags',
            'position',
            'comments_count',
            'is_overdue',
            'days_until_deadline',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_is_overdue(self, obj):
        return obj.is_overdue()

    def get_days_until_deadline(self, obj):
        return obj.days_until_deadline()


class AssignSerializer(serializers.Serializer):
    user_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)


class CommentWriteSerializer(serializers.Serializer):
    content = serializers.CharField(max_length=2000)
    parent = serializers.IntegerField(required=False, allow_null=True)


class CommentSerializer(serializers.ModelSerializer):
    author = UserSummarySerializer(read_only=True)

    class Meta:
        model = Comment
        fields = [
            'id',
            'ticket',
            'author',
            'content',
            'is_edited',
            'edited_at',
            'parent',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields
