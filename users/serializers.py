from rest_framework import serializers
from .models import User


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = [
            'id',
            'username',
            'email',
            'first_name',
            'last_name',
            'phone',
            'avatar',
            'preferences',
            'date_joined',
        ]
        read_only_fields = ['date_joined']


class UserSummarySerializer(serializers.ModelSerializer):
    """Compact shape embedded in projects, tickets and comments."""

    class Meta:
        model = User
        fields = ['id', 'username', 'first_name', 'last_name', 'email', 'avatar']
