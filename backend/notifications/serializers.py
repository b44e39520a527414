from rest_framework import serializers

from notifications.models import Notification


class NotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = Notification
        fields = ['id', 'type', 'title', 'message', 'ride', 'data', 'read', 'created_at']
        read_only_fields = ['id', 'type', 'title', 'message', 'ride', 'data', 'created_at']


class NotificationReadSerializer(serializers.Serializer):
    read = serializers.BooleanField(default=True)
