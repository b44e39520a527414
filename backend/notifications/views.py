from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from common.exceptions import NotFound
from common.ratelimit import ReadRateThrottle, WriteRateThrottle
from notifications.models import Notification
from notifications.serializers import NotificationReadSerializer, NotificationSerializer


@api_view(['GET'])
@permission_classes([IsAuthenticated])
@throttle_classes([ReadRateThrottle])
def notification_list(request):
    """Latest 50 notifications of the authenticated user."""
    notifications = Notification.objects.filter(user=request.user).order_by('-created_at', '-id')[:50]
    unread = Notification.objects.filter(user=request.user, read=False).count()
    return Response({
        "notifications": NotificationSerializer(notifications, many=True).data,
        "unread_count": unread,
    })


@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
@throttle_classes([WriteRateThrottle])
def notification_mark_read(request, notification_id):
    notification = Notification.objects.filter(id=notification_id, user=request.user).first()
    if notification is None:
        raise NotFound("Notification not found")

    serializer = NotificationReadSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    notification.read = serializer.validated_data['read']
    notification.save(update_fields=['read'])
    return Response(NotificationSerializer(notification).data)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([WriteRateThrottle])
def notification_mark_all_read(request):
    updated = Notification.objects.filter(user=request.user, read=False).update(read=True)
    return Response({"success": True, "updated": updated})
