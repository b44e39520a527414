from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from common.ratelimit import ReadRateThrottle, WriteRateThrottle
from safety import services
from safety.serializers import (
    ContactDeleteQuerySerializer,
    EmergencyAlertCreateSerializer,
    EmergencyAlertSerializer,
    EmergencyAlertUpdateSerializer,
    EmergencyContactSerializer,
)


class EmergencyAlertView(APIView):
    """
    GET    the caller's latest 20 alerts
    POST   raise an alert
    PATCH  {"alert_id", "status"}
    """
    permission_classes = [IsAuthenticated]

    def get_throttles(self):
        # Raising an alert is never throttled
        if self.request.method == 'POST':
            return []
        if self.request.method == 'PATCH':
            return [WriteRateThrottle()]
        return [ReadRateThrottle()]

    def get(self, request):
        return Response({"alerts": EmergencyAlertSerializer(services.list_alerts(request.user), many=True).data})

    def post(self, request):
        serializer = EmergencyAlertCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        alert, notified = services.raise_alert(request.user, **serializer.validated_data)
        return Response({
            "success": True,
            "alert": EmergencyAlertSerializer(alert).data,
            "contacts_notified": notified,
        }, status=status.HTTP_201_CREATED)

    def patch(self, request):
        serializer = EmergencyAlertUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        alert = services.update_alert_status(request.user, data['alert_id'], data['status'])
        return Response({"success": True, "alert": EmergencyAlertSerializer(alert).data})


class EmergencyContactsView(APIView):
    """
    GET             the caller's contacts
    POST            {"name", "phone", "relationship"}
    DELETE  ?id=    remove a contact
    """
    permission_classes = [IsAuthenticated]

    def get_throttles(self):
        if self.request.method == 'GET':
            return [ReadRateThrottle()]
        return [WriteRateThrottle()]

    def get(self, request):
        return Response({"contacts": EmergencyContactSerializer(services.list_contacts(request.user), many=True).data})

    def post(self, request):
        serializer = EmergencyContactSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        contact = services.add_contact(request.user, **serializer.validated_data)
        return Response({"contact": EmergencyContactSerializer(contact).data}, status=status.HTTP_201_CREATED)

    def delete(self, request):
        query = ContactDeleteQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        services.delete_contact(request.user, query.validated_data['id'])
        return Response({"success": True})
