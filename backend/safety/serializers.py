from rest_framework import serializers

from safety.models import EmergencyAlert, EmergencyContact


class EmergencyContactSerializer(serializers.ModelSerializer):
    class Meta:
        model = EmergencyContact
        fields = ['id', 'name', 'phone', 'relationship', 'created_at']
        read_only_fields = ['id', 'created_at']


class EmergencyAlertSerializer(serializers.ModelSerializer):
    class Meta:
        model = EmergencyAlert
        fields = ['id', 'ride', 'type', 'status', 'location_latitude', 'location_longitude',
                  'location_address', 'description', 'contacts_notified', 'created_at', 'resolved_at']
        read_only_fields = fields


class EmergencyAlertCreateSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=EmergencyAlert.TYPE_CHOICES, default='sos')
    ride_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    location_latitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-90, max_value=90,
                                                 required=False, allow_null=True, default=None)
    location_longitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-180, max_value=180,
                                                  required=False, allow_null=True, default=None)
    location_address = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')
    description = serializers.CharField(max_length=1000, required=False, allow_blank=True, default='')


class EmergencyAlertUpdateSerializer(serializers.Serializer):
    alert_id = serializers.IntegerField()
    status = serializers.ChoiceField(choices=EmergencyAlert.STATUS_CHOICES)


class ContactDeleteQuerySerializer(serializers.Serializer):
    id = serializers.IntegerField()
