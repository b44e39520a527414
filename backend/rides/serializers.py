from decimal import Decimal

from rest_framework import serializers

from accounts.serializers import UserBasicSerializer
from .models import GroupRide, GroupRideParticipant, PriceOffer, Ride, RideMessage


class PriceOfferSerializer(serializers.ModelSerializer):
    """Serializer for driver price offers"""
    driver = UserBasicSerializer(read_only=True)
    vehicle_number = serializers.CharField(source='driver.driver_profile.vehicle_number', read_only=True, default=None)
    vehicle_type = serializers.CharField(source='driver.driver_profile.vehicle_type', read_only=True, default=None)

    class Meta:
        model = PriceOffer
        fields = ['id', 'ride', 'driver', 'vehicle_number', 'vehicle_type', 'offered_price',
                  'estimated_arrival_minutes', 'message', 'status', 'expires_at',
                  'responded_at', 'created_at']
        read_only_fields = fields


class RideSerializer(serializers.ModelSerializer):
    """Serializer for Rides"""
    passenger = UserBasicSerializer(read_only=True)
    driver = UserBasicSerializer(read_only=True)

    class Meta:
        model = Ride
        fields = ['id', 'passenger', 'driver',
                  'pickup_latitude', 'pickup_longitude', 'pickup_address',
                  'dropoff_latitude', 'dropoff_longitude', 'dropoff_address',
                  'vehicle_type', 'distance_km', 'duration_minutes', 'suggested_price',
                  'passenger_price_offer', 'final_price', 'payment_method', 'notes',
                  'status', 'cancelled_by', 'cancellation_reason', 'cancellation_fee',
                  'cancellation_fee_settled', 'created_at', 'accepted_at', 'started_at',
                  'completed_at', 'cancelled_at', 'updated_at']
        read_only_fields = fields


class CoordinatesSerializer(serializers.Serializer):
    """Pickup/dropoff coordinate pair shared by estimates and ride requests"""
    pickup_latitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-90, max_value=90)
    pickup_longitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-180, max_value=180)
    dropoff_latitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-90, max_value=90)
    dropoff_longitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-180, max_value=180)


class TripEstimateRequestSerializer(CoordinatesSerializer):
    pass


class RideCreateSerializer(CoordinatesSerializer):
    """Validates a passenger's ride request"""

    # Client vehicle names mapped onto the stored vehicle classes
    VEHICLE_ALIASES = {'car': 'economy', 'motorcycle': 'moto'}

    pickup_address = serializers.CharField(min_length=3, max_length=500)
    dropoff_address = serializers.CharField(min_length=3, max_length=500)
    vehicle_type = serializers.CharField(required=False, default='economy')
    payment_method = serializers.ChoiceField(choices=Ride.PAYMENT_METHOD_CHOICES, required=False, default='pix')
    passenger_price_offer = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal('1.00'), required=False, allow_null=True
    )
    notes = serializers.CharField(max_length=200, required=False, allow_blank=True, default='')

    def validate_vehicle_type(self, value):
        value = self.VEHICLE_ALIASES.get(value, value)
        if value not in dict(Ride.VEHICLE_TYPE_CHOICES):
            raise serializers.ValidationError(f"Unsupported vehicle type '{value}'")
        return value

    def validate(self, data):
        if (data['pickup_latitude'], data['pickup_longitude']) == (data['dropoff_latitude'], data['dropoff_longitude']):
            raise serializers.ValidationError({'dropoff_latitude': 'Dropoff must differ from pickup'})
        return data


class PriceOfferCreateSerializer(serializers.Serializer):
    """Validates a driver's price offer"""
    offered_price = serializers.DecimalField(
        max_digits=10, decimal_places=2, min_value=Decimal('1.00'), max_value=Decimal('10000.00')
    )
    estimated_arrival_minutes = serializers.IntegerField(min_value=1, max_value=120, required=False, default=5)
    message = serializers.CharField(max_length=150, required=False, allow_blank=True, default='')


class RideStatusSerializer(serializers.Serializer):
    """Target status for PATCH /rides/<id>/status/ (validated by the lifecycle manager)"""
    status = serializers.CharField(max_length=20)


class RideCancelSerializer(serializers.Serializer):
    """Serializer for ride cancellation"""
    reason = serializers.CharField(required=False, allow_blank=True, max_length=500, default='')


# ==================== Group rides ====================

class StopsSerializer(serializers.Serializer):
    """Optional personal pickup/dropoff of a group ride participant"""
    pickup_latitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-90, max_value=90, required=False)
    pickup_longitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-180, max_value=180, required=False)
    pickup_address = serializers.CharField(max_length=500, required=False, allow_blank=True)
    dropoff_latitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-90, max_value=90, required=False)
    dropoff_longitude = serializers.DecimalField(max_digits=9, decimal_places=6, min_value=-180, max_value=180, required=False)
    dropoff_address = serializers.CharField(max_length=500, required=False, allow_blank=True)


class GroupRideCreateSerializer(StopsSerializer):
    ride_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    max_passengers = serializers.IntegerField(min_value=2, max_value=8, required=False, default=4)
    split_method = serializers.ChoiceField(choices=GroupRide.SPLIT_METHOD_CHOICES, required=False, default='equal')


class GroupRideJoinSerializer(StopsSerializer):
    invite_code = serializers.CharField(max_length=12)


class GroupRideParticipantSerializer(serializers.ModelSerializer):
    user = UserBasicSerializer(read_only=True)

    class Meta:
        model = GroupRideParticipant
        fields = ['id', 'user', 'status', 'pickup_latitude', 'pickup_longitude', 'pickup_address',
                  'dropoff_latitude', 'dropoff_longitude', 'dropoff_address', 'joined_at']
        read_only_fields = fields


class GroupRideSerializer(serializers.ModelSerializer):
    participants = GroupRideParticipantSerializer(many=True, read_only=True)

    class Meta:
        model = GroupRide
        fields = ['id', 'ride', 'created_by', 'invite_code', 'max_passengers', 'split_method',
                  'status', 'expires_at', 'created_at', 'participants']
        read_only_fields = fields


# ==================== Messages ====================

class RideMessageSerializer(serializers.ModelSerializer):
    sender = UserBasicSerializer(read_only=True)

    class Meta:
        model = RideMessage
        fields = ['id', 'ride', 'sender', 'message', 'created_at']
        read_only_fields = fields


class RideMessageQuerySerializer(serializers.Serializer):
    ride_id = serializers.IntegerField()


class RideMessageCreateSerializer(serializers.Serializer):
    ride_id = serializers.IntegerField()
    message = serializers.CharField(max_length=1000)
