from django.db import transaction
from rest_framework import serializers
from django.contrib.auth import authenticate
from .models import FavoritePlace, User
from drivers.models import DriverProfile


class UserSerializer(serializers.ModelSerializer):
    class Meta:
        model = User
        fields = [
            "id",
            "username",
            "email",
            "first_name",
            "last_name",
            "role",
            "phone_number",
            "rating",
            "total_rides",
            "completed_rides",
            "referral_code",
        ]
        read_only_fields = [
            "id", "username", "role", "rating", "total_rides",
            "completed_rides", "referral_code",
        ]


class UserBasicSerializer(serializers.ModelSerializer):
    """Public view of a user embedded in rides, offers and ratings."""
    class Meta:
        model = User
        fields = ["id", "username", "first_name", "rating", "total_rides"]


class LoginSerializer(serializers.Serializer):
    username = serializers.CharField()
    password = serializers.CharField(write_only=True)

    def validate(self, data):
        user = authenticate(username=data["username"], password=data["password"])
        if not user:
            raise serializers.ValidationError("Invalid username or password")
        return user


class RegisterSerializer(serializers.ModelSerializer):
    password = serializers.CharField(write_only=True, min_length=8)
    vehicle_number = serializers.CharField(required=False)
    vehicle_type = serializers.ChoiceField(
        choices=DriverProfile.VEHICLE_TYPE_CHOICES, required=False, default='economy'
    )
    referral_code = serializers.CharField(required=False, allow_blank=True)

    class Meta:
        model = User
        fields = [
            'username', 'password', 'email', 'role', 'phone_number',
            'vehicle_number', 'vehicle_type', 'referral_code',
        ]

    def validate_email(self, value):
        if value and User.objects.filter(email=value).exists():
            raise serializers.ValidationError("Email already exists")
        return value

    def validate(self, data):
        # If registering as driver, vehicle_number is required
        if data.get('role') == 'driver' and not data.get('vehicle_number'):
            raise serializers.ValidationError({
                'vehicle_number': 'Vehicle number is required for drivers'
            })
        return data

    @transaction.atomic
    def create(self, validated_data):
        vehicle_number = validated_data.pop('vehicle_number', None)
        vehicle_type = validated_data.pop('vehicle_type', 'economy')
        referral_code = validated_data.pop('referral_code', '')

        user = User.objects.create_user(
            username=validated_data['username'],
            email=validated_data.get('email', ''),
            password=validated_data['password'],
            role=validated_data.get('role', 'passenger'),
            phone_number=validated_data.get('phone_number', ''),
        )

        # Create driver profile if role is driver; approval happens in the admin
        if user.role == 'driver' and vehicle_number:
            DriverProfile.objects.create(
                user=user,
                vehicle_number=vehicle_number,
                vehicle_type=vehicle_type,
            )

        if referral_code:
            from engagement.services import apply_referral_code
            apply_referral_code(user, referral_code)

        return user


class FavoritePlaceSerializer(serializers.ModelSerializer):
    # `lat`/`lng` are the names mobile clients send
    lat = serializers.DecimalField(source='latitude', max_digits=9, decimal_places=6, min_value=-90, max_value=90)
    lng = serializers.DecimalField(source='longitude', max_digits=9, decimal_places=6, min_value=-180, max_value=180)

    class Meta:
        model = FavoritePlace
        fields = ["id", "name", "address", "lat", "lng", "type", "icon", "created_at"]
        read_only_fields = ["id", "created_at"]


class FavoriteDeleteQuerySerializer(serializers.Serializer):
    id = serializers.IntegerField()
