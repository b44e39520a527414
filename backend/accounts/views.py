from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework_simplejwt.exceptions import TokenError
from rest_framework_simplejwt.tokens import RefreshToken

from common.exceptions import Unauthorized, ValidationError
from common.ratelimit import AuthRateThrottle, ReadRateThrottle, WriteRateThrottle
from . import services
from .serializers import (
    FavoriteDeleteQuerySerializer,
    FavoritePlaceSerializer,
    LoginSerializer,
    RegisterSerializer,
    UserSerializer,
)


def _tokens_for(user):
    refresh = RefreshToken.for_user(user)
    return {
        'refresh': str(refresh),
        'access': str(refresh.access_token),
    }


class RegisterView(APIView):
    """
    Register a new user (passenger or driver)

    POST Body:
    {
        "username": "john_doe",
        "email": "john@example.com",
        "password": "password123",
        "role": "passenger",  // or "driver"
        "phone_number": "+5511999999999",
        "vehicle_number": "ABC1D23",  // required for drivers
        "referral_code": "K7Q2MX9A"   // optional
    }
    """
    permission_classes = (AllowAny,)
    authentication_classes = []
    throttle_classes = [AuthRateThrottle]

    def post(self, request):
        serializer = RegisterSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        user = serializer.save()

        return Response({
            'message': 'User registered successfully',
            'user': UserSerializer(user).data,
            'tokens': _tokens_for(user),
        }, status=status.HTTP_201_CREATED)


class LoginView(APIView):
    """
    Login with username and password to get JWT tokens

    POST Body:
    {
        "username": "john_doe",
        "password": "password123"
    }
    """
    permission_classes = (AllowAny,)
    authentication_classes = []
    throttle_classes = [AuthRateThrottle]

    def post(self, request):
        serializer = LoginSerializer(data=request.data)
        if not serializer.is_valid():
            raise Unauthorized("Invalid username or password")

        # Get the user object from the validated data
        user = serializer.validated_data

        return Response({
            "message": "Login successful",
            "user": UserSerializer(user).data,
            "tokens": _tokens_for(user),
        }, status=status.HTTP_200_OK)


class RefreshTokenView(APIView):
    """
    Refresh JWT access token

    POST Body:
    {
        "refresh": "your_refresh_token"
    }
    """
    permission_classes = (AllowAny,)
    authentication_classes = []
    throttle_classes = [AuthRateThrottle]

    def post(self, request):
        refresh_token = request.data.get('refresh')

        if not refresh_token:
            raise ValidationError('Refresh token is required')

        try:
            refresh = RefreshToken(refresh_token)
        except TokenError:
            raise Unauthorized('Invalid refresh token')

        return Response({
            'access': str(refresh.access_token)
        })


class MeView(APIView):
    """GET/PATCH the authenticated user's own profile."""
    permission_classes = [IsAuthenticated]

    def get(self, request):
        return Response(UserSerializer(request.user).data)

    def patch(self, request):
        serializer = UserSerializer(request.user, data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        serializer.save()
        return Response(serializer.data)


class FavoritesView(APIView):
    """
    GET             saved places, newest first
    POST            {"name", "address", "lat", "lng", "type", "icon"}
    DELETE  ?id=    remove one of the caller's places
    """
    permission_classes = [IsAuthenticated]

    def get_throttles(self):
        if self.request.method == 'GET':
            return [ReadRateThrottle()]
        return [WriteRateThrottle()]

    def get(self, request):
        favorites = services.list_favorites(request.user)
        return Response({"favorites": FavoritePlaceSerializer(favorites, many=True).data})

    def post(self, request):
        serializer = FavoritePlaceSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        favorite = services.add_favorite(request.user, **serializer.validated_data)
        return Response({
            "success": True,
            "favorite": FavoritePlaceSerializer(favorite).data,
        }, status=status.HTTP_201_CREATED)

    def delete(self, request):
        query = FavoriteDeleteQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        services.delete_favorite(request.user, query.validated_data['id'])
        return Response({"success": True})
