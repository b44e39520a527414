from rest_framework import status
from rest_framework.decorators import api_view, permission_classes, throttle_classes
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from accounts.permissions import IsDriver, IsPassenger
from common.ratelimit import OfferRateThrottle, ReadRateThrottle, WriteRateThrottle
from .serializers import (
    GroupRideCreateSerializer,
    GroupRideJoinSerializer,
    GroupRideSerializer,
    PriceOfferCreateSerializer,
    PriceOfferSerializer,
    RideCancelSerializer,
    RideCreateSerializer,
    RideMessageCreateSerializer,
    RideMessageQuerySerializer,
    RideMessageSerializer,
    RideSerializer,
    RideStatusSerializer,
    TripEstimateRequestSerializer,
)
from .services.group_rides import create_group_ride, get_group_ride, join_group_ride, list_group_rides
from .services.messages import list_messages, send_message

from services.pricing import estimate_trip
from services.ride_management import (
    accept_offer,
    advance_status,
    cancel_ride,
    create_ride,
    get_current_ride,
    get_ride_for_user,
    list_offers,
    list_rides_for_user,
    settle_cancellation_fee,
    submit_offer,
)


# ==================== Estimates ====================

@api_view(['POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([ReadRateThrottle])
def estimate_trip_view(request):
    """Distance, duration and suggested price between two points"""
    serializer = TripEstimateRequestSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    estimate = estimate_trip(
        data['pickup_latitude'], data['pickup_longitude'],
        data['dropoff_latitude'], data['dropoff_longitude'],
    )
    return Response(estimate.as_dict())


# ==================== Rides ====================

class RideListCreateView(APIView):
    """
    GET   ?status=&limit=   the user's rides, newest first
    POST                    request a ride (passengers)
    """
    permission_classes = [IsAuthenticated]

    def get_throttles(self):
        if self.request.method == 'POST':
            return [WriteRateThrottle()]
        return [ReadRateThrottle()]

    def get(self, request):
        try:
            limit = max(1, min(int(request.query_params.get('limit', 10)), 100))
        except ValueError:
            limit = 10
        rides = list_rides_for_user(request.user, status=request.query_params.get('status'), limit=limit)
        return Response({
            "count": len(rides),
            "rides": RideSerializer(rides, many=True).data,
        })

    def post(self, request):
        serializer = RideCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = create_ride(request.user, **serializer.validated_data)

        return Response({
            "message": result.message,
            "ride": RideSerializer(result.ride).data,
            "estimate": result.extra["estimate"],
            "notified_drivers": result.extra["notified_drivers"],
        }, status=status.HTTP_201_CREATED)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
@throttle_classes([ReadRateThrottle])
def current_ride(request):
    """Passenger's active ride or driver's assigned ride"""
    ride = get_current_ride(request.user)
    if not ride:
        return Response({"has_active_ride": False, "message": "No active ride"})

    return Response({"has_active_ride": True, "ride": RideSerializer(ride).data})


@api_view(['GET'])
@permission_classes([IsAuthenticated])
@throttle_classes([ReadRateThrottle])
def ride_detail(request, ride_id):
    ride = get_ride_for_user(request.user, ride_id)
    return Response(RideSerializer(ride).data)


# ==================== Offers ====================

class RideOffersView(APIView):
    """
    GET   live offers on the passenger's ride, cheapest first
    POST  {"offered_price", "estimated_arrival_minutes", "message"} (approved drivers)
    """

    def get_permissions(self):
        if self.request.method == 'POST':
            return [IsAuthenticated(), IsDriver()]
        return [IsAuthenticated()]

    def get_throttles(self):
        if self.request.method == 'POST':
            return [OfferRateThrottle()]
        return [ReadRateThrottle()]

    def get(self, request, ride_id):
        offers = list_offers(request.user, ride_id)
        return Response({
            "count": len(offers),
            "offers": PriceOfferSerializer(offers, many=True).data,
        })

    def post(self, request, ride_id):
        serializer = PriceOfferCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = submit_offer(request.user, ride_id, **serializer.validated_data)

        return Response({
            "message": result.message,
            "offer": PriceOfferSerializer(result.offer).data,
        }, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated, IsPassenger])
@throttle_classes([WriteRateThrottle])
def accept_offer_view(request, offer_id):
    """Passenger accepts one driver's offer; the rest are rejected"""
    result = accept_offer(request.user, offer_id)
    return Response({
        "message": result.message,
        "ride": RideSerializer(result.ride).data,
        "offer": PriceOfferSerializer(result.offer).data,
    })


# ==================== Status / Cancellation ====================

@api_view(['PATCH'])
@permission_classes([IsAuthenticated])
@throttle_classes([WriteRateThrottle])
def update_ride_status(request, ride_id):
    """Driver starts/completes the ride; `cancelled` cancels it"""
    serializer = RideStatusSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    result = advance_status(
        request.user,
        ride_id,
        serializer.validated_data['status'],
        reason=request.data.get('reason', '') or '',
    )
    return Response({
        "message": result.message,
        "ride": RideSerializer(result.ride).data,
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([WriteRateThrottle])
def cancel_ride_view(request, ride_id):
    serializer = RideCancelSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)

    result = cancel_ride(request.user, ride_id, reason=serializer.validated_data['reason'])
    return Response({
        "message": result.message,
        "ride": RideSerializer(result.ride).data,
        "cancellation_fee": result.extra["cancellation_fee"],
    })


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([WriteRateThrottle])
def settle_cancellation_fee_view(request, ride_id):
    result = settle_cancellation_fee(request.user, ride_id)
    return Response({
        "message": result.message,
        "ride": RideSerializer(result.ride).data,
        "cancellation_fee": result.extra["cancellation_fee"],
    })


# ==================== Group rides ====================

STOP_FIELDS = ('pickup_latitude', 'pickup_longitude', 'pickup_address',
               'dropoff_latitude', 'dropoff_longitude', 'dropoff_address')


def _stops(data):
    return {name: data[name] for name in STOP_FIELDS if name in data}


class GroupRideView(APIView):
    """
    GET   ?invite_code=  one group by its code, else the caller's groups
    POST                 open a group (caller becomes its first participant)
    """
    permission_classes = [IsAuthenticated]

    def get_throttles(self):
        if self.request.method == 'POST':
            return [WriteRateThrottle()]
        return [ReadRateThrottle()]

    def get(self, request):
        invite_code = request.query_params.get('invite_code')
        if invite_code:
            return Response({"group_ride": GroupRideSerializer(get_group_ride(invite_code)).data})
        return Response({"group_rides": GroupRideSerializer(list_group_rides(request.user), many=True).data})

    def post(self, request):
        serializer = GroupRideCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        group = create_group_ride(
            request.user,
            ride_id=data['ride_id'],
            max_passengers=data['max_passengers'],
            split_method=data['split_method'],
            stops=_stops(data),
        )
        return Response({"group_ride": GroupRideSerializer(group).data}, status=status.HTTP_201_CREATED)


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@throttle_classes([WriteRateThrottle])
def join_group_ride_view(request):
    serializer = GroupRideJoinSerializer(data=request.data)
    serializer.is_valid(raise_exception=True)
    data = serializer.validated_data

    participant = join_group_ride(request.user, data['invite_code'], stops=_stops(data))
    return Response({
        "participant_id": participant.id,
        "group_ride": GroupRideSerializer(get_group_ride(data['invite_code'])).data,
    })


# ==================== Messages ====================

class RideMessagesView(APIView):
    """
    GET   ?ride_id=               the ride's chat, oldest first
    POST  {"ride_id", "message"}  participants only
    """
    permission_classes = [IsAuthenticated]

    def get_throttles(self):
        if self.request.method == 'POST':
            return [WriteRateThrottle()]
        return [ReadRateThrottle()]

    def get(self, request):
        query = RideMessageQuerySerializer(data=request.query_params)
        query.is_valid(raise_exception=True)
        messages = list_messages(request.user, query.validated_data['ride_id'])
        return Response({"messages": RideMessageSerializer(messages, many=True).data})

    def post(self, request):
        serializer = RideMessageCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        message = send_message(request.user, data['ride_id'], data['message'])
        return Response({"message": RideMessageSerializer(message).data}, status=status.HTTP_201_CREATED)
