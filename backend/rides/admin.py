"""Tells what to show in the Django admin interface for rides app"""

from django.contrib import admin
from .models import GroupRide, GroupRideParticipant, PriceOffer, Ride, RideMessage


class PriceOfferInline(admin.TabularInline):
    model = PriceOffer
    extra = 0
    fields = ['driver', 'offered_price', 'estimated_arrival_minutes', 'status', 'expires_at', 'responded_at']
    readonly_fields = fields
    can_delete = False


@admin.register(Ride)
class RideAdmin(admin.ModelAdmin):
    """Ride admin (read-mostly; lifecycle changes go through the API)"""
    list_display = ['id', 'passenger', 'driver', 'status', 'final_price', 'payment_method', 'created_at', 'completed_at']
    list_filter = ['status', 'vehicle_type', 'payment_method', 'created_at']
    search_fields = ['passenger__username', 'driver__username', 'pickup_address', 'dropoff_address']
    readonly_fields = [
        'status', 'driver', 'final_price', 'cancellation_fee', 'cancellation_fee_settled', 'cancelled_by',
        'created_at', 'accepted_at', 'started_at', 'completed_at', 'cancelled_at', 'updated_at',
    ]
    date_hierarchy = 'created_at'
    inlines = [PriceOfferInline]


@admin.register(PriceOffer)
class PriceOfferAdmin(admin.ModelAdmin):
    list_display = ("ride", "driver", "offered_price", "status", "expires_at", "responded_at")
    list_filter = ("status",)
    search_fields = ("ride__id", "driver__username")


class GroupRideParticipantInline(admin.TabularInline):
    model = GroupRideParticipant
    extra = 0
    fields = ['user', 'status', 'pickup_address', 'dropoff_address', 'joined_at']
    readonly_fields = ['joined_at']


@admin.register(GroupRide)
class GroupRideAdmin(admin.ModelAdmin):
    list_display = ("invite_code", "created_by", "ride", "max_passengers", "status", "expires_at")
    list_filter = ("status", "split_method")
    search_fields = ("invite_code", "created_by__username")
    inlines = [GroupRideParticipantInline]


@admin.register(RideMessage)
class RideMessageAdmin(admin.ModelAdmin):
    list_display = ("ride", "sender", "message", "created_at")
    search_fields = ("ride__id", "sender__username", "message")
