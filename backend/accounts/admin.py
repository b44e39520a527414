from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from accounts.models import FavoritePlace, User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Admin panel for custom User model"""

    list_display = [
        "username",
        "email",
        "role",
        "phone_number",
        "rating",
        "completed_rides",
        "is_active",
    ]

    list_filter = [
        "role",
        "is_active",
        "is_staff",
        "date_joined",
    ]

    search_fields = [
        "username",
        "email",
        "phone_number",
        "referral_code",
    ]

    ordering = ("username",)

    readonly_fields = ("rating", "total_rides", "completed_rides", "referral_code")
    raw_id_fields = ("referred_by",)

    # Extend default Django UserAdmin fieldsets
    fieldsets = BaseUserAdmin.fieldsets + (
        (
            "Ride Profile",
            {
                "fields": (
                    "role",
                    "phone_number",
                    "rating",
                    "total_rides",
                    "completed_rides",
                    "referral_code",
                    "referred_by",
                )
            },
        ),
    )

    # For create user page in admin
    add_fieldsets = BaseUserAdmin.add_fieldsets + (
        (
            "Additional Info",
            {
                "fields": (
                    "role",
                    "phone_number",
                )
            },
        ),
    )


@admin.register(FavoritePlace)
class FavoritePlaceAdmin(admin.ModelAdmin):
    list_display = ["user", "name", "type", "address", "created_at"]
    list_filter = ["type"]
    search_fields = ["user__username", "name", "address"]
