from django.contrib import admin

from .models import DriverProfile


@admin.register(DriverProfile)
class DriverProfileAdmin(admin.ModelAdmin):
    """Driver approval and availability overview"""
    list_display = ["user", "vehicle_number", "vehicle_type", "verification_status", "status", "last_location_update"]
    list_filter = ["verification_status", "status", "vehicle_type"]
    search_fields = ["user__username", "vehicle_number"]
    actions = ["approve_drivers"]

    @admin.action(description="Approve selected drivers")
    def approve_drivers(self, request, queryset):
        updated = queryset.update(verification_status="approved")
        self.message_user(request, f"{updated} driver(s) approved.")
