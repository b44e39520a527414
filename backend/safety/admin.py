from django.contrib import admin

from safety.models import EmergencyAlert, EmergencyContact


@admin.register(EmergencyAlert)
class EmergencyAlertAdmin(admin.ModelAdmin):
    list_display = ['id', 'user', 'ride', 'type', 'status', 'contacts_notified', 'created_at', 'resolved_at']
    list_filter = ['status', 'type']
    search_fields = ['user__username', 'location_address']


@admin.register(EmergencyContact)
class EmergencyContactAdmin(admin.ModelAdmin):
    list_display = ['user', 'name', 'phone', 'relationship']
    search_fields = ['user__username', 'name', 'phone']
