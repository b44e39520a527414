from django.contrib import admin

from wallet.models import WalletTransaction


@admin.register(WalletTransaction)
class WalletTransactionAdmin(admin.ModelAdmin):
    """Read-only: ledger rows are never edited"""
    list_display = ['user', 'sequence', 'amount', 'type', 'balance_after', 'created_at']
    list_filter = ['type']
    search_fields = ['user__username', 'reference_id']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
