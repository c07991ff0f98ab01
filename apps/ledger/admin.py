# ==========================================
# apps/ledger/admin.py
# ==========================================

from django.contrib import admin
from .models import RotaItem, Purchase, BalanceEntry, Settlement, SettlementLine


@admin.register(RotaItem)
class RotaItemAdmin(admin.ModelAdmin):
    list_display = ['name', 'household', 'current_turn_index', 'is_active', 'version', 'updated_at']
    list_filter = ['is_active', 'household']
    search_fields = ['name', 'household__name']
    # Turn and order only change through the rota services
    readonly_fields = ['rota_order', 'current_turn_index', 'version', 'created_by', 'created_at', 'updated_at']


@admin.register(Purchase)
class PurchaseAdmin(admin.ModelAdmin):
    """
    Purchases are append-only; the admin is a viewer.
    """

    list_display = ['item', 'household', 'purchased_by', 'expected_by', 'amount', 'purchased_at', 'settlement']
    list_filter = ['household', 'purchased_at']
    search_fields = ['item__name', 'purchased_by__email', 'client_reference']
    date_hierarchy = 'purchased_at'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(BalanceEntry)
class BalanceEntryAdmin(admin.ModelAdmin):
    list_display = ['member', 'household', 'total_purchased', 'expected_purchases', 'get_net_balance', 'last_updated']
    list_filter = ['household']

    def get_net_balance(self, obj):
        return obj.net_balance
    get_net_balance.short_description = 'Net balance'

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


class SettlementLineInline(admin.TabularInline):
    model = SettlementLine
    extra = 0
    fields = ['member', 'total_purchased', 'expected_purchases', 'net_balance', 'base_rent_share', 'adjusted_rent']
    readonly_fields = fields
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Settlement)
class SettlementAdmin(admin.ModelAdmin):
    list_display = ['household', 'period_start', 'period_end', 'closed_by', 'purchase_count', 'total_amount']
    list_filter = ['household']
    inlines = [SettlementLineInline]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
