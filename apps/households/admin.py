# ==========================================
# apps/households/admin.py
# ==========================================

from django.contrib import admin
from apps.households.models import Household, HouseholdMembership


class HouseholdMembershipInline(admin.TabularInline):
    """Inline admin for household memberships."""
    model = HouseholdMembership
    extra = 0
    fields = ['user', 'base_rent_share', 'joined_at']
    readonly_fields = ['joined_at']


@admin.register(Household)
class HouseholdAdmin(admin.ModelAdmin):
    """Admin interface for Households."""

    list_display = [
        'name',
        'admin',
        'member_count',
        'current_period_start',
        'created_at'
    ]
    list_filter = ['created_at']
    search_fields = ['name', 'admin__email', 'invite_code']
    # Admin hand-over goes through transfer_admin so membership is checked
    readonly_fields = ['admin', 'invite_code', 'current_period_start', 'created_at', 'updated_at']
    inlines = [HouseholdMembershipInline]
    date_hierarchy = 'created_at'
    ordering = ['-created_at']

    fieldsets = (
        ('Basic Information', {
            'fields': ('name', 'admin')
        }),
        ('Accounting Period', {
            'fields': ('current_period_start',)
        }),
        ('Invitation', {
            'fields': ('invite_code',)
        }),
        ('Metadata', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )

    def member_count(self, obj):
        """Show number of members."""
        return obj.memberships.count()
    member_count.short_description = 'Members'
