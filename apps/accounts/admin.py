# ==========================================
# apps/accounts/admin.py
# ==========================================

from django.contrib import admin
from django.contrib.auth.admin import UserAdmin as BaseUserAdmin
from .models import User


@admin.register(User)
class UserAdmin(BaseUserAdmin):
    """Member accounts. Households are managed from their own admin page."""

    list_display = ['email', 'display_name', 'household_name', 'is_active', 'last_login']
    list_filter = ['is_active', 'is_staff']
    list_select_related = ['household_membership__household']
    search_fields = ['email', 'display_name']
    ordering = ['email']

    # BaseUserAdmin expects a username field
    fieldsets = (
        (None, {'fields': ('email', 'display_name', 'password')}),
        ('Access', {'fields': ('is_active', 'is_staff', 'is_superuser')}),
        ('Activity', {'fields': ('created_at', 'last_login')}),
    )
    add_fieldsets = (
        (None, {
            'classes': ('wide',),
            'fields': ('email', 'display_name', 'password1', 'password2'),
        }),
    )
    readonly_fields = ['created_at', 'last_login']
    filter_horizontal = []

    actions = ['deactivate_users']

    def household_name(self, obj):
        membership = getattr(obj, 'household_membership', None)
        return membership.household.name if membership else '-'
    household_name.short_description = 'Household'

    @admin.action(description='Deactivate selected accounts')
    def deactivate_users(self, request, queryset):
        count = queryset.filter(is_superuser=False).update(is_active=False)
        self.message_user(request, f'Deactivated {count} account(s).')
