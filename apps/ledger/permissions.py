from rest_framework import permissions


class IsHouseholdMemberForObject(permissions.BasePermission):
    """
    Permission: User must belong to the household that owns the object.

    Works for rota items, purchases and settlements (anything with a
    ``household`` foreign key).
    """

    message = 'You are not a member of this household.'

    def has_object_permission(self, request, view, obj):
        return obj.household.has_member(request.user)
