from rest_framework import permissions


class IsHouseholdAdmin(permissions.BasePermission):
    """
    Permission: User must be the household admin.

    Services re-check this inside their transaction; this only shortcuts
    obviously forbidden requests.
    """

    message = 'Only the household admin can do this.'

    def has_object_permission(self, request, view, obj):
        # obj is a Household instance
        return obj.is_admin(request.user)


class IsHouseholdMember(permissions.BasePermission):
    """
    Permission: User must be a member of the household.
    """

    message = 'You are not a member of this household.'

    def has_object_permission(self, request, view, obj):
        # obj is a Household instance
        return obj.has_member(request.user)
