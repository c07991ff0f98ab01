from rest_framework import serializers
from .models import Household, HouseholdMembership
from apps.accounts.serializers import UserMinimalSerializer


class HouseholdMemberSerializer(serializers.ModelSerializer):
    """Serializer for member list with role and rent share."""

    user = UserMinimalSerializer(read_only=True)
    role = serializers.CharField(read_only=True)

    class Meta:
        model = HouseholdMembership
        fields = ['id', 'user', 'role', 'base_rent_share', 'joined_at']
        read_only_fields = fields


class HouseholdSerializer(serializers.ModelSerializer):
    """Main serializer for households."""

    admin = UserMinimalSerializer(read_only=True)
    member_count = serializers.SerializerMethodField()
    user_role = serializers.SerializerMethodField()
    invite_code = serializers.SerializerMethodField()

    class Meta:
        model = Household
        fields = [
            'id',
            'name',
            'invite_code',
            'admin',
            'member_count',
            'user_role',
            'current_period_start',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_member_count(self, obj):
        return obj.memberships.count()

    def get_user_role(self, obj):
        request = self.context.get('request')
        if request and request.user.is_authenticated:
            return obj.get_user_role(request.user)
        return None

    def get_invite_code(self, obj):
        """Invite code is only shown to the admin."""
        request = self.context.get('request')
        if request and request.user.is_authenticated and obj.admin_id == request.user.pk:
            return obj.invite_code
        return None


class HouseholdCreateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)
    base_rent_share = serializers.IntegerField(min_value=0, required=False, default=0)


class HouseholdUpdateSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=200)


class JoinHouseholdSerializer(serializers.Serializer):
    invite_code = serializers.CharField(max_length=16)


class MemberTargetSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()


class RentShareSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    base_rent_share = serializers.IntegerField(min_value=0)
