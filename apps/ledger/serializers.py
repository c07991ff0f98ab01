from rest_framework import serializers
from .models import RotaItem, Purchase, BalanceEntry, Settlement, SettlementLine
from apps.accounts.serializers import UserMinimalSerializer


# =============================================================================
# Input Serializers
# =============================================================================

class RotaItemCreateSerializer(serializers.Serializer):
    household = serializers.UUIDField()
    name = serializers.CharField(max_length=200)
    rota_order = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


class RotaOrderSerializer(serializers.Serializer):
    rota_order = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


class SetTurnSerializer(serializers.Serializer):
    member_id = serializers.UUIDField()


class RecordPurchaseSerializer(serializers.Serializer):
    """
    Validate input for recording a purchase.

    Fields:
        amount (int): Price in minor currency units
        purchased_at (datetime): When it was bought, defaults to now
        client_reference (str): Idempotency key; resending it is a no-op
        note (str): Optional free text
    """

    amount = serializers.IntegerField(min_value=0)
    purchased_at = serializers.DateTimeField(required=False)
    client_reference = serializers.CharField(max_length=64, required=False, allow_blank=True, default='')
    note = serializers.CharField(max_length=500, required=False, allow_blank=True, default='')


class RentShareOverrideSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    base_rent_share = serializers.IntegerField(min_value=0)


class ClosePeriodSerializer(serializers.Serializer):
    """Optional per-member rent shares; omitted members use their stored share."""

    rent_shares = RentShareOverrideSerializer(many=True, required=False)

    def validate_rent_shares(self, value):
        user_ids = [entry['user_id'] for entry in value]
        if len(set(user_ids)) != len(user_ids):
            raise serializers.ValidationError('Each member may appear only once')
        return value


class PurchaseFilterSerializer(serializers.Serializer):
    """
    Validate query parameters for purchase filtering.

    Query Parameters:
        household (UUID): Filter by household ID
        item (UUID): Filter by rota item ID
        settled (bool): True for archived, False for the open period
    """

    household = serializers.UUIDField(required=False)
    item = serializers.UUIDField(required=False)
    settled = serializers.BooleanField(required=False, allow_null=True, default=None)


class HouseholdFilterSerializer(serializers.Serializer):
    household = serializers.UUIDField(required=False)


# =============================================================================
# Output Serializers
# =============================================================================

class RotaItemSerializer(serializers.ModelSerializer):
    current_buyer = serializers.SerializerMethodField()

    class Meta:
        model = RotaItem
        fields = [
            'id',
            'household',
            'name',
            'rota_order',
            'current_turn_index',
            'current_buyer',
            'is_active',
            'version',
            'created_by',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields

    def get_current_buyer(self, obj):
        if not obj.rota_order or obj.current_turn_index >= len(obj.rota_order):
            return None
        return obj.rota_order[obj.current_turn_index]


class PurchaseSerializer(serializers.ModelSerializer):
    item_name = serializers.CharField(source='item.name', read_only=True)
    purchased_by = UserMinimalSerializer(read_only=True)
    expected_by = UserMinimalSerializer(read_only=True)
    is_out_of_turn = serializers.BooleanField(read_only=True)

    class Meta:
        model = Purchase
        fields = [
            'id',
            'household',
            'item',
            'item_name',
            'purchased_by',
            'expected_by',
            'is_out_of_turn',
            'amount',
            'purchased_at',
            'note',
            'client_reference',
            'settlement',
            'created_at',
        ]
        read_only_fields = fields


class BalanceEntrySerializer(serializers.ModelSerializer):
    member = UserMinimalSerializer(read_only=True)
    net_balance = serializers.IntegerField(read_only=True)

    class Meta:
        model = BalanceEntry
        fields = ['member', 'total_purchased', 'expected_purchases', 'net_balance', 'last_updated']
        read_only_fields = fields


class SettlementLineSerializer(serializers.ModelSerializer):
    member = UserMinimalSerializer(read_only=True)

    class Meta:
        model = SettlementLine
        fields = [
            'member',
            'total_purchased',
            'expected_purchases',
            'net_balance',
            'base_rent_share',
            'adjusted_rent',
        ]
        read_only_fields = fields


class SettlementSerializer(serializers.ModelSerializer):
    closed_by = UserMinimalSerializer(read_only=True)
    lines = SettlementLineSerializer(many=True, read_only=True)

    class Meta:
        model = Settlement
        fields = [
            'id',
            'household',
            'period_start',
            'period_end',
            'closed_by',
            'purchase_count',
            'total_amount',
            'lines',
            'created_at',
        ]
        read_only_fields = fields


class SettlementListSerializer(serializers.ModelSerializer):
    closed_by = UserMinimalSerializer(read_only=True)

    class Meta:
        model = Settlement
        fields = ['id', 'household', 'period_start', 'period_end', 'closed_by', 'purchase_count', 'total_amount']
        read_only_fields = fields
