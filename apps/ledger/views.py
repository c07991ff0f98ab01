from rest_framework import mixins, viewsets, status
from rest_framework.decorators import action
from rest_framework.pagination import PageNumberPagination
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, OpenApiParameter

from .models import RotaItem, Purchase, Settlement
from .serializers import (
    RotaItemSerializer,
    RotaItemCreateSerializer,
    RotaOrderSerializer,
    SetTurnSerializer,
    RecordPurchaseSerializer,
    ClosePeriodSerializer,
    PurchaseSerializer,
    PurchaseFilterSerializer,
    HouseholdFilterSerializer,
    BalanceEntrySerializer,
    SettlementSerializer,
    SettlementListSerializer,
)
from .permissions import IsHouseholdMemberForObject

from apps.households.services import get_household_by_id, require_household_member
from apps.ledger.services import (
    create_rota_item,
    update_rota_order,
    set_turn,
    deactivate_rota_item,
    record_purchase,
    get_balances,
    close_period,
    # Exceptions
    RotaItemNotFoundError,
    HouseholdNotFoundError,
    NotHouseholdMemberError,
    NotAuthorizedError,
    InvalidRotaStateError,
    MemberNotInRotaError,
    InactiveRotaItemError,
    InvalidAmountError,
    PurchaseConflictError,
    RotaConflictError,
    AlreadySettledError,
    SettlementConflictError,
)


UUID_PATTERN = r'[0-9a-fA-F-]{32,36}'


class LedgerPagination(PageNumberPagination):
    page_size = 20
    page_size_query_param = 'page_size'
    max_page_size = 100


class RotaItemViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    ViewSet for shared items and their buying rota.

    list: Items of my household (?include_inactive=true for retired ones)
    create: Add an item with its rota (any member)
    retrieve: Item details with whose turn it is
    purchase: Record that I bought the item
    set_turn / reorder / deactivate: Admin overrides
    """

    serializer_class = RotaItemSerializer
    permission_classes = [IsAuthenticated, IsHouseholdMemberForObject]
    lookup_value_regex = UUID_PATTERN

    def get_queryset(self):
        queryset = RotaItem.objects.filter(
            household__memberships__user=self.request.user
        ).select_related('household')
        if self.action == 'list' and self.request.query_params.get('include_inactive') != 'true':
            queryset = queryset.filter(is_active=True)
        return queryset

    @extend_schema(request=RotaItemCreateSerializer, responses={201: RotaItemSerializer})
    def create(self, request, *args, **kwargs):
        serializer = RotaItemCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            item = create_rota_item(
                household_id=serializer.validated_data['household'],
                name=serializer.validated_data['name'],
                rota_order=serializer.validated_data['rota_order'],
                created_by=request.user,
            )
        except HouseholdNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except NotHouseholdMemberError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except (InvalidRotaStateError, MemberNotInRotaError) as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(RotaItemSerializer(item).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=RecordPurchaseSerializer, responses={201: PurchaseSerializer, 200: PurchaseSerializer})
    @action(detail=True, methods=['post'])
    def purchase(self, request, pk=None):
        """
        Record a purchase of this item by the caller.

        POST /api/ledger/items/{id}/purchase/
        Body: {"amount": 250, "client_reference": "optional-idempotency-key"}

        Resending a known client_reference returns the original with 200.
        """
        serializer = RecordPurchaseSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            purchase = record_purchase(
                item_id=pk,
                member=request.user,
                amount=serializer.validated_data['amount'],
                purchased_at=serializer.validated_data.get('purchased_at'),
                client_reference=serializer.validated_data['client_reference'],
                note=serializer.validated_data['note'],
            )
        except RotaItemNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except NotHouseholdMemberError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except PurchaseConflictError as e:
            return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)
        except (InactiveRotaItemError, InvalidRotaStateError, InvalidAmountError) as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        response_status = status.HTTP_200_OK if purchase.replayed else status.HTTP_201_CREATED
        return Response(PurchaseSerializer(purchase).data, status=response_status)

    @extend_schema(request=SetTurnSerializer, responses={200: RotaItemSerializer})
    @action(detail=True, methods=['post'])
    def set_turn(self, request, pk=None):
        """Admin override: make it a given member's turn."""
        serializer = SetTurnSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            item = set_turn(
                item_id=pk,
                member_id=serializer.validated_data['member_id'],
                updated_by=request.user,
            )
        except RotaItemNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except NotAuthorizedError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except RotaConflictError as e:
            return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)
        except (MemberNotInRotaError, InactiveRotaItemError) as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(RotaItemSerializer(item).data)

    @extend_schema(request=RotaOrderSerializer, responses={200: RotaItemSerializer})
    @action(detail=True, methods=['post'])
    def reorder(self, request, pk=None):
        """Admin override: replace the rota order."""
        serializer = RotaOrderSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            item = update_rota_order(
                item_id=pk,
                rota_order=serializer.validated_data['rota_order'],
                updated_by=request.user,
            )
        except RotaItemNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except NotAuthorizedError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except RotaConflictError as e:
            return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)
        except (InvalidRotaStateError, MemberNotInRotaError, InactiveRotaItemError) as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(RotaItemSerializer(item).data)

    @extend_schema(request=None, responses={200: RotaItemSerializer})
    @action(detail=True, methods=['post'])
    def deactivate(self, request, pk=None):
        """Admin: retire the item."""
        try:
            item = deactivate_rota_item(item_id=pk, deactivated_by=request.user)
        except RotaItemNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except NotAuthorizedError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except RotaConflictError as e:
            return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)

        return Response(RotaItemSerializer(item).data)


class PurchaseViewSet(viewsets.ReadOnlyModelViewSet):
    """
    Read-only purchase history of my household.

    Query Parameters:
        item (UUID), settled (bool)
    """

    serializer_class = PurchaseSerializer
    permission_classes = [IsAuthenticated, IsHouseholdMemberForObject]
    lookup_value_regex = UUID_PATTERN
    pagination_class = LedgerPagination

    @extend_schema(parameters=[PurchaseFilterSerializer])
    def list(self, request, *args, **kwargs):
        return super().list(request, *args, **kwargs)

    def get_queryset(self):
        queryset = Purchase.objects.filter(
            household__memberships__user=self.request.user
        ).select_related('item', 'purchased_by', 'expected_by', 'household')

        if self.action != 'list':
            return queryset

        filter_serializer = PurchaseFilterSerializer(data=self.request.query_params.dict())
        filter_serializer.is_valid(raise_exception=True)
        params = filter_serializer.validated_data

        if params.get('household'):
            queryset = queryset.filter(household_id=params['household'])
        if params.get('item'):
            queryset = queryset.filter(item_id=params['item'])
        if params.get('settled') is True:
            queryset = queryset.filter(settlement__isnull=False)
        elif params.get('settled') is False:
            queryset = queryset.filter(settlement__isnull=True)
        return queryset


class SettlementViewSet(viewsets.ReadOnlyModelViewSet):
    """Settlement history of my household, newest first."""

    permission_classes = [IsAuthenticated, IsHouseholdMemberForObject]
    lookup_value_regex = UUID_PATTERN
    pagination_class = LedgerPagination

    def get_queryset(self):
        queryset = Settlement.objects.filter(
            household__memberships__user=self.request.user
        ).select_related('household', 'closed_by')

        filter_serializer = HouseholdFilterSerializer(data=self.request.query_params.dict())
        filter_serializer.is_valid(raise_exception=True)
        if filter_serializer.validated_data.get('household'):
            queryset = queryset.filter(household_id=filter_serializer.validated_data['household'])

        if self.action == 'retrieve':
            queryset = queryset.prefetch_related('lines__member')
        return queryset.order_by('-period_end')

    def get_serializer_class(self):
        if self.action == 'list':
            return SettlementListSerializer
        return SettlementSerializer


class HouseholdLedgerViewSet(viewsets.ViewSet):
    """
    Per-household ledger endpoints.

    GET  /api/ledger/households/{id}/balances/  - Open-period balances (members)
    POST /api/ledger/households/{id}/settle/    - Close the period (admin)
    """

    permission_classes = [IsAuthenticated]
    lookup_value_regex = UUID_PATTERN

    @extend_schema(
        parameters=[OpenApiParameter('id', str, OpenApiParameter.PATH)],
        responses={200: BalanceEntrySerializer(many=True)},
    )
    @action(detail=True, methods=['get'])
    def balances(self, request, pk=None):
        try:
            household = get_household_by_id(household_id=pk)
            require_household_member(household=household, user=request.user)
        except HouseholdNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except NotHouseholdMemberError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)

        entries = get_balances(household_id=household.id)
        return Response(BalanceEntrySerializer(entries, many=True).data)

    @extend_schema(
        parameters=[OpenApiParameter('id', str, OpenApiParameter.PATH)],
        request=ClosePeriodSerializer,
        responses={201: SettlementSerializer},
    )
    @action(detail=True, methods=['post'])
    def settle(self, request, pk=None):
        serializer = ClosePeriodSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        rent_shares = None
        if 'rent_shares' in serializer.validated_data:
            rent_shares = {
                str(entry['user_id']): entry['base_rent_share']
                for entry in serializer.validated_data['rent_shares']
            }

        try:
            settlement = close_period(
                household_id=pk,
                closed_by=request.user,
                rent_shares=rent_shares,
            )
        except HouseholdNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except NotAuthorizedError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except (AlreadySettledError, SettlementConflictError) as e:
            return Response({'error': str(e)}, status=status.HTTP_409_CONFLICT)
        except (NotHouseholdMemberError, InvalidAmountError) as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        settlement = Settlement.objects.prefetch_related('lines__member').get(pk=settlement.pk)
        return Response(SettlementSerializer(settlement).data, status=status.HTTP_201_CREATED)
