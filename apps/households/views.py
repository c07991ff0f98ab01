from rest_framework import mixins, viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema

from .models import Household
from .serializers import (
    HouseholdSerializer,
    HouseholdCreateSerializer,
    HouseholdUpdateSerializer,
    HouseholdMemberSerializer,
    JoinHouseholdSerializer,
    MemberTargetSerializer,
    RentShareSerializer,
)
from .permissions import IsHouseholdMember

from apps.households.services import (
    create_household,
    rename_household,
    join_household,
    leave_household,
    remove_member,
    get_household_members,
    transfer_admin,
    set_base_rent_share,
    regenerate_invite_code,
    # Exceptions
    HouseholdNotFoundError,
    InvalidInviteCodeError,
    AlreadyMemberError,
    NotHouseholdMemberError,
    AdminCannotLeaveError,
    CannotRemoveAdminError,
    NotAuthorizedError,
    InvalidRentShareError,
)


class HouseholdViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    ViewSet for households.

    All business logic is handled by services.
    Views are thin HTTP handlers only.

    list: Households the user belongs to
    create: Create a household (caller becomes admin)
    retrieve: Household details (members only)
    partial_update: Rename (admin only)
    """

    serializer_class = HouseholdSerializer
    permission_classes = [IsAuthenticated]
    lookup_value_regex = r'[0-9a-fA-F-]{32,36}'

    def get_queryset(self):
        """Members may look up their own household; join needs any household."""
        if self.action == 'join':
            return Household.objects.all()
        return Household.objects.filter(
            memberships__user=self.request.user
        ).select_related('admin').prefetch_related('memberships').distinct()

    def get_permissions(self):
        if self.action in ['retrieve', 'members']:
            return [IsAuthenticated(), IsHouseholdMember()]
        return [IsAuthenticated()]

    @extend_schema(request=HouseholdCreateSerializer, responses={201: HouseholdSerializer})
    def create(self, request, *args, **kwargs):
        """Create a new household."""
        serializer = HouseholdCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            household = create_household(
                name=serializer.validated_data['name'],
                admin=request.user,
                base_rent_share=serializer.validated_data['base_rent_share'],
            )
        except AlreadyMemberError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        output_serializer = HouseholdSerializer(household, context={'request': request})
        return Response(output_serializer.data, status=status.HTTP_201_CREATED)

    @extend_schema(request=HouseholdUpdateSerializer, responses={200: HouseholdSerializer})
    def partial_update(self, request, *args, **kwargs):
        """Rename the household (admin only)."""
        serializer = HouseholdUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            household = rename_household(
                household_id=self.kwargs['pk'],
                user=request.user,
                name=serializer.validated_data['name'],
            )
        except HouseholdNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except NotAuthorizedError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)

        return Response(HouseholdSerializer(household, context={'request': request}).data)

    @action(detail=True, methods=['get'])
    def members(self, request, pk=None):
        """Get all members of the household."""
        household = self.get_object()
        memberships = get_household_members(household_id=household.id)
        serializer = HouseholdMemberSerializer(memberships, many=True)
        return Response(serializer.data)

    @extend_schema(request=JoinHouseholdSerializer, responses={201: HouseholdMemberSerializer})
    @action(detail=True, methods=['post'])
    def join(self, request, pk=None):
        """Join a household using invite code."""
        serializer = JoinHouseholdSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            membership = join_household(
                household_id=pk,
                user=request.user,
                invite_code=serializer.validated_data['invite_code']
            )
        except HouseholdNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except (InvalidInviteCodeError, AlreadyMemberError) as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        output_serializer = HouseholdMemberSerializer(membership)
        return Response(output_serializer.data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=['post'])
    def leave(self, request, pk=None):
        """Leave a household."""
        try:
            leave_household(household_id=pk, user=request.user)
        except HouseholdNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except (AdminCannotLeaveError, NotHouseholdMemberError) as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=MemberTargetSerializer, responses={204: None})
    @action(detail=True, methods=['post'])
    def remove_member(self, request, pk=None):
        """Remove a member from the household (admin only)."""
        serializer = MemberTargetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            remove_member(
                household_id=pk,
                user_id=serializer.validated_data['user_id'],
                removed_by=request.user,
            )
        except HouseholdNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except NotAuthorizedError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except (CannotRemoveAdminError, NotHouseholdMemberError) as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)
        return Response(status=status.HTTP_204_NO_CONTENT)

    @extend_schema(request=MemberTargetSerializer, responses={200: HouseholdSerializer})
    @action(detail=True, methods=['post'])
    def transfer_admin(self, request, pk=None):
        """Hand the admin role to another member (admin only)."""
        serializer = MemberTargetSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            household = transfer_admin(
                household_id=pk,
                new_admin_id=serializer.validated_data['user_id'],
                transferred_by=request.user,
            )
        except HouseholdNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except NotAuthorizedError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except NotHouseholdMemberError as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(HouseholdSerializer(household, context={'request': request}).data)

    @extend_schema(request=RentShareSerializer, responses={200: HouseholdMemberSerializer})
    @action(detail=True, methods=['post'])
    def rent_share(self, request, pk=None):
        """Set a member's base rent share (admin only)."""
        serializer = RentShareSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            membership = set_base_rent_share(
                household_id=pk,
                user_id=serializer.validated_data['user_id'],
                amount=serializer.validated_data['base_rent_share'],
                updated_by=request.user,
            )
        except HouseholdNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except NotAuthorizedError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)
        except (NotHouseholdMemberError, InvalidRentShareError) as e:
            return Response({'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response(HouseholdMemberSerializer(membership).data)

    @action(detail=True, methods=['post'])
    def regenerate_invite(self, request, pk=None):
        """Regenerate invite code (admin only)."""
        try:
            new_code = regenerate_invite_code(household_id=pk, user=request.user)
        except HouseholdNotFoundError as e:
            return Response({'error': str(e)}, status=status.HTTP_404_NOT_FOUND)
        except NotAuthorizedError as e:
            return Response({'error': str(e)}, status=status.HTTP_403_FORBIDDEN)

        return Response({
            'invite_code': new_code,
            'message': 'Invite code regenerated successfully'
        })
