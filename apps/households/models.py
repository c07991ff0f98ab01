# ==========================================
# apps/households/models.py
# ==========================================

from django.db import models
from django.utils import timezone
import uuid
import secrets


def generate_invite_code():
    return secrets.token_urlsafe(12)[:16]


class HouseholdRole(models.TextChoices):
    ADMIN = 'admin', 'Admin'
    MEMBER = 'member', 'Member'


class Household(models.Model):
    """Shared home whose members split purchases and rent."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    name = models.CharField(max_length=200)
    invite_code = models.CharField(max_length=16, unique=True, db_index=True, editable=False)
    # A single FK keeps "exactly one admin" structural.
    admin = models.ForeignKey(
        'accounts.User',
        on_delete=models.PROTECT,
        related_name='administered_households'
    )
    current_period_start = models.DateTimeField(default=timezone.now)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'households'
        ordering = ['-created_at']

    def __str__(self):
        return self.name

    def save(self, *args, **kwargs):
        if not self.invite_code:
            self.invite_code = generate_invite_code()
        super().save(*args, **kwargs)

    def has_member(self, user):
        return self.memberships.filter(user=user).exists()

    def get_user_role(self, user):
        if not self.has_member(user):
            return None
        if self.admin_id == user.pk:
            return HouseholdRole.ADMIN
        return HouseholdRole.MEMBER

    def is_admin(self, user):
        return self.admin_id == user.pk and self.has_member(user)

    def member_ids(self):
        return set(self.memberships.values_list('user_id', flat=True))


class HouseholdMembership(models.Model):
    """A user's place in a household, with the rent share they owe per period."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    # One household per user
    user = models.OneToOneField(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='household_membership'
    )
    household = models.ForeignKey(Household, on_delete=models.CASCADE, related_name='memberships')
    # Minor currency units, supplied by bill splitting before settlement
    base_rent_share = models.PositiveIntegerField(default=0)
    joined_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'household_memberships'
        ordering = ['joined_at']

    def __str__(self):
        return f"{self.user.get_display_name()} in {self.household.name}"

    @property
    def role(self):
        if self.household.admin_id == self.user_id:
            return HouseholdRole.ADMIN
        return HouseholdRole.MEMBER
