# ==========================================
# apps/ledger/models.py
# ==========================================

from django.db import models
from django.db.models import Q
from django.utils import timezone
import uuid


class ImmutableRecordError(Exception):
    """Raised when code tries to rewrite an archived ledger record."""
    pass


class RotaItem(models.Model):
    """Shared item bought in turn by the members listed in ``rota_order``."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    household = models.ForeignKey(
        'households.Household',
        on_delete=models.CASCADE,
        related_name='rota_items'
    )
    name = models.CharField(max_length=200)

    # Ordered list of member id strings, no duplicates
    rota_order = models.JSONField(default=list)
    current_turn_index = models.PositiveIntegerField(default=0)
    is_active = models.BooleanField(default=True)

    # Bumped on every rota write; writers compare-and-swap on it
    version = models.PositiveIntegerField(default=0)

    created_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='created_rota_items'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'rota_items'
        ordering = ['name']

    def __str__(self):
        return f"{self.name} ({self.household.name})"


class Purchase(models.Model):
    """
    One purchase of a rota item.

    Immutable once created except for the ``settlement`` back-reference,
    which the settlement engine stamps when the period is closed.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    household = models.ForeignKey(
        'households.Household',
        on_delete=models.CASCADE,
        related_name='purchases'
    )
    item = models.ForeignKey(
        RotaItem,
        on_delete=models.PROTECT,
        related_name='purchases'
    )
    purchased_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.PROTECT,
        related_name='rota_purchases_made'
    )
    # Whose turn it was when the purchase was recorded
    expected_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.PROTECT,
        related_name='rota_purchases_expected'
    )

    # Minor currency units
    amount = models.PositiveIntegerField()
    purchased_at = models.DateTimeField(default=timezone.now)
    note = models.CharField(max_length=500, blank=True)

    # Idempotency key supplied by the client; blank means none
    client_reference = models.CharField(max_length=64, blank=True, default='')

    settlement = models.ForeignKey(
        'ledger.Settlement',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='purchases'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'rota_purchases'
        ordering = ['-purchased_at', '-created_at']
        constraints = [
            models.UniqueConstraint(
                fields=['household', 'client_reference'],
                condition=~Q(client_reference=''),
                name='uniq_purchase_client_reference',
            ),
        ]
        indexes = [
            models.Index(fields=['household', 'settlement'], name='purchase_household_settle_idx'),
        ]

    def __str__(self):
        return f"{self.item.name} - {self.amount} by {self.purchased_by.get_display_name()}"

    @property
    def is_out_of_turn(self):
        return str(self.purchased_by_id) != str(self.expected_by_id)

    def save(self, *args, **kwargs):
        if not self._state.adding:
            update_fields = kwargs.get('update_fields')
            if update_fields is None or set(update_fields) - {'settlement'}:
                raise ImmutableRecordError("Purchases cannot be modified once recorded")
        super().save(*args, **kwargs)


class BalanceEntry(models.Model):
    """
    A member's running totals for the household's open accounting period.

    ``net_balance`` is always derived from the two totals and never stored.
    """

    household = models.ForeignKey(
        'households.Household',
        on_delete=models.CASCADE,
        related_name='balance_entries'
    )
    member = models.ForeignKey(
        'accounts.User',
        on_delete=models.CASCADE,
        related_name='balance_entries'
    )
    total_purchased = models.PositiveBigIntegerField(default=0)
    expected_purchases = models.PositiveBigIntegerField(default=0)
    last_updated = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'balance_entries'
        unique_together = [['household', 'member']]
        ordering = ['household', 'member']
        verbose_name_plural = 'balance entries'

    def __str__(self):
        return f"{self.member.get_display_name()}: {self.net_balance:+d}"

    @property
    def net_balance(self):
        """Positive means the member is owed money, negative means they owe."""
        return self.total_purchased - self.expected_purchases


class Settlement(models.Model):
    """
    Immutable record closing one accounting period of a household.

    The unique (household, period_start) pair is what makes a second close
    of the same period fail at the database.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    household = models.ForeignKey(
        'households.Household',
        on_delete=models.CASCADE,
        related_name='settlements'
    )
    period_start = models.DateTimeField()
    period_end = models.DateTimeField()
    closed_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.PROTECT,
        related_name='settlements_closed'
    )
    purchase_count = models.PositiveIntegerField(default=0)
    total_amount = models.PositiveBigIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'settlements'
        ordering = ['-period_end']
        constraints = [
            models.UniqueConstraint(
                fields=['household', 'period_start'],
                name='uniq_settlement_per_period',
            ),
        ]

    def __str__(self):
        return f"{self.household.name}: {self.period_start:%Y-%m-%d} - {self.period_end:%Y-%m-%d}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecordError("Settlements cannot be modified once written")
        super().save(*args, **kwargs)


class SettlementLine(models.Model):
    """Per-member snapshot inside a settlement."""

    settlement = models.ForeignKey(
        Settlement,
        on_delete=models.CASCADE,
        related_name='lines'
    )
    member = models.ForeignKey(
        'accounts.User',
        on_delete=models.PROTECT,
        related_name='settlement_lines'
    )
    total_purchased = models.PositiveBigIntegerField()
    expected_purchases = models.PositiveBigIntegerField()
    net_balance = models.BigIntegerField()
    base_rent_share = models.PositiveBigIntegerField()
    adjusted_rent = models.BigIntegerField()

    class Meta:
        db_table = 'settlement_lines'
        unique_together = [['settlement', 'member']]
        ordering = ['settlement', 'id']

    def __str__(self):
        return f"{self.member.get_display_name()}: rent {self.adjusted_rent}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ImmutableRecordError("Settlement lines cannot be modified once written")
        super().save(*args, **kwargs)
