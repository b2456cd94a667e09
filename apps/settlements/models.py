from django.db import models
import uuid

from apps.expenses.models import SplitType


class SessionStatus(models.TextChoices):
    DRAFT = 'draft', 'Draft'
    PENDING_PAYMENT = 'pending_payment', 'Pending payment'
    SETTLED = 'settled', 'Settled'


class EntryStatus(models.TextChoices):
    PENDING = 'pending', 'Pending'
    FILLED = 'filled', 'Filled'
    SKIPPED = 'skipped', 'Skipped'


class EntryType(models.TextChoices):
    RULE = 'rule', 'Recurring rule'
    MANUAL = 'manual', 'Manual'
    EXISTING = 'existing', 'Existing payment'


def rule_occurrence_key(rule_id, occurrence_date):
    return f"{rule_id}|{occurrence_date:%Y-%m}"


class SettlementSession(models.Model):
    """
    A settlement of a group's expenses over an inclusive date range.

    Lifecycle::

        draft --confirm--> pending_payment --report--> (reported) --receipt--> settled
        draft --confirm, nothing to transfer--> settled

    ``settled`` is terminal.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    group = models.ForeignKey('groups.Group', on_delete=models.CASCADE, related_name='settlement_sessions')
    period_start = models.DateField()
    period_end = models.DateField()
    status = models.CharField(
        max_length=20,
        choices=SessionStatus.choices,
        default=SessionStatus.DRAFT
    )

    created_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        related_name='settlement_sessions_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    confirmed_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='settlement_sessions_confirmed'
    )
    confirmed_at = models.DateTimeField(null=True, blank=True)

    # List of {from_id, from_name, to_id, to_name, amount}
    net_transfers = models.JSONField(null=True, blank=True)
    is_zero_settlement = models.BooleanField(default=False)

    payment_reported_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='settlement_payments_reported'
    )
    payment_reported_at = models.DateTimeField(null=True, blank=True)

    settled_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='settlement_sessions_settled'
    )
    settled_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = 'settlement_sessions'
        indexes = [
            models.Index(fields=['group', 'status'], name='sessions_group_status_idx'),
            models.Index(fields=['group', 'period_end'], name='sessions_group_end_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(period_start__lte=models.F('period_end')),
                name='session_period_ordered',
            ),
        ]
        ordering = ['-created_at']

    def __str__(self):
        return f"{self.group} {self.period_start}..{self.period_end} ({self.status})"

    @property
    def is_payment_reported(self):
        return self.payment_reported_at is not None

    def transfer_payer_ids(self):
        return {str(t['from_id']) for t in self.net_transfers or []}

    def transfer_recipient_ids(self):
        return {str(t['to_id']) for t in self.net_transfers or []}


class SettlementEntry(models.Model):
    """
    One checklist line of a settlement session.

    Rule entries start ``pending`` and are filled or skipped by members;
    entries for payments that already exist start ``filled``. Skipped
    entries never carry an actual amount.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    session = models.ForeignKey(SettlementSession, on_delete=models.CASCADE, related_name='entries')
    rule = models.ForeignKey(
        'expenses.RecurringRule',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='settlement_entries'
    )
    source_payment = models.ForeignKey(
        'expenses.Payment',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='settlement_entries'
    )
    description = models.CharField(max_length=100)
    category = models.ForeignKey(
        'expenses.Category',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='settlement_entries'
    )
    expected_amount = models.PositiveIntegerField(null=True, blank=True)
    actual_amount = models.PositiveIntegerField(null=True, blank=True)
    payer = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='settlement_entries_paid'
    )
    payment_date = models.DateField()
    status = models.CharField(max_length=10, choices=EntryStatus.choices, default=EntryStatus.PENDING)
    split_type = models.CharField(max_length=10, choices=SplitType.choices, default=SplitType.EQUAL)
    entry_type = models.CharField(max_length=10, choices=EntryType.choices, default=EntryType.MANUAL)
    filled_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='settlement_entries_filled'
    )
    filled_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'settlement_entries'
        indexes = [
            models.Index(fields=['session', 'status'], name='entries_session_status_idx'),
            models.Index(fields=['session', 'rule', 'payment_date'], name='entries_session_rule_idx'),
            models.Index(fields=['source_payment'], name='entries_source_payment_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(actual_amount__isnull=True) | models.Q(actual_amount__gt=0),
                name='entry_actual_amount_positive',
            ),
            models.CheckConstraint(
                condition=~models.Q(status=EntryStatus.SKIPPED) | models.Q(actual_amount__isnull=True),
                name='entry_skipped_has_no_amount',
            ),
        ]
        ordering = ['payment_date', 'created_at']
        verbose_name_plural = 'settlement entries'

    def __str__(self):
        return f"{self.description} {self.payment_date} ({self.status})"

    @property
    def rule_key(self):
        """'<rule id>|<YYYY-MM>' identity of the occurrence this entry covers.

        A rule fires at most once a month, so the month identifies the
        occurrence even after the entry's date has been edited within it.
        """
        if self.rule_id is None:
            return None
        return rule_occurrence_key(self.rule_id, self.payment_date)


class SettlementEntrySplit(models.Model):
    """A member's share of one settlement entry."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    entry = models.ForeignKey(SettlementEntry, on_delete=models.CASCADE, related_name='splits')
    user = models.ForeignKey('accounts.User', on_delete=models.CASCADE, related_name='settlement_entry_splits')
    amount = models.PositiveIntegerField()

    class Meta:
        db_table = 'settlement_entry_splits'
        unique_together = [['entry', 'user']]

    def __str__(self):
        return f"{self.user.get_display_name()}: {self.amount}"
