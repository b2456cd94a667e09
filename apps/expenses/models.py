from django.core.validators import MaxValueValidator, MinValueValidator
from django.db import models
from django.utils import timezone
import uuid


class SplitType(models.TextChoices):
    EQUAL = 'equal', 'Equal'
    CUSTOM = 'custom', 'Custom'


class Category(models.Model):
    """Expense category scoped to a group."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    group = models.ForeignKey('groups.Group', on_delete=models.CASCADE, related_name='categories')
    name = models.CharField(max_length=50)
    icon = models.CharField(max_length=20, blank=True)
    color = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'categories'
        unique_together = [['group', 'name']]
        ordering = ['name']
        verbose_name_plural = 'categories'

    def __str__(self):
        return self.name


class Payment(models.Model):
    """
    A shared expense paid by one member.

    Without explicit splits the amount is divided equally among the group's
    current members. Once ``settlement`` is set the payment is consumed by
    that settlement and no longer editable.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    group = models.ForeignKey('groups.Group', on_delete=models.CASCADE, related_name='payments')
    payer = models.ForeignKey('accounts.User', on_delete=models.PROTECT, related_name='payments_made')
    amount = models.PositiveIntegerField(validators=[MinValueValidator(1)])
    description = models.CharField(max_length=100)
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='payments'
    )
    payment_date = models.DateField(default=timezone.localdate)
    settlement = models.ForeignKey(
        'settlements.SettlementSession',
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='payments'
    )
    created_by = models.ForeignKey(
        'accounts.User',
        on_delete=models.SET_NULL,
        null=True,
        related_name='payments_created'
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'payments'
        indexes = [
            models.Index(fields=['group', 'payment_date'], name='payments_group_date_idx'),
            models.Index(fields=['group', 'settlement'], name='payments_group_settle_idx'),
            models.Index(fields=['payer', 'payment_date'], name='payments_payer_date_idx'),
        ]
        constraints = [
            models.CheckConstraint(condition=models.Q(amount__gt=0), name='payment_amount_positive'),
        ]
        ordering = ['-payment_date', '-created_at']

    def __str__(self):
        return f"{self.description} - {self.amount} ({self.payment_date})"

    @property
    def is_settled(self):
        return self.settlement_id is not None


class PaymentSplit(models.Model):
    """A member's share of one payment."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    payment = models.ForeignKey(Payment, on_delete=models.CASCADE, related_name='splits')
    user = models.ForeignKey('accounts.User', on_delete=models.PROTECT, related_name='payment_splits')
    amount = models.PositiveIntegerField()

    class Meta:
        db_table = 'payment_splits'
        unique_together = [['payment', 'user']]

    def __str__(self):
        return f"{self.user.get_display_name()}: {self.amount}"


class RecurringRule(models.Model):
    """
    Template for a periodic charge such as rent or a subscription.

    Fires every ``interval_months`` months from the month of ``start_date``
    on ``day_of_month`` (31 means the last day of the month).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    group = models.ForeignKey('groups.Group', on_delete=models.CASCADE, related_name='recurring_rules')
    description = models.CharField(max_length=100)
    category = models.ForeignKey(
        Category,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name='recurring_rules'
    )
    default_amount = models.PositiveIntegerField(null=True, blank=True)
    is_variable = models.BooleanField(default=False)
    day_of_month = models.PositiveSmallIntegerField(
        validators=[MinValueValidator(1), MaxValueValidator(31)]
    )
    interval_months = models.PositiveSmallIntegerField(
        default=1,
        validators=[MinValueValidator(1), MaxValueValidator(12)]
    )
    default_payer = models.ForeignKey(
        'accounts.User',
        on_delete=models.PROTECT,
        related_name='recurring_rules_paid'
    )
    split_type = models.CharField(max_length=10, choices=SplitType.choices, default=SplitType.EQUAL)
    is_active = models.BooleanField(default=True)
    start_date = models.DateField(default=timezone.localdate)
    end_date = models.DateField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'recurring_rules'
        indexes = [
            models.Index(fields=['group', 'is_active'], name='rules_group_active_idx'),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(day_of_month__gte=1, day_of_month__lte=31),
                name='rule_day_of_month_range',
            ),
            models.CheckConstraint(
                condition=models.Q(interval_months__gte=1),
                name='rule_interval_positive',
            ),
            models.CheckConstraint(
                condition=(
                    models.Q(is_variable=True, default_amount__isnull=True)
                    | models.Q(is_variable=False, default_amount__gt=0)
                ),
                name='rule_amount_matches_variability',
            ),
        ]
        ordering = ['day_of_month', 'description']

    def __str__(self):
        return f"{self.description} (day {self.day_of_month}, every {self.interval_months} mo)"


class RecurringRuleSplit(models.Model):
    """Custom split template line: a fixed amount or a percentage."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    rule = models.ForeignKey(RecurringRule, on_delete=models.CASCADE, related_name='splits')
    user = models.ForeignKey('accounts.User', on_delete=models.CASCADE, related_name='recurring_rule_splits')
    amount = models.PositiveIntegerField(null=True, blank=True)
    percentage = models.DecimalField(
        max_digits=5,
        decimal_places=2,
        null=True,
        blank=True,
        validators=[MinValueValidator(0), MaxValueValidator(100)]
    )
    position = models.PositiveSmallIntegerField(default=0)

    class Meta:
        db_table = 'recurring_rule_splits'
        unique_together = [['rule', 'user']]
        ordering = ['position']

    def __str__(self):
        share = self.amount if self.amount is not None else f"{self.percentage}%"
        return f"{self.user.get_display_name()}: {share}"

    def resolve_amount(self, default_amount):
        """Explicit amount, else floor(default_amount * percentage / 100)."""
        if self.amount is not None:
            return self.amount
        return int((default_amount or 0) * (self.percentage or 0) // 100)
