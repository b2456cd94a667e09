from datetime import timedelta

from django.utils import timezone
from rest_framework import serializers

from .models import Category, Payment, PaymentSplit, RecurringRule, RecurringRuleSplit, SplitType
from apps.groups.serializers import UserMinimalSerializer

MAX_PAYMENT_AMOUNT = 1_000_000


# =============================================================================
# Input serializers
# =============================================================================

class PaymentFilterSerializer(serializers.Serializer):
    """
    Validate query parameters for payment listing.

    Query Parameters:
        group (UUID): Group to list (required)
        date_from (date): Payments on or after this date
        date_to (date): Payments on or before this date
        unsettled (bool): Only payments not yet consumed by a settlement
    """

    group = serializers.UUIDField(required=True)
    date_from = serializers.DateField(required=False)
    date_to = serializers.DateField(required=False)
    unsettled = serializers.BooleanField(required=False)

    def validate(self, attrs):
        """Validate date range."""
        date_from = attrs.get('date_from')
        date_to = attrs.get('date_to')

        if date_from and date_to and date_from > date_to:
            raise serializers.ValidationError({
                'date_to': 'End date must be after start date'
            })

        return attrs


class GroupFilterSerializer(serializers.Serializer):
    """Validate the required ``group`` query parameter."""

    group = serializers.UUIDField(required=True)


class SplitInputSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    amount = serializers.IntegerField(min_value=0, max_value=MAX_PAYMENT_AMOUNT)


def validate_payment_date(value):
    """Payment dates may not be in the future nor more than a year old."""
    today = timezone.localdate()
    if value > today:
        raise serializers.ValidationError('Payment date cannot be in the future')
    if value < today - timedelta(days=365):
        raise serializers.ValidationError('Payment date cannot be more than a year ago')
    return value


class PaymentCreateSerializer(serializers.Serializer):
    """
    Input for recording a payment.

    At most one of ``splits``, ``custom_amounts`` or ``beneficiary_id``;
    none means an equal split among current members.
    """

    group = serializers.UUIDField()
    payer_id = serializers.UUIDField(required=False)
    amount = serializers.IntegerField(min_value=1, max_value=MAX_PAYMENT_AMOUNT)
    description = serializers.CharField(max_length=100, allow_blank=False)
    payment_date = serializers.DateField(required=False, validators=[validate_payment_date])
    category_id = serializers.UUIDField(required=False, allow_null=True)
    splits = SplitInputSerializer(many=True, required=False)
    custom_amounts = serializers.DictField(child=serializers.CharField(allow_blank=True), required=False)
    beneficiary_id = serializers.UUIDField(required=False, allow_null=True)

    def validate(self, attrs):
        given = [k for k in ('splits', 'custom_amounts', 'beneficiary_id') if attrs.get(k)]
        if len(given) > 1:
            raise serializers.ValidationError(
                'Give only one of splits, custom_amounts or beneficiary_id'
            )
        return attrs


class PaymentUpdateSerializer(serializers.Serializer):
    """Partial update of an unsettled payment; ``splits: null`` clears splits."""

    payer_id = serializers.UUIDField(required=False)
    amount = serializers.IntegerField(min_value=1, max_value=MAX_PAYMENT_AMOUNT, required=False)
    description = serializers.CharField(max_length=100, allow_blank=False, required=False)
    payment_date = serializers.DateField(required=False, validators=[validate_payment_date])
    category_id = serializers.UUIDField(required=False, allow_null=True)
    splits = SplitInputSerializer(many=True, required=False, allow_null=True)


class CategoryCreateSerializer(serializers.Serializer):
    group = serializers.UUIDField()
    name = serializers.CharField(max_length=50, allow_blank=False)
    icon = serializers.CharField(max_length=20, required=False, allow_blank=True)
    color = serializers.RegexField(r'^#[0-9a-fA-F]{6}$', required=False, allow_blank=True)


class RuleSplitInputSerializer(serializers.Serializer):
    user_id = serializers.UUIDField()
    amount = serializers.IntegerField(min_value=0, max_value=MAX_PAYMENT_AMOUNT, required=False, allow_null=True)
    percentage = serializers.DecimalField(
        max_digits=5,
        decimal_places=2,
        min_value=0,
        max_value=100,
        required=False,
        allow_null=True,
    )


class RecurringRuleCreateSerializer(serializers.Serializer):
    group = serializers.UUIDField()
    description = serializers.CharField(max_length=100, allow_blank=False)
    day_of_month = serializers.IntegerField(min_value=1, max_value=31)
    default_payer_id = serializers.UUIDField()
    is_variable = serializers.BooleanField(default=False)
    default_amount = serializers.IntegerField(
        min_value=1, max_value=MAX_PAYMENT_AMOUNT, required=False, allow_null=True
    )
    interval_months = serializers.IntegerField(min_value=1, max_value=12, default=1)
    split_type = serializers.ChoiceField(choices=SplitType.choices, default=SplitType.EQUAL)
    category_id = serializers.UUIDField(required=False, allow_null=True)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False, allow_null=True)
    splits = RuleSplitInputSerializer(many=True, required=False)

    def validate(self, attrs):
        """A variable rule has no default amount; a fixed one must have one."""
        amount = attrs.get('default_amount')
        if attrs.get('is_variable'):
            if amount is not None:
                raise serializers.ValidationError({
                    'default_amount': 'Variable rules cannot have a default amount'
                })
        elif amount is None:
            raise serializers.ValidationError({
                'default_amount': 'Fixed rules need a default amount'
            })

        start = attrs.get('start_date') or timezone.localdate()
        end = attrs.get('end_date')
        if end and end < start:
            raise serializers.ValidationError({
                'end_date': 'End date must not be before start date'
            })
        return attrs


class RecurringRuleUpdateSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=100, allow_blank=False, required=False)
    day_of_month = serializers.IntegerField(min_value=1, max_value=31, required=False)
    default_payer_id = serializers.UUIDField(required=False)
    is_variable = serializers.BooleanField(required=False)
    default_amount = serializers.IntegerField(
        min_value=1, max_value=MAX_PAYMENT_AMOUNT, required=False, allow_null=True
    )
    interval_months = serializers.IntegerField(min_value=1, max_value=12, required=False)
    split_type = serializers.ChoiceField(choices=SplitType.choices, required=False)
    category_id = serializers.UUIDField(required=False, allow_null=True)
    start_date = serializers.DateField(required=False)
    end_date = serializers.DateField(required=False, allow_null=True)
    is_active = serializers.BooleanField(required=False)
    splits = RuleSplitInputSerializer(many=True, required=False)

    def validate(self, attrs):
        if attrs.get('is_variable') and attrs.get('default_amount') is not None:
            raise serializers.ValidationError({
                'default_amount': 'Variable rules cannot have a default amount'
            })
        return attrs


# =============================================================================
# Output serializers
# =============================================================================

class CategorySerializer(serializers.ModelSerializer):

    class Meta:
        model = Category
        fields = ['id', 'group', 'name', 'icon', 'color', 'created_at']
        read_only_fields = fields


class PaymentSplitSerializer(serializers.ModelSerializer):
    user = UserMinimalSerializer(read_only=True)

    class Meta:
        model = PaymentSplit
        fields = ['user', 'amount']
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    """Payment with payer and explicit splits."""

    payer = UserMinimalSerializer(read_only=True)
    category = CategorySerializer(read_only=True)
    splits = PaymentSplitSerializer(many=True, read_only=True)
    is_settled = serializers.BooleanField(read_only=True)

    class Meta:
        model = Payment
        fields = [
            'id',
            'group',
            'payer',
            'amount',
            'description',
            'category',
            'payment_date',
            'splits',
            'settlement',
            'is_settled',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields


class RecurringRuleSplitSerializer(serializers.ModelSerializer):
    user = UserMinimalSerializer(read_only=True)

    class Meta:
        model = RecurringRuleSplit
        fields = ['user', 'amount', 'percentage']
        read_only_fields = fields


class RecurringRuleSerializer(serializers.ModelSerializer):
    default_payer = UserMinimalSerializer(read_only=True)
    category = CategorySerializer(read_only=True)
    splits = RecurringRuleSplitSerializer(many=True, read_only=True)

    class Meta:
        model = RecurringRule
        fields = [
            'id',
            'group',
            'description',
            'category',
            'default_amount',
            'is_variable',
            'day_of_month',
            'interval_months',
            'default_payer',
            'split_type',
            'splits',
            'is_active',
            'start_date',
            'end_date',
            'created_at',
            'updated_at',
        ]
        read_only_fields = fields
