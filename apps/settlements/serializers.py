from django.conf import settings
from rest_framework import serializers

from .models import EntryStatus, SessionStatus, SettlementEntry, SettlementEntrySplit, SettlementSession
from apps.expenses.serializers import MAX_PAYMENT_AMOUNT, SplitInputSerializer
from apps.groups.serializers import UserMinimalSerializer
from apps.settlements.services import Transfer, calculate_my_transfer_balance


# =============================================================================
# Input serializers
# =============================================================================

class SessionCreateSerializer(serializers.Serializer):
    group = serializers.UUIDField()
    period_start = serializers.DateField()
    period_end = serializers.DateField()

    def validate(self, attrs):
        if attrs['period_start'] > attrs['period_end']:
            raise serializers.ValidationError({
                'period_end': 'End date must be on or after start date'
            })
        return attrs


class SessionFilterSerializer(serializers.Serializer):
    """
    Query Parameters:
        group (UUID): Group to list (required)
        status (str): Only sessions in this status
    """

    group = serializers.UUIDField(required=True)
    status = serializers.ChoiceField(choices=SessionStatus.choices, required=False)


class SessionIdsSerializer(serializers.Serializer):
    session_ids = serializers.ListField(child=serializers.UUIDField(), allow_empty=False)


class PeriodSuggestionQuerySerializer(serializers.Serializer):
    group = serializers.UUIDField(required=True)


class EntryUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=EntryStatus.choices)
    actual_amount = serializers.IntegerField(
        min_value=1, max_value=MAX_PAYMENT_AMOUNT, required=False, allow_null=True
    )
    payer_id = serializers.UUIDField(required=False, allow_null=True)
    payment_date = serializers.DateField(required=False, allow_null=True)
    splits = SplitInputSerializer(many=True, required=False)


class EntrySplitsSerializer(serializers.Serializer):
    splits = SplitInputSerializer(many=True, allow_empty=True)


class ManualEntryCreateSerializer(serializers.Serializer):
    description = serializers.CharField(max_length=100, allow_blank=False)
    payment_date = serializers.DateField()
    payer_id = serializers.UUIDField()
    actual_amount = serializers.IntegerField(
        min_value=1, max_value=MAX_PAYMENT_AMOUNT, required=False, allow_null=True
    )
    category_id = serializers.UUIDField(required=False, allow_null=True)
    splits = SplitInputSerializer(many=True, required=False)


# =============================================================================
# Output serializers
# =============================================================================

class TransferSerializer(serializers.Serializer):
    from_id = serializers.CharField()
    from_name = serializers.CharField()
    to_id = serializers.CharField()
    to_name = serializers.CharField()
    amount = serializers.IntegerField()


class MemberBalanceSerializer(serializers.Serializer):
    member_id = serializers.CharField()
    display_name = serializers.CharField()
    total_paid = serializers.IntegerField()
    total_owed = serializers.IntegerField()
    balance = serializers.IntegerField()


class SettlementEntrySplitSerializer(serializers.ModelSerializer):
    user = UserMinimalSerializer(read_only=True)

    class Meta:
        model = SettlementEntrySplit
        fields = ['user', 'amount']
        read_only_fields = fields


class SettlementEntrySerializer(serializers.ModelSerializer):
    payer = UserMinimalSerializer(read_only=True)
    filled_by = UserMinimalSerializer(read_only=True)
    splits = SettlementEntrySplitSerializer(many=True, read_only=True)

    class Meta:
        model = SettlementEntry
        fields = [
            'id',
            'session',
            'rule',
            'source_payment',
            'description',
            'category',
            'expected_amount',
            'actual_amount',
            'payer',
            'payment_date',
            'status',
            'split_type',
            'entry_type',
            'splits',
            'filled_by',
            'filled_at',
        ]
        read_only_fields = fields


class SettlementSessionListSerializer(serializers.ModelSerializer):
    """Lightweight serializer for list views."""

    class Meta:
        model = SettlementSession
        fields = [
            'id',
            'group',
            'period_start',
            'period_end',
            'status',
            'is_zero_settlement',
            'created_at',
            'confirmed_at',
            'settled_at',
        ]
        read_only_fields = fields


class SettlementSessionSerializer(serializers.ModelSerializer):
    """Session with its checklist, transfers and the caller's net position."""

    created_by = UserMinimalSerializer(read_only=True)
    confirmed_by = UserMinimalSerializer(read_only=True)
    payment_reported_by = UserMinimalSerializer(read_only=True)
    settled_by = UserMinimalSerializer(read_only=True)
    entries = SettlementEntrySerializer(many=True, read_only=True)
    net_transfers = TransferSerializer(many=True, read_only=True)
    my_balance = serializers.SerializerMethodField()
    currency = serializers.SerializerMethodField()

    class Meta:
        model = SettlementSession
        fields = [
            'id',
            'group',
            'period_start',
            'period_end',
            'status',
            'created_by',
            'created_at',
            'confirmed_by',
            'confirmed_at',
            'net_transfers',
            'is_zero_settlement',
            'my_balance',
            'currency',
            'payment_reported_by',
            'payment_reported_at',
            'settled_by',
            'settled_at',
            'entries',
        ]
        read_only_fields = fields

    def get_my_balance(self, obj):
        """Positive: the caller receives this much. Negative: the caller pays."""
        request = self.context.get('request')
        if not request or not request.user.is_authenticated or not obj.net_transfers:
            return 0
        transfers = [Transfer.from_dict(t) for t in obj.net_transfers]
        return calculate_my_transfer_balance(transfers, request.user.id)

    def get_currency(self, obj):
        return settings.SETTLEMENT_CURRENCY_CODE


class PeriodSuggestionSerializer(serializers.Serializer):
    suggested_start = serializers.DateField()
    suggested_end = serializers.DateField()
    oldest_unsettled_date = serializers.DateField(allow_null=True)
    last_confirmed_end = serializers.DateField(allow_null=True)
    unsettled_count = serializers.IntegerField()


class GroupBalancesSerializer(serializers.Serializer):
    balances = MemberBalanceSerializer(many=True)
    settlements = TransferSerializer(many=True)
    unsettled_remainder = serializers.FloatField()
