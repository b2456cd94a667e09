# ==========================================
# apps/settlements/admin.py
# ==========================================

from django.contrib import admin
from apps.settlements.models import SettlementEntry, SettlementEntrySplit, SettlementSession


class SettlementEntryInline(admin.TabularInline):
    """Read-only view of a session's checklist."""
    model = SettlementEntry
    extra = 0
    fields = ['description', 'entry_type', 'status', 'expected_amount', 'actual_amount', 'payer', 'payment_date']
    readonly_fields = fields
    can_delete = False
    show_change_link = True


@admin.register(SettlementSession)
class SettlementSessionAdmin(admin.ModelAdmin):
    """
    Admin interface for settlement sessions.

    Lifecycle fields are read-only here; transitions go through the API.
    """

    list_display = [
        'group',
        'period_start',
        'period_end',
        'status',
        'is_zero_settlement',
        'confirmed_at',
        'settled_at',
    ]
    list_filter = ['status', 'is_zero_settlement']
    search_fields = ['group__name']
    readonly_fields = [
        'status',
        'created_by',
        'created_at',
        'confirmed_by',
        'confirmed_at',
        'net_transfers',
        'is_zero_settlement',
        'payment_reported_by',
        'payment_reported_at',
        'settled_by',
        'settled_at',
    ]
    inlines = [SettlementEntryInline]
    date_hierarchy = 'created_at'
    ordering = ['-created_at']

    def get_queryset(self, request):
        """Optimize query."""
        qs = super().get_queryset(request)
        return qs.select_related('group')


class SettlementEntrySplitInline(admin.TabularInline):
    model = SettlementEntrySplit
    extra = 0
    fields = ['user', 'amount']


@admin.register(SettlementEntry)
class SettlementEntryAdmin(admin.ModelAdmin):
    list_display = ['description', 'session', 'entry_type', 'status', 'actual_amount', 'payment_date']
    list_filter = ['entry_type', 'status']
    search_fields = ['description']
    inlines = [SettlementEntrySplitInline]
