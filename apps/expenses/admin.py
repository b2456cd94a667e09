# ==========================================
# apps/expenses/admin.py
# ==========================================

from django.contrib import admin
from apps.expenses.models import Category, Payment, PaymentSplit, RecurringRule, RecurringRuleSplit


@admin.register(Category)
class CategoryAdmin(admin.ModelAdmin):
    list_display = ['name', 'group', 'icon', 'color', 'created_at']
    search_fields = ['name', 'group__name']
    ordering = ['group', 'name']


class PaymentSplitInline(admin.TabularInline):
    """Inline admin for payment splits."""
    model = PaymentSplit
    extra = 0
    fields = ['user', 'amount']


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    """Admin interface for payments."""

    list_display = [
        'description',
        'group',
        'payer',
        'amount',
        'payment_date',
        'is_settled',
    ]
    list_filter = ['payment_date', 'group']
    search_fields = ['description', 'payer__email', 'group__name']
    readonly_fields = ['settlement', 'created_by', 'created_at', 'updated_at']
    inlines = [PaymentSplitInline]
    date_hierarchy = 'payment_date'
    ordering = ['-payment_date']

    def is_settled(self, obj):
        return obj.is_settled
    is_settled.boolean = True
    is_settled.short_description = 'Settled'

    def get_queryset(self, request):
        """Optimize query."""
        qs = super().get_queryset(request)
        return qs.select_related('group', 'payer', 'category')


class RecurringRuleSplitInline(admin.TabularInline):
    model = RecurringRuleSplit
    extra = 0
    fields = ['user', 'amount', 'percentage', 'position']


@admin.register(RecurringRule)
class RecurringRuleAdmin(admin.ModelAdmin):
    """Admin interface for recurring rules."""

    list_display = [
        'description',
        'group',
        'default_amount',
        'is_variable',
        'day_of_month',
        'interval_months',
        'default_payer',
        'is_active',
    ]
    list_filter = ['is_active', 'is_variable', 'split_type']
    search_fields = ['description', 'group__name']
    readonly_fields = ['created_at', 'updated_at']
    inlines = [RecurringRuleSplitInline]
