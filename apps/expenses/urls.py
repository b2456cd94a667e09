from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'expenses'

router = DefaultRouter()
router.register(r'payments', views.PaymentViewSet, basename='payment')
router.register(r'rules', views.RecurringRuleViewSet, basename='rule')
router.register(r'categories', views.CategoryViewSet, basename='category')

urlpatterns = [
    # Payment routes
    # GET    /api/expenses/payments/?group=<id>    - List a group's payments
    # POST   /api/expenses/payments/               - Record payment
    # GET    /api/expenses/payments/{id}/          - Payment detail
    # PATCH  /api/expenses/payments/{id}/          - Update unsettled payment
    # DELETE /api/expenses/payments/{id}/          - Delete unsettled payment

    # Recurring rule routes
    # GET    /api/expenses/rules/?group=<id>       - List a group's rules
    # POST   /api/expenses/rules/                  - Create rule
    # PATCH  /api/expenses/rules/{id}/             - Update rule
    # DELETE /api/expenses/rules/{id}/             - Delete rule
    # POST   /api/expenses/rules/{id}/deactivate/  - Stop a rule firing

    # Category routes
    # GET    /api/expenses/categories/?group=<id>  - List a group's categories
    # POST   /api/expenses/categories/             - Create category
    # DELETE /api/expenses/categories/{id}/        - Delete category
    path('', include(router.urls)),
]
