from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'settlements'

router = DefaultRouter()
router.register(r'sessions', views.SettlementSessionViewSet, basename='session')
router.register(r'entries', views.SettlementEntryViewSet, basename='entry')

urlpatterns = [
    # Session routes
    # GET    /api/settlements/sessions/?group=<id>          - List sessions
    # POST   /api/settlements/sessions/                     - Open draft (checklist generated)
    # GET    /api/settlements/sessions/{id}/                - Session with entries
    # DELETE /api/settlements/sessions/{id}/                - Delete draft (creator)
    # POST   /api/settlements/sessions/{id}/generate/       - Rebuild checklist from scratch
    # POST   /api/settlements/sessions/{id}/refresh/        - Reconcile checklist
    # POST   /api/settlements/sessions/{id}/entries/        - Add manual entry
    # POST   /api/settlements/sessions/{id}/confirm/        - draft -> pending_payment / settled
    # POST   /api/settlements/sessions/{id}/report_payment/ - Payer reports transfers sent
    # POST   /api/settlements/sessions/{id}/confirm_receipt/ - Recipient confirms, settled
    # GET    /api/settlements/sessions/suggest/?group=<id>  - Suggested next period
    # GET    /api/settlements/sessions/balances/?group=<id> - Balances of unsettled payments
    # POST   /api/settlements/sessions/consolidate/         - Net several pending sessions
    # POST   /api/settlements/sessions/settle_consolidated/ - Settle several sessions at once

    # Entry routes
    # PATCH  /api/settlements/entries/{id}/                 - Fill / skip / reopen
    # PUT    /api/settlements/entries/{id}/splits/          - Replace custom split
    # DELETE /api/settlements/entries/{id}/                 - Delete manual entry
    path('', include(router.urls)),
]
