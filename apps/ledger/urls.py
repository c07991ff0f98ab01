from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'ledger'

router = DefaultRouter()
router.register(r'items', views.RotaItemViewSet, basename='rota-item')
router.register(r'purchases', views.PurchaseViewSet, basename='purchase')
router.register(r'settlements', views.SettlementViewSet, basename='settlement')
router.register(r'households', views.HouseholdLedgerViewSet, basename='household-ledger')

urlpatterns = [
    # GET    /api/ledger/items/                       - Items of my household
    # POST   /api/ledger/items/                       - Add item with rota
    # GET    /api/ledger/items/{id}/                  - Item details
    # POST   /api/ledger/items/{id}/purchase/         - Record a purchase
    # POST   /api/ledger/items/{id}/set_turn/         - Override turn (admin)
    # POST   /api/ledger/items/{id}/reorder/          - Replace rota (admin)
    # POST   /api/ledger/items/{id}/deactivate/       - Retire item (admin)

    # GET    /api/ledger/purchases/                   - Purchase history
    # GET    /api/ledger/purchases/{id}/              - Purchase details

    # GET    /api/ledger/households/{id}/balances/    - Open-period balances
    # POST   /api/ledger/households/{id}/settle/      - Close period (admin)

    # GET    /api/ledger/settlements/                 - Settlement history
    # GET    /api/ledger/settlements/{id}/            - Settlement with lines
    path('', include(router.urls)),
]
