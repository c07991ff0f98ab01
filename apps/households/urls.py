from django.urls import path, include
from rest_framework.routers import DefaultRouter
from . import views

app_name = 'households'

router = DefaultRouter()
router.register(r'', views.HouseholdViewSet, basename='household')

urlpatterns = [
    # GET    /api/households/                         - List my household(s)
    # POST   /api/households/                         - Create household
    # GET    /api/households/{id}/                    - Household details
    # PATCH  /api/households/{id}/                    - Rename (admin)
    # GET    /api/households/{id}/members/            - List members
    # POST   /api/households/{id}/join/               - Join with invite code
    # POST   /api/households/{id}/leave/              - Leave household
    # POST   /api/households/{id}/remove_member/      - Remove member (admin)
    # POST   /api/households/{id}/transfer_admin/     - Hand over admin role (admin)
    # POST   /api/households/{id}/rent_share/         - Set base rent share (admin)
    # POST   /api/households/{id}/regenerate_invite/  - New invite code (admin)
    path('', include(router.urls)),
]
