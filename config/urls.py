"""Root URL map: auth, households and the ledger under /api/, plus docs and admin."""
from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularSwaggerView
from rest_framework_simplejwt.views import TokenRefreshView

from config.views import health_check

api_patterns = [
    path('health/', health_check, name='health-check'),
    path('auth/', include('apps.accounts.urls')),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='token-refresh'),
    path('households/', include('apps.households.urls')),
    path('ledger/', include('apps.ledger.urls')),
    path('schema/', SpectacularAPIView.as_view(), name='api-schema'),
    path('docs/', SpectacularSwaggerView.as_view(url_name='api-schema'), name='api-docs'),
]

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', include(api_patterns)),
]

handler404 = 'config.views.error_404'
handler500 = 'config.views.error_500'
