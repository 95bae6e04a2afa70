"""
URL configuration for the backoffice project.

Routes the online fulfillment API and the JWT token endpoints.
"""
from django.contrib import admin
from django.http import JsonResponse
from django.urls import path, include
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView


@csrf_exempt
@require_http_methods(["GET"])
def api_root(request):
    """API root view with available endpoints."""
    return JsonResponse({
        'message': 'Backoffice API',
        'version': '1.0.0',
        'endpoints': {
            'authentication': {
                'token': '/api/auth/token/',
                'token_refresh': '/api/auth/token/refresh/',
            },
            'online_fulfillment': {
                'orders': '/api/fulfillment/orders/',
                'shipments': '/api/fulfillment/shipments/',
                'vehicles': '/api/fulfillment/vehicles/',
                'drivers': '/api/fulfillment/drivers/',
            },
        }
    })


urlpatterns = [
    path("admin/", admin.site.urls),

    # API endpoints
    path('api/', api_root, name='api-root'),
    path('api/fulfillment/', include('online_fulfillment.urls')),
    path('api/auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('api/auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
]
