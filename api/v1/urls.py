"""URL Configuration for API v1."""

from django.urls import path, include
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

urlpatterns = [
    path('auth/token/', TokenObtainPairView.as_view(), name='token_obtain_pair'),
    path('auth/token/refresh/', TokenRefreshView.as_view(), name='token_refresh'),
    path('catalog-sync/', include('apps.catalog_sync.urls')),  # 🛒 Mirror del catálogo WooCommerce
]
