"""
URLs para la API de sincronización del catálogo
"""

from django.urls import path, include
from rest_framework.routers import DefaultRouter
from .views import CatalogSyncViewSet, CatalogDataViewSet

# Router para ViewSets
router = DefaultRouter()
router.register(r'sync', CatalogSyncViewSet, basename='catalog-sync')
router.register(r'data', CatalogDataViewSet, basename='catalog-data')

app_name = 'catalog_sync'

urlpatterns = [
    path('', include(router.urls)),
]
