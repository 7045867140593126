"""Configuración de la app de sincronización del catálogo"""

from django.apps import AppConfig


class CatalogSyncConfig(AppConfig):
    """Configuración de la aplicación de sincronización del catálogo"""

    default_auto_field = 'django.db.models.BigAutoField'
    name = 'apps.catalog_sync'
    verbose_name = 'Sincronización de catálogo WooCommerce'
