"""
Configuración del motor de sincronización

Adapta el dict CATALOG_SYNC de Django settings a un dataclass que reciben
los componentes del motor; así los tests pueden pasar configuraciones explícitas.
"""

from dataclasses import dataclass, field
from typing import Tuple

from django.conf import settings


DEFAULT_REVENUE_STATUSES = ('completed', 'processing', 'on-hold')


@dataclass
class SyncEngineConfig:
    """Parámetros de extracción y persistencia"""
    request_timeout: float = 30
    page_delay: float = 0.15
    max_pages: int = 500
    variation_timeout: float = 30
    variation_budget: float = 300
    order_window_days: int = 365
    order_page_size: int = 100
    category_page_size: int = 100
    variation_page_size: int = 100
    snapshot_storage: str = 'catalog_snapshots'
    user_agent: str = 'StoreMirror/2.0'
    revenue_statuses: Tuple[str, ...] = field(default=DEFAULT_REVENUE_STATUSES)

    @classmethod
    def from_django_settings(cls) -> 'SyncEngineConfig':
        """
        Crear configuración desde Django settings
        """
        options = getattr(settings, 'CATALOG_SYNC', {})

        return cls(
            request_timeout=float(options.get('REQUEST_TIMEOUT', 30)),
            page_delay=float(options.get('PAGE_DELAY', 0.15)),
            max_pages=int(options.get('MAX_PAGES', 500)),
            variation_timeout=float(options.get('VARIATION_TIMEOUT', 30)),
            variation_budget=float(options.get('VARIATION_BUDGET', 300)),
            order_window_days=int(options.get('ORDER_WINDOW_DAYS', 365)),
            order_page_size=int(options.get('ORDER_PAGE_SIZE', 100)),
            category_page_size=int(options.get('CATEGORY_PAGE_SIZE', 100)),
            variation_page_size=int(options.get('VARIATION_PAGE_SIZE', 100)),
            snapshot_storage=options.get('SNAPSHOT_STORAGE', 'catalog_snapshots'),
            user_agent=options.get('USER_AGENT', 'StoreMirror/2.0'),
            revenue_statuses=tuple(options.get('REVENUE_STATUSES', DEFAULT_REVENUE_STATUSES)),
        )


def get_engine_config() -> SyncEngineConfig:
    """
    Obtiene la configuración del motor para Django
    """
    return SyncEngineConfig.from_django_settings()
