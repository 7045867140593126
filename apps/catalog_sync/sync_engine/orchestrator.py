"""
Orquestador de la sincronización del catálogo

Máquina de estados: started -> processing -> completed | failed.
Extrae, normaliza, indexa, calcula analítica y persiste, actualizando el
documento de estado después de cada etapa.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from django.utils import timezone

from .analytics import compute_analytics
from .config import SyncEngineConfig, get_engine_config
from .indexes import build_indexes
from .normalizer import normalize_catalog, normalize_categories, normalize_orders
from .storage import ARCHITECTURE_VERSION, SnapshotStorage, get_snapshot_storage
from .woo_client import StoreCredentials, VariationFetchResult, WooCommerceClient

logger = logging.getLogger(__name__)


STARTED = 'started'
PROCESSING = 'processing'
COMPLETED = 'completed'
FAILED = 'failed'


class StatusReporter:
    """
    Notificación best-effort del progreso

    Una falla al escribir el estado se registra en el log y se descarta;
    nunca interrumpe la sincronización. El progreso nunca retrocede.
    """

    def __init__(self, storage: SnapshotStorage, owner_id: str, sync_id: str,
                 initial: Optional[Dict[str, Any]] = None, clock: Callable = timezone.now):
        self.storage = storage
        self.owner_id = owner_id
        self.sync_id = sync_id
        self._clock = clock
        self._lock = threading.Lock()

        self.state = {
            'sync_id': sync_id,
            'status': STARTED,
            'progress': 0,
            'message': '',
            'started_at': clock().isoformat(),
        }
        if initial and initial.get('sync_id') == sync_id:
            self.state.update(initial)

    def notify(self, **update) -> None:
        with self._lock:
            if 'progress' in update:
                update['progress'] = max(int(update['progress']), int(self.state.get('progress') or 0))

            self.state.update(update)
            self.state['last_updated'] = self._clock().isoformat()
            snapshot = dict(self.state)

            try:
                self.storage.write_status(self.owner_id, snapshot)
            except Exception as e:
                logger.warning(f"⚠️ No se pudo actualizar el estado de sync {self.sync_id}: {e}")
                return

        logger.info(f"📊 Estado de sync: {snapshot['status']} ({snapshot['progress']}%) {snapshot.get('message', '')}")


@dataclass
class RawCatalog:
    """Datos crudos extraídos de la tienda"""
    products: List[Dict[str, Any]] = field(default_factory=list)
    categories: List[Dict[str, Any]] = field(default_factory=list)
    variations: VariationFetchResult = field(default_factory=VariationFetchResult)
    orders: List[Dict[str, Any]] = field(default_factory=list)


class SyncOrchestrator:
    """
    Ejecuta una sincronización completa para un usuario
    """

    def __init__(
        self,
        owner_id: str,
        sync_id: str,
        credentials: StoreCredentials,
        storage: Optional[SnapshotStorage] = None,
        config: Optional[SyncEngineConfig] = None,
        client: Optional[WooCommerceClient] = None,
        clock: Callable = timezone.now,
    ):
        self.owner_id = str(owner_id)
        self.sync_id = sync_id
        self.credentials = credentials
        self.config = config or get_engine_config()
        self.storage = storage or get_snapshot_storage(self.config)
        self.client = client
        self._clock = clock

    def _existing_status(self) -> Optional[Dict[str, Any]]:
        try:
            return self.storage.read_status(self.owner_id)
        except Exception as e:
            logger.warning(f"⚠️ No se pudo leer el estado previo de {self.owner_id}: {e}")
            return None

    def run(self) -> Dict[str, Any]:
        """
        Corre la sincronización; nunca lanza excepción

        Returns:
            Dict con success, sync_id y result o error
        """
        existing = self._existing_status()
        # Sólo se omite una sync ya completada con el mismo sync_id
        if existing and existing.get('sync_id') == self.sync_id and existing.get('status') == COMPLETED:
            logger.info(f"⏭️ Sync {self.sync_id} ya completada para {self.owner_id}, no se vuelve a ejecutar")
            return {'success': True, 'skipped': True, 'sync_id': self.sync_id}

        reporter = StatusReporter(self.storage, self.owner_id, self.sync_id, initial=existing, clock=self._clock)
        started = time.monotonic()

        logger.info(f"🚀 Iniciando sync {self.sync_id} para usuario {self.owner_id} ({self.credentials.base_url})")

        try:
            raw = self.extract(reporter)

            reporter.notify(status=PROCESSING, progress=85, message='Normalizing data structure...')
            products = normalize_catalog(raw.products, raw.variations.variations)
            categories = normalize_categories(raw.categories)
            orders = normalize_orders(raw.orders)

            reporter.notify(status=PROCESSING, progress=90, message='Building indexes and analytics...')
            now = self._clock()
            indexes = build_indexes(products, now=now)
            analytics = compute_analytics(orders, now=now, revenue_statuses=self.config.revenue_statuses)

            reporter.notify(status=PROCESSING, progress=95, message='Saving snapshot files...')
            files = self.persist(products, categories, orders, indexes, analytics, now)

            summary = self._summary(raw, products, categories, orders, files, started, now)
            reporter.notify(
                status=COMPLETED,
                progress=100,
                message='Sync completed successfully' if products else
                        'Sync completed, but the store returned no products',
                completed_at=self._clock().isoformat(),
                result=summary,
            )
            logger.info(f"🎉 Sync {self.sync_id} completada en {summary['duration_seconds']}s")
            return {'success': True, 'sync_id': self.sync_id, 'result': summary}

        except Exception as e:
            logger.exception(f"❌ Sync {self.sync_id} falló: {e}")
            reporter.notify(
                status=FAILED,
                message=f"Sync failed: {e}",
                failed_at=self._clock().isoformat(),
                error=str(e),
            )
            return {'success': False, 'sync_id': self.sync_id, 'error': str(e)}

    def extract(self, reporter: StatusReporter) -> RawCatalog:
        """
        Verificación previa y descarga de productos, categorías, variaciones y órdenes
        """
        client = self.client or WooCommerceClient(self.credentials, self.config)
        raw = RawCatalog()

        reporter.notify(status=PROCESSING, progress=5, message='Testing WooCommerce connection...')
        client.check_connection()

        reporter.notify(status=PROCESSING, progress=10, message='Fetching products and categories...')

        def on_product_page(page, count):
            reporter.notify(
                status=PROCESSING,
                progress=10 + min(page / 100, 1) * 50,
                message=f'Fetching products... ({count} so far)',
            )

        with ThreadPoolExecutor(max_workers=2) as executor:
            products_future = executor.submit(client.fetch_products, on_product_page)
            categories_future = executor.submit(client.fetch_categories)
            raw.products = products_future.result()
            raw.categories = categories_future.result()

        reporter.notify(status=PROCESSING, progress=60, message='Fetching product variations...')

        def on_variation_parent(done, total):
            reporter.notify(
                status=PROCESSING,
                progress=60 + (done / total) * 20 if total else 80,
                message=f'Fetching variations... ({done}/{total})',
            )

        variable_products = [p for p in raw.products if p.get('type') == 'variable']
        raw.variations = client.fetch_variations(variable_products, on_variation_parent)

        reporter.notify(status=PROCESSING, progress=80, message='Fetching orders...')
        raw.orders = client.fetch_orders(now=self._clock())

        return raw

    def persist(self, products, categories, orders, indexes, analytics, now) -> List[str]:
        """
        Escribe cada documento derivado y las credenciales usadas

        Raises:
            PersistenceError: en la primera escritura que falle
        """
        timestamp = now.isoformat()
        version = {'sync_version': ARCHITECTURE_VERSION}

        documents = [
            ('products', {
                'products': products,
                'total_count': len(products),
                'last_updated': timestamp,
                **version,
            }),
            ('categories', {
                **categories,
                'total_count': len(categories['categories']),
                'last_updated': timestamp,
                **version,
            }),
            ('orders', {
                'orders': orders,
                'total_count': len(orders),
                'last_updated': timestamp,
                **version,
            }),
            ('index_by_category', {**indexes['by_category'], **version}),
            ('index_by_status', {**indexes['by_status'], **version}),
            ('index_by_type', {**indexes['by_type'], **version}),
            ('index_search', {**indexes['search'], **version}),
            ('analytics', {**analytics, **version}),
            ('store_metadata', {
                'store_info': {
                    'store_url': self.credentials.base_url,
                    'total_products': len(products),
                    'total_categories': len(categories['categories']),
                    'total_orders': len(orders),
                },
                'analytics': {
                    'total_orders': analytics['total_orders'],
                    'total_revenue': analytics['total_revenue'],
                    'average_order_value': analytics['average_order_value'],
                    'current_month': analytics['current_month'],
                },
                'sync_status': {
                    'sync_id': self.sync_id,
                    'last_sync': timestamp,
                    'status': COMPLETED,
                    **version,
                },
                'architecture_version': ARCHITECTURE_VERSION,
            }),
        ]

        files = [self.storage.write(self.owner_id, name, data) for name, data in documents]
        self.storage.write(self.owner_id, 'credentials', self.credentials.to_dict())
        return files

    def _summary(self, raw: RawCatalog, products, categories, orders, files, started, now) -> Dict[str, Any]:
        variation_count = sum(1 for p in products.values() if p.get('type') == 'variation')
        return {
            'products': len(products) - variation_count,
            'variations': variation_count,
            'categories': len(categories['categories']),
            'orders': len(orders),
            'files': files,
            'skipped_variation_parents': list(raw.variations.skipped_parent_ids),
            'variations_truncated': raw.variations.truncated,
            'extraction_inconclusive': not raw.products,
            'duration_seconds': round(time.monotonic() - started, 1),
            'architecture_version': ARCHITECTURE_VERSION,
            'sync_completed_at': now.isoformat(),
        }
