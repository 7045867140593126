"""
Cliente REST de WooCommerce

Este módulo maneja:
1. Verificación de conectividad (system_status)
2. Sondeo de estrategias de paginación para productos
3. Paginación con detección de páginas duplicadas y páginas cortas
4. Descarga de variaciones acotada por tiempo
5. Descarga de órdenes en una ventana de tiempo
"""

import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Callable, Dict, Iterable, List, Optional, Set, Tuple
from urllib.parse import urlencode

import requests
from django.utils import timezone

from .config import SyncEngineConfig
from .exceptions import ConnectivityError, PaginationAmbiguityError, PartialDataError

logger = logging.getLogger(__name__)


API_PREFIX = '/wp-json/wc/v3'


@dataclass(frozen=True)
class PageStrategy:
    """Forma de petición candidata para listar productos"""
    per_page: int
    status: Optional[str] = None
    edit_context: bool = False

    def params(self, page: int) -> Dict[str, Any]:
        params = {'page': page, 'per_page': self.per_page}
        if self.status:
            params['status'] = self.status
        if self.edit_context:
            params['context'] = 'edit'
        return params


# Orden de prioridad: la primera que devuelva un array no vacío se adopta
DEFAULT_PRODUCT_STRATEGIES = (
    PageStrategy(per_page=100, status='any', edit_context=True),
    PageStrategy(per_page=50, status='any', edit_context=True),
    PageStrategy(per_page=20, status='publish'),
    PageStrategy(per_page=10),
)


@dataclass
class StoreCredentials:
    """Credenciales de la tienda (application password de WordPress)"""
    url: str
    username: str
    app_password: str

    @property
    def base_url(self) -> str:
        return normalize_store_url(self.url)

    def to_dict(self) -> Dict[str, str]:
        return {'url': self.url, 'username': self.username, 'app_password': self.app_password}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StoreCredentials':
        return cls(
            url=data.get('url', ''),
            username=data.get('username', ''),
            app_password=data.get('app_password') or data.get('appPassword', ''),
        )


@dataclass
class VariationFetchResult:
    """Resultado de la fase de variaciones"""
    variations: List[Dict[str, Any]] = field(default_factory=list)
    skipped_parent_ids: List[int] = field(default_factory=list)
    truncated: bool = False


def normalize_store_url(url: str) -> str:
    """Agrega https:// si falta y quita la barra final"""
    url = (url or '').strip()
    if url and not url.startswith('http'):
        url = f'https://{url}'
    return url.rstrip('/')


def _item_id(item: Any) -> Any:
    return item.get('id') if isinstance(item, dict) else None


def take_unseen(items: Iterable[Dict[str, Any]], seen_ids: Set[Any]) -> List[Dict[str, Any]]:
    """
    Devuelve los items cuyo id no está en seen_ids y los registra

    Los items sin id se conservan siempre.
    """
    fresh = []
    for item in items:
        item_id = _item_id(item)
        if item_id is None:
            fresh.append(item)
            continue
        if item_id in seen_ids:
            continue
        seen_ids.add(item_id)
        fresh.append(item)
    return fresh


def paginate(
    fetch_page: Callable[[int], Any],
    per_page: int,
    *,
    max_pages: int = 500,
    delay: float = 0,
    sleep: Callable[[float], None] = time.sleep,
    first_page: Optional[List[Dict[str, Any]]] = None,
    seen_ids: Optional[Set[Any]] = None,
    duplicate_guard_from: Optional[int] = 3,
    on_page: Optional[Callable[[int, int], None]] = None,
) -> List[Dict[str, Any]]:
    """
    Recorre páginas hasta una condición de término

    Condiciones, en orden, evaluadas en cada página:
    (a) respuesta vacía o que no es un array;
    (b) todos los ids ya vistos (sólo desde la página duplicate_guard_from);
    (c) página con menos items que per_page.

    Args:
        fetch_page: Función que recibe el número de página y devuelve la respuesta
        per_page: Tamaño de página pedido
        first_page: Respuesta ya obtenida para la página 1 (sondeo)
        seen_ids: Conjunto de ids vistos; se crea uno nuevo si no se entrega

    Returns:
        List con los items sin ids repetidos
    """
    if seen_ids is None:
        seen_ids = set()

    results: List[Dict[str, Any]] = []
    page = 1
    items = first_page if first_page is not None else fetch_page(page)

    while True:
        if not isinstance(items, list) or not items:
            break

        ids = [_item_id(item) for item in items]
        if (
            duplicate_guard_from is not None
            and page >= duplicate_guard_from
            and all(item_id is not None and item_id in seen_ids for item_id in ids)
        ):
            logger.info(f"🔁 Página {page} repite ids ya vistos, fin de la paginación")
            break

        results.extend(take_unseen(items, seen_ids))

        if on_page:
            on_page(page, len(results))

        if len(items) < per_page:
            break

        if page >= max_pages:
            logger.warning(f"⚠️ Límite de {max_pages} páginas alcanzado")
            break

        page += 1
        if delay:
            sleep(delay)
        items = fetch_page(page)

    return results


class WooCommerceClient:
    """
    Cliente de la API REST de WooCommerce (wc/v3) con autenticación básica
    """

    def __init__(
        self,
        credentials: StoreCredentials,
        config: Optional[SyncEngineConfig] = None,
        session=None,
        strategies: Optional[Tuple[PageStrategy, ...]] = None,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.credentials = credentials
        self.config = config or SyncEngineConfig()
        self.strategies = tuple(strategies or DEFAULT_PRODUCT_STRATEGIES)
        self.base_url = credentials.base_url
        self._sleep = sleep
        self._clock = clock
        self._shared_session = session
        self._local = threading.local()

    @property
    def session(self):
        """Sesión HTTP; una por hilo salvo que se inyecte una"""
        if self._shared_session is not None:
            return self._shared_session

        session = getattr(self._local, 'session', None)
        if session is None:
            session = requests.Session()
            session.auth = (self.credentials.username, self.credentials.app_password)
            session.headers.update({
                'User-Agent': self.config.user_agent,
                'Content-Type': 'application/json',
            })
            self._local.session = session
        return session

    def _get(self, endpoint: str, params: Optional[Dict[str, Any]] = None, timeout: Optional[float] = None) -> Any:
        """
        GET contra la API; cualquier falla se traduce a ConnectivityError
        """
        url = f"{self.base_url}{API_PREFIX}{endpoint}"
        timeout = timeout if timeout is not None else self.config.request_timeout

        try:
            response = self.session.get(url, params=params or {}, timeout=timeout)
        except requests.exceptions.Timeout as e:
            raise ConnectivityError(f"Request timeout ({endpoint}): {e}") from e
        except requests.exceptions.RequestException as e:
            raise ConnectivityError(f"Request failed ({endpoint}): {e}") from e

        if response.status_code in (401, 403):
            raise ConnectivityError(
                f"HTTP {response.status_code}: credentials rejected for {endpoint}"
            )
        if not 200 <= response.status_code < 300:
            raise ConnectivityError(f"HTTP {response.status_code}: {response.text[:200]}")

        try:
            return response.json() if response.content else {}
        except ValueError as e:
            raise ConnectivityError(f"Parse error ({endpoint}): {e}") from e

    def check_connection(self) -> Dict[str, Any]:
        """
        Verificación previa: una llamada liviana a system_status

        Raises:
            ConnectivityError: si la tienda no responde o rechaza las credenciales
        """
        try:
            status = self._get('/system_status')
        except ConnectivityError as e:
            raise ConnectivityError(f"Cannot connect to WooCommerce API: {e}") from e

        logger.info(f"✅ Conexión WooCommerce exitosa: {self.base_url}")
        return status

    def probe_strategy(self) -> Tuple[PageStrategy, List[Dict[str, Any]]]:
        """
        Prueba las estrategias en orden contra la página 1

        Returns:
            Tuple con la estrategia adoptada y su primera página

        Raises:
            PaginationAmbiguityError: si ninguna devolvió datos
        """
        for strategy in self.strategies:
            try:
                items = self._get('/products', strategy.params(1))
            except ConnectivityError as e:
                logger.warning(f"⚠️ Estrategia {strategy} falló: {e}")
                continue

            if isinstance(items, list) and items:
                logger.info(f"🧭 Estrategia de paginación adoptada: {strategy}")
                return strategy, items

            logger.info(f"Estrategia {strategy} sin datos, probando la siguiente")

        raise PaginationAmbiguityError(
            f"Ninguna de {len(self.strategies)} estrategias devolvió productos"
        )

    def fetch_products(self, on_progress: Optional[Callable[[int, int], None]] = None) -> List[Dict[str, Any]]:
        """
        Descarga todos los productos visibles para las credenciales

        Una lista vacía significa "extracción no concluyente", no "tienda vacía".
        """
        logger.info("🛒 Iniciando descarga de productos...")

        try:
            strategy, first_page = self.probe_strategy()
        except PaginationAmbiguityError as e:
            logger.warning(f"⚠️ {e}; se devuelven 0 productos")
            return []

        products = paginate(
            lambda page: self._get('/products', strategy.params(page)),
            strategy.per_page,
            max_pages=self.config.max_pages,
            delay=self.config.page_delay,
            sleep=self._sleep,
            first_page=first_page,
            seen_ids=set(),
            on_page=on_progress,
        )

        logger.info(f"🎉 Total productos descargados: {len(products)}")
        return products

    def fetch_categories(self) -> List[Dict[str, Any]]:
        """Descarga todas las categorías de producto"""
        per_page = self.config.category_page_size

        categories = paginate(
            lambda page: self._get('/products/categories', {'page': page, 'per_page': per_page}),
            per_page,
            max_pages=self.config.max_pages,
            delay=self.config.page_delay,
            sleep=self._sleep,
            duplicate_guard_from=None,
        )

        logger.info(f"📂 Total categorías descargadas: {len(categories)}")
        return categories

    def _fetch_parent_variations(self, parent_id: int) -> List[Dict[str, Any]]:
        """
        Variaciones de un producto padre dentro de su propio plazo

        Raises:
            PartialDataError: por timeout o error de la API
        """
        deadline = self._clock() + self.config.variation_timeout
        per_page = self.config.variation_page_size

        def fetch_page(page):
            remaining = deadline - self._clock()
            if remaining <= 0:
                raise PartialDataError(parent_id, f"timeout after {self.config.variation_timeout}s")
            return self._get(
                f'/products/{parent_id}/variations',
                {'page': page, 'per_page': per_page},
                timeout=min(self.config.request_timeout, remaining),
            )

        try:
            variations = paginate(
                fetch_page,
                per_page,
                max_pages=self.config.max_pages,
                delay=self.config.page_delay,
                sleep=self._sleep,
                duplicate_guard_from=None,
            )
        except ConnectivityError as e:
            raise PartialDataError(parent_id, str(e)) from e

        return [
            {**variation, 'parent_id': parent_id, 'type': 'variation'}
            for variation in variations
        ]

    def fetch_variations(
        self,
        variable_products: List[Dict[str, Any]],
        on_progress: Optional[Callable[[int, int], None]] = None,
    ) -> VariationFetchResult:
        """
        Descarga variaciones padre por padre, secuencialmente

        Un padre lento o roto se omite; si se agota el presupuesto total
        de la fase, los padres restantes se truncan.
        """
        result = VariationFetchResult()
        total = len(variable_products)
        started = self._clock()

        logger.info(f"🔄 Descargando variaciones de {total} productos variables...")

        for index, product in enumerate(variable_products):
            if self._clock() - started > self.config.variation_budget:
                result.truncated = True
                logger.warning(
                    f"⏱️ Presupuesto de variaciones agotado; "
                    f"{total - index} productos sin variaciones"
                )
                break

            parent_id = product.get('id')
            try:
                variations = self._fetch_parent_variations(parent_id)
                result.variations.extend(variations)
                logger.info(f"✅ {len(variations)} variaciones para producto {parent_id}")
            except PartialDataError as e:
                result.skipped_parent_ids.append(parent_id)
                logger.warning(f"⚠️ Variaciones omitidas: {e}")

            if on_progress:
                on_progress(index + 1, total)

            if self.config.page_delay and index + 1 < total:
                self._sleep(self.config.page_delay)

        logger.info(f"🎉 Total variaciones descargadas: {len(result.variations)}")
        return result

    def fetch_orders(self, now=None) -> List[Dict[str, Any]]:
        """
        Órdenes de la ventana reciente, de la más nueva a la más antigua
        """
        now = now or timezone.now()
        after = (now - timedelta(days=self.config.order_window_days)).strftime('%Y-%m-%dT%H:%M:%S')
        per_page = self.config.order_page_size

        def fetch_page(page):
            return self._get('/orders', {
                'page': page,
                'per_page': per_page,
                'after': after,
                'orderby': 'date',
                'order': 'desc',
            })

        orders = paginate(
            fetch_page,
            per_page,
            max_pages=self.config.max_pages,
            delay=self.config.page_delay,
            sleep=self._sleep,
            duplicate_guard_from=None,
        )

        logger.info(f"🧾 Total órdenes descargadas: {len(orders)}")
        return orders


def build_authorization_url(store_url: str, redirect_uri: str, session=None, timeout: float = 10) -> str:
    """
    URL de autorización de application passwords de WordPress

    Raises:
        ConnectivityError: si el sitio no responde o no expone application passwords
    """
    base_url = normalize_store_url(store_url)
    http = session or requests

    try:
        response = http.get(f"{base_url}/wp-json", timeout=timeout)
        response.raise_for_status()
        index = response.json()
    except requests.exceptions.RequestException as e:
        raise ConnectivityError(f"Cannot connect to WordPress site: {e}") from e
    except ValueError as e:
        raise ConnectivityError('Invalid response from WordPress site') from e

    if not isinstance(index, dict):
        raise ConnectivityError('Invalid response from WordPress site')

    passwords = (index.get('authentication') or {}).get('application-passwords')
    endpoint = ((passwords or {}).get('endpoints') or {}).get('authorization')
    if not endpoint:
        raise ConnectivityError('Application Passwords not available on this site')

    params = urlencode({
        'app_name': 'StoreMirror - WooCommerce Catalog',
        'app_id': str(uuid.uuid4()),
        'success_url': f"{redirect_uri}?{urlencode({'store_url': store_url})}",
        'reject_url': f"{redirect_uri}?error=access_denied",
    })
    return f"{endpoint}?{params}"
