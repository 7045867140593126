"""
Tests del cliente REST de WooCommerce.
"""

from datetime import datetime, timezone as dt_timezone

import requests
from django.test import SimpleTestCase

from apps.catalog_sync.sync_engine.config import SyncEngineConfig
from apps.catalog_sync.sync_engine.exceptions import ConnectivityError
from apps.catalog_sync.sync_engine.woo_client import (
    PageStrategy,
    StoreCredentials,
    WooCommerceClient,
    build_authorization_url,
    normalize_store_url,
    paginate,
)

from .fakes import FakeClock, FakeResponse, FakeSession, make_products


CREDENTIALS = StoreCredentials(url='tienda.example.com/', username='admin', app_password='abcd efgh')


def make_client(handler, strategies=None, clock=None, **config):
    session = FakeSession(handler)
    client = WooCommerceClient(
        CREDENTIALS,
        SyncEngineConfig(page_delay=0, **config),
        session=session,
        strategies=strategies,
        clock=clock or FakeClock(),
    )
    return client, session


class NormalizeStoreUrlTestCase(SimpleTestCase):
    """Tests para normalize_store_url."""

    def test_adds_scheme_and_strips_slash(self):
        self.assertEqual(normalize_store_url('tienda.example.com/'), 'https://tienda.example.com')

    def test_keeps_existing_scheme(self):
        self.assertEqual(normalize_store_url('http://tienda.local'), 'http://tienda.local')

    def test_credentials_accept_camel_case_password(self):
        credentials = StoreCredentials.from_dict({'url': 'x.cl', 'username': 'u', 'appPassword': 'p'})
        self.assertEqual(credentials.app_password, 'p')
        self.assertEqual(credentials.base_url, 'https://x.cl')


class PaginateTestCase(SimpleTestCase):
    """Tests para la paginación genérica."""

    def test_stops_on_short_page(self):
        pages = {1: make_products(1, 20), 2: make_products(21, 20), 3: make_products(41, 5)}
        requested = []

        def fetch(page):
            requested.append(page)
            return pages[page]

        items = paginate(fetch, 20)

        self.assertEqual(len(items), 45)
        self.assertEqual(requested, [1, 2, 3])

    def test_stops_on_non_list_response(self):
        items = paginate(lambda page: {'code': 'rest_error'} if page == 2 else make_products(1, 10), 10)
        self.assertEqual(len(items), 10)

    def test_respects_max_pages(self):
        requested = []

        def fetch(page):
            requested.append(page)
            return make_products(page * 100, 10)

        items = paginate(fetch, 10, max_pages=3)

        self.assertEqual(requested, [1, 2, 3])
        self.assertEqual(len(items), 30)

    def test_duplicate_guard_only_from_page_three(self):
        # La página 2 repite la 1: aún no se aplica la guarda, sólo se deduplica
        pages = {1: make_products(1, 10), 2: make_products(1, 10), 3: make_products(1, 10)}
        requested = []

        def fetch(page):
            requested.append(page)
            return pages[page]

        items = paginate(fetch, 10)

        self.assertEqual(requested, [1, 2, 3])
        self.assertEqual([item['id'] for item in items], list(range(1, 11)))

    def test_sleeps_between_pages(self):
        sleeps = []
        pages = {1: make_products(1, 5), 2: make_products(6, 2)}

        paginate(lambda page: pages[page], 5, delay=0.15, sleep=sleeps.append)

        self.assertEqual(sleeps, [0.15])


class FetchProductsTestCase(SimpleTestCase):
    """Tests para la descarga de productos."""

    def test_collects_all_pages(self):
        pages = {1: make_products(1, 20), 2: make_products(21, 20), 3: make_products(41, 20), 4: []}

        def handler(endpoint, params):
            return pages[params['page']]

        client, session = make_client(handler, strategies=(PageStrategy(per_page=20),))
        products = client.fetch_products()

        self.assertEqual(len(products), 60)
        self.assertEqual(len({p['id'] for p in products}), 60)
        self.assertEqual([p['page'] for p in session.calls_to('/products')], [1, 2, 3, 4])

    def test_repeated_page_stops_pagination(self):
        # Tienda que ignora el parámetro page a partir de la página 2
        def handler(endpoint, params):
            if params['page'] == 1:
                return make_products(1, 20)
            return make_products(21, 20)

        client, session = make_client(handler, strategies=(PageStrategy(per_page=20),))
        products = client.fetch_products()

        self.assertEqual(len(products), 40)
        self.assertEqual([p['page'] for p in session.calls_to('/products')], [1, 2, 3])

    def test_probe_falls_back_to_next_strategy(self):
        def handler(endpoint, params):
            if params.get('status') == 'any' and params['per_page'] == 100:
                return FakeResponse(400, {'code': 'woocommerce_rest_invalid_param'})
            if params.get('status') == 'any':
                return []
            return make_products(1, 7)

        client, session = make_client(handler)
        products = client.fetch_products()

        self.assertEqual(len(products), 7)
        probes = session.calls_to('/products')
        self.assertEqual(probes[0], {'page': 1, 'per_page': 100, 'status': 'any', 'context': 'edit'})
        self.assertEqual(probes[1], {'page': 1, 'per_page': 50, 'status': 'any', 'context': 'edit'})
        self.assertEqual(probes[2], {'page': 1, 'per_page': 20, 'status': 'publish'})
        self.assertEqual(len(probes), 3)

    def test_no_strategy_with_data_returns_empty(self):
        client, session = make_client(lambda endpoint, params: [])

        self.assertEqual(client.fetch_products(), [])
        self.assertEqual(len(session.calls_to('/products')), 4)

    def test_error_after_adopted_strategy_is_fatal(self):
        def handler(endpoint, params):
            if params['page'] == 1:
                return make_products(1, 20)
            return FakeResponse(500, {'message': 'Internal Server Error'})

        client, session = make_client(handler, strategies=(PageStrategy(per_page=20), PageStrategy(per_page=10)))

        with self.assertRaises(ConnectivityError) as ctx:
            client.fetch_products()

        self.assertIn('HTTP 500', str(ctx.exception))
        self.assertEqual([(p['page'], p['per_page']) for p in session.calls_to('/products')], [(1, 20), (2, 20)])

    def test_reports_progress_per_page(self):
        progress = []
        pages = {1: make_products(1, 10), 2: make_products(11, 3)}
        client, _ = make_client(lambda e, p: pages[p['page']], strategies=(PageStrategy(per_page=10),))

        client.fetch_products(on_progress=lambda page, count: progress.append((page, count)))

        self.assertEqual(progress, [(1, 10), (2, 13)])


class FetchCategoriesAndOrdersTestCase(SimpleTestCase):
    """Tests para categorías y órdenes."""

    def test_categories_paged_until_short_page(self):
        pages = {1: make_products(1, 100), 2: make_products(101, 4)}
        client, session = make_client(lambda e, p: pages[p['page']])

        categories = client.fetch_categories()

        self.assertEqual(len(categories), 104)
        self.assertEqual(session.calls_to('/products/categories')[0], {'page': 1, 'per_page': 100})

    def test_orders_use_time_window(self):
        client, session = make_client(lambda e, p: make_products(1, 3), order_window_days=30)
        now = datetime(2024, 3, 31, 12, 0, tzinfo=dt_timezone.utc)

        orders = client.fetch_orders(now=now)

        self.assertEqual(len(orders), 3)
        params = session.calls_to('/orders')[0]
        self.assertEqual(params['after'], '2024-03-01T12:00:00')
        self.assertEqual(params['orderby'], 'date')
        self.assertEqual(params['order'], 'desc')


class FetchVariationsTestCase(SimpleTestCase):
    """Tests para la fase de variaciones."""

    def test_failing_parent_is_skipped(self):
        def handler(endpoint, params):
            if endpoint == '/products/2/variations':
                return FakeResponse(500, {'message': 'boom'})
            return [{'id': 1000, 'attributes': []}]

        client, _ = make_client(handler)
        result = client.fetch_variations([{'id': 1}, {'id': 2}, {'id': 3}])

        self.assertEqual(result.skipped_parent_ids, [2])
        self.assertFalse(result.truncated)
        self.assertEqual([v['parent_id'] for v in result.variations], [1, 3])
        self.assertTrue(all(v['type'] == 'variation' for v in result.variations))

    def test_slow_parent_exceeds_its_timeout(self):
        clock = FakeClock()

        def handler(endpoint, params):
            clock.advance(6)
            return make_products(params['page'] * 100, 2)

        client, _ = make_client(handler, clock=clock, variation_timeout=5, variation_page_size=2,
                                variation_budget=1000)
        result = client.fetch_variations([{'id': 7}])

        self.assertEqual(result.skipped_parent_ids, [7])
        self.assertEqual(result.variations, [])

    def test_budget_exhaustion_truncates_remaining_parents(self):
        clock = FakeClock()

        def handler(endpoint, params):
            clock.advance(6)
            return []

        client, session = make_client(handler, clock=clock, variation_budget=10)
        result = client.fetch_variations([{'id': 1}, {'id': 2}, {'id': 3}, {'id': 4}])

        self.assertTrue(result.truncated)
        self.assertEqual(len(session.calls), 2)
        self.assertEqual(result.skipped_parent_ids, [])


class ConnectivityTestCase(SimpleTestCase):
    """Tests para la verificación previa y la traducción de errores."""

    def test_rejected_credentials(self):
        client, _ = make_client(lambda e, p: FakeResponse(401, {'code': 'woocommerce_rest_cannot_view'}))

        with self.assertRaises(ConnectivityError) as ctx:
            client.check_connection()

        self.assertIn('Cannot connect to WooCommerce API', str(ctx.exception))

    def test_network_error(self):
        def handler(endpoint, params):
            raise requests.exceptions.ConnectionError('connection refused')

        client, _ = make_client(handler)

        with self.assertRaises(ConnectivityError):
            client.check_connection()

    def test_invalid_json(self):
        client, _ = make_client(lambda e, p: FakeResponse(200, raw='<html>WordPress</html>'))

        with self.assertRaises(ConnectivityError):
            client.check_connection()

    def test_successful_preflight(self):
        client, session = make_client(lambda e, p: {'environment': {'version': '8.0'}})

        self.assertEqual(client.check_connection(), {'environment': {'version': '8.0'}})
        self.assertEqual(session.calls[0][0], '/system_status')


class AuthorizationUrlTestCase(SimpleTestCase):
    """Tests para la URL de autorización de WordPress."""

    def test_builds_url_from_discovery(self):
        index = {'authentication': {'application-passwords': {
            'endpoints': {'authorization': 'https://tienda.cl/wp-admin/authorize-application.php'},
        }}}
        session = FakeSession(lambda e, p: index)

        url = build_authorization_url('tienda.cl', 'https://app.example.com/callback', session=session)

        self.assertTrue(url.startswith('https://tienda.cl/wp-admin/authorize-application.php?'))
        self.assertIn('success_url=', url)
        self.assertIn('reject_url=', url)
        self.assertEqual(session.calls[0][0], '/wp-json')

    def test_site_without_application_passwords(self):
        session = FakeSession(lambda e, p: {'authentication': {}})

        with self.assertRaises(ConnectivityError):
            build_authorization_url('tienda.cl', 'https://app.example.com', session=session)

    def test_unexpected_discovery_payloads(self):
        partial = {'authentication': {'application-passwords': {'endpoints': {}}}}

        for payload in ([{'name': 'WordPress'}], partial):
            with self.subTest(payload=payload):
                session = FakeSession(lambda e, p: payload)

                with self.assertRaises(ConnectivityError):
                    build_authorization_url('tienda.cl', 'https://app.example.com', session=session)
