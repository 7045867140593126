"""
Tests de lectura del snapshot persistido.
"""

from django.core.files.storage import InMemoryStorage
from django.test import SimpleTestCase

from apps.catalog_sync.sync_engine.reader import SnapshotNotFound, SnapshotReader, parse_category_key
from apps.catalog_sync.sync_engine.storage import SnapshotStorage

from .fakes import NOW, synced_storage


class ParseCategoryKeyTestCase(SimpleTestCase):
    """Tests para parse_category_key."""

    def test_formats(self):
        self.assertEqual(parse_category_key('category-12'), '12')
        self.assertEqual(parse_category_key(12), '12')
        self.assertEqual(parse_category_key('uncategorized'), 'uncategorized')


class SnapshotReaderTestCase(SimpleTestCase):
    """Tests para SnapshotReader sobre un snapshot completo."""

    @classmethod
    def setUpClass(cls):
        super().setUpClass()
        cls.storage = synced_storage()

    def setUp(self):
        self.reader = SnapshotReader(self.storage, '42')

    def test_check_data(self):
        result = self.reader.check_data()

        self.assertTrue(result['has_data'])
        self.assertEqual(set(result['available_categories']), {'category-10', 'uncategorized'})
        self.assertEqual(result['metadata']['total_products'], 3)
        self.assertEqual(result['metadata']['total_categories'], 2)
        self.assertEqual(result['metadata']['last_sync'], NOW.isoformat())

    def test_categories_with_counts(self):
        categories = {c['name']: c for c in self.reader.categories()}

        self.assertEqual(categories['Ropa']['product_count'], 1)
        self.assertEqual(categories['Poleras']['product_count'], 0)
        self.assertEqual(categories['Ropa']['children'], [12])

    def test_category_products(self):
        result = self.reader.category_products('category-10')

        self.assertEqual([p['id'] for p in result['products']], [1])
        self.assertEqual(result['category']['name'], 'Ropa')
        self.assertEqual([c['name'] for c in result['child_categories']], ['Poleras'])

    def test_uncategorized_products_sorted_by_name(self):
        result = self.reader.category_products('uncategorized')

        self.assertEqual([p['name'] for p in result['products']], ['Gorro Lana', 'Polera Algodón - M'])
        self.assertEqual(result['category']['name'], 'Uncategorized')
        self.assertEqual(result['child_categories'], [])

    def test_product(self):
        self.assertEqual(self.reader.product(2)['name'], 'Gorro Lana')
        self.assertIsNone(self.reader.product(999))

    def test_product_variations(self):
        result = self.reader.product_variations('1')

        self.assertEqual(result['total'], 1)
        self.assertEqual(result['variations'][0]['parent_id'], 1)

    def test_variations_of_simple_product(self):
        result = self.reader.product_variations(2)

        self.assertEqual(result['variations'], [])
        self.assertEqual(result['message'], 'Product is not a variable product')
        self.assertIsNone(self.reader.product_variations(999))

    def test_search_with_filters(self):
        self.assertEqual([p['id'] for p in self.reader.search('polera')['products']], [1, 11])
        self.assertEqual(
            [p['id'] for p in self.reader.search('algodón', status='publish', product_type='variable')['products']],
            [1],
        )
        self.assertEqual([p['id'] for p in self.reader.search('polera', category='10')['products']], [1])

    def test_search_in_uncategorized(self):
        self.assertEqual([p['id'] for p in self.reader.search('polera', category='uncategorized')['products']], [11])
        self.assertEqual([p['id'] for p in self.reader.search('gorro', category='category-10')['products']], [])

    def test_search_pagination(self):
        result = self.reader.search('lana polera', limit=1, offset=1)

        self.assertEqual(result['total'], 3)
        self.assertEqual([p['id'] for p in result['products']], [1])

    def test_short_terms_are_ignored(self):
        self.assertEqual(self.reader.search('de')['total'], 0)

    def test_analytics(self):
        self.assertEqual(self.reader.analytics()['total_revenue'], 25.0)


class SnapshotReaderEdgeCasesTestCase(SimpleTestCase):
    """Tests para snapshots ausentes o incompletos."""

    def setUp(self):
        self.storage = SnapshotStorage(InMemoryStorage())
        self.reader = SnapshotReader(self.storage, '42')

    def test_no_data(self):
        self.assertEqual(self.reader.check_data(), {'success': True, 'has_data': False})

        with self.assertRaises(SnapshotNotFound):
            self.reader.categories()

    def test_incomplete_snapshot(self):
        storage = synced_storage()
        storage.backend.delete(SnapshotStorage.key('42', 'index_by_category'))

        result = SnapshotReader(storage, '42').check_data()

        self.assertFalse(result['has_data'])
        self.assertEqual(result['missing_files'], ['index_by_category'])

    def test_name_matches_come_first(self):
        self.storage.write('42', 'products', {'products': {
            '5': {'id': 5, 'name': 'Taza', 'description': '<p>Taza de cerámica</p>'},
            '6': {'id': 6, 'name': 'Plato de cerámica'},
        }})
        self.storage.write('42', 'index_search', {'search_terms': {'cerámica': [5, 6], 'taza': [5]}})

        result = self.reader.search('cerámica')

        self.assertEqual([p['id'] for p in result['products']], [6, 5])
