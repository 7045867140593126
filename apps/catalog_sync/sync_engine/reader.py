"""
Consultas sobre el snapshot persistido de un usuario

Usado por la API de datos; nunca llama a WooCommerce.
"""

import logging
from typing import Any, Dict, List, Optional

from .indexes import MIN_TOKEN_LENGTH, UNCATEGORIZED
from .storage import ARCHITECTURE_VERSION, SnapshotStorage

logger = logging.getLogger(__name__)


ESSENTIAL_DOCUMENTS = ('products', 'categories', 'index_by_category')


class SnapshotNotFound(Exception):
    """El documento pedido no existe (el usuario debe volver a sincronizar)"""

    def __init__(self, document):
        self.document = document
        super().__init__(f"{document} not found - may need to resync")


def parse_category_key(category_key) -> str:
    """'category-12', '12' o 'uncategorized' -> clave del índice"""
    key = str(category_key)
    if key == UNCATEGORIZED:
        return key
    return key.replace('category-', '', 1)


class SnapshotReader:
    """
    Lectura del snapshot de un usuario
    """

    def __init__(self, storage: SnapshotStorage, owner_id: str):
        self.storage = storage
        self.owner_id = str(owner_id)
        self._cache: Dict[str, Dict[str, Any]] = {}

    def _load(self, document: str) -> Dict[str, Any]:
        if document not in self._cache:
            data = self.storage.read(self.owner_id, document)
            if data is None:
                raise SnapshotNotFound(document)
            self._cache[document] = data
        return self._cache[document]

    def _products(self) -> Dict[str, Dict[str, Any]]:
        return self._load('products').get('products') or {}

    def _categories(self) -> Dict[str, Dict[str, Any]]:
        return self._load('categories').get('categories') or {}

    def _category_products(self) -> Dict[str, List[Any]]:
        return self._load('index_by_category').get('category_products') or {}

    def check_data(self) -> Dict[str, Any]:
        """
        Indica si hay un snapshot completo para el usuario
        """
        metadata = self.storage.read(self.owner_id, 'store_metadata')
        if metadata is None:
            return {'success': True, 'has_data': False}

        missing = [doc for doc in ESSENTIAL_DOCUMENTS if not self.storage.exists(self.owner_id, doc)]
        if missing:
            logger.info(f"⚠️ Snapshot incompleto para {self.owner_id}: {missing}")
            return {
                'success': True,
                'has_data': False,
                'missing_files': missing,
                'error': 'Incomplete sync data - missing essential files',
            }

        available = [
            key if key == UNCATEGORIZED else f'category-{key}'
            for key in self._category_products()
        ]
        store_info = metadata.get('store_info') or {}

        return {
            'success': True,
            'has_data': True,
            'available_categories': available,
            'metadata': {
                **metadata,
                'total_products': store_info.get('total_products', 0),
                'total_categories': store_info.get('total_categories', 0),
                'last_sync': (metadata.get('sync_status') or {}).get('last_sync'),
                'architecture_version': metadata.get('architecture_version', ARCHITECTURE_VERSION),
            },
        }

    def categories(self) -> List[Dict[str, Any]]:
        """Categorías con su cantidad de productos sincronizados"""
        category_products = self._category_products()
        categories = []
        for category in self._categories().values():
            categories.append({
                **category,
                'product_count': len(category_products.get(str(category['id']), [])),
            })
        return sorted(categories, key=lambda c: (c.get('menu_order') or 0, c.get('name') or ''))

    def category_info(self, category_key: str) -> Dict[str, Any]:
        if category_key == UNCATEGORIZED:
            return {'id': UNCATEGORIZED, 'name': 'Uncategorized', 'slug': UNCATEGORIZED}
        category = self._categories().get(category_key)
        if category is None:
            return {'id': category_key, 'name': f'Category {category_key}', 'slug': ''}
        return category

    def category_products(self, category_key) -> Dict[str, Any]:
        """
        Productos de una categoría ordenados por nombre, más sus categorías hijas
        """
        key = parse_category_key(category_key)
        category_products = self._category_products()
        products = self._products()

        listed = [products[str(pid)] for pid in category_products.get(key, []) if str(pid) in products]
        listed.sort(key=lambda p: (p.get('name') or '').lower())

        children = []
        if key != UNCATEGORIZED:
            for category in self._categories().values():
                if str(category.get('parent_id')) == key:
                    children.append({
                        **category,
                        'product_count': len(category_products.get(str(category['id']), [])),
                    })

        return {
            'success': True,
            'products': listed,
            'child_categories': children,
            'category': self.category_info(key),
            'total': len(listed),
        }

    def product(self, product_id) -> Optional[Dict[str, Any]]:
        return self._products().get(str(product_id))

    def product_variations(self, product_id) -> Optional[Dict[str, Any]]:
        """
        Variaciones resueltas de un producto variable; None si el producto no existe
        """
        products = self._products()
        parent = products.get(str(product_id))
        if parent is None:
            return None

        if parent.get('type') != 'variable':
            return {
                'success': True,
                'variations': [],
                'parent': parent,
                'total': 0,
                'message': 'Product is not a variable product',
            }

        variations = [products[str(vid)] for vid in parent.get('variations') or [] if str(vid) in products]
        return {'success': True, 'variations': variations, 'parent': parent, 'total': len(variations)}

    def search(self, query: str, limit: int = 50, offset: int = 0,
               category: Optional[str] = None, status: Optional[str] = None,
               product_type: Optional[str] = None) -> Dict[str, Any]:
        """
        Búsqueda por índice de términos con filtros opcionales
        """
        search_terms = self._load('index_search').get('search_terms') or {}
        query_lower = (query or '').lower()

        matching = []
        seen = set()
        for term in query_lower.split():
            if len(term) < MIN_TOKEN_LENGTH:
                continue
            for product_id in search_terms.get(term, []):
                if product_id not in seen:
                    seen.add(product_id)
                    matching.append(product_id)

        products = self._products()
        results = [products[str(pid)] for pid in matching if str(pid) in products]

        if category:
            # 'uncategorized' sólo existe en el índice por categoría
            category_products = self._load('index_by_category').get('category_products') or {}
            in_category = {str(pid) for pid in category_products.get(parse_category_key(category), [])}
            results = [p for p in results if str(p.get('id')) in in_category]
        if status:
            results = [p for p in results if p.get('status') == status]
        if product_type:
            results = [p for p in results if p.get('type') == product_type]

        # Coincidencia en el nombre primero; sorted mantiene el orden del índice en empates
        results.sort(key=lambda p: 0 if query_lower in (p.get('name') or '').lower() else 1)

        total = len(results)
        return {
            'success': True,
            'products': results[offset:offset + limit],
            'total': total,
            'query': query,
            'limit': limit,
            'offset': offset,
        }

    def analytics(self) -> Dict[str, Any]:
        return self._load('analytics')
