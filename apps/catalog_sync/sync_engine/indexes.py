"""
Índices de consulta derivados del mapa de productos normalizado

La construcción es pura: el mismo snapshot produce los mismos índices,
salvo el sello last_updated de cada documento.
"""

import logging
import re
from typing import Any, Dict, List, Optional

from django.utils import timezone

logger = logging.getLogger(__name__)


UNCATEGORIZED = 'uncategorized'
MIN_TOKEN_LENGTH = 3
SEARCH_FIELDS = ('name', 'sku', 'description', 'short_description')

TAG_RE = re.compile(r'<[^>]+>')


def _append(index: Dict[str, List[Any]], key, product_id) -> None:
    index.setdefault(str(key), []).append(product_id)


def search_tokens(product: Dict[str, Any]) -> List[str]:
    """
    Palabras en minúscula de largo >= 3, sin repetir, en orden de aparición

    Las etiquetas HTML se reemplazan por espacios antes de separar.
    """
    text = ' '.join(str(product.get(field) or '') for field in SEARCH_FIELDS)
    text = TAG_RE.sub(' ', text).lower()

    tokens = []
    seen = set()
    for token in text.split():
        if len(token) >= MIN_TOKEN_LENGTH and token not in seen:
            seen.add(token)
            tokens.append(token)
    return tokens


def build_indexes(products: Dict[Any, Dict[str, Any]], now=None) -> Dict[str, Dict[str, Any]]:
    """
    Construye en una pasada los cuatro índices

    Args:
        products: Mapa id -> producto canónico
        now: Sello de tiempo para last_updated (por defecto timezone.now())

    Returns:
        Dict con by_category, by_status, by_type y search
    """
    stamp = (now or timezone.now()).isoformat()

    category_products: Dict[str, List[Any]] = {}
    product_categories: Dict[str, List[Any]] = {}
    status_products: Dict[str, List[Any]] = {}
    type_products: Dict[str, List[Any]] = {}
    search_terms: Dict[str, List[Any]] = {}

    for product in sorted(products.values(), key=lambda p: _sort_key(p.get('id'))):
        product_id = product['id']
        category_ids = list(dict.fromkeys(product.get('category_ids') or []))

        if category_ids:
            for category_id in category_ids:
                _append(category_products, category_id, product_id)
            product_categories[str(product_id)] = list(category_ids)
        else:
            _append(category_products, UNCATEGORIZED, product_id)
            product_categories[str(product_id)] = [UNCATEGORIZED]

        _append(status_products, product.get('status') or 'publish', product_id)
        _append(type_products, product.get('type') or 'simple', product_id)

        for token in search_tokens(product):
            _append(search_terms, token, product_id)

    logger.info(
        f"✅ Índices: {len(category_products)} categorías, {len(status_products)} estados, "
        f"{len(type_products)} tipos, {len(search_terms)} términos"
    )

    return {
        'by_category': {
            'category_products': category_products,
            'product_categories': product_categories,
            'last_updated': stamp,
        },
        'by_status': {
            'status_products': status_products,
            'last_updated': stamp,
        },
        'by_type': {
            'type_products': type_products,
            'last_updated': stamp,
        },
        'search': {
            'search_terms': search_terms,
            'last_updated': stamp,
        },
    }


def _sort_key(product_id: Optional[Any]):
    # Ids numéricos primero en orden numérico; el resto como texto
    try:
        return (0, int(product_id), '')
    except (TypeError, ValueError):
        return (1, 0, str(product_id))
