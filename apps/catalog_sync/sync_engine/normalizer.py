"""
Normalización de datos WooCommerce al esquema canónico

Productos, variaciones, categorías (con jerarquía) y órdenes. Ningún campo
opcional ausente lanza excepción: cada uno tiene su valor por defecto en
PRODUCT_DEFAULTS / ORDER_DEFAULTS.
"""

import logging
from collections import defaultdict
from datetime import timezone as dt_timezone
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Dict, List, Optional

from django.utils.dateparse import parse_datetime

from .formatting import preserve_html_formatting

logger = logging.getLogger(__name__)


TWO_PLACES = Decimal('0.01')


def _empty_dimensions():
    return {'length': '', 'width': '', 'height': ''}


# Campo -> valor por defecto (los callables construyen valores mutables nuevos)
PRODUCT_DEFAULTS = {
    'name': '',
    'slug': '',
    'sku': '',
    'type': 'simple',
    'status': 'publish',
    'featured': False,
    'virtual': False,
    'downloadable': False,
    'regular_price': '',
    'sale_price': '',
    'date_on_sale_from': '',
    'date_on_sale_to': '',
    'purchase_note': '',
    'tax_class': 'standard',
    'manage_stock': False,
    'stock_quantity': None,
    'stock_status': 'instock',
    'backorders': 'no',
    'sold_individually': False,
    'low_stock_amount': None,
    'weight': '',
    'dimensions': _empty_dimensions,
    'shipping_class_id': None,
    'categories': list,
    'tags': list,
    'external_url': '',
    'button_text': '',
    'downloads': list,
    'download_limit': -1,
    'download_expiry': -1,
    'menu_order': 0,
    'reviews_allowed': True,
    'average_rating': '0',
    'rating_count': 0,
    'catalog_visibility': 'visible',
    'date_created': '',
    'date_modified': '',
}

HTML_FIELDS = ('description', 'short_description')

CATEGORY_DEFAULTS = {
    'name': '',
    'slug': '',
    'description': '',
    'display': 'default',
    'image': None,
    'menu_order': 0,
    'count': 0,
}

ORDER_DEFAULTS = {
    'status': 'pending',
    'currency': '',
    'date_created': '',
    'payment_method': '',
}


def _default(value):
    return value() if callable(value) else value


def apply_defaults(raw: Dict[str, Any], defaults: Dict[str, Any]) -> Dict[str, Any]:
    """
    Toma cada campo de defaults desde raw; ausente o None usa el defecto
    """
    record = {}
    for key, default in defaults.items():
        value = raw.get(key)
        record[key] = _default(default) if value is None else value
    return record


def _shipping_class_id(raw: Dict[str, Any]) -> Optional[int]:
    """shipping_class_id, o shipping_class cuando viene como id numérico"""
    if raw.get('shipping_class_id'):
        return raw['shipping_class_id']
    try:
        return int(raw.get('shipping_class'))
    except (TypeError, ValueError):
        return None


def _ids(items) -> List[int]:
    ids = []
    for item in items or []:
        item_id = item.get('id') if isinstance(item, dict) else item
        if item_id:
            ids.append(item_id)
    return ids


def normalize_attributes(attributes) -> List[Dict[str, Any]]:
    """Atributos de producto o de variación (option singular)"""
    normalized = []
    for attr in attributes or []:
        name = attr.get('name') or ''
        options = attr.get('options')
        if options is None:
            options = [attr['option']] if attr.get('option') not in (None, '') else []
        normalized.append({
            'id': attr.get('id') or 0,
            'name': name,
            'slug': attr.get('slug') or '-'.join(name.lower().split()),
            'position': attr.get('position') or 0,
            'visible': attr.get('visible') is not False,
            'variation': bool(attr.get('variation', False)),
            'options': list(options),
        })
    return normalized


def normalize_product(raw: Dict[str, Any], variations: Optional[List[Dict[str, Any]]] = None) -> Dict[str, Any]:
    """
    Producto (o variación) WooCommerce -> producto canónico

    Args:
        raw: Producto tal como lo entrega la API REST
        variations: Variaciones ya resueltas para un producto variable

    Returns:
        Dict con el esquema canónico
    """
    product = {'id': raw.get('id')}
    product.update(apply_defaults(raw, PRODUCT_DEFAULTS))

    for html_field in HTML_FIELDS:
        product[html_field] = preserve_html_formatting(raw.get(html_field))

    product['category_ids'] = _ids(product['categories'])
    product['tag_ids'] = _ids(product['tags'])
    product['shipping_class_id'] = _shipping_class_id(raw)
    product['attributes'] = normalize_attributes(raw.get('attributes'))

    images = raw.get('images')
    if images is None:
        images = [raw['image']] if raw.get('image') else []
    product['images'] = images

    if product['type'] == 'variation' and raw.get('parent_id'):
        product['parent_id'] = raw['parent_id']

    if product['type'] == 'variable':
        variation_ids = _ids(variations)
        if variation_ids:
            product['variations'] = variation_ids

    return product


def normalize_catalog(raw_products: List[Dict[str, Any]], raw_variations: List[Dict[str, Any]]) -> Dict[int, Dict[str, Any]]:
    """
    Mapa id -> producto canónico, con las variaciones agrupadas bajo su padre

    Las variaciones sin un padre variable conocido se descartan.
    """
    variations_by_parent = defaultdict(list)
    for variation in raw_variations:
        if variation.get('id') is not None:
            variations_by_parent[variation.get('parent_id')].append(variation)

    products: Dict[int, Dict[str, Any]] = {}
    attached = 0

    for raw in raw_products:
        product_id = raw.get('id')
        if product_id is None or raw.get('type') == 'variation':
            continue

        children = variations_by_parent.get(product_id, []) if raw.get('type') == 'variable' else []
        products[product_id] = normalize_product(raw, children)

        for child in children:
            products[child['id']] = normalize_product({**child, 'type': 'variation', 'parent_id': product_id})
            attached += 1

    dropped = len([v for group in variations_by_parent.values() for v in group]) - attached
    if dropped:
        logger.info(f"Variaciones sin padre variable descartadas: {dropped}")

    logger.info(f"✅ Normalizados {len(products)} productos ({attached} variaciones)")
    return products


def normalize_categories(raw_categories: List[Dict[str, Any]]) -> Dict[str, Any]:
    """
    Categorías con lista de hijos y mapa de jerarquía padre -> hijos

    El parent de la API se usa tal cual; no hay detección de ciclos.
    """
    categories: Dict[int, Dict[str, Any]] = {}
    hierarchy: Dict[str, List[int]] = {'root': []}

    for raw in raw_categories:
        category_id = raw.get('id')
        if category_id is None:
            continue

        parent_id = raw.get('parent') or 0
        category = {'id': category_id, 'parent_id': parent_id}
        category.update(apply_defaults(raw, CATEGORY_DEFAULTS))
        category['children'] = []
        categories[category_id] = category

        key = 'root' if parent_id == 0 else str(parent_id)
        hierarchy.setdefault(key, []).append(category_id)

    for key, child_ids in hierarchy.items():
        if key != 'root' and int(key) in categories:
            categories[int(key)]['children'] = list(child_ids)

    return {'categories': categories, 'hierarchy': hierarchy}


def to_decimal(value) -> Decimal:
    """Monto WooCommerce (string, número o None) -> Decimal con 2 decimales"""
    if value is None or value == '':
        return Decimal('0.00')
    try:
        return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        return Decimal('0.00')


def _order_timestamp(raw: Dict[str, Any]) -> str:
    value = raw.get('date_created_gmt') or raw.get('date_created')
    if not value:
        return ''
    parsed = parse_datetime(str(value))
    if parsed is None:
        return ''
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt_timezone.utc)
    return parsed.astimezone(dt_timezone.utc).isoformat()


def normalize_line_item(raw: Dict[str, Any]) -> Dict[str, Any]:
    quantity = raw.get('quantity') or 0
    total = to_decimal(raw.get('total'))
    price = raw.get('price')
    if price in (None, ''):
        price = total / quantity if quantity else Decimal('0.00')

    return {
        'product_id': raw.get('product_id') or 0,
        'variation_id': raw.get('variation_id') or 0,
        'name': raw.get('name') or '',
        'quantity': quantity,
        'price': to_decimal(price),
        'subtotal': to_decimal(raw.get('subtotal', raw.get('total'))),
        'total': total,
    }


def normalize_order(raw: Dict[str, Any]) -> Dict[str, Any]:
    """
    Orden WooCommerce -> orden para analítica

    De facturación sólo se conserva email, teléfono y país.
    """
    order = {'id': raw.get('id')}
    order.update(apply_defaults(raw, ORDER_DEFAULTS))
    order['date_created'] = _order_timestamp(raw)

    line_items = [normalize_line_item(item) for item in raw.get('line_items') or []]
    order['line_items'] = line_items

    order['totals'] = {
        'subtotal': sum((item['subtotal'] for item in line_items), Decimal('0.00')),
        'tax': to_decimal(raw.get('total_tax')),
        'shipping': to_decimal(raw.get('shipping_total')),
        'discount': to_decimal(raw.get('discount_total')),
        'total': to_decimal(raw.get('total')),
    }

    billing = raw.get('billing') or {}
    order['billing'] = {
        'email': billing.get('email') or '',
        'phone': billing.get('phone') or '',
        'country': billing.get('country') or '',
    }
    return order


def normalize_orders(raw_orders: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [normalize_order(raw) for raw in raw_orders if raw.get('id') is not None]
