"""
Analítica de ventas a partir de las órdenes normalizadas

Todas las cifras monetarias se redondean a 2 decimales. Una lista vacía
de órdenes produce un resultado completo en cero.
"""

import logging
from collections import OrderedDict
from datetime import timezone as dt_timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, Iterable, List, Optional, Tuple

from django.utils import timezone
from django.utils.dateparse import parse_datetime

from .config import DEFAULT_REVENUE_STATUSES
from .normalizer import to_decimal

logger = logging.getLogger(__name__)


TOP_PRODUCTS_LIMIT = 10
TREND_MONTHS = 12

ZERO = Decimal('0.00')


def money(value: Decimal) -> float:
    return float(Decimal(value).quantize(Decimal('0.01'), rounding=ROUND_HALF_UP))


def _summary(count: int, revenue: Decimal) -> Dict[str, Any]:
    return {
        'total_orders': count,
        'total_revenue': money(revenue),
        'average_order_value': money(revenue / count) if count else 0.0,
    }


def _order_month(order: Dict[str, Any]) -> Optional[Tuple[int, int]]:
    parsed = parse_datetime(order.get('date_created') or '')
    if parsed is None:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=dt_timezone.utc)
    parsed = parsed.astimezone(dt_timezone.utc)
    return parsed.year, parsed.month


def trailing_months(now, count: int = TREND_MONTHS) -> List[Tuple[int, int]]:
    """Los últimos count meses calendario terminando en el de now, del más antiguo al más nuevo"""
    year, month = now.year, now.month
    months = []
    for _ in range(count):
        months.append((year, month))
        month -= 1
        if month == 0:
            year, month = year - 1, 12
    return list(reversed(months))


def compute_analytics(
    orders: Iterable[Dict[str, Any]],
    now=None,
    revenue_statuses: Iterable[str] = DEFAULT_REVENUE_STATUSES,
) -> Dict[str, Any]:
    """
    Métricas de ingresos, top de productos, desglose por estado y tendencia mensual

    Args:
        orders: Órdenes normalizadas (montos como Decimal o string)
        now: Referencia para el mes actual y la tendencia
        revenue_statuses: Estados que cuentan como ingreso

    Returns:
        Dict con el documento de analítica
    """
    now = (now or timezone.now()).astimezone(dt_timezone.utc)
    revenue_statuses = set(revenue_statuses)
    current_month = (now.year, now.month)

    months = trailing_months(now)
    trend = OrderedDict((month, [0, ZERO]) for month in months)

    total_count, total_revenue = 0, ZERO
    month_count, month_revenue = 0, ZERO
    by_status: Dict[str, List[Any]] = {}
    products: Dict[Any, Dict[str, Any]] = {}

    for order in orders:
        status = order.get('status') or 'unknown'
        total = to_decimal((order.get('totals') or {}).get('total'))

        bucket = by_status.setdefault(status, [0, ZERO])
        bucket[0] += 1
        bucket[1] += total

        if status not in revenue_statuses:
            continue

        total_count += 1
        total_revenue += total

        month = _order_month(order)
        if month == current_month:
            month_count += 1
            month_revenue += total
        if month in trend:
            trend[month][0] += 1
            trend[month][1] += total

        for item in order.get('line_items') or []:
            product_id = item.get('product_id')
            entry = products.setdefault(product_id, {
                'product_id': product_id,
                'name': item.get('name') or '',
                'quantity': 0,
                'revenue': ZERO,
            })
            entry['quantity'] += item.get('quantity') or 0
            entry['revenue'] += to_decimal(item.get('total'))

    # sorted es estable: los empates conservan el orden de entrada
    ranked = sorted(products.values(), key=lambda entry: entry['revenue'], reverse=True)
    top_products = [
        {**entry, 'revenue': money(entry['revenue'])}
        for entry in ranked[:TOP_PRODUCTS_LIMIT]
    ]

    monthly_trends = []
    for (year, month), (count, revenue) in trend.items():
        monthly_trends.append({
            'month': f'{year:04d}-{month:02d}',
            'orders': count,
            'revenue': money(revenue),
            'average_order_value': money(revenue / count) if count else 0.0,
        })

    result = _summary(total_count, total_revenue)
    result.update({
        'current_month': _summary(month_count, month_revenue),
        'top_products': top_products,
        'status_breakdown': {
            status: {'count': count, 'revenue': money(revenue)}
            for status, (count, revenue) in by_status.items()
        },
        'monthly_trends': monthly_trends,
        'revenue_statuses': sorted(revenue_statuses),
        'generated_at': now.isoformat(),
    })

    logger.info(f"📈 Analítica: {total_count} órdenes con ingreso, total {result['total_revenue']}")
    return result
