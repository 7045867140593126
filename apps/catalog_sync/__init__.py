"""
Sincronización del catálogo WooCommerce

Replica productos, variaciones, categorías y órdenes de una tienda
WooCommerce en un snapshot desnormalizado por usuario, con índices de
consulta y analítica de ventas, para que la UI no consulte la tienda en vivo.

Características:
- Sincronización completa en segundo plano (Celery)
- Progreso consultable por polling
- Re-sincronización con credenciales guardadas
- API de lectura del snapshot (categorías, productos, búsqueda, analítica)
"""
