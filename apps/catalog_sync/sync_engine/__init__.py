"""
Motor de sincronización del catálogo WooCommerce

Extracción vía REST, normalización, índices, analítica y persistencia
del snapshot por usuario.
"""
