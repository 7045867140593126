"""
Errores del motor de sincronización
"""


class CatalogSyncError(Exception):
    """Error base del motor de sincronización"""
    pass


class ConnectivityError(CatalogSyncError):
    """La API REST de WooCommerce no es alcanzable o rechazó la petición"""
    pass


class PartialDataError(CatalogSyncError):
    """Falló la descarga de variaciones de un producto padre"""

    def __init__(self, parent_id, message):
        self.parent_id = parent_id
        super().__init__(f"Producto {parent_id}: {message}")


class PaginationAmbiguityError(CatalogSyncError):
    """Ninguna estrategia de paginación devolvió datos"""
    pass


class PersistenceError(CatalogSyncError):
    """No se pudo escribir un documento derivado"""
    pass


class StatusWriteError(CatalogSyncError):
    """No se pudo escribir el documento de estado de la sincronización"""
    pass
