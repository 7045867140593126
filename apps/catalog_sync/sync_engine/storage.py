"""
Persistencia del snapshot sobre el API de storage de Django

Cada documento es JSON (gzip salvo el estado de sincronización) bajo
users/<owner_id>/. El backend concreto (filesystem, GCS, memoria) se
elige en settings.STORAGES.
"""

import gzip
import json
import logging
from typing import Any, Dict, Optional

from django.core.files.base import ContentFile
from django.core.files.storage import storages
from django.core.serializers.json import DjangoJSONEncoder

from .config import get_engine_config
from .exceptions import PersistenceError, StatusWriteError

logger = logging.getLogger(__name__)


ARCHITECTURE_VERSION = '2.0'

# Documento lógico -> ruta relativa dentro de la carpeta del usuario
DOCUMENTS = {
    'products': 'products.json.gz',
    'categories': 'categories.json.gz',
    'orders': 'orders.json.gz',
    'index_by_category': 'indexes/by-category.json.gz',
    'index_by_status': 'indexes/by-status.json.gz',
    'index_by_type': 'indexes/by-type.json.gz',
    'index_search': 'indexes/search-index.json.gz',
    'analytics': 'analytics.json.gz',
    'store_metadata': 'store-metadata.json.gz',
    'credentials': 'credentials.json.gz',
    'sync_status': 'sync-status.json',
}


class SnapshotStorage:
    """
    Almacén de documentos JSON particionado por usuario
    """

    def __init__(self, backend=None, alias: str = 'catalog_snapshots'):
        self.backend = backend if backend is not None else storages[alias]

    @staticmethod
    def key(owner_id: str, document: str) -> str:
        return f"users/{owner_id}/{DOCUMENTS[document]}"

    @staticmethod
    def _encode(name: str, data: Dict[str, Any]) -> bytes:
        payload = json.dumps(data, cls=DjangoJSONEncoder).encode('utf-8')
        return gzip.compress(payload) if name.endswith('.gz') else payload

    @staticmethod
    def _decode(name: str, raw: bytes) -> Dict[str, Any]:
        if name.endswith('.gz'):
            raw = gzip.decompress(raw)
        return json.loads(raw.decode('utf-8'))

    def _write(self, name: str, data: Dict[str, Any]) -> str:
        content = ContentFile(self._encode(name, data))
        # Con allow_overwrite (filesystem) o file_overwrite (GCS) se reemplaza en sitio;
        # otros backends renombrarían el archivo, así que se elimina la versión anterior
        if self.backend.get_available_name(name) != name:
            self.backend.delete(name)
        return self.backend.save(name, content)

    def write(self, owner_id: str, document: str, data: Dict[str, Any]) -> str:
        """
        Escribe un documento derivado

        Raises:
            PersistenceError: si el backend falla
        """
        name = self.key(owner_id, document)
        try:
            saved = self._write(name, data)
        except Exception as e:
            raise PersistenceError(f"Storage write failed for {DOCUMENTS[document]}: {e}") from e

        logger.info(f"✅ Guardado: {saved}")
        return saved

    def read(self, owner_id: str, document: str) -> Optional[Dict[str, Any]]:
        """
        Lee un documento; None si no existe
        """
        name = self.key(owner_id, document)
        if not self.backend.exists(name):
            return None
        with self.backend.open(name, 'rb') as fh:
            return self._decode(name, fh.read())

    def exists(self, owner_id: str, document: str) -> bool:
        return self.backend.exists(self.key(owner_id, document))

    def write_status(self, owner_id: str, data: Dict[str, Any]) -> None:
        """
        Escribe el documento de estado de la sincronización

        Raises:
            StatusWriteError: si el backend falla
        """
        name = self.key(owner_id, 'sync_status')
        try:
            self._write(name, data)
        except Exception as e:
            raise StatusWriteError(f"Sync status write failed: {e}") from e

    def read_status(self, owner_id: str) -> Optional[Dict[str, Any]]:
        return self.read(owner_id, 'sync_status')

    def read_credentials(self, owner_id: str) -> Optional[Dict[str, Any]]:
        return self.read(owner_id, 'credentials')


def get_snapshot_storage(config=None) -> SnapshotStorage:
    """
    Almacén configurado en CATALOG_SYNC['SNAPSHOT_STORAGE']
    """
    config = config or get_engine_config()
    return SnapshotStorage(alias=config.snapshot_storage)
