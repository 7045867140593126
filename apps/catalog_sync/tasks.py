"""
Tareas asíncronas de Celery para la sincronización del catálogo

La tarea es el mecanismo de ejecución "dispara y olvida" del orquestador.
"""

import logging
import uuid
from typing import Any, Dict, Optional

from celery import shared_task
from django.utils import timezone

from .sync_engine.exceptions import PersistenceError, StatusWriteError
from .sync_engine.orchestrator import FAILED, STARTED, SyncOrchestrator
from .sync_engine.storage import SnapshotStorage, get_snapshot_storage
from .sync_engine.woo_client import StoreCredentials

logger = logging.getLogger(__name__)


@shared_task(bind=True, max_retries=0, acks_late=True, time_limit=1800, soft_time_limit=1700)
def run_catalog_sync(self, owner_id: str, sync_id: str, credentials: Dict[str, Any]):
    """
    Ejecuta una sincronización completa

    Nunca lanza excepción: las fallas quedan en el documento de estado
    y la tarea termina normalmente para que el broker no la reintente.

    Args:
        owner_id: Usuario dueño del snapshot
        sync_id: Identificador de la sincronización
        credentials: url, username y app_password de la tienda
    """
    logger.info(f"🔄 Tarea de sync {sync_id} para usuario {owner_id} (task {self.request.id})")

    orchestrator = SyncOrchestrator(owner_id, sync_id, StoreCredentials.from_dict(credentials))
    return orchestrator.run()


def enqueue_sync(owner_id: str, credentials: StoreCredentials, sync_type: str = 'initial',
                 storage: Optional[SnapshotStorage] = None) -> str:
    """
    Registra una sincronización en estado started y la encola

    Returns:
        str con el sync_id

    Raises:
        PersistenceError: si no se pudo registrar el estado inicial o encolar la tarea
    """
    storage = storage or get_snapshot_storage()
    sync_id = str(uuid.uuid4())
    now = timezone.now().isoformat()

    try:
        storage.write_status(str(owner_id), {
            'sync_id': sync_id,
            'status': STARTED,
            'progress': 0,
            'message': 'Initial sync started...' if sync_type == 'initial' else 'Sync started...',
            'sync_type': sync_type,
            'started_at': now,
            'last_updated': now,
        })
    except StatusWriteError as e:
        raise PersistenceError(f"Could not register sync: {e}") from e

    try:
        run_catalog_sync.delay(str(owner_id), sync_id, credentials.to_dict())
    except Exception as e:
        logger.error(f"❌ No se pudo encolar la sync {sync_id} para usuario {owner_id}: {e}")
        failed_at = timezone.now().isoformat()
        try:
            storage.write_status(str(owner_id), {
                'sync_id': sync_id,
                'status': FAILED,
                'progress': 0,
                'message': f"Sync failed: could not enqueue ({e})",
                'sync_type': sync_type,
                'started_at': now,
                'failed_at': failed_at,
                'last_updated': failed_at,
                'error': str(e),
            })
        except StatusWriteError as write_error:
            logger.warning(f"⚠️ No se pudo marcar como fallida la sync {sync_id}: {write_error}")
        raise PersistenceError(f"Could not enqueue sync: {e}") from e

    logger.info(f"✅ Sync {sync_id} encolada ({sync_type}) para usuario {owner_id}")
    return sync_id
