"""
Tests de las tareas de Celery.
"""

from unittest import mock

from django.core.files.storage import InMemoryStorage
from django.test import SimpleTestCase

from apps.catalog_sync.sync_engine.exceptions import PersistenceError, StatusWriteError
from apps.catalog_sync.sync_engine.storage import SnapshotStorage
from apps.catalog_sync.sync_engine.woo_client import StoreCredentials
from apps.catalog_sync.tasks import enqueue_sync, run_catalog_sync


CREDENTIALS = StoreCredentials(url='https://tienda.cl', username='admin', app_password='secret')


class RunCatalogSyncTestCase(SimpleTestCase):
    """Tests para run_catalog_sync."""

    @mock.patch('apps.catalog_sync.tasks.SyncOrchestrator')
    def test_runs_orchestrator(self, orchestrator_class):
        orchestrator_class.return_value.run.return_value = {'success': True, 'sync_id': 's1'}

        result = run_catalog_sync.apply(args=('42', 's1', CREDENTIALS.to_dict())).get()

        self.assertEqual(result, {'success': True, 'sync_id': 's1'})
        owner_id, sync_id, credentials = orchestrator_class.call_args[0]
        self.assertEqual((owner_id, sync_id), ('42', 's1'))
        self.assertEqual(credentials, CREDENTIALS)


class EnqueueSyncTestCase(SimpleTestCase):
    """Tests para enqueue_sync."""

    def setUp(self):
        self.storage = SnapshotStorage(InMemoryStorage())

    @mock.patch('apps.catalog_sync.tasks.run_catalog_sync.delay')
    def test_writes_started_status_and_enqueues(self, delay):
        sync_id = enqueue_sync(42, CREDENTIALS, storage=self.storage)

        status = self.storage.read_status('42')
        self.assertEqual(status['sync_id'], sync_id)
        self.assertEqual(status['status'], 'started')
        self.assertEqual(status['progress'], 0)
        self.assertEqual(status['sync_type'], 'initial')
        delay.assert_called_once_with('42', sync_id, CREDENTIALS.to_dict())

    @mock.patch('apps.catalog_sync.tasks.run_catalog_sync.delay')
    def test_resync_message(self, delay):
        enqueue_sync('42', CREDENTIALS, 'resync', storage=self.storage)

        status = self.storage.read_status('42')
        self.assertEqual(status['sync_type'], 'resync')
        self.assertEqual(status['message'], 'Sync started...')

    @mock.patch('apps.catalog_sync.tasks.run_catalog_sync.delay')
    def test_new_sync_replaces_completed_status(self, delay):
        self.storage.write_status('42', {'sync_id': 'old', 'status': 'completed', 'progress': 100})

        sync_id = enqueue_sync('42', CREDENTIALS, storage=self.storage)

        status = self.storage.read_status('42')
        self.assertEqual(status['sync_id'], sync_id)
        self.assertEqual(status['progress'], 0)

    @mock.patch('apps.catalog_sync.tasks.run_catalog_sync.delay')
    def test_status_failure_is_not_enqueued(self, delay):
        with mock.patch.object(self.storage, 'write_status', side_effect=StatusWriteError('offline')):
            with self.assertRaises(PersistenceError):
                enqueue_sync('42', CREDENTIALS, storage=self.storage)

        delay.assert_not_called()

    @mock.patch('apps.catalog_sync.tasks.run_catalog_sync.delay', side_effect=OSError('broker down'))
    def test_broker_failure_marks_failed(self, delay):
        with self.assertRaises(PersistenceError):
            enqueue_sync('42', CREDENTIALS, storage=self.storage)

        status = self.storage.read_status('42')
        self.assertEqual(status['status'], 'failed')
        self.assertIn('failed_at', status)
        self.assertIn('broker down', status['error'])
