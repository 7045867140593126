"""
Vistas de la API para sincronización del catálogo
"""

import logging

from django.conf import settings
from rest_framework import viewsets, status
from rest_framework.decorators import action
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response

from .serializers import AuthorizeQuerySerializer, SearchQuerySerializer, SyncRequestSerializer
from .sync_engine.exceptions import ConnectivityError, PersistenceError
from .sync_engine.reader import SnapshotNotFound, SnapshotReader
from .sync_engine.storage import get_snapshot_storage
from .sync_engine.woo_client import StoreCredentials, build_authorization_url
from .tasks import enqueue_sync

logger = logging.getLogger(__name__)


def _owner_id(request) -> str:
    return str(request.user.pk)


class CatalogSyncViewSet(viewsets.ViewSet):
    """
    ViewSet para iniciar y monitorear sincronizaciones

    Endpoints:
    - POST /api/v1/catalog-sync/sync/ - Sincronización inicial
    - POST /api/v1/catalog-sync/sync/resync/ - Re-sincronizar con credenciales guardadas
    - GET /api/v1/catalog-sync/sync/status/ - Estado de la última sincronización
    - GET /api/v1/catalog-sync/sync/authorize/?url= - URL de autorización de WordPress
    """

    permission_classes = [IsAuthenticated]

    def _start(self, request, credentials: StoreCredentials, sync_type: str) -> Response:
        owner_id = _owner_id(request)
        try:
            sync_id = enqueue_sync(owner_id, credentials, sync_type, storage=get_snapshot_storage())
        except PersistenceError as e:
            logger.error(f"❌ No se pudo registrar la sync para {owner_id}: {e}")
            return Response({'success': False, 'error': str(e)}, status=status.HTTP_503_SERVICE_UNAVAILABLE)

        return Response({
            'success': True,
            'sync_id': sync_id,
            'message': 'Sync started in background' if sync_type == 'initial' else 'Re-sync started in background',
            'status_url': f'status/?sync_id={sync_id}',
        }, status=status.HTTP_202_ACCEPTED)

    def create(self, request):
        """
        Sincronización inicial con credenciales nuevas

        POST /api/v1/catalog-sync/sync/
        """
        serializer = SyncRequestSerializer(data=request.data)
        if not serializer.is_valid():
            return Response(
                {'success': False, 'error': 'Missing required fields: url, username, app_password',
                 'details': serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )

        credentials = StoreCredentials(**serializer.validated_data)
        logger.info(f"🔗 Sync inicial solicitada para tienda {credentials.base_url}")
        return self._start(request, credentials, 'initial')

    @action(detail=False, methods=['post'])
    def resync(self, request):
        """
        Re-sincronizar usando las credenciales guardadas

        POST /api/v1/catalog-sync/sync/resync/
        """
        stored = get_snapshot_storage().read_credentials(_owner_id(request))
        if not stored:
            return Response(
                {'success': False, 'error': 'No stored credentials found. Please reconnect your store.'},
                status=status.HTTP_400_BAD_REQUEST
            )

        logger.info(f"🔄 Re-sync solicitada por usuario {_owner_id(request)}")
        return self._start(request, StoreCredentials.from_dict(stored), 'resync')

    @action(detail=False, methods=['get'], url_path='status')
    def sync_status(self, request):
        """
        Estado de la sincronización del usuario

        GET /api/v1/catalog-sync/sync/status/
        """
        current = get_snapshot_storage().read_status(_owner_id(request))
        if current is None:
            return Response({'status': 'not_found', 'message': 'No sync in progress'})
        return Response(current)

    @action(detail=False, methods=['get'])
    def authorize(self, request):
        """
        URL para autorizar una application password en la tienda

        GET /api/v1/catalog-sync/sync/authorize/?url=
        """
        serializer = AuthorizeQuerySerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)

        redirect_uri = getattr(settings, 'FRONTEND_URL', 'http://localhost:3000')
        try:
            auth_url = build_authorization_url(serializer.validated_data['url'], redirect_uri)
        except ConnectivityError as e:
            return Response({'success': False, 'error': str(e)}, status=status.HTTP_400_BAD_REQUEST)

        return Response({'success': True, 'auth_url': auth_url})


class CatalogDataViewSet(viewsets.ViewSet):
    """
    ViewSet de lectura del snapshot sincronizado

    Endpoints:
    - GET /api/v1/catalog-sync/data/check/
    - GET /api/v1/catalog-sync/data/categories/
    - GET /api/v1/catalog-sync/data/categories/{key}/products/
    - GET /api/v1/catalog-sync/data/products/{id}/
    - GET /api/v1/catalog-sync/data/products/{id}/variations/
    - GET /api/v1/catalog-sync/data/search/?q=
    - GET /api/v1/catalog-sync/data/analytics/
    """

    permission_classes = [IsAuthenticated]

    def _reader(self, request) -> SnapshotReader:
        return SnapshotReader(get_snapshot_storage(), _owner_id(request))

    @staticmethod
    def _not_found(error) -> Response:
        return Response({'success': False, 'error': str(error)}, status=status.HTTP_404_NOT_FOUND)

    @action(detail=False, methods=['get'])
    def check(self, request):
        """Verificar si el usuario tiene un snapshot completo"""
        return Response(self._reader(request).check_data())

    @action(detail=False, methods=['get'])
    def categories(self, request):
        """Categorías con cantidad de productos"""
        try:
            categories = self._reader(request).categories()
        except SnapshotNotFound as e:
            return self._not_found(e)
        return Response({'success': True, 'categories': categories, 'total': len(categories)})

    @action(detail=False, methods=['get'], url_path=r'categories/(?P<category_key>[\w-]+)/products')
    def category_products(self, request, category_key=None):
        """Productos de una categoría"""
        try:
            return Response(self._reader(request).category_products(category_key))
        except SnapshotNotFound as e:
            return self._not_found(e)

    @action(detail=False, methods=['get'], url_path=r'products/(?P<product_id>\d+)')
    def product(self, request, product_id=None):
        """Un producto canónico"""
        try:
            product = self._reader(request).product(product_id)
        except SnapshotNotFound as e:
            return self._not_found(e)
        if product is None:
            return self._not_found('Product not found')
        return Response({'success': True, 'product': product})

    @action(detail=False, methods=['get'], url_path=r'products/(?P<product_id>\d+)/variations')
    def product_variations(self, request, product_id=None):
        """Variaciones de un producto variable"""
        try:
            result = self._reader(request).product_variations(product_id)
        except SnapshotNotFound as e:
            return self._not_found(e)
        if result is None:
            return self._not_found('Product not found')
        return Response(result)

    @action(detail=False, methods=['get'])
    def search(self, request):
        """Búsqueda por el índice de términos"""
        serializer = SearchQuerySerializer(data=request.query_params)
        if not serializer.is_valid():
            return Response(
                {'success': False, 'error': 'Search term required', 'details': serializer.errors},
                status=status.HTTP_400_BAD_REQUEST
            )

        params = serializer.validated_data
        try:
            result = self._reader(request).search(
                params['q'],
                limit=params['limit'],
                offset=params['offset'],
                category=params.get('category') or None,
                status=params.get('status') or None,
                product_type=params.get('type') or None,
            )
        except SnapshotNotFound as e:
            return self._not_found(e)
        return Response(result)

    @action(detail=False, methods=['get'])
    def analytics(self, request):
        """Documento de analítica de ventas"""
        try:
            return Response({'success': True, 'analytics': self._reader(request).analytics()})
        except SnapshotNotFound as e:
            return self._not_found(e)
