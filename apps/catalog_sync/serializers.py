"""
Serializers para la API de sincronización del catálogo
"""

from rest_framework import serializers

from .sync_engine.woo_client import normalize_store_url


class SyncRequestSerializer(serializers.Serializer):
    """Datos para iniciar una sincronización"""

    url = serializers.CharField(max_length=500)
    username = serializers.CharField(max_length=255)
    app_password = serializers.CharField(max_length=255, trim_whitespace=False)

    def validate_url(self, value):
        """Agregar https:// si falta"""
        url = normalize_store_url(value)
        if not url:
            raise serializers.ValidationError("La URL de la tienda es requerida")
        return url


class AuthorizeQuerySerializer(serializers.Serializer):
    """Parámetros para obtener la URL de autorización de WordPress"""

    url = serializers.CharField(max_length=500)


class SearchQuerySerializer(serializers.Serializer):
    """Parámetros de búsqueda de productos"""

    q = serializers.CharField(max_length=255)
    limit = serializers.IntegerField(min_value=1, max_value=500, default=50)
    offset = serializers.IntegerField(min_value=0, default=0)
    category = serializers.CharField(required=False, allow_blank=True)
    status = serializers.CharField(required=False, allow_blank=True)
    type = serializers.CharField(required=False, allow_blank=True)
