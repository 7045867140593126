"""
Production settings for the StoreMirror project.

These settings are suitable for production environment.
"""

import os
from .base import *  # noqa
from decouple import config, Csv

# Security settings
DEBUG = False
SECURE_BROWSER_XSS_FILTER = True
SECURE_CONTENT_TYPE_NOSNIFF = True
SECURE_HSTS_INCLUDE_SUBDOMAINS = True
SECURE_HSTS_PRELOAD = True
SECURE_HSTS_SECONDS = 31536000  # 1 year
SECURE_PROXY_SSL_HEADER = ("HTTP_X_FORWARDED_PROTO", "https")
SECURE_SSL_REDIRECT = True
SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True

ALLOWED_HOSTS = config('ALLOWED_HOSTS', cast=Csv())

# Production databases - Use PostgreSQL
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': config('DB_NAME'),
        'USER': config('DB_USER'),
        'PASSWORD': config('DB_PASSWORD'),
        'HOST': config('DB_HOST'),
        'PORT': config('DB_PORT', default='5432'),
        'CONN_MAX_AGE': 60,
    }
}

# Use database for cache and sessions (simpler deployment)
CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.db.DatabaseCache',
        'LOCATION': 'django_cache_table',
    }
}
SESSION_ENGINE = 'django.contrib.sessions.backends.db'

# Static files with Whitenoise
STORAGES['staticfiles'] = {
    'BACKEND': 'whitenoise.storage.CompressedManifestStaticFilesStorage',
}

# Rate limiting
REST_FRAMEWORK['DEFAULT_THROTTLE_CLASSES'] = [
    'rest_framework.throttling.AnonRateThrottle',
    'rest_framework.throttling.UserRateThrottle',
]
REST_FRAMEWORK['DEFAULT_THROTTLE_RATES'] = {
    'anon': '50/hour',
    'user': '1000/hour',
}

LOGGING['loggers']['django.request'] = {
    'handlers': ['console'],
    'level': 'ERROR',
    'propagate': False,
}

# 🚀 GCP CLOUD STORAGE para los snapshots del catálogo
if 'USE_GCP' in os.environ:
    GS_BUCKET_NAME = config('GS_BUCKET_NAME')
    GS_PROJECT_ID = config('GS_PROJECT_ID')

    # Los snapshots son privados y se reemplazan en cada sync
    STORAGES['catalog_snapshots'] = {
        'BACKEND': 'storages.backends.gcloud.GoogleCloudStorage',
        'OPTIONS': {
            'bucket_name': config('GS_SNAPSHOT_BUCKET_NAME', default=GS_BUCKET_NAME),
            'project_id': GS_PROJECT_ID,
            'default_acl': None,
            'file_overwrite': True,
            'object_parameters': {
                'CacheControl': 'no-cache',
            },
        },
    }
