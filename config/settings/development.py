"""
Development settings for the StoreMirror project.

These settings are suitable for local development environment.
"""

from .base import *  # noqa

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = True

# Database - Use PostgreSQL
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.postgresql',
        'NAME': config('DB_NAME', default='storemirror_db'),
        'USER': config('DB_USER', default='storemirror_user'),
        'PASSWORD': config('DB_PASSWORD', default='storemirror_password'),
        'HOST': config('DB_HOST', default='db'),
        'PORT': config('DB_PORT', default='5432'),
    }
}

# Cache
CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
    }
}

# CORS settings
CORS_ALLOW_ALL_ORIGINS = True  # In development only

# Dev specific settings for Django REST Framework
REST_FRAMEWORK['DEFAULT_THROTTLE_RATES'] = {
    'anon': '1000/day',
    'user': '10000/day',
}

# CSRF settings for development
CSRF_COOKIE_SECURE = False

# Pausa entre páginas más corta contra tiendas locales
CATALOG_SYNC['PAGE_DELAY'] = config('CATALOG_SYNC_PAGE_DELAY', default=0.05, cast=float)
CATALOG_SYNC['VARIATION_BUDGET'] = config('CATALOG_SYNC_VARIATION_BUDGET', default=120, cast=int)

LOGGING['loggers']['apps']['level'] = 'DEBUG'
