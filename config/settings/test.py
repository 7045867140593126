"""
Test settings for the StoreMirror project.

SQLite en memoria, snapshots en memoria y Celery en modo eager.
"""

import os

os.environ.setdefault('SECRET_KEY', 'test-secret-key-not-for-production')

from .base import *  # noqa

DEBUG = False

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

STORAGES['catalog_snapshots'] = {
    'BACKEND': 'django.core.files.storage.InMemoryStorage',
}

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

CATALOG_SYNC['PAGE_DELAY'] = 0

LOGGING['root']['level'] = 'WARNING'
LOGGING['loggers']['apps']['level'] = 'WARNING'
