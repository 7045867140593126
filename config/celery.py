"""
🚀 CELERY CONFIGURATION for StoreMirror

Ejecuta en segundo plano las sincronizaciones del catálogo WooCommerce.
"""

import os
from celery import Celery

# Set the default Django settings module for the 'celery' program.
os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings.development')

app = Celery('storemirror')

# Using a string here means the worker doesn't have to serialize
# the configuration object to child processes.
app.config_from_object('django.conf:settings', namespace='CELERY')

# Load task modules from all registered Django app configs.
app.autodiscover_tasks()

# 🚀 TASK ROUTING
# run_catalog_sync va a cola dedicada 'sync-heavy' con concurrencia=1
app.conf.task_routes = {
    'apps.catalog_sync.tasks.run_catalog_sync': {'queue': 'sync-heavy'},
}

app.conf.update(
    enable_utc=True,

    # Task execution settings
    task_soft_time_limit=1700,  # 28 minutes soft limit (sync completa)
    task_time_limit=1800,       # 30 minutes hard limit
    task_acks_late=True,        # Acknowledge after task completion
    worker_prefetch_multiplier=1,  # Process one task at a time for reliability

    # Result backend settings
    result_expires=3600,  # Results expire after 1 hour

    # Worker settings
    worker_max_tasks_per_child=1000,

    task_default_queue='default',
)
