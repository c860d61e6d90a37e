"""Settings for the pytest run.

In-memory SQLite, Celery tasks executed inline, e-mail kept in memory
and a fast password hasher.
"""

from .base import *  # noqa: F401,F403

DEBUG = False

SECRET_KEY = 'test-secret-key'

DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.sqlite3',
        'NAME': ':memory:',
    }
}

PASSWORD_HASHERS = ['django.contrib.auth.hashers.MD5PasswordHasher']

EMAIL_BACKEND = 'django.core.mail.backends.locmem.EmailBackend'

CELERY_TASK_ALWAYS_EAGER = True
CELERY_TASK_EAGER_PROPAGATES = True
CELERY_BROKER_URL = 'memory://'
CELERY_RESULT_BACKEND = 'cache+memory://'

STORAGES = {
    'default': {'BACKEND': 'django.core.files.storage.FileSystemStorage'},
    'staticfiles': {'BACKEND': 'django.contrib.staticfiles.storage.StaticFilesStorage'},
}

TIME_ZONE = 'UTC'
APPROVAL_REQUEST_TTL_HOURS = 72

LOGGING['handlers']['console']['formatter'] = 'console'  # noqa: F405
LOGGING['handlers']['console']['level'] = 'WARNING'  # noqa: F405
RATELIMIT_ENABLE = False
