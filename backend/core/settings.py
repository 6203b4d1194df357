import os
from datetime import timedelta
from pathlib import Path

import dj_database_url
from celery.schedules import crontab
from dotenv import load_dotenv

# Load environment variables from a .env file if present (useful for local dev)
load_dotenv()


def env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def env_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, default))
    except (TypeError, ValueError):
        return default


def env_list(name: str, default: str = "") -> list:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv('SECRET_KEY', 'django-insecure-fincontrol-dev-key')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = env_bool('DEBUG', 'true')

ALLOWED_HOSTS = env_list('ALLOWED_HOSTS', '*')

# "development" or "production"; outside production outbound e-mail is redirected
APP_ENV = os.getenv('APP_ENV', 'development')


# Application definition

INSTALLED_APPS = [
    'jazzmin',
    'shared',
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
    'rest_framework',
    'drf_spectacular',
    'corsheaders',
    'rest_framework_simplejwt',
]

LOCAL_APPS = [
    'apps.companies',
    'apps.users',
    'apps.authentication',
    'apps.permissions.apps.PermissionsConfig',
    'apps.audit',
    'apps.notifications',
    'apps.budgeting',
    'apps.finance',
    'apps.feedback',
]

INSTALLED_APPS += LOCAL_APPS

JAZZMIN_SETTINGS = {
    "site_title": "Fin Control Admin",
    "site_header": "Fin Control",
    "site_brand": "Fin Control",
    "welcome_sign": "Bem-vindo à administração do Fin Control",
    "copyright": "Fin Control",
    "search_model": ["users.User", "companies.Company", "finance.Transaction"],
    "user_avatar": None,
    "topmenu_links": [
        {"name": "Home", "url": "admin:index", "permissions": ["auth.view_user"]},
        {"model": "users.User"},
    ],
    "show_sidebar": True,
    "navigation_expanded": False,
    "order_with_respect_to": [
        "companies",
        "users",
        "finance",
        "budgeting",
        "audit",
        "notifications",
        "feedback",
    ],
    "icons": {
        "auth": "fas fa-users-cog",
        "users.user": "fas fa-user",
        "companies": "fas fa-building",
        "companies.company": "fas fa-building",
        "finance": "fas fa-dollar-sign",
        "finance.transaction": "fas fa-file-invoice-dollar",
        "finance.paymentbatch": "fas fa-layer-group",
        "finance.recurringtransactiontemplate": "fas fa-redo",
        "finance.entity": "fas fa-user-tie",
        "finance.companystats": "fas fa-wallet",
        "budgeting": "fas fa-calculator",
        "budgeting.costcenter": "fas fa-sitemap",
        "budgeting.budget": "fas fa-piggy-bank",
        "audit": "fas fa-history",
        "notifications": "fas fa-bell",
        "feedback": "fas fa-comment-dots",
    },
    "default_icon_parents": "fas fa-chevron-circle-right",
    "default_icon_children": "fas fa-circle",
    "related_modal_active": False,
    "show_ui_builder": False,
    "changeform_format": "horizontal_tabs",
}

JAZZMIN_UI_TWEAKS = {
    "navbar": "navbar-dark navbar-primary",
    "no_navbar_border": True,
    "navbar_fixed": True,
    "sidebar_fixed": True,
    "sidebar": "sidebar-dark-primary",
    "sidebar_nav_child_indent": True,
    "sidebar_nav_compact_style": True,
    "sidebar_nav_flat_style": True,
    "theme": "flatly",
    "dark_mode_theme": "darkly",
}

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'corsheaders.middleware.CorsMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'core.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [BASE_DIR / 'templates'],
        'APP_DIRS': True,
        'OPTIONS': {
            'context_processors': [
                'django.template.context_processors.debug',
                'django.template.context_processors.request',
                'django.contrib.auth.context_processors.auth',
                'django.contrib.messages.context_processors.messages',
            ],
        },
    },
]

WSGI_APPLICATION = 'core.wsgi.application'


# Database
# PostgreSQL in production via DATABASE_URL; SQLite is the local default.

DATABASES = {
    'default': dj_database_url.config(
        default=f"sqlite:///{(BASE_DIR / 'db.sqlite3').resolve()}",
        conn_max_age=env_int('DB_CONN_MAX_AGE', 0),
    )
}


AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]


# Internationalization

LANGUAGE_CODE = 'pt-br'

TIME_ZONE = 'America/Sao_Paulo'

USE_I18N = True

USE_TZ = True


STATIC_URL = 'static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

AUTH_USER_MODEL = 'users.User'


# Logging

LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO').upper()

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '%(asctime)s %(levelname)s %(name)s: %(message)s',
        },
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'formatter': 'verbose',
        },
    },
    'root': {
        'handlers': ['console'],
        'level': LOG_LEVEL,
    },
    'loggers': {
        'django': {
            'handlers': ['console'],
            'level': os.getenv('DJANGO_LOG_LEVEL', 'WARNING').upper(),
            'propagate': False,
        },
    },
}


# Redis / Celery

REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = env_int('REDIS_PORT', 6379)
REDIS_DB = env_int('REDIS_DB', 0)

CELERY_BROKER_URL = os.getenv('CELERY_BROKER_URL', f'redis://{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}')
CELERY_RESULT_BACKEND = os.getenv('CELERY_RESULT_BACKEND', f'redis://{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB}')
CELERY_ACCEPT_CONTENT = ['json']
CELERY_TASK_SERIALIZER = 'json'
CELERY_RESULT_SERIALIZER = 'json'
CELERY_TASK_DEFAULT_QUEUE = 'default'
CELERY_TIMEZONE = TIME_ZONE
CELERY_TASK_ALWAYS_EAGER = env_bool('CELERY_TASK_ALWAYS_EAGER', 'false')

CELERY_BEAT_SCHEDULE = {
    'finance-process-recurring-templates': {
        'task': 'apps.finance.process_recurring_templates',
        'schedule': crontab(hour=env_int('RECURRENCE_RUN_HOUR', 3), minute=0),  # Daily
    },
}


# E-mail
# Resend is used through its SMTP relay; without a key, messages are only logged.

EMAIL_ENABLED = env_bool('EMAIL_ENABLED', 'true')
RESEND_API_KEY = os.getenv('RESEND_API_KEY', '')
EMAIL_FROM_DOMAIN = os.getenv('EMAIL_FROM_DOMAIN', 'updates.fincontrol.ia.br')
DEFAULT_FROM_EMAIL = f"Fin Control <noreply@{EMAIL_FROM_DOMAIN}>"
DEV_FALLBACK_EMAIL = os.getenv('DEV_FALLBACK_EMAIL', '')
PUBLIC_APP_URL = os.getenv('PUBLIC_APP_URL', 'http://localhost:3000').rstrip('/')

EMAIL_BACKEND = os.getenv('EMAIL_BACKEND', 'django.core.mail.backends.smtp.EmailBackend')
EMAIL_HOST = os.getenv('EMAIL_HOST', 'smtp.resend.com')
EMAIL_PORT = env_int('EMAIL_PORT', 587)
EMAIL_HOST_USER = os.getenv('EMAIL_HOST_USER', 'resend')
EMAIL_HOST_PASSWORD = RESEND_API_KEY
EMAIL_USE_TLS = env_bool('EMAIL_USE_TLS', 'true')
EMAIL_TIMEOUT = env_int('EMAIL_TIMEOUT', 10)


# Finance workflow

BATCH_TOKEN_TTL_HOURS = env_int('BATCH_TOKEN_TTL_HOURS', 72)
APPROVAL_TOKEN_TTL_HOURS = env_int('APPROVAL_TOKEN_TTL_HOURS', 72)


# DRF & Schema

REST_FRAMEWORK = {
    'DEFAULT_SCHEMA_CLASS': 'drf_spectacular.openapi.AutoSchema',
    # Prefer JWT first to avoid unintended CSRF enforcement via SessionAuthentication
    'DEFAULT_AUTHENTICATION_CLASSES': (
        'rest_framework_simplejwt.authentication.JWTAuthentication',
        'rest_framework.authentication.SessionAuthentication',
    ),
    'DEFAULT_PERMISSION_CLASSES': (
        'rest_framework.permissions.IsAuthenticated',
    ),
    'DEFAULT_THROTTLE_RATES': {
        'email': os.getenv('EMAIL_RATE_LIMIT', '10/min'),
        'anon': os.getenv('PUBLIC_LINK_RATE_LIMIT', '30/min'),
    },
}

SIMPLE_JWT = {
    'ACCESS_TOKEN_LIFETIME': timedelta(minutes=env_int('JWT_ACCESS_MINUTES', 60)),
    'REFRESH_TOKEN_LIFETIME': timedelta(days=env_int('JWT_REFRESH_DAYS', 7)),
}

SPECTACULAR_SETTINGS = {
    'TITLE': 'Fin Control API',
    'DESCRIPTION': 'Contas a pagar/receber, centros de custo, recorrências e lotes de pagamento.',
    'VERSION': '1.0.0',
}

CACHES = {
    'default': {
        'BACKEND': 'django.core.cache.backends.locmem.LocMemCache',
        'LOCATION': 'fincontrol',
    }
}


# Dev CORS/CSRF for the local frontend

CSRF_TRUSTED_ORIGINS = env_list('CSRF_TRUSTED_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000')
CORS_ALLOWED_ORIGINS = env_list('CORS_ALLOWED_ORIGINS', 'http://localhost:3000,http://127.0.0.1:3000')
CORS_ALLOW_CREDENTIALS = True
