"""
Django settings for namc_server project.
Base settings shared across all environments.
"""

import pymysql
from pathlib import Path
from datetime import timedelta
from decouple import config, Csv

# Configure PyMySQL to work with Django
pymysql.install_as_MySQLdb()

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = config('SECRET_KEY', default='django-insecure-change-me-in-production')

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = config('DEBUG', default=True, cast=bool)

ALLOWED_HOSTS = config('ALLOWED_HOSTS', default='*', cast=Csv())

# Application definition
DJANGO_APPS = [
    'django.contrib.admin',
    'django.contrib.auth',
    'django.contrib.contenttypes',
    'django.contrib.sessions',
    'django.contrib.messages',
    'django.contrib.staticfiles',
]

THIRD_PARTY_APPS = [
    'rest_framework',
]

LOCAL_APPS = [
    'apps.users',
    'apps.common',
    'apps.payments',
    'apps.notifications',
    'apps.membership',
    'apps.referrals',
]

INSTALLED_APPS = DJANGO_APPS + THIRD_PARTY_APPS + LOCAL_APPS

MIDDLEWARE = [
    'django.middleware.security.SecurityMiddleware',
    'django.contrib.sessions.middleware.SessionMiddleware',
    'django.middleware.common.CommonMiddleware',
    'django.middleware.csrf.CsrfViewMiddleware',
    'django.contrib.auth.middleware.AuthenticationMiddleware',
    'apps.common.middleware.RateLimitMiddleware',
    'django.contrib.messages.middleware.MessageMiddleware',
    'django.middleware.clickjacking.XFrameOptionsMiddleware',
]

ROOT_URLCONF = 'namc_server.urls'

TEMPLATES = [
    {
        'BACKEND': 'django.template.backends.django.DjangoTemplates',
        'DIRS': [],
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

WSGI_APPLICATION = 'namc_server.wsgi.application'

# Database
DATABASES = {
    'default': {
        'ENGINE': 'django.db.backends.mysql',
        'NAME': config('MYSQL_DATABASE', default='namc_server'),
        'USER': config('MYSQL_USERNAME', default='root'),
        'PASSWORD': config('MYSQL_PASSWORD', default=''),
        'HOST': config('MYSQL_HOST', default='localhost'),
        'PORT': config('MYSQL_PORT', default='3306'),
        'OPTIONS': {
            'charset': 'utf8mb4',
            'init_command': "SET sql_mode='STRICT_TRANS_TABLES'",
        },
        'CONN_MAX_AGE': config('DB_CONN_MAX_AGE', default=600, cast=int),
    }
}

# Custom User Model
AUTH_USER_MODEL = 'users.User'

AUTH_PASSWORD_VALIDATORS = [
    {
        'NAME': 'django.contrib.auth.password_validation.UserAttributeSimilarityValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.MinimumLengthValidator',
        'OPTIONS': {
            'min_length': 8,
        }
    },
    {
        'NAME': 'django.contrib.auth.password_validation.CommonPasswordValidator',
    },
    {
        'NAME': 'django.contrib.auth.password_validation.NumericPasswordValidator',
    },
]

# Security Settings
SECURE_BROWSER_XSS_FILTER = True
SECURE_CONTENT_TYPE_NOSNIFF = True
X_FRAME_OPTIONS = 'DENY'
SECURE_HSTS_SECONDS = 31536000 if not DEBUG else 0
SECURE_HSTS_INCLUDE_SUBDOMAINS = True

CSRF_COOKIE_SECURE = not DEBUG
CSRF_COOKIE_HTTPONLY = True
SESSION_COOKIE_SECURE = not DEBUG
SESSION_COOKIE_HTTPONLY = True
SESSION_COOKIE_AGE = 3600  # 1 hour

# Internationalization
LANGUAGE_CODE = 'en-us'
TIME_ZONE = 'America/Los_Angeles'
USE_I18N = True
USE_TZ = True

# Static files
STATIC_URL = '/static/'
STATIC_ROOT = BASE_DIR / 'staticfiles'

# Default primary key field type
DEFAULT_AUTO_FIELD = 'django.db.models.BigAutoField'

# Django REST Framework (serializers are used for payload validation)
REST_FRAMEWORK = {
    'DEFAULT_RENDERER_CLASSES': [
        'rest_framework.renderers.JSONRenderer',
    ],
    'PAGE_SIZE': 20,
}

# Cache Configuration
# The rate limiter keeps its counters here. LocMemCache is per-process;
# point this at a shared backend to share limits across instances.
CACHES = {
    'default': {
        'BACKEND': config('CACHE_BACKEND', default='django.core.cache.backends.locmem.LocMemCache'),
        'LOCATION': config('CACHE_LOCATION', default='namc-server'),
        'TIMEOUT': 300,
        'KEY_PREFIX': 'namc',
    }
}

# Email
EMAIL_BACKEND = config('EMAIL_BACKEND', default='django.core.mail.backends.smtp.EmailBackend')
EMAIL_HOST = config('SMTP_HOST', default='')
EMAIL_PORT = config('SMTP_PORT', default=587, cast=int)
EMAIL_USE_TLS = config('SMTP_SECURE', default=False, cast=bool)
EMAIL_HOST_USER = config('SMTP_USER', default='')
EMAIL_HOST_PASSWORD = config('SMTP_PASS', default='')
DEFAULT_FROM_EMAIL = config('SMTP_FROM', default='noreply@namcnorcal.org')

# SMS (Twilio REST API)
TWILIO_SID = config('TWILIO_SID', default='')
TWILIO_TOKEN = config('TWILIO_TOKEN', default='')
TWILIO_PHONE = config('TWILIO_PHONE', default='')
TWILIO_API_URL = 'https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json'
TWILIO_TIMEOUT = config('TWILIO_TIMEOUT', default=10, cast=int)

# Web push
VAPID_PUBLIC_KEY = config('VAPID_PUBLIC_KEY', default='')
VAPID_PRIVATE_KEY = config('VAPID_PRIVATE_KEY', default='')

# Membership tiers. duration_months=None means the tier never expires.
MEMBERSHIP_TIERS = {
    'REGULAR': {
        'price': '0',
        'duration_months': 12,
        'benefits': ['Basic access', 'Monthly newsletter'],
    },
    'PREMIUM': {
        'price': '99',
        'duration_months': 12,
        'benefits': ['Premium access', 'Priority support', 'Exclusive events'],
    },
    'LIFETIME': {
        'price': '999',
        'duration_months': None,
        'benefits': ['Lifetime access', 'All premium benefits', 'VIP status'],
    },
    'HONORARY': {
        'price': '0',
        'duration_months': None,
        'benefits': ['Honorary status', 'All premium benefits'],
    },
}
MEMBERSHIP_TIER_ORDER = ['REGULAR', 'PREMIUM', 'LIFETIME', 'HONORARY']
MEMBERSHIP_PROMO_HANDLER = 'apps.membership.promotions.passthrough_promo'
MEMBERSHIP_EXPIRY_NOTICE_DAYS = [30, 7, 1]

# Referral commissions keyed by performance tier
COMMISSION_RULES = {
    'TIER_1': {'percentage': '10', 'flat_amount': '0', 'minimum_sale': '50'},
    'TIER_2': {'percentage': '15', 'flat_amount': '5', 'minimum_sale': '100'},
    'TIER_3': {'percentage': '20', 'flat_amount': '10', 'minimum_sale': '200'},
}
REFERRAL_PAYOUT_MINIMUM = config('REFERRAL_PAYOUT_MINIMUM', default='25.00')
REFERRAL_DISCOUNT_PERCENT = 10

# Notifications
NOTIFICATION_BULK_BATCH_SIZE = 50
NOTIFICATION_SEND_WORKERS = config('NOTIFICATION_SEND_WORKERS', default=8, cast=int)

# Audit trail
AUDIT_EXPORT_LIMIT = 10000
AUDIT_RETENTION_DAYS = config('AUDIT_RETENTION_DAYS', default=365, cast=int)
SUSPICIOUS_ACTIVITY_THRESHOLDS = {
    'failed_logins_per_ip': 10,
    'data_access_per_user': 100,
    'off_hours_events_per_user': 20,
    'business_hours': (6, 22),
    'window_hours': 24,
}

# Rate limits: (max requests, window seconds, block seconds)
RATE_LIMITS = {
    'login': (5, 15 * 60, 30 * 60),
    'api': (100, 15 * 60, 15 * 60),
    'email': (3, 60 * 60, 60 * 60),
}
RATE_LIMIT_ENABLED = config('RATE_LIMIT_ENABLED', default=True, cast=bool)
RATE_LIMIT_LOGIN_PATHS = ['/api/auth/login']

# Logging
LOG_DIR = BASE_DIR / 'logs'

LOGGING = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'verbose': {
            'format': '[{levelname}] {asctime} {module} {process:d} {thread:d} {message}',
            'style': '{',
        },
        'simple': {
            'format': '[{levelname}] {message}',
            'style': '{',
        },
        'security': {
            'format': '[SECURITY] %(asctime)s %(levelname)s %(message)s',
            'style': '%',
        },
        'audit': {
            'format': '[AUDIT] %(asctime)s %(levelname)s %(message)s',
            'style': '%',
        },
        'json': {
            'format': '{"timestamp": "%(asctime)s", "level": "%(levelname)s", "logger": "%(name)s", "message": "%(message)s", "module": "%(module)s", "process": %(process)d, "thread": %(thread)d}',
            'style': '%',
        },
    },
    'handlers': {
        'console': {
            'level': 'DEBUG',
            'class': 'logging.StreamHandler',
            'formatter': 'simple',
        },
        'file': {
            'level': 'INFO',
            'class': 'logging.FileHandler',
            'filename': LOG_DIR / 'django.log',
            'formatter': 'verbose',
            'delay': True,
        },
        'security_file': {
            'level': 'INFO',
            'class': 'logging.FileHandler',
            'filename': LOG_DIR / 'security.log',
            'formatter': 'security',
            'delay': True,
        },
        'audit_file': {
            'level': 'INFO',
            'class': 'logging.FileHandler',
            'filename': LOG_DIR / 'audit.log',
            'formatter': 'audit',
            'delay': True,
        },
        'security_alerts': {
            'level': 'CRITICAL',
            'class': 'logging.FileHandler',
            'filename': LOG_DIR / 'security_alerts.log',
            'formatter': 'json',
            'delay': True,
        },
    },
    'root': {
        'handlers': ['console', 'file'],
        'level': 'INFO',
    },
    'loggers': {
        'django': {
            'handlers': ['console', 'file'],
            'level': 'INFO',
            'propagate': False,
        },
        'security': {
            'handlers': ['security_file', 'console'],
            'level': 'INFO',
            'propagate': False,
        },
        'security.audit': {
            'handlers': ['audit_file', 'security_file'],
            'level': 'INFO',
            'propagate': False,
        },
        'security.alerts': {
            'handlers': ['security_alerts', 'security_file', 'console'],
            'level': 'CRITICAL',
            'propagate': False,
        },
        'notifications': {
            'handlers': ['file', 'console'],
            'level': 'INFO',
            'propagate': False,
        },
    },
}
