"""
Django settings for unidocs_backend project.

Base configuration of the UniDocs backend:
- DRF + JWT (SimpleJWT)
- CORS Headers
- PostgreSQL through environment variables, SQLite fallback for development
- Custom user model `users.User`
- Private document storage (local disk or S3/MinIO)
"""

from datetime import timedelta
from pathlib import Path
import os

# Build paths inside the project like this: BASE_DIR / 'subdir'.
BASE_DIR = Path(__file__).resolve().parent.parent


# SECURITY WARNING: keep the secret key used in production secret!
SECRET_KEY = os.getenv(
    "DJANGO_SECRET_KEY",
    "django-insecure-4w!h2u#p0a7v8x$k^c3t1m9q)z6y5e(r-j&n@b_s%d=f+g*l",
)

# SECURITY WARNING: don't run with debug turned on in production!
DEBUG = os.getenv("DJANGO_DEBUG", "true").lower() == "true"

ALLOWED_HOSTS = (
    os.getenv("DJANGO_ALLOWED_HOSTS", "*").split(",")
    if os.getenv("DJANGO_ALLOWED_HOSTS")
    else (["*"] if DEBUG else [])
)


# Application definition

INSTALLED_APPS = [
    # Django core
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "rest_framework",
    "corsheaders",
    "django_filters",

    # Local apps
    "users",
    "pedagogues",
    "academic",
    "students",
    "audit",
    "documents",
    "verification",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    # CORS must sit as high as possible, right after SecurityMiddleware
    "corsheaders.middleware.CorsMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
    "verification.middleware.NormalizeVerificationPathMiddleware",
]

ROOT_URLCONF = "unidocs_backend.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    },
]

WSGI_APPLICATION = "unidocs_backend.wsgi.application"


# Database
# PostgreSQL from environment variables; SQLite fallback for local development
if os.getenv("POSTGRES_DB"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.getenv("POSTGRES_DB"),
            "USER": os.getenv("POSTGRES_USER", "postgres"),
            "PASSWORD": os.getenv("POSTGRES_PASSWORD", ""),
            "HOST": os.getenv("POSTGRES_HOST", "localhost"),
            "PORT": os.getenv("POSTGRES_PORT", "5432"),
            "CONN_MAX_AGE": 60,
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "unidocs",
    }
}


AUTH_PASSWORD_VALIDATORS = [
    {
        "NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.MinimumLengthValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.CommonPasswordValidator",
    },
    {
        "NAME": "django.contrib.auth.password_validation.NumericPasswordValidator",
    },
]


LANGUAGE_CODE = "en-gb"

TIME_ZONE = os.getenv("DJANGO_TIME_ZONE", "Europe/Tirane")

USE_I18N = True

USE_TZ = True


STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

MEDIA_URL = "/media/"
MEDIA_ROOT = BASE_DIR / "media"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# Django REST Framework
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_FILTER_BACKENDS": (
        "django_filters.rest_framework.DjangoFilterBackend",
    ),
    "DEFAULT_THROTTLE_RATES": {
        "public_verify": os.getenv("PUBLIC_VERIFY_THROTTLE_RATE_DEFAULT", "60/min"),
        "auth_login_ip": os.getenv("AUTH_LOGIN_IP_THROTTLE_RATE_DEFAULT", "20/min"),
    },
    "EXCEPTION_HANDLER": "documents.exceptions.api_exception_handler",
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=int(os.getenv("JWT_ACCESS_MINUTES", "30"))),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=int(os.getenv("JWT_REFRESH_DAYS", "1"))),
}

# Optional per-environment overrides (read by the throttles themselves).
PUBLIC_VERIFY_THROTTLE_RATE = os.getenv("PUBLIC_VERIFY_THROTTLE_RATE", "")
AUTH_LOGIN_IP_THROTTLE_RATE = os.getenv("AUTH_LOGIN_IP_THROTTLE_RATE", "")

# CORS
CORS_ALLOWED_ORIGINS = [
    origin
    for origin in os.getenv("CORS_ALLOWED_ORIGINS", "").split(",")
    if origin.strip()
]

if DEBUG and not CORS_ALLOWED_ORIGINS:
    CORS_ALLOW_ALL_ORIGINS = True

# Custom user model
AUTH_USER_MODEL = "users.User"


# Logging
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": os.getenv("DJANGO_LOG_LEVEL", "INFO"),
    },
    "loggers": {
        "django": {
            "handlers": ["console"],
            "level": os.getenv("DJANGO_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}


# Public site used to build verification URLs embedded in QR codes.
PUBLIC_SITE_URL = os.getenv("PUBLIC_SITE_URL", "http://localhost:3000")

# Document artifacts
ARTIFACT_STORE_BACKEND = os.getenv("ARTIFACT_STORE_BACKEND", "local").strip().lower()
PRIVATE_STORAGE_ROOT = Path(os.getenv("PRIVATE_STORAGE_ROOT", str(BASE_DIR / "private")))

S3_BUCKET_NAME = os.getenv("S3_BUCKET_NAME", "unidocs-documents")
S3_ENDPOINT_URL = os.getenv("S3_ENDPOINT_URL", "")
S3_ACCESS_KEY_ID = os.getenv("S3_ACCESS_KEY_ID", "")
S3_SECRET_ACCESS_KEY = os.getenv("S3_SECRET_ACCESS_KEY", "")
S3_REGION_NAME = os.getenv("S3_REGION_NAME", "us-east-1")

DOCUMENT_DOWNLOAD_URL_TTL_SECONDS = int(os.getenv("DOCUMENT_DOWNLOAD_URL_TTL_SECONDS", "3600"))
DOCUMENTS_PDF_BACKEND = os.getenv("DOCUMENTS_PDF_BACKEND", "documents.pdf.render_pdf_bytes_from_html")

VERIFICATION_HISTORY_PAGE_SIZE = int(os.getenv("VERIFICATION_HISTORY_PAGE_SIZE", "50"))
ORPHAN_SWEEP_GRACE_MINUTES = int(os.getenv("ORPHAN_SWEEP_GRACE_MINUTES", "60"))

# Academic defaults
CURRENT_ACADEMIC_YEAR = os.getenv("CURRENT_ACADEMIC_YEAR", "2024-2025")
PASSING_GRADE = int(os.getenv("PASSING_GRADE", "5"))

# PDF letterhead
INSTITUTION_NAME = os.getenv("INSTITUTION_NAME", "Polytechnic University of Tirana")
INSTITUTION_FACULTY = os.getenv("INSTITUTION_FACULTY", "Faculty of Information Technology")
INSTITUTION_CONTACT_LINE = os.getenv(
    "INSTITUTION_CONTACT_LINE",
    'Sheshi "Nënë Tereza", Nr.4, Tiranë, Albania | Tel: +355 4 2222 222 | Email: info@fti.edu.al',
)
SIGNATURE_LEFT_LABEL = os.getenv("SIGNATURE_LEFT_LABEL", "Dean Signature")
SIGNATURE_RIGHT_LABEL = os.getenv("SIGNATURE_RIGHT_LABEL", "Faculty Seal")


# Celery
CELERY_BROKER_URL = os.getenv("CELERY_BROKER_URL", "redis://localhost:6379/0")
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", "")
CELERY_TASK_ALWAYS_EAGER = os.getenv("CELERY_TASK_ALWAYS_EAGER", "false").lower() == "true"
CELERY_BEAT_SCHEDULE = {
    "sweep-orphaned-artifacts": {
        "task": "documents.tasks.sweep_orphaned_artifacts_task",
        "schedule": timedelta(hours=6),
        "kwargs": {"apply": True},
    },
}
