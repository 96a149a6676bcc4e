# config/settings/base.py
from pathlib import Path
import os
from dotenv import load_dotenv
from datetime import timedelta


BASE_DIR = Path(__file__).resolve().parent.parent.parent
load_dotenv(BASE_DIR / ".env")

SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "unsafe-dev-key")
DEBUG = os.getenv("DJANGO_DEBUG", "0") == "1"
ALLOWED_HOSTS = ["*"]

INSTALLED_APPS = [
    # Django
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",

    # Third-party
    "corsheaders",
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_spectacular",
    "django_filters",

    # Domain apps
    "union_core.common.apps.CommonConfig",
    "union_core.unions.apps.UnionsConfig",
    "union_core.iam.apps.IamConfig",
    "union_core.members.apps.MembersConfig",
    "union_core.gis.apps.GisConfig",
    "union_core.consents.apps.ConsentsConfig",
    "union_core.notifications.apps.NotificationsConfig",
    "union_core.uploads.apps.UploadsConfig",
    "union_core.audit.apps.AuditConfig",
]

MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",

    # resolves /api/v1/u/<slug>/ into request.union / request.tenant_id
    "union_core.common.middleware.UnionScopeMiddleware",

    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]


ROOT_URLCONF = "config.urls"

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
    }
]

WSGI_APPLICATION = "config.wsgi.application"

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.postgresql",
        "NAME": os.getenv("DB_NAME", "union_portal"),
        "USER": os.getenv("DB_USER", "union_portal"),
        "PASSWORD": os.getenv("DB_PASSWORD", "union_portal"),
        "HOST": os.getenv("DB_HOST", "127.0.0.1"),
        "PORT": os.getenv("DB_PORT", "5432"),
    }
}

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.UserAttributeSimilarityValidator"},
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
    {"NAME": "django.contrib.auth.password_validation.CommonPasswordValidator"},
    {"NAME": "django.contrib.auth.password_validation.NumericPasswordValidator"},
]

LANGUAGE_CODE = "ko-kr"
TIME_ZONE = "Asia/Seoul"
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
MEDIA_URL = "media/"
MEDIA_ROOT = BASE_DIR / "media"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "union_core.iam.auth.CookieOrHeaderJWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": (
        "rest_framework.permissions.IsAuthenticated",
    ),
    "DEFAULT_SCHEMA_CLASS": "union_core.common.openapi.UnionAutoSchema",

    # Standard error envelope
    "EXCEPTION_HANDLER": "union_core.common.api.exceptions.api_exception_handler",

    "DEFAULT_FILTER_BACKENDS": [
        "django_filters.rest_framework.DjangoFilterBackend",
        "rest_framework.filters.OrderingFilter",
        "rest_framework.filters.SearchFilter",
    ],

    "DEFAULT_PAGINATION_CLASS": "union_core.common.api.pagination.DefaultPagination",
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Union Portal API",
    "DESCRIPTION": "Redevelopment union membership, parcel/building matching and consent tracking",
    "VERSION": "0.1.0",

    "COMPONENT_SPLIT_REQUEST": True,
    "SORT_OPERATIONS": True,
    "SORT_OPERATION_PARAMETERS": True,

    # CookieOrHeaderJWTAuthenticationScheme in union_core/iam/openapi.py
    "SECURITY": [
        {"BearerOrCookieJWT": []}
    ],

    # Remove unversioned /api/* endpoints, keep /api/v1/*
    "PREPROCESSING_HOOKS": [
        "union_core.common.spectacular_hooks.preprocess_exclude_legacy_api",
    ],
}

SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=10),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=14),
    "ROTATE_REFRESH_TOKENS": True,
    "BLACKLIST_AFTER_ROTATION": False,
    "UPDATE_LAST_LOGIN": True,

    # Cookie settings
    "AUTH_COOKIE": "uc_access",
    "AUTH_COOKIE_REFRESH": "uc_refresh",
    "AUTH_COOKIE_SECURE": False,
    "AUTH_COOKIE_HTTP_ONLY": True,
    "AUTH_COOKIE_SAMESITE": "Lax",
}

CORS_ALLOW_ALL_ORIGINS = True
CORS_ALLOW_CREDENTIALS = True

# Logging
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {"format": "%(asctime)s %(levelname)s %(name)s: %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "simple"},
    },
    "loggers": {
        "union_core": {
            "handlers": ["console"],
            "level": os.getenv("DJANGO_LOG_LEVEL", "INFO"),
            "propagate": False,
        },
    },
}

# External services
EXTERNAL_HTTP_TIMEOUT = int(os.getenv("EXTERNAL_HTTP_TIMEOUT", "10"))

# Aligo alimtalk
NOTIFICATIONS_ENABLED = os.getenv("NOTIFICATIONS_ENABLED", "0") == "1"
ALIGO_API_URL = os.getenv("ALIGO_API_URL", "https://kakaoapi.aligo.in/akv10/alimtalk/send/")
ALIGO_API_KEY = os.getenv("ALIGO_API_KEY", "")
ALIGO_USER_ID = os.getenv("ALIGO_USER_ID", "")
ALIGO_SENDER_KEY = os.getenv("ALIGO_SENDER_KEY", "")
ALIGO_SENDER = os.getenv("ALIGO_SENDER", "")
# internal template code -> Aligo tpl_code
ALIMTALK_TEMPLATE_CODES = {
    "MEMBER_APPROVED": os.getenv("ALIMTALK_TPL_MEMBER_APPROVED", ""),
    "MEMBER_REJECTED": os.getenv("ALIMTALK_TPL_MEMBER_REJECTED", ""),
    "MEMBER_INVITE": os.getenv("ALIMTALK_TPL_MEMBER_INVITE", ""),
    "CONSENT_REMINDER": os.getenv("ALIMTALK_TPL_CONSENT_REMINDER", ""),
}

# Address -> PNU lookup
ADDRESS_LOOKUP_URL = os.getenv("ADDRESS_LOOKUP_URL", "")
ADDRESS_LOOKUP_TOKEN = os.getenv("ADDRESS_LOOKUP_TOKEN", "")

# Uploads
UPLOAD_BUCKET = os.getenv("UPLOAD_BUCKET", "post-upload")

# Invites
INVITE_BASE_URL = os.getenv("INVITE_BASE_URL", "http://localhost:3000")
INVITE_EXPIRY_DAYS = int(os.getenv("INVITE_EXPIRY_DAYS", "7"))
