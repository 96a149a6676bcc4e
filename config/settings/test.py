# config/settings/test.py
from .base import *  # noqa

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

STORAGES = {
    "default": {"BACKEND": "django.core.files.storage.InMemoryStorage"},
    "staticfiles": {"BACKEND": "django.contrib.staticfiles.storage.StaticFilesStorage"},
}

NOTIFICATIONS_ENABLED = True
ALIGO_API_URL = "https://alimtalk.test/send/"
ALIGO_API_KEY = "test-key"
ALIGO_USER_ID = "test-user"
ALIGO_SENDER_KEY = "test-sender-key"
ALIGO_SENDER = "0212345678"
ALIMTALK_TEMPLATE_CODES = {
    "MEMBER_APPROVED": "TPL_APPROVED",
    "MEMBER_REJECTED": "TPL_REJECTED",
    "MEMBER_INVITE": "TPL_INVITE",
    "CONSENT_REMINDER": "TPL_REMINDER",
}

ADDRESS_LOOKUP_URL = "https://address.test/lookup"
ADDRESS_LOOKUP_TOKEN = "test-token"

INVITE_BASE_URL = "https://portal.test"
