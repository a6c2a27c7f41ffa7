"""
BizzyTrack – Django Settings (Infrastructure Only)
===================================================
Django serves as the framework container: database connections and
transactions for the opening-balance migration, and the thin HTTP
adapter in adapters/django_api. Engines do not depend on Django.
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
BASE_DIR = Path(__file__).resolve().parent.parent

# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get(
    "BIZZYTRACK_SECRET_KEY", "bizzytrack-dev-key-replace-before-deployment"
)

DEBUG = os.environ.get("BIZZYTRACK_DEBUG", "1") == "1"

ALLOWED_HOSTS = [
    host.strip()
    for host in os.environ.get("BIZZYTRACK_ALLOWED_HOSTS", "").split(",")
    if host.strip()
]

# ── Installed Apps ────────────────────────────────────────────
# Django infrastructure only. Engines keep their state in projections
# and write migration rows through raw SQL.
INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
]

# ── Middleware ────────────────────────────────────────────────
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

# ── URL ───────────────────────────────────────────────────────
ROOT_URLCONF = "config.urls"

# ── Database ──────────────────────────────────────────────────
# SQLite for development. Point BIZZYTRACK_DB_ENGINE / BIZZYTRACK_DB_NAME
# at the operational database for the migration CLI.
DATABASES = {
    "default": {
        "ENGINE": os.environ.get(
            "BIZZYTRACK_DB_ENGINE", "django.db.backends.sqlite3"
        ),
        "NAME": os.environ.get("BIZZYTRACK_DB_NAME", str(BASE_DIR / "db.sqlite3")),
        "USER": os.environ.get("BIZZYTRACK_DB_USER", ""),
        "PASSWORD": os.environ.get("BIZZYTRACK_DB_PASSWORD", ""),
        "HOST": os.environ.get("BIZZYTRACK_DB_HOST", ""),
        "PORT": os.environ.get("BIZZYTRACK_DB_PORT", ""),
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# ── Default Primary Key ──────────────────────────────────────
# BizzyTrack uses UUIDs explicitly. This is a Django fallback only.
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── Logging ───────────────────────────────────────────────────
LOG_LEVEL = os.environ.get("BIZZYTRACK_LOG_LEVEL", "INFO")

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "standard",
        },
    },
    "loggers": {
        "bizzytrack": {
            "handlers": ["console"],
            "level": LOG_LEVEL,
            "propagate": False,
        },
    },
}
