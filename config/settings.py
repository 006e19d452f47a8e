"""
Ledgerline – Django Settings (Infrastructure Only)
===================================================
Django serves as the framework container for Ledgerline.
The command core owns the audit/undo contract; Django supplies the ORM,
the HTTP layer and translation catalogs.

INSTALLED_APPS lists the audit store first, then the shared data layer,
then the business modules whose commands are registered at startup.
"""

import os
from pathlib import Path

# ── Paths ─────────────────────────────────────────────────────
# BASE_DIR = project root (where pyproject.toml lives)
BASE_DIR = Path(__file__).resolve().parent.parent


def _env_flag(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


# ── Security ──────────────────────────────────────────────────
SECRET_KEY = os.environ.get(
    "LEDGERLINE_SECRET_KEY",
    "ledgerline-dev-key-replace-before-deployment",
)

DEBUG = _env_flag("LEDGERLINE_DEBUG", True)

ALLOWED_HOSTS = ["localhost", "127.0.0.1", "testserver"]

# ── Installed Apps ────────────────────────────────────────────
INSTALLED_APPS = [
    "django.contrib.auth",
    "django.contrib.contenttypes",
    # ── Ledgerline core (added in build order) ────────────
    "core.audit",
    "core.data",
    # ── Business modules ──────────────────────────────────
    "modules.example",
    "modules.directory",
    "modules.feature_toggles",
]

# ── Middleware ────────────────────────────────────────────────
MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.middleware.common.CommonMiddleware",
]

# ── URL & ASGI ────────────────────────────────────────────────
ROOT_URLCONF = "config.urls"

# ── Database ──────────────────────────────────────────────────
# SQLite for development. The test database is file-backed so async ORM
# calls running on worker threads share one database.
DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": BASE_DIR / "db.sqlite3",
        "TEST": {
            "NAME": BASE_DIR / "test_ledgerline.sqlite3",
        },
    }
}

# ── Internationalization ──────────────────────────────────────
LANGUAGE_CODE = "en-us"
TIME_ZONE = "UTC"
USE_I18N = True
USE_TZ = True

# ── Default Primary Key ──────────────────────────────────────
# Ledgerline models declare UUID primary keys explicitly.
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ── CRUD read-view cache ─────────────────────────────────────
LEDGERLINE_CRUD_CACHE_ENABLED = _env_flag("LEDGERLINE_CRUD_CACHE_ENABLED", True)
LEDGERLINE_CRUD_CACHE_DEBUG = _env_flag("LEDGERLINE_CRUD_CACHE_DEBUG", False)
LEDGERLINE_CRUD_CACHE_MAX_SIZE = 1000
LEDGERLINE_CRUD_CACHE_TTL_SECONDS = 300

# ── Audit log listing ────────────────────────────────────────
LEDGERLINE_ACTION_LOG_LIST_LIMIT = 50

# ── Logging ───────────────────────────────────────────────────
LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {
            "format": "%(asctime)s %(levelname)s %(name)s: %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "plain",
        },
    },
    "loggers": {
        "ledgerline": {
            "handlers": ["console"],
            "level": os.environ.get("LEDGERLINE_LOG_LEVEL", "INFO"),
            "propagate": True,
        },
    },
}
