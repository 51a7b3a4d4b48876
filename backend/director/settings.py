import os
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent

SECRET_KEY = os.environ.get("DJANGO_SECRET_KEY", "dev-insecure-change-me")
DEBUG = os.environ.get("DJANGO_DEBUG", "false").lower() == "true"

ALLOWED_HOSTS = [host.strip() for host in os.environ.get("DJANGO_ALLOWED_HOSTS", "*").split(",") if host.strip()]

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "agent_broadcast.apps.AgentBroadcastConfig",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "director.urls"

TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

if os.environ.get("POSTGRES_HOST"):
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.postgresql",
            "NAME": os.environ.get("POSTGRES_DB", "director"),
            "USER": os.environ.get("POSTGRES_USER", "director"),
            "PASSWORD": os.environ.get("POSTGRES_PASSWORD", "director"),
            "HOST": os.environ.get("POSTGRES_HOST"),
            "PORT": os.environ.get("POSTGRES_PORT", "5432"),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": "django.db.backends.sqlite3",
            "NAME": BASE_DIR / "db.sqlite3",
        }
    }

LANGUAGE_CODE = "en-us"
TIME_ZONE = os.environ.get("DJANGO_TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True

STATIC_URL = "/static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "plain": {"format": "%(asctime)s %(levelname)s %(name)s %(message)s"},
    },
    "handlers": {
        "console": {"class": "logging.StreamHandler", "formatter": "plain"},
    },
    "root": {
        "handlers": ["console"],
        "level": os.environ.get("DJANGO_LOG_LEVEL", "INFO").upper(),
    },
}

# Deadline window for sync_dns broadcasts. Production waits minutes for slow agents.
AGENT_BROADCAST_TIMEOUT_SECONDS = float(os.environ.get("DIRECTOR_AGENT_BROADCAST_TIMEOUT", "300"))

AGENT_DIRECTORY = {
    "transport": os.environ.get("DIRECTOR_AGENT_TRANSPORT", "ssm"),
    "ssm": {
        "region": os.environ.get("AWS_REGION") or os.environ.get("AWS_DEFAULT_REGION") or "",
        "document_name": os.environ.get("DIRECTOR_AGENT_SSM_DOCUMENT", "AWS-RunShellScript"),
        "sync_dns_command": os.environ.get("DIRECTOR_AGENT_SYNC_DNS_COMMAND", "/opt/agent/bin/sync-dns"),
        "poll_interval_seconds": float(os.environ.get("DIRECTOR_AGENT_SSM_POLL_INTERVAL", "2")),
        "max_wait_seconds": float(os.environ.get("DIRECTOR_AGENT_SSM_MAX_WAIT", "900")),
    },
}

DIRECTOR_JOBS_REDIS_URL = os.environ.get("DIRECTOR_JOBS_REDIS_URL", "redis://redis:6379/0")
# rq job timeout; must outlast the broadcast deadline plus the cancellation and ledger tail.
DIRECTOR_JOB_TIMEOUT_SECONDS = int(
    os.environ.get("DIRECTOR_JOB_TIMEOUT_SECONDS") or AGENT_BROADCAST_TIMEOUT_SECONDS + 600
)
