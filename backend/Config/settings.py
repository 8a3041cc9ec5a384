"""
Django settings for Config project.

所有可变配置均通过环境变量注入，缺省值面向本地开发与单元测试：
- 数据库默认 SQLite；Redis 缓存默认关闭，排行榜每次实时计算
- Channels 在未启用 Redis 时使用进程内 channel layer
"""

import os
from datetime import timedelta
from pathlib import Path

BASE_DIR = Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_list(name: str, default: str = "") -> list[str]:
    return [item.strip() for item in os.getenv(name, default).split(",") if item.strip()]


SECRET_KEY = os.getenv("DJANGO_SECRET_KEY", "dev-insecure-contest-arena-secret-key-change-me")
DEBUG = _env_bool("DEBUG")
ALLOWED_HOSTS = _env_list("ALLOWED_HOSTS", "localhost,127.0.0.1,testserver")

INSTALLED_APPS = [
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "drf_spectacular",
    "channels",
    "apps.common",
    "apps.accounts",
    "apps.contests",
    "apps.submissions",
    "apps.notifications",
]

MIDDLEWARE = [
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "apps.common.middleware.RequestContextMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "Config.urls"

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

ASGI_APPLICATION = "Config.asgi.application"

# 数据库：DB_ENGINE 为空时使用 SQLite
DB_ENGINE = os.getenv("DB_ENGINE", "django.db.backends.sqlite3")
if DB_ENGINE.endswith("sqlite3"):
    DATABASES = {
        "default": {
            "ENGINE": DB_ENGINE,
            "NAME": os.getenv("DB_NAME", str(BASE_DIR / "db.sqlite3")),
        }
    }
else:
    DATABASES = {
        "default": {
            "ENGINE": DB_ENGINE,
            "NAME": os.getenv("DB_NAME", "contest_arena"),
            "USER": os.getenv("DB_USER", ""),
            "PASSWORD": os.getenv("DB_PASSWORD", ""),
            "HOST": os.getenv("DB_HOST", "127.0.0.1"),
            "PORT": os.getenv("DB_PORT", ""),
            "ATOMIC_REQUESTS": False,
        }
    }

AUTH_USER_MODEL = "accounts.User"

AUTH_PASSWORD_VALIDATORS = [
    {"NAME": "django.contrib.auth.password_validation.MinimumLengthValidator"},
]

LANGUAGE_CODE = "zh-hans"
TIME_ZONE = os.getenv("TIME_ZONE", "UTC")
USE_I18N = True
USE_TZ = True

STATIC_URL = "static/"
STATIC_ROOT = BASE_DIR / "staticfiles"

DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# ------------------------
# 日志
# ------------------------
LOG_PATH = os.getenv("LOG_PATH", str(BASE_DIR / "logs"))
LOG_FORMAT = os.getenv("LOG_FORMAT", "plain")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

# ------------------------
# 缓存 / Redis
# ------------------------
REDIS_ENABLED = _env_bool("REDIS_ENABLED")
REDIS_HOST = os.getenv("REDIS_HOST", "127.0.0.1")
REDIS_PORT = int(os.getenv("REDIS_PORT", "6379"))
REDIS_DB_CACHE = int(os.getenv("REDIS_DB_CACHE", "0"))
REDIS_DB_CHANNELS = int(os.getenv("REDIS_DB_CHANNELS", "1"))
REDIS_DB_CELERY = int(os.getenv("REDIS_DB_CELERY", "2"))
REDIS_PASSWORD = os.getenv("REDIS_PASSWORD", "")
LEADERBOARD_CACHE_TTL = int(os.getenv("LEADERBOARD_CACHE_TTL", "30"))

# DRF 节流计数使用 Django 缓存
CACHES = {
    "default": {
        "BACKEND": "django.core.cache.backends.locmem.LocMemCache",
        "LOCATION": "contest-arena",
    }
}

_redis_auth = f":{REDIS_PASSWORD}@" if REDIS_PASSWORD else ""

CHANNEL_LAYER = os.getenv("CHANNEL_LAYER", "redis" if REDIS_ENABLED else "memory")
if CHANNEL_LAYER == "memory":
    CHANNEL_LAYERS = {"default": {"BACKEND": "channels.layers.InMemoryChannelLayer"}}
else:
    CHANNEL_LAYERS = {
        "default": {
            "BACKEND": "channels_redis.core.RedisChannelLayer",
            "CONFIG": {"hosts": [f"redis://{_redis_auth}{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB_CHANNELS}"]},
        }
    }

# ------------------------
# Celery
# ------------------------
CELERY_BROKER_URL = os.getenv(
    "CELERY_BROKER_URL", f"redis://{_redis_auth}{REDIS_HOST}:{REDIS_PORT}/{REDIS_DB_CELERY}"
)
CELERY_RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", CELERY_BROKER_URL)
CELERY_TASK_ALWAYS_EAGER = _env_bool("CELERY_TASK_ALWAYS_EAGER")
CELERY_TIMEZONE = TIME_ZONE
CELERY_BEAT_SCHEDULE = {
    "scan-contest-notifications": {
        "task": "notifications.scan_contests",
        "schedule": int(os.getenv("NOTIFY_SCAN_INTERVAL_SECONDS", "300")),
    },
}
# 开赛前多少秒发送即将开赛提醒
NOTIFY_CONTEST_START_SOON_SECONDS = int(os.getenv("NOTIFY_CONTEST_START_SOON_SECONDS", "1800"))

# ------------------------
# DRF / OpenAPI / JWT
# ------------------------
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": ["apps.common.authentication.JWTAuthentication"],
    "DEFAULT_PERMISSION_CLASSES": ["apps.common.permissions.AllowAny"],
    "DEFAULT_PAGINATION_CLASS": "apps.common.pagination.StandardPagination",
    "PAGE_SIZE": 20,
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "EXCEPTION_HANDLER": "apps.common.exception_handler.custom_exception_handler",
    "DEFAULT_THROTTLE_RATES": {
        "submission": os.getenv("THROTTLE_SUBMISSION", "30/min"),
        "user_post": os.getenv("THROTTLE_USER_POST", "60/min"),
    },
}

SPECTACULAR_SETTINGS = {
    "TITLE": "Contest Arena API",
    "DESCRIPTION": "比赛生命周期、报名、判题与排行榜接口",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
    "COMPONENT_SPLIT_REQUEST": True,
}

# 令牌由身份服务签发，这里只需共享签名密钥做校验
SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=int(os.getenv("JWT_ACCESS_MINUTES", "60"))),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=int(os.getenv("JWT_REFRESH_DAYS", "7"))),
    "SIGNING_KEY": os.getenv("JWT_SIGNING_KEY", SECRET_KEY),
    "ALGORITHM": os.getenv("JWT_ALGORITHM", "HS256"),
    "AUTH_HEADER_TYPES": ("Bearer",),
    "USER_ID_CLAIM": "user_id",
}
JWT_USE_COOKIE = _env_bool("JWT_USE_COOKIE")
JWT_ACCESS_COOKIE_NAME = os.getenv("JWT_ACCESS_COOKIE_NAME", "arena_access")

# ------------------------
# 判题服务
# ------------------------
CODE_EVALUATOR_CLASS = os.getenv("CODE_EVALUATOR_CLASS", "apps.submissions.evaluators.HttpJudgeEvaluator")
CODE_EVALUATOR_URL = os.getenv("CODE_EVALUATOR_URL", "")
CODE_EVALUATOR_TOKEN = os.getenv("CODE_EVALUATOR_TOKEN", "")
CODE_EVALUATOR_TIMEOUT = float(os.getenv("CODE_EVALUATOR_TIMEOUT", "10"))

# ------------------------
# 比赛默认值
# ------------------------
CONTEST_DEFAULT_MAX_PARTICIPANTS = int(os.getenv("CONTEST_DEFAULT_MAX_PARTICIPANTS", "100"))
CONTEST_DEFAULT_FREEZE_MINUTES = int(os.getenv("CONTEST_DEFAULT_FREEZE_MINUTES", "60"))
