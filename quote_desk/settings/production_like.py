from .base import *  # noqa: F403

DEBUG = False

ALLOWED_HOSTS = os.getenv("ALLOWED_HOSTS", "").split(",")  # noqa: F405
ALLOWED_HOSTS = [host.strip() for host in ALLOWED_HOSTS if host.strip()]

STATIC_ROOT = os.getenv("STATIC_ROOT", str(BASE_DIR / "staticfiles"))  # noqa: F405

SESSION_COOKIE_SECURE = True
CSRF_COOKIE_SECURE = True

# Quieter console in production; files still capture DEBUG from the engine
LOGGING["handlers"]["console"]["level"] = "WARNING"  # noqa: F405

# Validate required settings after all settings are loaded
validate_required_settings()  # noqa: F405
