import os

from dotenv import load_dotenv

# Loads .env from the project root
load_dotenv()

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./barber_shop.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_PROD = ENV_NORMALIZED in {"prod", "production"}
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()


def _env_flag(name: str, default: str = "") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


# Shopify app credentials
SHOPIFY_API_KEY = os.getenv("SHOPIFY_API_KEY", "").strip()
SHOPIFY_API_SECRET = os.getenv("SHOPIFY_API_SECRET", "").strip()
SHOPIFY_API_VERSION = os.getenv("SHOPIFY_API_VERSION", "2024-07").strip()
SHOPIFY_APP_URL = os.getenv("SHOPIFY_APP_URL", "https://localhost:3000").strip().rstrip("/")
AUTH_PATH_PREFIX = "/auth"
WEBHOOKS_PATH = "/webhooks"

DEFAULT_SCOPES = [
    "read_products",
    "write_products",
    "read_customers",
    "write_customers",
    "read_orders",
    "write_orders",
    "read_draft_orders",
    "write_draft_orders",
    "read_inventory",
    "write_inventory",
]
_scopes_env = os.getenv("SCOPES", "")
SCOPES = [scope.strip() for scope in _scopes_env.split(",") if scope.strip()] or DEFAULT_SCOPES

# Webhook topics registered after authentication
WEBHOOK_TOPICS = ["APP_UNINSTALLED"]

# Clock skew tolerated when validating session tokens
SESSION_TOKEN_LEEWAY_SECONDS = int(os.getenv("SESSION_TOKEN_LEEWAY_SECONDS", "10"))
OAUTH_STATE_MAX_AGE_SECONDS = int(os.getenv("OAUTH_STATE_MAX_AGE_SECONDS", "600"))
OAUTH_STATE_COOKIE_SECURE = _env_flag("OAUTH_STATE_COOKIE_SECURE", "0" if IS_DEV else "1")

# Storefront app proxy
SHOPIFY_APP_PROXY_STRICT = _env_flag("SHOPIFY_APP_PROXY_STRICT")
APP_PROXY_RATE_LIMIT = int(os.getenv("APP_PROXY_RATE_LIMIT", "60"))
APP_PROXY_RATE_WINDOW_SECONDS = int(os.getenv("APP_PROXY_RATE_WINDOW_SECONDS", "60"))

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS:
    CORS_ORIGINS = ["https://admin.shopify.com"]
    if IS_DEV:
        CORS_ORIGINS += [
            "http://localhost:3000",
            "http://127.0.0.1:3000",
        ]
