import os
import re
from decimal import Decimal

from dotenv import load_dotenv

# Carrega o .env da raiz do projeto
load_dotenv()


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_decimal(name: str, default: str) -> Decimal:
    return Decimal(os.getenv(name, default).strip() or default)


DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./qr_orders.db")
ENV = os.getenv("ENV", "dev")
ENV_NORMALIZED = ENV.lower()
IS_DEV = ENV_NORMALIZED in {"dev", "development", "local"}
IS_PROD = ENV_NORMALIZED in {"prod", "production"}
PUBLIC_BASE_DOMAIN = os.getenv("PUBLIC_BASE_DOMAIN", "qrmenu.app").strip().lower()
DEV_BOOTSTRAP_ALLOW = _env_flag("DEV_BOOTSTRAP_ALLOW", "")
ONBOARDING_API_TOKEN = os.getenv("ONBOARDING_API_TOKEN", "").strip()

# CORS
_cors_env = os.getenv("CORS_ORIGINS", "")
CORS_ORIGINS = [origin.strip() for origin in _cors_env.split(",") if origin.strip() and origin.strip() != "*"]

if not CORS_ORIGINS and IS_DEV:
    CORS_ORIGINS = [
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

_cors_origin_regex_env = os.getenv("CORS_ALLOW_ORIGIN_REGEX", "").strip()
if _cors_origin_regex_env:
    CORS_ALLOW_ORIGIN_REGEX = _cors_origin_regex_env
elif not IS_DEV and PUBLIC_BASE_DOMAIN:
    CORS_ALLOW_ORIGIN_REGEX = rf"^https://([a-z0-9-]+\.)?{re.escape(PUBLIC_BASE_DOMAIN)}$"
else:
    CORS_ALLOW_ORIGIN_REGEX = None

# Sessão do painel (dono, cozinha, master admin)
ADMIN_SESSION_SECRET = os.getenv("ADMIN_SESSION_SECRET", "")
ADMIN_SESSION_MAX_AGE_SECONDS = int(os.getenv("ADMIN_SESSION_MAX_AGE_SECONDS", "604800"))
ADMIN_SESSION_COOKIE_SECURE = _env_flag("ADMIN_SESSION_COOKIE_SECURE", "0" if IS_DEV else "1")
ADMIN_SESSION_COOKIE_SAMESITE = os.getenv(
    "ADMIN_SESSION_COOKIE_SAMESITE",
    "lax" if IS_DEV else "none",
).strip().lower()
if ADMIN_SESSION_COOKIE_SAMESITE not in {"lax", "strict", "none"}:
    ADMIN_SESSION_COOKIE_SAMESITE = "lax" if IS_DEV else "none"
ADMIN_SESSION_COOKIE_DOMAIN = os.getenv("ADMIN_SESSION_COOKIE_DOMAIN", "").strip() or None

# Sessão anônima do cliente (lista de pedidos do navegador)
SESSION_ORDERS_SECRET = os.getenv("SESSION_ORDERS_SECRET", "") or ADMIN_SESSION_SECRET
SESSION_ORDERS_MAX_AGE_SECONDS = int(os.getenv("SESSION_ORDERS_MAX_AGE_SECONDS", "43200"))
SESSION_ORDERS_MAX = int(os.getenv("SESSION_ORDERS_MAX", "50"))

# Saldo pré-pago
MIN_ACCEPT_BALANCE = _env_decimal("MIN_ACCEPT_BALANCE", "500")
LOW_BALANCE_WARNING = _env_decimal("LOW_BALANCE_WARNING", "1000")
if LOW_BALANCE_WARNING < MIN_ACCEPT_BALANCE:
    LOW_BALANCE_WARNING = MIN_ACCEPT_BALANCE
ORDER_DEDUCTION_AMOUNT = _env_decimal("ORDER_DEDUCTION_AMOUNT", "5")
RECHARGE_MIN_AMOUNT = _env_decimal("RECHARGE_MIN_AMOUNT", "100")
RECHARGE_MAX_AMOUNT = _env_decimal("RECHARGE_MAX_AMOUNT", "50000")
TRANSACTIONS_DEFAULT_LIMIT = int(os.getenv("TRANSACTIONS_DEFAULT_LIMIT", "50"))
TRANSACTIONS_MAX_LIMIT = int(os.getenv("TRANSACTIONS_MAX_LIMIT", "200"))

TRIAL_DAYS = int(os.getenv("TRIAL_DAYS", "14"))
DEFAULT_CURRENCY = os.getenv("DEFAULT_CURRENCY", "USD").strip().upper() or "USD"
