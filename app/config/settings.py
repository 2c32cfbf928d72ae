import os
from functools import lru_cache
from typing import List
from dotenv import load_dotenv

# Carga variables desde .env si existe
load_dotenv()

# Valores por defecto seguros para desarrollo (evitan fallos al importar)
DEFAULT_DATABASE_URL = os.getenv("DEFAULT_SQLALCHEMY_URL", "sqlite:///./cuentas_por_pagar.db")
DEFAULT_JWT_SECRET = os.getenv("JWT_SECRET", "dev-secret-change-this")
DEFAULT_BCV_API_URL = "https://bcv-api.deno.dev/v2/rates"
DEFAULT_BACKUP_API_URL = "https://api.exchangerate-api.com/v4/latest/VES"
DEFAULT_EUR_API_URL = "https://api.exchangerate-api.com/v4/latest/EUR"
DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://127.0.0.1:3000"


def _get_first_env(keys: list[str], default: str) -> str:
    """Devuelve el primer valor definido entre varias claves de entorno."""
    for k in keys:
        v = os.getenv(k)
        if v:
            return v
    return default


@lru_cache()
def get_database_url() -> str:
    """Obtiene la URL de conexión para la BD de cuentas por pagar.

    Acepta múltiples nombres de variables para compatibilidad:
    - DATABASE_URL (preferida)
    - CUENTAS_POR_PAGAR_DATABASE_URL
    Si ninguna está definida, usa SQLite local ./cuentas_por_pagar.db
    """
    return _get_first_env([
        "DATABASE_URL",
        "CUENTAS_POR_PAGAR_DATABASE_URL",
    ], DEFAULT_DATABASE_URL)


@lru_cache()
def get_jwt_secret() -> str:
    return _get_first_env([
        "JWT_SECRET",
    ], DEFAULT_JWT_SECRET)


@lru_cache()
def get_jwt_algorithm() -> str:
    return _get_first_env([
        "JWT_ALGORITHM",
    ], "HS256")


# Proveedores públicos de tasas de cambio
@lru_cache()
def get_bcv_api_url() -> str:
    return _get_first_env([
        "BCV_API_URL",
    ], DEFAULT_BCV_API_URL)


@lru_cache()
def get_backup_api_url() -> str:
    return _get_first_env([
        "TASAS_BACKUP_API_URL",
        "BACKUP_API_URL",
    ], DEFAULT_BACKUP_API_URL)


@lru_cache()
def get_eur_api_url() -> str:
    return _get_first_env([
        "TASAS_EUR_API_URL",
        "EUR_API_URL",
    ], DEFAULT_EUR_API_URL)


@lru_cache()
def get_http_timeout_seconds() -> int:
    try:
        return int(_get_first_env([
            "HTTP_TIMEOUT_SECONDS",
        ], "10"))
    except Exception:
        return 10


@lru_cache()
def get_umbral_minimo_diferencial() -> float:
    """Diferencial mínimo (Bs) para que tenga sentido emitir una nota de débito."""
    try:
        return float(_get_first_env([
            "UMBRAL_MINIMO_DIFERENCIAL",
        ], "0.01"))
    except Exception:
        return 0.01


@lru_cache()
def get_cors_origins() -> List[str]:
    raw = _get_first_env([
        "CORS_ORIGINS",
        "FRONTEND_BASE_URL",
    ], DEFAULT_CORS_ORIGINS)
    return [o.strip() for o in raw.split(",") if o.strip()]


@lru_cache()
def get_default_page_size() -> int:
    try:
        return int(_get_first_env(["DEFAULT_PAGE_SIZE"], "20"))
    except Exception:
        return 20


@lru_cache()
def get_max_page_size() -> int:
    try:
        return int(_get_first_env(["MAX_PAGE_SIZE"], "100"))
    except Exception:
        return 100
