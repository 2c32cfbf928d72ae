from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from app.config.settings import get_database_url
import logging

logger = logging.getLogger("db")


def _engine_kwargs(url_str: str) -> dict:
    """Argumentos del engine según el motor.

    SQLite no admite pool de tamaño fijo; para `sqlite://` en memoria se usa
    StaticPool para compartir la misma conexión entre sesiones.
    """
    if url_str.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if url_str in ("sqlite://", "sqlite:///:memory:"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {
        "pool_size": 5,             # Pool pequeño para evitar conexiones colgadas
        "max_overflow": 5,
        "pool_timeout": 30,
        "pool_recycle": 300,        # Reciclar conexiones cada 5 minutos
        "pool_pre_ping": True,      # Verificar conexiones antes de usar
        "pool_reset_on_return": "rollback",
    }


def crear_engine(url_str: str):
    return create_engine(url_str, echo=False, **_engine_kwargs(url_str))


# Configuración para base de datos de cuentas por pagar
DATABASE_URL = get_database_url()
engine = crear_engine(DATABASE_URL)
SessionLocal = sessionmaker(bind=engine)

Base = declarative_base()


def get_db():
    """Dependency para obtener sesión de base de datos de cuentas por pagar"""
    db = SessionLocal()
    try:
        yield db
    except Exception as e:
        logger.error(f"Error en sesión de cuentas por pagar: {e}")
        try:
            db.rollback()
        except Exception:
            pass
        raise
    finally:
        try:
            db.close()
        except Exception as e:
            logger.warning(f"Error cerrando sesión de cuentas por pagar: {e}")


def init_db(metadata, bind=None):
    """Crea las tablas si no existen.

    Recibe el objeto Base.metadata para evitar dependencia circular con los modelos.
    """
    metadata.create_all(bind=bind or engine)


def log_pool_status():
    """Log del estado actual del pool de conexiones para diagnóstico."""
    try:
        pool = engine.pool
        logger.info(f"Pool Cuentas por Pagar - Estado: {pool.status()}")
    except Exception as e:
        logger.warning(f"Error obteniendo estado del pool: {e}")
