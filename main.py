from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
import logging
from app.interfaces.calculos_controller import router as calculos_router
from app.interfaces.cuentas_por_pagar_controller import router as cuentas_por_pagar_router
from app.interfaces.notas_debito_controller import router as notas_debito_router
from app.interfaces.tasas_cambio_controller import router as tasas_cambio_router
from app.auth.routes import router as auth_router
from app.config.database import Base, init_db, log_pool_status
from app.config.settings import get_cors_origins

# Registra las tablas en Base.metadata
from app.domain.models import cuentas_por_pagar  # noqa: F401

APP_TITLE = "API Cuentas por Pagar"
APP_VERSION = "1.0.0"

app = FastAPI(
    title=APP_TITLE,
    version=APP_VERSION,
    description="API para facturas de proveedores, notas de crédito y notas de débito por diferencial cambiario"
)

# Middleware de CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=get_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Configuración de logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger("main")

# Registro de routers
app.include_router(calculos_router)
app.include_router(cuentas_por_pagar_router)
app.include_router(notas_debito_router)
app.include_router(tasas_cambio_router)
app.include_router(auth_router)


# Health check
@app.get("/health", tags=["Status"])
def health_check():
    return {
        "status": "ok",
        "title": APP_TITLE,
        "version": APP_VERSION
    }


# Inicialización de la BD de cuentas por pagar
@app.on_event("startup")
def startup_event():
    try:
        init_db(Base.metadata)
    except Exception as e:
        # No interrumpir el arranque; los endpoints reportarán el error de BD
        logger.error(f"No se pudieron crear las tablas de cuentas por pagar: {e}")
    log_pool_status()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8520)
