from datetime import date
from typing import Optional

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.auth.dependencies import UsuarioActual, get_usuario_actual
from app.config.database import get_db
from app.domain.constants import TIPO_CAMBIO_PAR
from app.infrastructure.repositorio_tasas_cambio import RepositorioTasasCambio
from app.services.tasas_cambio import ServicioTasasCambio
from app.utils.error_handlers import handle_error
import logging

router = APIRouter(prefix="/api/tasas-cambio", tags=["Tasas de cambio"])

logger = logging.getLogger("tasas_cambio")


def get_repo_tasas(db: Session = Depends(get_db)):
    return RepositorioTasasCambio(db)


def get_servicio_tasas():
    return ServicioTasasCambio()


class TasaManualIn(BaseModel):
    tasa: float
    notas: Optional[str] = Field(None, max_length=500)


@router.get("")
def obtener_tasas(
    usuario: UsuarioActual = Depends(get_usuario_actual),
    repo_tasas: RepositorioTasasCambio = Depends(get_repo_tasas),
    servicio: ServicioTasasCambio = Depends(get_servicio_tasas),
):
    """Tasas USD y EUR vigentes más la última tasa paralela (PAR) registrada por la empresa."""
    try:
        tasas = servicio.obtener_todas()
        tasas["par"] = repo_tasas.ultima(usuario.company_id, TIPO_CAMBIO_PAR)
        return tasas
    except Exception as e:
        raise handle_error(e, "obtener tasas de cambio", "No se pudieron obtener las tasas de cambio")


@router.post("/manual", status_code=status.HTTP_201_CREATED)
def registrar_tasa_manual(
    payload: TasaManualIn,
    usuario: UsuarioActual = Depends(get_usuario_actual),
    repo_tasas: RepositorioTasasCambio = Depends(get_repo_tasas),
):
    try:
        tasa = ServicioTasasCambio.crear_tasa_manual(payload.tasa, usuario.id, payload.notas)
        registrada = repo_tasas.registrar(
            usuario.company_id,
            moneda=tasa["moneda"],
            tasa=tasa["tasa"],
            fecha=date.fromisoformat(tasa["fecha"]),
            fuente=tasa["fuente"],
            usuario=usuario.id,
            notas=payload.notas,
        )
        logger.info(f"Tasa manual {registrada['tasa']} registrada por {usuario.id}")
        return {**registrada, "formateada": ServicioTasasCambio.formatear_tasa(registrada["tasa"], TIPO_CAMBIO_PAR)}
    except Exception as e:
        raise handle_error(e, "registrar tasa manual", "No se pudo registrar la tasa manual")
