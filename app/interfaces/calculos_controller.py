from typing import List, Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from app.config.settings import get_umbral_minimo_diferencial
from app.domain.calculos import (
    calcular_monto_final_pagar,
    calcular_nota_debito,
    calcular_total_notas_credito,
    recalcular_documento,
    validar_necesidad_nota_debito,
    verificar_limite_notas_credito,
)
from app.domain.models.documentos import CamposDerivados, DatosDocumento, Factura, NotaCredito
from app.utils.error_handlers import handle_error
import logging

router = APIRouter(prefix="/api/calculos", tags=["Cálculos"])

logger = logging.getLogger("calculos")


class NotaDebitoIn(BaseModel):
    factura: Factura
    notas_credito: List[NotaCredito] = Field(default_factory=list)
    tasa_cambio_pago: float


class NotaDebitoRef(BaseModel):
    monto_neto_pagar_nota_debito: float = 0.0


class MontoFinalIn(BaseModel):
    factura: Factura
    notas_credito: List[NotaCredito] = Field(default_factory=list)
    nota_debito: Optional[NotaDebitoRef] = None


@router.post("/documento", response_model=CamposDerivados)
def calcular_documento(payload: DatosDocumento):
    """Recalcula sub total, IVA, total, retención y monto USD de un formulario."""
    return recalcular_documento(payload)


@router.post("/nota-debito")
def previsualizar_nota_debito(payload: NotaDebitoIn):
    """
    Vista previa de la nota de débito de una factura a una tasa de pago.

    No persiste nada. Un diferencial negativo se devuelve con su signo;
    `necesidad` indica si correspondería emitirla.
    """
    try:
        calculo = calcular_nota_debito(payload.factura, payload.notas_credito, payload.tasa_cambio_pago)
    except Exception as e:
        raise handle_error(e, "calcular nota de débito", "No se pudo calcular la nota de débito")
    necesidad = validar_necesidad_nota_debito(
        payload.factura,
        payload.tasa_cambio_pago,
        get_umbral_minimo_diferencial(),
        notas_credito=payload.notas_credito,
    )
    return {
        **calculo.model_dump(),
        "necesidad": necesidad.model_dump(),
        "limite_notas_credito": verificar_limite_notas_credito(payload.factura, payload.notas_credito).model_dump(),
    }


@router.post("/monto-final")
def calcular_monto_final(payload: MontoFinalIn):
    monto = calcular_monto_final_pagar(payload.factura, payload.notas_credito, payload.nota_debito)
    return {
        "monto_final_pagar": monto,
        "saldo_a_favor": monto < 0,
        "notas_credito": calcular_total_notas_credito(payload.notas_credito).model_dump(),
    }
