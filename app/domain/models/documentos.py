from datetime import date
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

from app.utils.numeros import a_numero

_CAMPOS_MONETARIOS = (
    "sub_total",
    "monto_exento",
    "base_imponible",
    "alicuota_iva",
    "iva",
    "total",
    "tasa_cambio",
    "monto_usd",
    "porcentaje_retencion",
    "retencion_iva",
)


class DatosDocumento(BaseModel):
    """Campos editables de un formulario de factura o nota de crédito."""
    base_imponible: float = 0.0
    monto_exento: float = 0.0
    alicuota_iva: float = 0.0
    porcentaje_retencion: float = 0.0
    tasa_cambio: float = 0.0

    @field_validator("*", mode="before")
    @classmethod
    def coerce_numero(cls, v):
        return a_numero(v)


class CamposDerivados(BaseModel):
    sub_total: float
    iva: float
    total: float
    retencion_iva: float
    monto_usd: float


class DocumentoFiscal(BaseModel):
    """Forma monetaria común de facturas y notas de crédito."""
    numero: str = ""
    numero_control: str = ""
    fecha: Optional[date] = None
    sub_total: float = 0.0
    monto_exento: float = 0.0
    base_imponible: float = 0.0
    alicuota_iva: float = 0.0
    iva: float = 0.0
    total: float = 0.0
    tasa_cambio: float = 0.0
    monto_usd: float = 0.0
    porcentaje_retencion: float = 0.0
    retencion_iva: float = 0.0

    @field_validator(*_CAMPOS_MONETARIOS, mode="before")
    @classmethod
    def coerce_monto(cls, v):
        return a_numero(v)


class Factura(DocumentoFiscal):
    proveedor_nombre: str = ""
    proveedor_rif: str = ""
    proveedor_direccion: str = ""
    cliente_nombre: str = ""
    cliente_rif: str = ""
    cliente_direccion: str = ""


class NotaCredito(DocumentoFiscal):
    factura_afectada: str = ""


class NotaDebitoCalculada(BaseModel):
    numero: str = ""
    fecha: date = Field(default_factory=date.today)
    factura_numero: Optional[str] = None
    notas_credito: List[str] = Field(default_factory=list)
    tasa_cambio_original: float
    tasa_cambio_pago: float
    monto_usd_neto: float
    diferencial_cambiario_con_iva: float
    base_imponible_diferencial: float
    iva_diferencial: float
    retencion_iva_diferencial: float
    monto_neto_pagar_nota_debito: float


class TotalesNotasCredito(BaseModel):
    total_usd: float = 0.0
    total_retencion_iva: float = 0.0
    total_pagar: float = 0.0


class LimiteNotasCredito(BaseModel):
    excede_limite: bool
    monto_disponible_usd: float


class NecesidadNotaDebito(BaseModel):
    necesaria: bool
    motivo: str
    impacto: float
