"""
Cálculos fiscales de facturas, notas de crédito y notas de débito por
diferencial cambiario.

Funciones puras: no acceden a BD ni registran logs. Los documentos pueden ser
modelos pydantic, filas ORM o diccionarios con claves snake_case. Los campos
numéricos ausentes o inválidos valen 0; solo las tasas de cambio se validan
estrictamente (InvalidRateError). No se redondea: el redondeo es cosa de la
presentación.
"""
import math
from typing import Any, Iterable, Optional, Sequence

from app.domain.exceptions import InvalidRateError
from app.domain.models.documentos import (
    CamposDerivados,
    LimiteNotasCredito,
    NecesidadNotaDebito,
    NotaDebitoCalculada,
    TotalesNotasCredito,
)
from app.utils.numeros import a_numero, campo_numerico, leer_campo


def calcular_iva(base_imponible: float, alicuota_iva: float) -> float:
    return base_imponible * (alicuota_iva / 100)


def calcular_retencion_iva(iva: float, porcentaje_retencion: float) -> float:
    return iva * (porcentaje_retencion / 100)


def extraer_base_imponible(monto_con_iva: float, alicuota_iva: float) -> float:
    """Base imponible contenida en un monto que ya incluye IVA."""
    return monto_con_iva / (1 + alicuota_iva / 100)


def recalcular_documento(datos: Any) -> CamposDerivados:
    """
    Recalcula los campos derivados de una factura o nota de crédito.

    Se invoca en cada cambio de base imponible, monto exento, alícuota,
    porcentaje de retención o tasa de cambio. Nunca lanza excepciones.
    """
    base_imponible = campo_numerico(datos, "base_imponible")
    monto_exento = campo_numerico(datos, "monto_exento")
    alicuota_iva = campo_numerico(datos, "alicuota_iva")
    porcentaje_retencion = campo_numerico(datos, "porcentaje_retencion")
    tasa_cambio = campo_numerico(datos, "tasa_cambio")

    sub_total = base_imponible + monto_exento
    iva = calcular_iva(base_imponible, alicuota_iva)
    total = sub_total + iva
    retencion_iva = calcular_retencion_iva(iva, porcentaje_retencion)
    monto_usd = total / tasa_cambio if tasa_cambio > 0 else 0.0

    return CamposDerivados(
        sub_total=sub_total,
        iva=iva,
        total=total,
        retencion_iva=retencion_iva,
        monto_usd=monto_usd,
    )


def _sumar(documentos: Iterable[Any], campo: str) -> float:
    # fsum es exacto, así que el resultado no depende del orden
    return math.fsum(campo_numerico(d, campo) for d in documentos or [])


def calcular_total_notas_credito(notas_credito: Sequence[Any]) -> TotalesNotasCredito:
    total_usd = _sumar(notas_credito, "monto_usd")
    total_retencion = _sumar(notas_credito, "retencion_iva")
    total_pagar = _sumar(notas_credito, "total") - total_retencion
    return TotalesNotasCredito(
        total_usd=total_usd,
        total_retencion_iva=total_retencion,
        total_pagar=total_pagar,
    )


def _validar_tasas(tasa_cambio_original: float, tasa_cambio_pago: float, alicuota_iva: float) -> None:
    if tasa_cambio_pago <= 0:
        raise InvalidRateError(
            "La tasa de cambio de pago debe ser mayor a cero", campo="tasa_cambio_pago"
        )
    if tasa_cambio_original <= 0:
        raise InvalidRateError(
            "La tasa de cambio de la factura debe ser mayor a cero", campo="tasa_cambio"
        )
    if alicuota_iva < 0:
        raise InvalidRateError(
            "La alícuota de IVA no puede ser negativa", campo="alicuota_iva"
        )


def calcular_nota_debito(
    factura: Any,
    notas_credito: Optional[Sequence[Any]],
    tasa_cambio_pago: Any,
) -> NotaDebitoCalculada:
    """
    Calcula la nota de débito por diferencial cambiario de una factura.

    El monto en USD pendiente (factura menos notas de crédito) se valora a la
    tasa de pago y a la tasa original; la diferencia incluye IVA a la alícuota
    de la factura y se descompone en base imponible e IVA. La retención se
    aplica sobre el IVA del diferencial.

    Un diferencial negativo (la tasa bajó) se devuelve con su signo.

    Raises:
        InvalidRateError: tasa de pago o tasa de la factura <= 0, o alícuota negativa.
    """
    notas_credito = list(notas_credito or [])
    tasa_pago = a_numero(tasa_cambio_pago)
    tasa_original = campo_numerico(factura, "tasa_cambio")
    alicuota_iva = campo_numerico(factura, "alicuota_iva")
    porcentaje_retencion = campo_numerico(factura, "porcentaje_retencion")
    _validar_tasas(tasa_original, tasa_pago, alicuota_iva)

    monto_usd_neto = campo_numerico(factura, "monto_usd") - _sumar(notas_credito, "monto_usd")

    diferencial_con_iva = monto_usd_neto * (tasa_pago - tasa_original)
    base_imponible_diferencial = extraer_base_imponible(diferencial_con_iva, alicuota_iva)
    iva_diferencial = diferencial_con_iva - base_imponible_diferencial
    retencion_iva_diferencial = calcular_retencion_iva(iva_diferencial, porcentaje_retencion)
    monto_neto_pagar = diferencial_con_iva - retencion_iva_diferencial

    numeros_nc = [str(leer_campo(nc, "numero")) for nc in notas_credito if leer_campo(nc, "numero")]
    numero_factura = leer_campo(factura, "numero")

    return NotaDebitoCalculada(
        factura_numero=str(numero_factura) if numero_factura else None,
        notas_credito=sorted(numeros_nc),
        tasa_cambio_original=tasa_original,
        tasa_cambio_pago=tasa_pago,
        monto_usd_neto=monto_usd_neto,
        diferencial_cambiario_con_iva=diferencial_con_iva,
        base_imponible_diferencial=base_imponible_diferencial,
        iva_diferencial=iva_diferencial,
        retencion_iva_diferencial=retencion_iva_diferencial,
        monto_neto_pagar_nota_debito=monto_neto_pagar,
    )


def calcular_monto_final_pagar(
    factura: Any,
    notas_credito: Optional[Sequence[Any]] = None,
    nota_debito: Optional[Any] = None,
) -> float:
    """
    Monto total a desembolsar por una factura: total menos notas de crédito,
    más el neto de la nota de débito si existe. Puede ser negativo
    (factura sobreacreditada); quien llama debe señalarlo, no ocultarlo.
    """
    monto = campo_numerico(factura, "total") - _sumar(notas_credito, "total")
    if nota_debito is not None:
        monto += campo_numerico(nota_debito, "monto_neto_pagar_nota_debito")
    return monto


def verificar_limite_notas_credito(factura: Any, notas_credito: Sequence[Any]) -> LimiteNotasCredito:
    """Indica si las notas de crédito superan el monto en USD de la factura."""
    monto_usd_factura = campo_numerico(factura, "monto_usd")
    total_usd_notas = _sumar(notas_credito, "monto_usd")
    return LimiteNotasCredito(
        excede_limite=total_usd_notas > monto_usd_factura,
        monto_disponible_usd=max(0.0, monto_usd_factura - total_usd_notas),
    )


def validar_necesidad_nota_debito(
    factura: Any,
    tasa_cambio_pago: Any,
    umbral_minimo: float = 0.01,
    notas_credito: Optional[Sequence[Any]] = None,
) -> NecesidadNotaDebito:
    """
    Indica si corresponde emitir nota de débito a la tasa de pago.

    El impacto se mide sobre el monto USD neto de notas de crédito, el mismo
    que usa `calcular_nota_debito`.
    """
    tasa_pago = a_numero(tasa_cambio_pago)
    tasa_original = campo_numerico(factura, "tasa_cambio")
    monto_usd_neto = campo_numerico(factura, "monto_usd") - _sumar(notas_credito, "monto_usd")
    impacto = abs(tasa_pago - tasa_original) * monto_usd_neto

    if tasa_pago <= tasa_original:
        return NecesidadNotaDebito(
            necesaria=False,
            motivo="La tasa de pago es menor o igual a la tasa original",
            impacto=0.0,
        )
    if impacto < umbral_minimo:
        return NecesidadNotaDebito(
            necesaria=False,
            motivo=f"El impacto del diferencial (Bs. {impacto:.2f}) es menor al umbral mínimo",
            impacto=impacto,
        )
    return NecesidadNotaDebito(
        necesaria=True,
        motivo=f"Diferencial significativo: Bs. {impacto:.2f}",
        impacto=impacto,
    )
