import logging
from typing import Any, Dict, Optional

from app.domain.calculos import recalcular_documento, verificar_limite_notas_credito
from app.domain.constants import TIPO_CAMBIO_USD
from app.domain.exceptions import InvalidRateError, LimiteNotasCreditoExcedidoError, RegistroNoEncontradoError
from app.utils.numeros import a_numero

logger = logging.getLogger(__name__)


def _con_campos_derivados(datos: Dict[str, Any]) -> Dict[str, Any]:
    """Sobrescribe sub_total, iva, total, retencion_iva y monto_usd con los recalculados."""
    derivados = recalcular_documento(datos)
    return {**datos, **derivados.model_dump()}


def _validar_tasa_documento(datos: Dict[str, Any]) -> None:
    # Al guardar sí se exige tasa: sin ella el monto en USD sería 0
    if a_numero(datos.get("tasa_cambio")) <= 0:
        raise InvalidRateError("La tasa de cambio debe ser mayor a cero", campo="tasa_cambio")


class RegistrarFactura:
    def __init__(self, repo_cxp, repo_proveedores=None):
        self.repo_cxp = repo_cxp
        self.repo_proveedores = repo_proveedores

    def execute(
        self,
        company_id: str,
        datos: Dict[str, Any],
        usuario: Optional[str] = None,
        tipo_cambio_proveedor: str = TIPO_CAMBIO_USD,
    ) -> Dict[str, Any]:
        """
        Registra una factura de proveedor con sus montos derivados recalculados.

        También guarda (o actualiza) el proveedor con su tipo de cambio, que
        luego decide la tasa de pago en la generación por lote.
        """
        _validar_tasa_documento(datos)
        campos = _con_campos_derivados(datos)
        factura = self.repo_cxp.crear_factura(company_id, created_by=usuario, **campos)

        if self.repo_proveedores is not None and campos.get("proveedor_rif"):
            self.repo_proveedores.guardar(
                company_id,
                rif=campos["proveedor_rif"],
                nombre=campos.get("proveedor_nombre") or "",
                direccion=campos.get("proveedor_direccion"),
                tipo_cambio=tipo_cambio_proveedor,
                porcentaje_retencion=campos.get("porcentaje_retencion") or 0,
            )

        logger.info(f"Factura {factura['numero']} registrada para empresa {company_id}")
        return factura


class RegistrarNotaCredito:
    def __init__(self, repo_cxp):
        self.repo_cxp = repo_cxp

    def execute(
        self,
        company_id: str,
        factura_id: int,
        datos: Dict[str, Any],
        usuario: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Registra una nota de crédito contra una factura.

        Raises:
            RegistroNoEncontradoError si la factura no existe
            LimiteNotasCreditoExcedidoError si las notas superarían el monto USD de la factura
        """
        factura = self.repo_cxp.obtener_factura(company_id, factura_id)
        if not factura:
            raise RegistroNoEncontradoError(f"Factura {factura_id} no encontrada")

        _validar_tasa_documento(datos)
        campos = _con_campos_derivados(datos)
        campos["factura_afectada"] = factura["numero"]

        existentes = self.repo_cxp.listar_notas_credito(company_id, factura_id)
        limite = verificar_limite_notas_credito(factura, [*existentes, campos])
        if limite.excede_limite:
            disponible = verificar_limite_notas_credito(factura, existentes).monto_disponible_usd
            raise LimiteNotasCreditoExcedidoError(
                f"Las notas de crédito exceden el monto de la factura {factura['numero']}. "
                f"Disponible: USD {disponible:.2f}",
                monto_disponible_usd=disponible,
            )

        nota = self.repo_cxp.crear_nota_credito(company_id, factura_id, created_by=usuario, **campos)
        logger.info(f"Nota de crédito {nota['numero']} registrada contra factura {factura['numero']}")
        return nota
