import logging
from datetime import date
from typing import Any, Dict, List, Optional

from app.config.settings import get_umbral_minimo_diferencial
from app.domain.calculos import calcular_monto_final_pagar, calcular_nota_debito
from app.domain.constants import ORIGEN_AUTOMATICA, ORIGEN_MANUAL, TIPO_CAMBIO_PAR
from app.domain.exceptions import (
    InvalidRateError,
    NotaDebitoNoGenerableError,
    RegistroNoEncontradoError,
    TasaCambioNoDisponibleError,
)

logger = logging.getLogger("notas_debito")


class GenerarNotaDebito:
    """Genera y persiste notas de débito por diferencial cambiario."""

    def __init__(self, repo_cxp, repo_notas_debito, repo_proveedores=None, servicio_tasas=None):
        self.repo_cxp = repo_cxp
        self.repo_notas_debito = repo_notas_debito
        self.repo_proveedores = repo_proveedores
        self.servicio_tasas = servicio_tasas

    def execute(
        self,
        company_id: str,
        factura_id: int,
        tasa_cambio_pago: float,
        usuario: Optional[str] = None,
        fecha: Optional[date] = None,
        notas: Optional[str] = None,
        origen: str = ORIGEN_MANUAL,
    ) -> Dict[str, Any]:
        """
        Calcula la nota de débito de una factura a la tasa de pago y la guarda.

        Se consideran todas las notas de crédito registradas contra la factura.

        Raises:
            RegistroNoEncontradoError si la factura no existe
            InvalidRateError si alguna tasa es <= 0
            NotaDebitoNoGenerableError si la factura ya tiene nota de débito o el
                diferencial no alcanza el umbral mínimo
        """
        factura = self.repo_cxp.obtener_factura(company_id, factura_id)
        if not factura:
            raise RegistroNoEncontradoError(f"Factura {factura_id} no encontrada")
        existente = self.repo_notas_debito.obtener_por_factura(company_id, factura_id)
        if existente:
            raise NotaDebitoNoGenerableError(
                f"La factura {factura['numero']} ya tiene la nota de débito {existente['numero']}; "
                "edítela en lugar de generar otra"
            )
        notas_credito = self.repo_cxp.listar_notas_credito(company_id, factura_id)

        calculo = calcular_nota_debito(factura, notas_credito, tasa_cambio_pago)
        if calculo.diferencial_cambiario_con_iva < get_umbral_minimo_diferencial():
            raise NotaDebitoNoGenerableError(
                "No hay diferencial cambiario significativo para generar nota de débito"
            )

        numero = self.repo_notas_debito.siguiente_numero(company_id)
        nota = self.repo_notas_debito.crear(
            company_id=company_id,
            numero=numero,
            fecha=fecha or date.today(),
            factura_id=factura_id,
            calculo=calculo.model_dump(),
            notas_credito_ids=[nc["id"] for nc in notas_credito],
            origen=origen,
            notas=notas or (
                f"Nota de débito {origen} por diferencial cambiario. "
                f"Tasa original: {calculo.tasa_cambio_original}, Tasa pago: {calculo.tasa_cambio_pago}"
            ),
            created_by=usuario,
        )
        logger.info(
            f"Nota de débito {numero} generada para factura {factura['numero']}: "
            f"diferencial {calculo.diferencial_cambiario_con_iva:.2f}"
        )
        return {
            **nota,
            "factura": factura,
            "notas_credito": notas_credito,
            "monto_final_pagar": calcular_monto_final_pagar(factura, notas_credito, nota),
        }

    def execute_lote(
        self,
        company_id: str,
        factura_ids: List[int],
        usuario: Optional[str] = None,
        tasas_personalizadas: Optional[Dict[str, float]] = None,
    ) -> Dict[str, Any]:
        """
        Genera notas de débito automáticas para varias facturas.

        La tasa de pago sale del tipo de cambio del proveedor: USD y EUR se
        consultan al servicio de tasas (una vez por lote); PAR exige una tasa
        manual en `tasas_personalizadas` indexada por RIF. Los errores de cada
        factura se acumulan sin detener el lote.
        """
        tasas_personalizadas = {k.strip().upper(): v for k, v in (tasas_personalizadas or {}).items()}
        tasas_consultadas: Dict[str, float] = {}
        generadas: List[Dict[str, Any]] = []
        errores: List[str] = []

        facturas = self.repo_cxp.obtener_facturas_por_ids(company_id, factura_ids)
        for factura in facturas:
            etiqueta = f"Factura {factura['numero']}"
            try:
                tasa_pago = self._obtener_tasa_pago(company_id, factura, tasas_personalizadas, tasas_consultadas)
                generadas.append(self.execute(
                    company_id,
                    factura["id"],
                    tasa_pago,
                    usuario=usuario,
                    origen=ORIGEN_AUTOMATICA,
                ))
            except (
                InvalidRateError,
                NotaDebitoNoGenerableError,
                RegistroNoEncontradoError,
                TasaCambioNoDisponibleError,
            ) as e:
                errores.append(f"{etiqueta}: {e}")
            except Exception as e:
                logger.error(f"Error procesando {etiqueta}: {e}", exc_info=True)
                errores.append(f"{etiqueta}: Error al generar la nota de débito")

        encontradas = {f["id"] for f in facturas}
        for factura_id in factura_ids:
            if factura_id not in encontradas:
                errores.append(f"Factura {factura_id}: no encontrada")

        return {
            "notas_debito": generadas,
            "errores": errores,
            "exitosas": len(generadas),
        }

    def _obtener_tasa_pago(
        self,
        company_id: str,
        factura: Dict[str, Any],
        tasas_personalizadas: Dict[str, float],
        tasas_consultadas: Dict[str, float],
    ) -> float:
        rif = (factura.get("proveedor_rif") or "").strip().upper()
        proveedor = self.repo_proveedores.obtener_por_rif(company_id, rif) if self.repo_proveedores else None
        if not proveedor:
            raise RegistroNoEncontradoError("No se pudo obtener la información del proveedor")

        tipo_cambio = proveedor["tipo_cambio"]
        if tipo_cambio == TIPO_CAMBIO_PAR:
            tasa_manual = tasas_personalizadas.get(rif)
            if not tasa_manual:
                raise InvalidRateError("Tasa manual requerida para proveedor con tipo PAR", campo="tasa")
            return tasa_manual

        if tipo_cambio not in tasas_consultadas:
            if self.servicio_tasas is None:
                raise TasaCambioNoDisponibleError("Servicio de tasas de cambio no configurado")
            tasas_consultadas[tipo_cambio] = self.servicio_tasas.obtener_tasa_segun_tipo(tipo_cambio)["tasa"]
        return tasas_consultadas[tipo_cambio]
