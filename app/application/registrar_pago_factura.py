import logging
from datetime import date
from typing import Any, Dict, Optional

from app.application.generar_nota_debito import GenerarNotaDebito
from app.config.settings import get_umbral_minimo_diferencial
from app.domain.calculos import calcular_monto_final_pagar, calcular_nota_debito
from app.domain.constants import ESTADO_PAGO_PAGADA, ORIGEN_AUTOMATICA
from app.domain.exceptions import FacturaYaPagadaError, RegistroNoEncontradoError

logger = logging.getLogger("cuentas_por_pagar")


class RegistrarPagoFactura:
    def __init__(self, repo_cxp, repo_notas_debito):
        self.repo_cxp = repo_cxp
        self.repo_notas_debito = repo_notas_debito

    def execute(
        self,
        company_id: str,
        factura_id: int,
        usuario: Optional[str] = None,
        tasa_cambio_pago: Optional[float] = None,
        fecha_pago: Optional[date] = None,
        notas: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Marca una factura como pagada.

        Si se indica la tasa de pago, la factura no tiene nota de débito y el
        diferencial alcanza el umbral, se genera la nota de débito automática
        antes de marcar el pago. Una tasa inválida bloquea el pago completo.

        Returns:
            {"factura", "nota_debito", "monto_final_pagar", "saldo_a_favor"}
        """
        factura = self.repo_cxp.obtener_factura(company_id, factura_id)
        if not factura:
            raise RegistroNoEncontradoError(f"Factura {factura_id} no encontrada")
        if factura["estado_pago"] == ESTADO_PAGO_PAGADA:
            raise FacturaYaPagadaError(f"La factura {factura['numero']} ya está pagada")

        notas_credito = self.repo_cxp.listar_notas_credito(company_id, factura_id)
        nota_debito = self.repo_notas_debito.obtener_por_factura(company_id, factura_id)

        if tasa_cambio_pago is not None and nota_debito is None:
            # Valida las tasas aunque luego no haga falta nota de débito
            calculo = calcular_nota_debito(factura, notas_credito, tasa_cambio_pago)
            if calculo.diferencial_cambiario_con_iva >= get_umbral_minimo_diferencial():
                nota_debito = GenerarNotaDebito(self.repo_cxp, self.repo_notas_debito).execute(
                    company_id,
                    factura_id,
                    tasa_cambio_pago,
                    usuario=usuario,
                    fecha=fecha_pago,
                    origen=ORIGEN_AUTOMATICA,
                )
            else:
                logger.info(
                    f"Sin diferencial cambiario significativo para factura {factura['numero']}: "
                    f"{calculo.diferencial_cambiario_con_iva:.2f}"
                )

        factura = self.repo_cxp.actualizar_estado_pago(
            company_id, factura_id, ESTADO_PAGO_PAGADA, notas=notas, fecha_pago=fecha_pago
        )
        monto_final = calcular_monto_final_pagar(factura, notas_credito, nota_debito)
        if monto_final < 0:
            logger.warning(f"Factura {factura['numero']} sobreacreditada: monto final {monto_final:.2f}")

        return {
            "factura": factura,
            "nota_debito": nota_debito,
            "monto_final_pagar": monto_final,
            "saldo_a_favor": monto_final < 0,
        }
