from datetime import date, timedelta
from typing import Any, Dict, Optional

from app.domain.constants import (
    DIAS_POR_VENCER,
    ESTADO_PAGO_PAGADA,
    ESTADO_PAGO_PENDIENTE,
    ESTADO_PAGO_PENDIENTE_APROBACION,
    ESTADO_PAGO_VENCIDA,
)
from app.utils.numeros import a_numero


class ObtenerMetricasCuentasPorPagar:
    def __init__(self, repo_cxp):
        self.repo_cxp = repo_cxp

    def execute(self, company_id: str, hoy: Optional[date] = None) -> Dict[str, Any]:
        """
        Métricas del tablero de cuentas por pagar.

        Las facturas pendientes con vencimiento pasado cuentan como vencidas;
        las que vencen en los próximos DIAS_POR_VENCER días, como por vencer.
        Las marcadas 'vencida' suman tanto a vencidas como a pendiente.
        """
        hoy = hoy or date.today()
        limite_por_vencer = hoy + timedelta(days=DIAS_POR_VENCER)
        facturas = self.repo_cxp.listar_todas_facturas(company_id)

        metricas = {
            "total_facturas": len(facturas),
            "total_monto_pendiente": 0.0,
            "facturas_vencidas": 0,
            "monto_vencido": 0.0,
            "facturas_por_vencer": 0,
            "monto_por_vencer": 0.0,
            "facturas_pagadas": 0,
            "monto_pagado": 0.0,
            "facturas_pendientes_aprobacion": 0,
            "monto_pendiente_aprobacion": 0.0,
        }

        for factura in facturas:
            monto = a_numero(factura.get("total"))
            estado = factura.get("estado_pago") or ESTADO_PAGO_PENDIENTE
            vencimiento = factura.get("fecha_vencimiento")

            if estado == ESTADO_PAGO_PENDIENTE:
                metricas["total_monto_pendiente"] += monto
                if vencimiento is None:
                    continue
                if vencimiento < hoy:
                    metricas["facturas_vencidas"] += 1
                    metricas["monto_vencido"] += monto
                elif vencimiento <= limite_por_vencer:
                    metricas["facturas_por_vencer"] += 1
                    metricas["monto_por_vencer"] += monto
            elif estado == ESTADO_PAGO_PAGADA:
                metricas["facturas_pagadas"] += 1
                metricas["monto_pagado"] += monto
            elif estado == ESTADO_PAGO_PENDIENTE_APROBACION:
                metricas["facturas_pendientes_aprobacion"] += 1
                metricas["monto_pendiente_aprobacion"] += monto
            elif estado == ESTADO_PAGO_VENCIDA:
                metricas["facturas_vencidas"] += 1
                metricas["monto_vencido"] += monto
                metricas["total_monto_pendiente"] += monto

        return metricas
