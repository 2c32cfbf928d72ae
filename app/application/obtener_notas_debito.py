import math
from datetime import date
from typing import Any, Dict, List, Optional

from app.domain.calculos import calcular_monto_final_pagar


class ObtenerNotasDebito:
    """Consulta de notas de débito con su factura y notas de crédito asociadas."""

    def __init__(self, repo_cxp, repo_notas_debito):
        self.repo_cxp = repo_cxp
        self.repo_notas_debito = repo_notas_debito

    def execute(
        self,
        company_id: str,
        filtros: Optional[Dict[str, Any]] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        filtros = {k: v for k, v in (filtros or {}).items() if v is not None}
        resultado = self.repo_notas_debito.listar(company_id, page=page, limit=limit, **filtros)
        resultado["notas_debito"] = self._enriquecer(company_id, resultado["notas_debito"])
        return resultado

    def execute_detalle(self, company_id: str, nota_id: int) -> Optional[Dict[str, Any]]:
        nota = self.repo_notas_debito.obtener(company_id, nota_id)
        if not nota:
            return None
        return self._enriquecer(company_id, [nota])[0]

    def execute_todas(self, company_id: str, filtros: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        notas: List[Dict[str, Any]] = []
        page = 1
        while True:
            resultado = self.execute(company_id, filtros, page=page, limit=100)
            notas.extend(resultado["notas_debito"])
            if page >= resultado["total_pages"]:
                return notas
            page += 1

    def execute_resumen(
        self,
        company_id: str,
        fecha_desde: Optional[date] = None,
        fecha_hasta: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Resumen de las notas de débito emitidas en un rango de fechas.

        Returns:
            total_notas, monto_total_diferencial, monto_total_pagar,
            promedio_tasa_original y promedio_tasa_pago (0 si no hay notas)
        """
        filtros = {"fecha_desde": fecha_desde, "fecha_hasta": fecha_hasta}
        filtros = {k: v for k, v in filtros.items() if v is not None}
        notas: List[Dict[str, Any]] = []
        page = 1
        while True:
            resultado = self.repo_notas_debito.listar(company_id, page=page, limit=100, **filtros)
            notas.extend(resultado["notas_debito"])
            if page >= resultado["total_pages"]:
                break
            page += 1

        total = len(notas)
        if not total:
            return {
                "total_notas": 0,
                "monto_total_diferencial": 0.0,
                "monto_total_pagar": 0.0,
                "promedio_tasa_original": 0.0,
                "promedio_tasa_pago": 0.0,
            }
        return {
            "total_notas": total,
            "monto_total_diferencial": math.fsum(n["diferencial_cambiario_con_iva"] for n in notas),
            "monto_total_pagar": math.fsum(n["monto_neto_pagar_nota_debito"] for n in notas),
            "promedio_tasa_original": math.fsum(n["tasa_cambio_original"] for n in notas) / total,
            "promedio_tasa_pago": math.fsum(n["tasa_cambio_pago"] for n in notas) / total,
        }

    def _enriquecer(self, company_id: str, notas: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        facturas = {
            f["id"]: f
            for f in self.repo_cxp.obtener_facturas_por_ids(company_id, list({n["factura_id"] for n in notas}))
        }
        enriquecidas = []
        for nota in notas:
            factura = facturas.get(nota["factura_id"])
            notas_credito = self.repo_cxp.obtener_notas_credito_por_ids(company_id, nota["notas_credito_ids"])
            enriquecidas.append({
                **nota,
                "factura": factura,
                "notas_credito": notas_credito,
                "monto_final_pagar": calcular_monto_final_pagar(factura, notas_credito, nota) if factura else None,
            })
        return enriquecidas
