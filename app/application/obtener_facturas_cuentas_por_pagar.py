from datetime import date
from typing import Any, Dict, List, Optional

from app.domain.calculos import calcular_monto_final_pagar


def calcular_dias_vencimiento(fecha_vencimiento: Optional[date], hoy: Optional[date] = None) -> Optional[int]:
    """Días hasta el vencimiento; negativo si ya venció. None si no hay fecha."""
    if fecha_vencimiento is None:
        return None
    hoy = hoy or date.today()
    return (fecha_vencimiento - hoy).days


class ObtenerFacturasCuentasPorPagar:
    def __init__(self, repo_cxp, repo_notas_debito):
        self.repo_cxp = repo_cxp
        self.repo_notas_debito = repo_notas_debito

    def execute(
        self,
        company_id: str,
        filtros: Optional[Dict[str, Any]] = None,
        page: int = 1,
        limit: Optional[int] = None,
        hoy: Optional[date] = None,
    ) -> Dict[str, Any]:
        """
        Lista paginada de facturas por pagar con los datos calculados de cada una.

        Args:
            filtros: proveedor, estado_pago, tipo_pago, fecha_desde, fecha_hasta,
                fecha_vencimiento_desde, fecha_vencimiento_hasta, monto_minimo,
                monto_maximo, busqueda. Los valores None se ignoran.
        """
        filtros = {k: v for k, v in (filtros or {}).items() if v is not None}
        resultado = self.repo_cxp.listar_facturas(company_id, page=page, limit=limit, **filtros)
        resultado["facturas"] = [
            self._enriquecer(company_id, factura, hoy) for factura in resultado["facturas"]
        ]
        return resultado

    def execute_detalle(self, company_id: str, factura_id: int, hoy: Optional[date] = None) -> Optional[Dict[str, Any]]:
        factura = self.repo_cxp.obtener_factura(company_id, factura_id)
        if not factura:
            return None
        detalle = self._enriquecer(company_id, factura, hoy)
        detalle["notas_credito"] = self.repo_cxp.listar_notas_credito(company_id, factura_id)
        detalle["nota_debito"] = self.repo_notas_debito.obtener_por_factura(company_id, factura_id)
        return detalle

    def execute_todas(self, company_id: str, filtros: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        """Todas las facturas que cumplen los filtros, recorriendo las páginas (para exportar)."""
        facturas: List[Dict[str, Any]] = []
        page = 1
        while True:
            resultado = self.execute(company_id, filtros, page=page, limit=100)
            facturas.extend(resultado["facturas"])
            if page >= resultado["total_pages"]:
                return facturas
            page += 1

    def _enriquecer(self, company_id: str, factura: Dict[str, Any], hoy: Optional[date]) -> Dict[str, Any]:
        notas_credito = self.repo_cxp.listar_notas_credito(company_id, factura["id"])
        nota_debito = self.repo_notas_debito.obtener_por_factura(company_id, factura["id"])
        monto_final = calcular_monto_final_pagar(factura, notas_credito, nota_debito)
        return {
            **factura,
            "dias_vencimiento": calcular_dias_vencimiento(factura.get("fecha_vencimiento"), hoy),
            "monto_final_pagar": monto_final,
            "nota_debito_generada": nota_debito is not None,
            "saldo_a_favor": monto_final < 0,
        }
