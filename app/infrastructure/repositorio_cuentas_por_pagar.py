from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, or_
from sqlalchemy.orm import Session

from app.domain.models.cuentas_por_pagar import FacturaCxP, NotaCreditoCxP
from app.domain.constants import ESTADO_PAGO_PAGADA
from app.infrastructure.sql_helpers import agregar_rango, paginar

_CAMPOS_MONTO = (
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


class RepositorioCuentasPorPagar:
    """Facturas de proveedores y sus notas de crédito, siempre acotadas por empresa."""

    def __init__(self, db_session: Session):
        self.db = db_session

    # Facturas
    def crear_factura(self, company_id: str, created_by: Optional[str] = None, **campos) -> Dict[str, Any]:
        factura = FacturaCxP(company_id=company_id, created_by=created_by, **campos)
        self.db.add(factura)
        self.db.commit()
        self.db.refresh(factura)
        return self._factura_to_dict(factura)

    def obtener_factura(self, company_id: str, factura_id: int) -> Optional[Dict[str, Any]]:
        factura = self._get_factura(company_id, factura_id)
        return self._factura_to_dict(factura) if factura else None

    def obtener_facturas_por_ids(self, company_id: str, ids: List[int]) -> List[Dict[str, Any]]:
        if not ids:
            return []
        rows = (
            self.db.query(FacturaCxP)
            .filter(FacturaCxP.company_id == company_id, FacturaCxP.id.in_(ids))
            .all()
        )
        return [self._factura_to_dict(f) for f in rows]

    def listar_facturas(
        self,
        company_id: str,
        *,
        proveedor: Optional[str] = None,
        estado_pago: Optional[str] = None,
        tipo_pago: Optional[str] = None,
        fecha_desde: Optional[date] = None,
        fecha_hasta: Optional[date] = None,
        fecha_vencimiento_desde: Optional[date] = None,
        fecha_vencimiento_hasta: Optional[date] = None,
        monto_minimo: Optional[float] = None,
        monto_maximo: Optional[float] = None,
        busqueda: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Lista facturas con filtros y paginación, más recientes primero.

        Returns:
            {"page", "limit", "total", "total_pages", "facturas": [...]}
        """
        filters = [FacturaCxP.company_id == company_id]
        if proveedor:
            patron = f"%{proveedor.strip()}%"
            filters.append(or_(FacturaCxP.proveedor_nombre.ilike(patron), FacturaCxP.proveedor_rif.ilike(patron)))
        if estado_pago:
            filters.append(FacturaCxP.estado_pago == estado_pago)
        if tipo_pago:
            filters.append(FacturaCxP.tipo_pago == tipo_pago)
        agregar_rango(filters, FacturaCxP.fecha, fecha_desde, fecha_hasta)
        agregar_rango(filters, FacturaCxP.fecha_vencimiento, fecha_vencimiento_desde, fecha_vencimiento_hasta)
        agregar_rango(filters, FacturaCxP.total, monto_minimo, monto_maximo)
        if busqueda and busqueda.strip():
            patron = f"%{busqueda.strip()}%"
            filters.append(or_(
                FacturaCxP.numero.ilike(patron),
                FacturaCxP.numero_control.ilike(patron),
                FacturaCxP.proveedor_nombre.ilike(patron),
            ))

        q = (
            self.db.query(FacturaCxP)
            .filter(*filters)
            .order_by(desc(FacturaCxP.creado_en), desc(FacturaCxP.id))
        )
        return paginar(q, page, limit, self._factura_to_dict, clave="facturas")

    def listar_todas_facturas(self, company_id: str) -> List[Dict[str, Any]]:
        rows = self.db.query(FacturaCxP).filter(FacturaCxP.company_id == company_id).all()
        return [self._factura_to_dict(f) for f in rows]

    def actualizar_estado_pago(
        self,
        company_id: str,
        factura_id: int,
        estado_pago: str,
        notas: Optional[str] = None,
        fecha_pago: Optional[date] = None,
    ) -> Optional[Dict[str, Any]]:
        factura = self._get_factura(company_id, factura_id)
        if not factura:
            return None
        factura.estado_pago = estado_pago
        if estado_pago == ESTADO_PAGO_PAGADA:
            factura.fecha_pago = fecha_pago or date.today()
        if notas:
            factura.notas_pago = notas
        factura.actualizado_en = datetime.utcnow()
        self.db.commit()
        self.db.refresh(factura)
        return self._factura_to_dict(factura)

    # Notas de crédito
    def crear_nota_credito(
        self,
        company_id: str,
        factura_id: int,
        created_by: Optional[str] = None,
        **campos,
    ) -> Dict[str, Any]:
        nota = NotaCreditoCxP(company_id=company_id, factura_id=factura_id, created_by=created_by, **campos)
        self.db.add(nota)
        self.db.commit()
        self.db.refresh(nota)
        return self._nota_credito_to_dict(nota)

    def listar_notas_credito(self, company_id: str, factura_id: int) -> List[Dict[str, Any]]:
        rows = (
            self.db.query(NotaCreditoCxP)
            .filter(NotaCreditoCxP.company_id == company_id, NotaCreditoCxP.factura_id == factura_id)
            .order_by(NotaCreditoCxP.fecha, NotaCreditoCxP.id)
            .all()
        )
        return [self._nota_credito_to_dict(n) for n in rows]

    def obtener_notas_credito_por_ids(self, company_id: str, ids: List[int]) -> List[Dict[str, Any]]:
        if not ids:
            return []
        rows = (
            self.db.query(NotaCreditoCxP)
            .filter(NotaCreditoCxP.company_id == company_id, NotaCreditoCxP.id.in_(ids))
            .all()
        )
        return [self._nota_credito_to_dict(n) for n in rows]

    def _get_factura(self, company_id: str, factura_id: int) -> Optional[FacturaCxP]:
        return (
            self.db.query(FacturaCxP)
            .filter(FacturaCxP.company_id == company_id, FacturaCxP.id == factura_id)
            .first()
        )

    @staticmethod
    def _montos(item: Any) -> Dict[str, float]:
        return {campo: float(getattr(item, campo) or 0) for campo in _CAMPOS_MONTO}

    @classmethod
    def _factura_to_dict(cls, item: FacturaCxP) -> Dict[str, Any]:
        return {
            "id": item.id,
            "company_id": item.company_id,
            "numero": item.numero,
            "numero_control": item.numero_control,
            "fecha": item.fecha,
            "fecha_vencimiento": item.fecha_vencimiento,
            "estado_pago": item.estado_pago,
            "fecha_pago": item.fecha_pago,
            "notas_pago": item.notas_pago,
            "tipo_pago": item.tipo_pago,
            "proveedor_nombre": item.proveedor_nombre,
            "proveedor_rif": item.proveedor_rif,
            "proveedor_direccion": item.proveedor_direccion,
            "cliente_nombre": item.cliente_nombre,
            "cliente_rif": item.cliente_rif,
            "cliente_direccion": item.cliente_direccion,
            **cls._montos(item),
            "created_by": item.created_by,
            "creado_en": item.creado_en.isoformat() if item.creado_en else None,
        }

    @classmethod
    def _nota_credito_to_dict(cls, item: NotaCreditoCxP) -> Dict[str, Any]:
        return {
            "id": item.id,
            "company_id": item.company_id,
            "factura_id": item.factura_id,
            "factura_afectada": item.factura_afectada,
            "numero": item.numero,
            "numero_control": item.numero_control,
            "fecha": item.fecha,
            **cls._montos(item),
            "created_by": item.created_by,
            "creado_en": item.creado_en.isoformat() if item.creado_en else None,
        }
