import re
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, or_
from sqlalchemy.orm import Session

from app.domain.constants import DIGITOS_NUMERO_NOTA_DEBITO, PREFIJO_NOTA_DEBITO
from app.domain.models.cuentas_por_pagar import FacturaCxP, NotaDebito, NotaDebitoNotaCredito
from app.infrastructure.sql_helpers import agregar_rango, paginar

CAMPOS_CALCULADOS = (
    "tasa_cambio_original",
    "tasa_cambio_pago",
    "monto_usd_neto",
    "diferencial_cambiario_con_iva",
    "base_imponible_diferencial",
    "iva_diferencial",
    "retencion_iva_diferencial",
    "monto_neto_pagar_nota_debito",
)

_DIGITOS_FINALES = re.compile(r"(\d+)$")


def formatear_numero_nota_debito(secuencia: int) -> str:
    return f"{PREFIJO_NOTA_DEBITO}{str(secuencia).zfill(DIGITOS_NUMERO_NOTA_DEBITO)}"


class RepositorioNotasDebito:
    def __init__(self, db_session: Session):
        self.db = db_session

    def siguiente_numero(self, company_id: str) -> str:
        """
        Número de la próxima nota de débito de la empresa (ND-000001, ND-000002...).

        Toma los dígitos finales del número de la nota más reciente; si no hay
        notas o el número no termina en dígitos, empieza en 1.
        """
        ultima = (
            self.db.query(NotaDebito.numero)
            .filter(NotaDebito.company_id == company_id)
            .order_by(desc(NotaDebito.creado_en), desc(NotaDebito.id))
            .first()
        )
        secuencia = 1
        if ultima and ultima[0]:
            match = _DIGITOS_FINALES.search(ultima[0].strip())
            if match:
                secuencia = int(match.group(1)) + 1
        return formatear_numero_nota_debito(secuencia)

    def crear(
        self,
        *,
        company_id: str,
        numero: str,
        fecha: date,
        factura_id: int,
        calculo: Dict[str, Any],
        notas_credito_ids: Optional[List[int]] = None,
        origen: str = "manual",
        notas: Optional[str] = None,
        created_by: Optional[str] = None,
    ) -> Dict[str, Any]:
        nota = NotaDebito(
            company_id=company_id,
            numero=numero,
            fecha=fecha,
            factura_id=factura_id,
            origen=origen,
            notas=notas,
            created_by=created_by,
            **{campo: calculo[campo] for campo in CAMPOS_CALCULADOS},
        )
        self.db.add(nota)
        self.db.flush()
        for nc_id in notas_credito_ids or []:
            self.db.add(NotaDebitoNotaCredito(nota_debito_id=nota.id, nota_credito_id=nc_id))
        self.db.commit()
        self.db.refresh(nota)
        return self._to_dict(nota, notas_credito_ids or [])

    def obtener(self, company_id: str, nota_id: int) -> Optional[Dict[str, Any]]:
        nota = self._get(company_id, nota_id)
        return self._to_dict(nota, self._ids_notas_credito(nota.id)) if nota else None

    def obtener_por_factura(self, company_id: str, factura_id: int) -> Optional[Dict[str, Any]]:
        """Nota de débito más reciente de la factura, si existe."""
        nota = (
            self.db.query(NotaDebito)
            .filter(NotaDebito.company_id == company_id, NotaDebito.factura_id == factura_id)
            .order_by(desc(NotaDebito.creado_en), desc(NotaDebito.id))
            .first()
        )
        return self._to_dict(nota, self._ids_notas_credito(nota.id)) if nota else None

    def listar(
        self,
        company_id: str,
        *,
        fecha_desde: Optional[date] = None,
        fecha_hasta: Optional[date] = None,
        proveedor: Optional[str] = None,
        factura_id: Optional[int] = None,
        origen: Optional[str] = None,
        page: int = 1,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Lista notas de débito con filtros y paginación, más recientes primero.

        El filtro de proveedor busca por nombre o RIF en la factura asociada.
        """
        filters = [NotaDebito.company_id == company_id]
        agregar_rango(filters, NotaDebito.fecha, fecha_desde, fecha_hasta)
        if factura_id is not None:
            filters.append(NotaDebito.factura_id == factura_id)
        if origen:
            filters.append(NotaDebito.origen == origen)
        if proveedor and proveedor.strip():
            patron = f"%{proveedor.strip()}%"
            subq = (
                self.db.query(FacturaCxP.id)
                .filter(
                    FacturaCxP.company_id == company_id,
                    or_(FacturaCxP.proveedor_nombre.ilike(patron), FacturaCxP.proveedor_rif.ilike(patron)),
                )
            )
            filters.append(NotaDebito.factura_id.in_(subq))

        q = (
            self.db.query(NotaDebito)
            .filter(*filters)
            .order_by(desc(NotaDebito.fecha), desc(NotaDebito.id))
        )
        return paginar(
            q,
            page,
            limit,
            lambda n: self._to_dict(n, self._ids_notas_credito(n.id)),
            clave="notas_debito",
        )

    def actualizar(
        self,
        company_id: str,
        nota_id: int,
        *,
        usuario: Optional[str] = None,
        **campos,
    ) -> Optional[Dict[str, Any]]:
        """Actualiza fecha y/o campos calculados de una nota existente."""
        nota = self._get(company_id, nota_id)
        if not nota:
            return None
        for key, value in campos.items():
            if key == "fecha" or key == "notas" or key in CAMPOS_CALCULADOS:
                setattr(nota, key, value)
        nota.usuario_modificacion = usuario
        nota.fecha_modificacion = datetime.utcnow()
        self.db.commit()
        self.db.refresh(nota)
        return self._to_dict(nota, self._ids_notas_credito(nota.id))

    def _get(self, company_id: str, nota_id: int) -> Optional[NotaDebito]:
        return (
            self.db.query(NotaDebito)
            .filter(NotaDebito.company_id == company_id, NotaDebito.id == nota_id)
            .first()
        )

    def _ids_notas_credito(self, nota_id: int) -> List[int]:
        rows = (
            self.db.query(NotaDebitoNotaCredito.nota_credito_id)
            .filter(NotaDebitoNotaCredito.nota_debito_id == nota_id)
            .order_by(NotaDebitoNotaCredito.id)
            .all()
        )
        return [r[0] for r in rows]

    @staticmethod
    def _to_dict(item: NotaDebito, notas_credito_ids: List[int]) -> Dict[str, Any]:
        return {
            "id": item.id,
            "company_id": item.company_id,
            "numero": item.numero,
            "fecha": item.fecha,
            "factura_id": item.factura_id,
            "notas_credito_ids": list(notas_credito_ids),
            **{campo: float(getattr(item, campo) or 0) for campo in CAMPOS_CALCULADOS},
            "origen": item.origen,
            "notas": item.notas,
            "created_by": item.created_by,
            "creado_en": item.creado_en.isoformat() if item.creado_en else None,
            "usuario_modificacion": item.usuario_modificacion,
            "fecha_modificacion": item.fecha_modificacion.isoformat() if item.fecha_modificacion else None,
        }
