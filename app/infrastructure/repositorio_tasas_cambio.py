from datetime import date
from typing import Any, Dict, Optional

from sqlalchemy import desc
from sqlalchemy.orm import Session

from app.domain.models.cuentas_por_pagar import TasaCambio


class RepositorioTasasCambio:
    def __init__(self, db_session: Session):
        self.db = db_session

    def registrar(
        self,
        company_id: str,
        *,
        moneda: str,
        tasa: float,
        fecha: date,
        fuente: Optional[str] = None,
        usuario: Optional[str] = None,
        notas: Optional[str] = None,
    ) -> Dict[str, Any]:
        t = TasaCambio(
            company_id=company_id,
            moneda=moneda,
            tasa=tasa,
            fecha=fecha,
            fuente=fuente,
            usuario=usuario,
            notas=notas,
        )
        self.db.add(t)
        self.db.commit()
        self.db.refresh(t)
        return self._to_dict(t)

    def ultima(self, company_id: str, moneda: str) -> Optional[Dict[str, Any]]:
        t = (
            self.db.query(TasaCambio)
            .filter(TasaCambio.company_id == company_id, TasaCambio.moneda == moneda)
            .order_by(desc(TasaCambio.fecha), desc(TasaCambio.id))
            .first()
        )
        return self._to_dict(t) if t else None

    @staticmethod
    def _to_dict(item: TasaCambio) -> Dict[str, Any]:
        return {
            "id": item.id,
            "moneda": item.moneda,
            "tasa": float(item.tasa),
            "fecha": item.fecha.isoformat(),
            "fuente": item.fuente,
            "usuario": item.usuario,
            "notas": item.notas,
        }
