from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from app.domain.models.cuentas_por_pagar import Proveedor


class RepositorioProveedores:
    def __init__(self, db_session: Session):
        self.db = db_session

    def obtener_por_rif(self, company_id: str, rif: str) -> Optional[Dict[str, Any]]:
        p = self._get(company_id, rif)
        return self._to_dict(p) if p else None

    def guardar(
        self,
        company_id: str,
        *,
        rif: str,
        nombre: str,
        direccion: Optional[str] = None,
        tipo_cambio: str = "USD",
        porcentaje_retencion: float = 75.0,
    ) -> Dict[str, Any]:
        """Crea el proveedor o actualiza el existente con el mismo RIF."""
        rif = self._normalizar_rif(rif)
        p = self._get(company_id, rif)
        if p is None:
            p = Proveedor(company_id=company_id, rif=rif)
            self.db.add(p)
        p.nombre = nombre
        p.direccion = direccion
        p.tipo_cambio = tipo_cambio
        p.porcentaje_retencion = porcentaje_retencion
        self.db.commit()
        self.db.refresh(p)
        return self._to_dict(p)

    def _get(self, company_id: str, rif: str) -> Optional[Proveedor]:
        return (
            self.db.query(Proveedor)
            .filter(Proveedor.company_id == company_id, Proveedor.rif == self._normalizar_rif(rif))
            .first()
        )

    @staticmethod
    def _normalizar_rif(rif: Optional[str]) -> str:
        return (rif or "").strip().upper()

    @staticmethod
    def _to_dict(item: Proveedor) -> Dict[str, Any]:
        return {
            "id": item.id,
            "company_id": item.company_id,
            "nombre": item.nombre,
            "rif": item.rif,
            "direccion": item.direccion,
            "tipo_cambio": item.tipo_cambio,
            "porcentaje_retencion": float(item.porcentaje_retencion or 0),
        }
