from datetime import date, datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.application.actualizar_nota_debito import ActualizarNotaDebito
from app.application.generar_nota_debito import GenerarNotaDebito
from app.application.obtener_notas_debito import ObtenerNotasDebito
from app.auth.dependencies import UsuarioActual, get_usuario_actual
from app.config.database import get_db
from app.infrastructure.exportador_excel import exportar_notas_debito_excel
from app.infrastructure.repositorio_cuentas_por_pagar import RepositorioCuentasPorPagar
from app.infrastructure.repositorio_notas_debito import RepositorioNotasDebito
from app.infrastructure.repositorio_proveedores import RepositorioProveedores
from app.services.tasas_cambio import ServicioTasasCambio
from app.utils.error_handlers import handle_error
import logging

router = APIRouter(prefix="/api/notas-debito", tags=["Notas de débito"])

logger = logging.getLogger("notas_debito")

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def get_repo_cxp(db: Session = Depends(get_db)):
    return RepositorioCuentasPorPagar(db)


def get_repo_notas_debito(db: Session = Depends(get_db)):
    return RepositorioNotasDebito(db)


def get_repo_proveedores(db: Session = Depends(get_db)):
    return RepositorioProveedores(db)


def get_servicio_tasas():
    return ServicioTasasCambio()


class GenerarNotaDebitoIn(BaseModel):
    factura_id: int
    tasa_cambio_pago: float
    fecha: Optional[date] = None
    notas: Optional[str] = Field(None, max_length=500)


class LoteNotasDebitoIn(BaseModel):
    factura_ids: List[int] = Field(..., min_length=1)
    # Tasa manual por RIF para proveedores con tipo de cambio PAR
    tasas_personalizadas: Dict[str, float] = Field(default_factory=dict)


class ActualizarNotaDebitoIn(BaseModel):
    fecha: Optional[date] = None
    tasa_cambio_pago: Optional[float] = None
    notas: Optional[str] = Field(None, max_length=500)


@router.get("")
def listar_notas_debito(
    fecha_desde: Optional[date] = Query(None),
    fecha_hasta: Optional[date] = Query(None),
    proveedor: Optional[str] = Query(None, description="Nombre o RIF del proveedor"),
    factura_id: Optional[int] = Query(None),
    origen: Optional[str] = Query(None, description="manual | automatica"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    usuario: UsuarioActual = Depends(get_usuario_actual),
    repo_cxp: RepositorioCuentasPorPagar = Depends(get_repo_cxp),
    repo_notas_debito: RepositorioNotasDebito = Depends(get_repo_notas_debito),
):
    filtros = {
        "fecha_desde": fecha_desde,
        "fecha_hasta": fecha_hasta,
        "proveedor": proveedor,
        "factura_id": factura_id,
        "origen": origen,
    }
    try:
        use_case = ObtenerNotasDebito(repo_cxp, repo_notas_debito)
        return use_case.execute(usuario.company_id, filtros, page=page, limit=limit)
    except Exception as e:
        raise handle_error(e, "listar notas de débito", "No se pudieron obtener las notas de débito")


@router.post("", status_code=status.HTTP_201_CREATED)
def generar_nota_debito(
    payload: GenerarNotaDebitoIn,
    usuario: UsuarioActual = Depends(get_usuario_actual),
    repo_cxp: RepositorioCuentasPorPagar = Depends(get_repo_cxp),
    repo_notas_debito: RepositorioNotasDebito = Depends(get_repo_notas_debito),
):
    try:
        use_case = GenerarNotaDebito(repo_cxp, repo_notas_debito)
        return use_case.execute(
            usuario.company_id,
            payload.factura_id,
            payload.tasa_cambio_pago,
            usuario=usuario.id,
            fecha=payload.fecha,
            notas=payload.notas,
        )
    except Exception as e:
        raise handle_error(e, f"generar nota de débito de factura {payload.factura_id}", "No se pudo generar la nota de débito")


@router.post("/lote")
def generar_notas_debito_lote(
    payload: LoteNotasDebitoIn,
    usuario: UsuarioActual = Depends(get_usuario_actual),
    repo_cxp: RepositorioCuentasPorPagar = Depends(get_repo_cxp),
    repo_notas_debito: RepositorioNotasDebito = Depends(get_repo_notas_debito),
    repo_proveedores: RepositorioProveedores = Depends(get_repo_proveedores),
    servicio_tasas: ServicioTasasCambio = Depends(get_servicio_tasas),
):
    try:
        use_case = GenerarNotaDebito(repo_cxp, repo_notas_debito, repo_proveedores, servicio_tasas)
        resultado = use_case.execute_lote(
            usuario.company_id,
            payload.factura_ids,
            usuario=usuario.id,
            tasas_personalizadas=payload.tasas_personalizadas,
        )
    except Exception as e:
        raise handle_error(e, "generar notas de débito en lote", "No se pudieron generar las notas de débito")
    logger.info(
        f"Lote de notas de débito: {resultado['exitosas']} generadas, {len(resultado['errores'])} errores"
    )
    return resultado


@router.get("/resumen")
def resumen_notas_debito(
    fecha_desde: Optional[date] = Query(None),
    fecha_hasta: Optional[date] = Query(None),
    usuario: UsuarioActual = Depends(get_usuario_actual),
    repo_cxp: RepositorioCuentasPorPagar = Depends(get_repo_cxp),
    repo_notas_debito: RepositorioNotasDebito = Depends(get_repo_notas_debito),
):
    try:
        use_case = ObtenerNotasDebito(repo_cxp, repo_notas_debito)
        return use_case.execute_resumen(usuario.company_id, fecha_desde, fecha_hasta)
    except Exception as e:
        raise handle_error(e, "obtener resumen de notas de débito", "No se pudo obtener el resumen de notas de débito")


@router.get("/excel")
def exportar_notas_debito(
    fecha_desde: Optional[date] = Query(None),
    fecha_hasta: Optional[date] = Query(None),
    proveedor: Optional[str] = Query(None),
    usuario: UsuarioActual = Depends(get_usuario_actual),
    repo_cxp: RepositorioCuentasPorPagar = Depends(get_repo_cxp),
    repo_notas_debito: RepositorioNotasDebito = Depends(get_repo_notas_debito),
):
    filtros = {"fecha_desde": fecha_desde, "fecha_hasta": fecha_hasta, "proveedor": proveedor}
    try:
        notas = ObtenerNotasDebito(repo_cxp, repo_notas_debito).execute_todas(usuario.company_id, filtros)
        contenido = exportar_notas_debito_excel(notas, filtros)
    except Exception as e:
        raise handle_error(e, "exportar notas de débito", "No se pudo generar el Excel de notas de débito")

    filename = f"notas_debito_{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"
    return Response(
        content=contenido,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/{nota_id}")
def obtener_nota_debito(
    nota_id: int,
    usuario: UsuarioActual = Depends(get_usuario_actual),
    repo_cxp: RepositorioCuentasPorPagar = Depends(get_repo_cxp),
    repo_notas_debito: RepositorioNotasDebito = Depends(get_repo_notas_debito),
):
    try:
        nota = ObtenerNotasDebito(repo_cxp, repo_notas_debito).execute_detalle(usuario.company_id, nota_id)
    except Exception as e:
        raise handle_error(e, f"obtener nota de débito {nota_id}", "No se pudo obtener la nota de débito")
    if not nota:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Nota de débito no encontrada")
    return nota


@router.patch("/{nota_id}")
def actualizar_nota_debito(
    nota_id: int,
    payload: ActualizarNotaDebitoIn,
    usuario: UsuarioActual = Depends(get_usuario_actual),
    repo_cxp: RepositorioCuentasPorPagar = Depends(get_repo_cxp),
    repo_notas_debito: RepositorioNotasDebito = Depends(get_repo_notas_debito),
):
    try:
        use_case = ActualizarNotaDebito(repo_cxp, repo_notas_debito)
        return use_case.execute(
            usuario.company_id,
            nota_id,
            usuario=usuario.id,
            fecha=payload.fecha,
            tasa_cambio_pago=payload.tasa_cambio_pago,
            notas=payload.notas,
        )
    except Exception as e:
        raise handle_error(e, f"actualizar nota de débito {nota_id}", "No se pudo actualizar la nota de débito")
