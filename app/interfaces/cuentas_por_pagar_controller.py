from datetime import date, datetime
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.application.obtener_facturas_cuentas_por_pagar import ObtenerFacturasCuentasPorPagar
from app.application.obtener_metricas_cuentas_por_pagar import ObtenerMetricasCuentasPorPagar
from app.application.registrar_documentos import RegistrarFactura, RegistrarNotaCredito
from app.application.registrar_pago_factura import RegistrarPagoFactura
from app.auth.dependencies import UsuarioActual, get_usuario_actual
from app.config.database import get_db
from app.domain.constants import (
    DEFAULT_ALICUOTA_IVA,
    DEFAULT_PORCENTAJE_RETENCION,
    ESTADO_PAGO_PENDIENTE,
    ESTADOS_PAGO,
    TIPO_CAMBIO_USD,
    TIPO_PAGO_DEPOSITO,
    TIPOS_CAMBIO,
    TIPOS_PAGO,
)
from app.domain.models.documentos import Factura, NotaCredito
from app.infrastructure.exportador_excel import exportar_facturas_excel
from app.infrastructure.repositorio_cuentas_por_pagar import RepositorioCuentasPorPagar
from app.infrastructure.repositorio_notas_debito import RepositorioNotasDebito
from app.infrastructure.repositorio_proveedores import RepositorioProveedores
from app.utils.error_handlers import handle_error, handle_validation_error
import logging

router = APIRouter(prefix="/api/cuentas-por-pagar", tags=["Cuentas por pagar"])

logger = logging.getLogger("cuentas_por_pagar")

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


# Dependencies para los repositorios
def get_repo_cxp(db: Session = Depends(get_db)):
    return RepositorioCuentasPorPagar(db)


def get_repo_notas_debito(db: Session = Depends(get_db)):
    return RepositorioNotasDebito(db)


def get_repo_proveedores(db: Session = Depends(get_db)):
    return RepositorioProveedores(db)


class FacturaIn(Factura):
    fecha: date
    alicuota_iva: float = DEFAULT_ALICUOTA_IVA
    porcentaje_retencion: float = DEFAULT_PORCENTAJE_RETENCION
    fecha_vencimiento: Optional[date] = None
    tipo_pago: str = TIPO_PAGO_DEPOSITO
    estado_pago: str = ESTADO_PAGO_PENDIENTE
    # Tipo de cambio del proveedor (USD, EUR o PAR)
    tipo_cambio_proveedor: str = TIPO_CAMBIO_USD


class NotaCreditoIn(NotaCredito):
    fecha: date


class PagoIn(BaseModel):
    tasa_cambio_pago: Optional[float] = None
    fecha_pago: Optional[date] = None
    notas: Optional[str] = Field(None, max_length=500)


def _filtros_facturas(
    proveedor: Optional[str],
    estado_pago: Optional[str],
    tipo_pago: Optional[str],
    fecha_desde: Optional[date],
    fecha_hasta: Optional[date],
    fecha_vencimiento_desde: Optional[date],
    fecha_vencimiento_hasta: Optional[date],
    monto_minimo: Optional[float],
    monto_maximo: Optional[float],
    busqueda: Optional[str],
) -> dict:
    if estado_pago and estado_pago not in ESTADOS_PAGO:
        raise handle_validation_error(f"Estado de pago no válido: {estado_pago}", "estado_pago")
    return {
        "proveedor": proveedor,
        "estado_pago": estado_pago,
        "tipo_pago": tipo_pago,
        "fecha_desde": fecha_desde,
        "fecha_hasta": fecha_hasta,
        "fecha_vencimiento_desde": fecha_vencimiento_desde,
        "fecha_vencimiento_hasta": fecha_vencimiento_hasta,
        "monto_minimo": monto_minimo,
        "monto_maximo": monto_maximo,
        "busqueda": busqueda,
    }


@router.get("/facturas")
def listar_facturas(
    proveedor: Optional[str] = Query(None, description="Nombre o RIF del proveedor"),
    estado_pago: Optional[str] = Query(None),
    tipo_pago: Optional[str] = Query(None),
    fecha_desde: Optional[date] = Query(None),
    fecha_hasta: Optional[date] = Query(None),
    fecha_vencimiento_desde: Optional[date] = Query(None),
    fecha_vencimiento_hasta: Optional[date] = Query(None),
    monto_minimo: Optional[float] = Query(None),
    monto_maximo: Optional[float] = Query(None),
    busqueda: Optional[str] = Query(None, description="Número, control o proveedor"),
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1),
    usuario: UsuarioActual = Depends(get_usuario_actual),
    repo_cxp: RepositorioCuentasPorPagar = Depends(get_repo_cxp),
    repo_notas_debito: RepositorioNotasDebito = Depends(get_repo_notas_debito),
):
    filtros = _filtros_facturas(
        proveedor, estado_pago, tipo_pago, fecha_desde, fecha_hasta,
        fecha_vencimiento_desde, fecha_vencimiento_hasta, monto_minimo, monto_maximo, busqueda,
    )
    try:
        use_case = ObtenerFacturasCuentasPorPagar(repo_cxp, repo_notas_debito)
        return use_case.execute(usuario.company_id, filtros, page=page, limit=limit)
    except Exception as e:
        raise handle_error(e, "listar facturas por pagar", "No se pudieron obtener las facturas")


@router.post("/facturas", status_code=status.HTTP_201_CREATED)
def registrar_factura(
    payload: FacturaIn,
    usuario: UsuarioActual = Depends(get_usuario_actual),
    repo_cxp: RepositorioCuentasPorPagar = Depends(get_repo_cxp),
    repo_proveedores: RepositorioProveedores = Depends(get_repo_proveedores),
):
    if payload.estado_pago not in ESTADOS_PAGO:
        raise handle_validation_error(f"Estado de pago no válido: {payload.estado_pago}", "estado_pago")
    if payload.tipo_pago not in TIPOS_PAGO:
        raise handle_validation_error(f"Tipo de pago no válido: {payload.tipo_pago}", "tipo_pago")
    if payload.tipo_cambio_proveedor.upper() not in TIPOS_CAMBIO:
        raise handle_validation_error(
            f"Tipo de cambio no válido: {payload.tipo_cambio_proveedor}", "tipo_cambio_proveedor"
        )
    datos = payload.model_dump(exclude={"tipo_cambio_proveedor"})
    try:
        use_case = RegistrarFactura(repo_cxp, repo_proveedores)
        return use_case.execute(
            usuario.company_id,
            datos,
            usuario=usuario.id,
            tipo_cambio_proveedor=payload.tipo_cambio_proveedor.upper(),
        )
    except Exception as e:
        raise handle_error(e, "registrar factura", "No se pudo registrar la factura")


@router.get("/metricas")
def obtener_metricas(
    usuario: UsuarioActual = Depends(get_usuario_actual),
    repo_cxp: RepositorioCuentasPorPagar = Depends(get_repo_cxp),
):
    try:
        return ObtenerMetricasCuentasPorPagar(repo_cxp).execute(usuario.company_id)
    except Exception as e:
        raise handle_error(e, "obtener métricas", "No se pudieron obtener las métricas")


@router.get("/facturas/excel")
def exportar_facturas(
    proveedor: Optional[str] = Query(None),
    estado_pago: Optional[str] = Query(None),
    tipo_pago: Optional[str] = Query(None),
    fecha_desde: Optional[date] = Query(None),
    fecha_hasta: Optional[date] = Query(None),
    fecha_vencimiento_desde: Optional[date] = Query(None),
    fecha_vencimiento_hasta: Optional[date] = Query(None),
    monto_minimo: Optional[float] = Query(None),
    monto_maximo: Optional[float] = Query(None),
    busqueda: Optional[str] = Query(None),
    usuario: UsuarioActual = Depends(get_usuario_actual),
    repo_cxp: RepositorioCuentasPorPagar = Depends(get_repo_cxp),
    repo_notas_debito: RepositorioNotasDebito = Depends(get_repo_notas_debito),
):
    filtros = _filtros_facturas(
        proveedor, estado_pago, tipo_pago, fecha_desde, fecha_hasta,
        fecha_vencimiento_desde, fecha_vencimiento_hasta, monto_minimo, monto_maximo, busqueda,
    )
    try:
        facturas = ObtenerFacturasCuentasPorPagar(repo_cxp, repo_notas_debito).execute_todas(
            usuario.company_id, filtros
        )
        contenido = exportar_facturas_excel(facturas)
    except Exception as e:
        raise handle_error(e, "exportar facturas", "No se pudo generar el Excel de facturas")

    filename = f"cuentas_por_pagar_{datetime.now().strftime('%Y%m%d_%H%M%S')}.xlsx"
    return Response(
        content=contenido,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/facturas/{factura_id}")
def obtener_factura(
    factura_id: int,
    usuario: UsuarioActual = Depends(get_usuario_actual),
    repo_cxp: RepositorioCuentasPorPagar = Depends(get_repo_cxp),
    repo_notas_debito: RepositorioNotasDebito = Depends(get_repo_notas_debito),
):
    try:
        factura = ObtenerFacturasCuentasPorPagar(repo_cxp, repo_notas_debito).execute_detalle(
            usuario.company_id, factura_id
        )
    except Exception as e:
        raise handle_error(e, f"obtener factura {factura_id}", "No se pudo obtener la factura")
    if not factura:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Factura no encontrada")
    return factura


@router.post("/facturas/{factura_id}/notas-credito", status_code=status.HTTP_201_CREATED)
def registrar_nota_credito(
    factura_id: int,
    payload: NotaCreditoIn,
    usuario: UsuarioActual = Depends(get_usuario_actual),
    repo_cxp: RepositorioCuentasPorPagar = Depends(get_repo_cxp),
):
    try:
        use_case = RegistrarNotaCredito(repo_cxp)
        return use_case.execute(usuario.company_id, factura_id, payload.model_dump(), usuario=usuario.id)
    except Exception as e:
        raise handle_error(e, f"registrar nota de crédito en factura {factura_id}", "No se pudo registrar la nota de crédito")


@router.post("/facturas/{factura_id}/pago")
def registrar_pago(
    factura_id: int,
    payload: PagoIn,
    usuario: UsuarioActual = Depends(get_usuario_actual),
    repo_cxp: RepositorioCuentasPorPagar = Depends(get_repo_cxp),
    repo_notas_debito: RepositorioNotasDebito = Depends(get_repo_notas_debito),
):
    try:
        use_case = RegistrarPagoFactura(repo_cxp, repo_notas_debito)
        return use_case.execute(
            usuario.company_id,
            factura_id,
            usuario=usuario.id,
            tasa_cambio_pago=payload.tasa_cambio_pago,
            fecha_pago=payload.fecha_pago,
            notas=payload.notas,
        )
    except Exception as e:
        raise handle_error(e, f"registrar pago de factura {factura_id}", "No se pudo registrar el pago")
