"""
Exportación a Excel (openpyxl) de notas de débito y facturas por pagar.

Los montos se escriben sin redondear; el formato de celda '#,##0.00' se
encarga de mostrarlos con 2 decimales.
"""
import math
from datetime import date, datetime
from io import BytesIO
from typing import Any, Dict, List, Optional, Sequence

import openpyxl
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from app.domain.calculos import calcular_monto_final_pagar
from app.utils.numeros import a_numero

FORMATO_MONTO = '#,##0.00'

# (encabezado, ancho, es_monto)
COLUMNAS_NOTAS_DEBITO = [
    ('Número ND', 15, False),
    ('Fecha ND', 12, False),
    ('Proveedor', 30, False),
    ('RIF Proveedor', 15, False),
    ('Nro. Factura', 15, False),
    ('Fecha Factura', 12, False),
    ('Monto Factura (Bs)', 18, True),
    ('Notas de Crédito', 20, False),
    ('Total NC (Bs)', 15, True),
    ('Monto USD Neto', 15, True),
    ('Tasa Original', 15, True),
    ('Tasa al Pago', 15, True),
    ('Diferencial (Bs)', 18, True),
    ('Base Imponible', 15, True),
    ('IVA', 12, True),
    ('Retención IVA', 15, True),
    ('Neto a Pagar ND', 18, True),
    ('Monto Final Total', 18, True),
]

# Columnas (1-based) que se suman en la fila de totales
_TOTALES_NOTAS_DEBITO = (7, 9, 13, 14, 15, 16, 17, 18)

COLUMNAS_FACTURAS = [
    ('Número', 15, False),
    ('Nro. Control', 15, False),
    ('Fecha', 12, False),
    ('Vencimiento', 12, False),
    ('Proveedor', 30, False),
    ('RIF Proveedor', 15, False),
    ('Estado', 18, False),
    ('Sub Total (Bs)', 16, True),
    ('IVA (Bs)', 14, True),
    ('Total (Bs)', 16, True),
    ('Tasa Cambio', 12, True),
    ('Monto USD', 14, True),
    ('Retención IVA', 15, True),
    ('Monto Final a Pagar', 18, True),
]

_TOTALES_FACTURAS = (8, 9, 10, 12, 13, 14)

header_fill = PatternFill(start_color="0066CC", end_color="0066CC", fill_type="solid")
header_font = Font(bold=True, color="FFFFFF", size=11)
fila_alterna_fill = PatternFill(start_color="F5F5F5", end_color="F5F5F5", fill_type="solid")
totales_fill = PatternFill(start_color="E6E6E6", end_color="E6E6E6", fill_type="solid")
border = Border(
    left=Side(style='thin'),
    right=Side(style='thin'),
    top=Side(style='thin'),
    bottom=Side(style='thin')
)
center_alignment = Alignment(horizontal='center', vertical='center')
right_alignment = Alignment(horizontal='right', vertical='center')


def _formatear_fecha(valor: Any) -> str:
    if isinstance(valor, (date, datetime)):
        return valor.strftime('%d/%m/%Y')
    if isinstance(valor, str) and valor:
        try:
            return date.fromisoformat(valor[:10]).strftime('%d/%m/%Y')
        except ValueError:
            return valor
    return ''


def _escribir_encabezados(ws, columnas: Sequence[tuple], fila: int = 1) -> None:
    for idx, (titulo, ancho, _) in enumerate(columnas, start=1):
        cell = ws.cell(row=fila, column=idx, value=titulo)
        cell.fill = header_fill
        cell.font = header_font
        cell.border = border
        cell.alignment = center_alignment
        ws.column_dimensions[get_column_letter(idx)].width = ancho


def _escribir_filas(ws, columnas: Sequence[tuple], filas: List[List[Any]], fila_inicio: int = 2) -> int:
    """Escribe las filas de datos y devuelve la siguiente fila libre."""
    row = fila_inicio
    for n, valores in enumerate(filas):
        for idx, valor in enumerate(valores, start=1):
            cell = ws.cell(row=row, column=idx, value=valor)
            cell.border = border
            if columnas[idx - 1][2]:
                cell.number_format = FORMATO_MONTO
                cell.alignment = right_alignment
            if n % 2 == 0:
                cell.fill = fila_alterna_fill
        row += 1
    return row


def _escribir_totales(ws, filas: List[List[Any]], columnas_suma: Sequence[int], fila: int, col_etiqueta: int) -> None:
    etiqueta = ws.cell(row=fila, column=col_etiqueta, value='TOTALES:')
    etiqueta.font = Font(bold=True)
    etiqueta.fill = totales_fill
    for col in columnas_suma:
        total = math.fsum(a_numero(valores[col - 1]) for valores in filas)
        cell = ws.cell(row=fila, column=col, value=total)
        cell.number_format = FORMATO_MONTO
        cell.font = Font(bold=True)
        cell.fill = totales_fill
        cell.border = border
        cell.alignment = right_alignment


def _a_bytes(wb) -> bytes:
    output = BytesIO()
    wb.save(output)
    return output.getvalue()


def _fila_nota_debito(nota: Dict[str, Any]) -> List[Any]:
    factura = nota.get('factura') or {}
    notas_credito = nota.get('notas_credito') or []
    numeros_nc = ', '.join(str(nc.get('numero')) for nc in notas_credito if nc.get('numero')) or 'N/A'
    total_nc = math.fsum(a_numero(nc.get('total')) for nc in notas_credito)
    monto_final = nota.get('monto_final_pagar')
    if monto_final is None:
        monto_final = calcular_monto_final_pagar(factura, notas_credito, nota)
    return [
        nota.get('numero'),
        _formatear_fecha(nota.get('fecha')),
        factura.get('proveedor_nombre'),
        factura.get('proveedor_rif'),
        factura.get('numero'),
        _formatear_fecha(factura.get('fecha')),
        a_numero(factura.get('total')),
        numeros_nc,
        total_nc,
        a_numero(nota.get('monto_usd_neto')),
        a_numero(nota.get('tasa_cambio_original')),
        a_numero(nota.get('tasa_cambio_pago')),
        a_numero(nota.get('diferencial_cambiario_con_iva')),
        a_numero(nota.get('base_imponible_diferencial')),
        a_numero(nota.get('iva_diferencial')),
        a_numero(nota.get('retencion_iva_diferencial')),
        a_numero(nota.get('monto_neto_pagar_nota_debito')),
        monto_final,
    ]


def exportar_notas_debito_excel(notas: List[Dict[str, Any]], filtros: Optional[Dict[str, Any]] = None) -> bytes:
    """
    Genera el libro de notas de débito: hoja principal con una fila por nota
    y fila de totales, más una hoja 'Resumen' con totales generales y los
    filtros aplicados.
    """
    filtros = filtros or {}
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Notas de Débito"

    filas = [_fila_nota_debito(n) for n in notas]
    _escribir_encabezados(ws, COLUMNAS_NOTAS_DEBITO)
    siguiente = _escribir_filas(ws, COLUMNAS_NOTAS_DEBITO, filas)
    _escribir_totales(ws, filas, _TOTALES_NOTAS_DEBITO, siguiente + 1, col_etiqueta=6)
    ws.freeze_panes = 'A2'

    resumen = wb.create_sheet("Resumen")
    resumen.column_dimensions['A'].width = 40
    resumen.column_dimensions['B'].width = 25
    datos_resumen = [
        ('Concepto', 'Valor'),
        ('Total de Notas de Débito', len(notas)),
        ('Monto Total Diferencial Cambiario', math.fsum(f[12] for f in filas)),
        ('Monto Total Final a Pagar', math.fsum(f[17] for f in filas)),
        ('IVA Total del Diferencial', math.fsum(f[14] for f in filas)),
        ('Retención IVA Total', math.fsum(f[15] for f in filas)),
        ('', ''),
        ('FILTROS APLICADOS', ''),
        ('Fecha Desde', _formatear_fecha(filtros.get('fecha_desde')) or 'No aplicado'),
        ('Fecha Hasta', _formatear_fecha(filtros.get('fecha_hasta')) or 'No aplicado'),
        ('Proveedor', filtros.get('proveedor') or 'Todos'),
        ('', ''),
        ('Fecha de Exportación', datetime.now().strftime("%d/%m/%Y %H:%M:%S")),
    ]
    for row, (concepto, valor) in enumerate(datos_resumen, start=1):
        resumen.cell(row=row, column=1, value=concepto)
        cell = resumen.cell(row=row, column=2, value=valor)
        if isinstance(valor, float):
            cell.number_format = FORMATO_MONTO
    for col in (1, 2):
        cell = resumen.cell(row=1, column=col)
        cell.fill = header_fill
        cell.font = header_font
        cell.alignment = center_alignment
    resumen.cell(row=8, column=1).font = Font(bold=True)

    return _a_bytes(wb)


def exportar_facturas_excel(facturas: List[Dict[str, Any]]) -> bytes:
    wb = openpyxl.Workbook()
    ws = wb.active
    ws.title = "Cuentas por Pagar"

    filas = []
    for f in facturas:
        monto_final = f.get('monto_final_pagar')
        filas.append([
            f.get('numero'),
            f.get('numero_control'),
            _formatear_fecha(f.get('fecha')),
            _formatear_fecha(f.get('fecha_vencimiento')),
            f.get('proveedor_nombre'),
            f.get('proveedor_rif'),
            f.get('estado_pago'),
            a_numero(f.get('sub_total')),
            a_numero(f.get('iva')),
            a_numero(f.get('total')),
            a_numero(f.get('tasa_cambio')),
            a_numero(f.get('monto_usd')),
            a_numero(f.get('retencion_iva')),
            a_numero(f.get('total') if monto_final is None else monto_final),
        ])

    _escribir_encabezados(ws, COLUMNAS_FACTURAS)
    siguiente = _escribir_filas(ws, COLUMNAS_FACTURAS, filas)
    _escribir_totales(ws, filas, _TOTALES_FACTURAS, siguiente + 1, col_etiqueta=7)
    ws.freeze_panes = 'A2'
    return _a_bytes(wb)
