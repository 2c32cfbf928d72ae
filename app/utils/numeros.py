"""
Utilidades numéricas compartidas por cálculos, formularios y reportes.
"""
import math
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Mapping


def a_numero(valor: Any) -> float:
    """
    Convierte un valor de formulario a float.

    None, cadenas vacías, textos no numéricos, NaN e infinitos valen 0.
    Las cadenas aceptan coma decimal ("36,50").
    """
    if valor is None or isinstance(valor, bool):
        return 0.0
    if isinstance(valor, str):
        valor = valor.strip().replace(",", ".")
        if not valor:
            return 0.0
    try:
        numero = float(valor)
    except (TypeError, ValueError):
        return 0.0
    if math.isnan(numero) or math.isinf(numero):
        return 0.0
    return numero


def leer_campo(documento: Any, nombre: str) -> Any:
    """Lee un campo de un dict, modelo pydantic u objeto ORM."""
    if documento is None:
        return None
    if isinstance(documento, Mapping):
        return documento.get(nombre)
    return getattr(documento, nombre, None)


def campo_numerico(documento: Any, nombre: str) -> float:
    return a_numero(leer_campo(documento, nombre))


def redondear(valor: float, decimales: int = 2) -> float:
    """Redondeo comercial (ROUND_HALF_UP), solo para presentación."""
    cuanto = Decimal(1).scaleb(-decimales)
    return float(Decimal(str(valor)).quantize(cuanto, rounding=ROUND_HALF_UP))


def formatear_bs(valor: float) -> str:
    """Formato es-VE: separador de miles '.', decimales ','. Ej: 'Bs. 1.234,56'"""
    texto = f"{abs(redondear(valor)):,.2f}".replace(",", "X").replace(".", ",").replace("X", ".")
    signo = "-" if valor < 0 and redondear(valor) != 0 else ""
    return f"{signo}Bs. {texto}"
