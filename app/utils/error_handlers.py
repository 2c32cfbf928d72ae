"""
Utilidades para manejo consistente de errores en controladores.
"""
from fastapi import HTTPException, status
from typing import Optional
import logging

from app.domain.exceptions import (
    FacturaYaPagadaError,
    InvalidRateError,
    LimiteNotasCreditoExcedidoError,
    NotaDebitoNoGenerableError,
    RegistroNoEncontradoError,
    TasaCambioNoDisponibleError,
)

logger = logging.getLogger(__name__)

# Errores de dominio -> código HTTP. El orden importa: las subclases de
# ValueError más específicas van antes.
_ERRORES_DOMINIO = (
    (RegistroNoEncontradoError, status.HTTP_404_NOT_FOUND),
    (NotaDebitoNoGenerableError, status.HTTP_409_CONFLICT),
    (FacturaYaPagadaError, status.HTTP_409_CONFLICT),
    (LimiteNotasCreditoExcedidoError, status.HTTP_400_BAD_REQUEST),
    (InvalidRateError, status.HTTP_400_BAD_REQUEST),
    (TasaCambioNoDisponibleError, status.HTTP_503_SERVICE_UNAVAILABLE),
)


def handle_error(
    error: Exception,
    operation: str,
    default_message: str = "Error interno del servidor",
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR,
    log_error: bool = True
) -> HTTPException:
    """
    Maneja errores de forma consistente y devuelve la HTTPException a lanzar.

    Los errores de dominio conocidos se traducen a su código HTTP y solo se
    registran como warning; el resto se registra con traza y usa status_code.

    Args:
        error: Excepción capturada
        operation: Descripción de la operación que falló
        default_message: Mensaje por defecto si no se puede extraer del error
        status_code: Código HTTP para errores no reconocidos
        log_error: Si se debe registrar el error en logs

    Returns:
        HTTPException para lanzar
    """
    if isinstance(error, HTTPException):
        return error

    for tipo, codigo in _ERRORES_DOMINIO:
        if isinstance(error, tipo):
            if log_error:
                logger.warning(f"Error en {operation}: {error}")
            if isinstance(error, InvalidRateError):
                return handle_validation_error(str(error), error.campo)
            return HTTPException(status_code=codigo, detail=str(error) or default_message)

    if log_error:
        logger.error(f"Error en {operation}: {str(error)}", exc_info=True)

    detail = str(error) if str(error) else default_message
    if status_code >= 500:
        detail = default_message
    return HTTPException(status_code=status_code, detail=detail)


def handle_validation_error(
    message: str,
    field: Optional[str] = None
) -> HTTPException:
    """
    Maneja errores de validación.

    Args:
        message: Mensaje de error
        field: Campo que falló la validación (opcional)

    Returns:
        HTTPException con código 400
    """
    detail = f"Error de validación en {field}: {message}" if field else message
    return HTTPException(
        status_code=status.HTTP_400_BAD_REQUEST,
        detail=detail
    )
