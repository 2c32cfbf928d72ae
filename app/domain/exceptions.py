"""
Errores del dominio de cuentas por pagar.
"""


class InvalidRateError(ValueError):
    """Tasa de cambio o alícuota inválida para calcular un diferencial."""

    def __init__(self, message: str, campo: str = "tasa_cambio_pago"):
        super().__init__(message)
        self.campo = campo


class RegistroNoEncontradoError(LookupError):
    """La factura, nota o proveedor solicitado no existe para la empresa."""


class LimiteNotasCreditoExcedidoError(ValueError):
    """Las notas de crédito superarían el monto en USD de la factura."""

    def __init__(self, message: str, monto_disponible_usd: float = 0.0):
        super().__init__(message)
        self.monto_disponible_usd = monto_disponible_usd


class NotaDebitoNoGenerableError(ValueError):
    """No corresponde emitir nota de débito (sin diferencial significativo)."""


class TasaCambioNoDisponibleError(RuntimeError):
    """Ninguna fuente pudo devolver la tasa de cambio solicitada."""


class FacturaYaPagadaError(ValueError):
    """La factura ya fue marcada como pagada."""
