"""
Constantes del dominio de la aplicación.
"""
from typing import Dict

# Estados de pago de facturas
ESTADO_PAGO_PENDIENTE = 'pendiente'
ESTADO_PAGO_PAGADA = 'pagada'
ESTADO_PAGO_PENDIENTE_APROBACION = 'pendiente_aprobacion'
ESTADO_PAGO_VENCIDA = 'vencida'
ESTADOS_PAGO = [
    ESTADO_PAGO_PENDIENTE,
    ESTADO_PAGO_PAGADA,
    ESTADO_PAGO_PENDIENTE_APROBACION,
    ESTADO_PAGO_VENCIDA,
]

# Tipos de pago
TIPO_PAGO_DEPOSITO = 'deposito'
TIPO_PAGO_EFECTIVO = 'efectivo'
TIPOS_PAGO = [TIPO_PAGO_DEPOSITO, TIPO_PAGO_EFECTIVO]

# Tipos de cambio de proveedores
TIPO_CAMBIO_USD = 'USD'
TIPO_CAMBIO_EUR = 'EUR'
TIPO_CAMBIO_PAR = 'PAR'  # Paralelo, tasa manual
TIPOS_CAMBIO = [TIPO_CAMBIO_USD, TIPO_CAMBIO_EUR, TIPO_CAMBIO_PAR]

# Origen de notas de débito
ORIGEN_MANUAL = 'manual'
ORIGEN_AUTOMATICA = 'automatica'

# Numeración de notas de débito
PREFIJO_NOTA_DEBITO = 'ND-'
DIGITOS_NUMERO_NOTA_DEBITO = 6

# Valores por defecto de formularios
DEFAULT_ALICUOTA_IVA = 16.0
DEFAULT_PORCENTAJE_RETENCION = 75.0

# Rango aceptado para tasas manuales (Bs/USD)
TASA_MANUAL_MINIMA = 10.0
TASA_MANUAL_MAXIMA = 200.0

# Ventana de facturas por vencer (días)
DIAS_POR_VENCER = 7

SIMBOLOS_MONEDA: Dict[str, str] = {
    TIPO_CAMBIO_USD: '$',
    TIPO_CAMBIO_EUR: '€',
    TIPO_CAMBIO_PAR: '$',
}
