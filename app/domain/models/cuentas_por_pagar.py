from datetime import datetime
from sqlalchemy import Column, Integer, String, Date, DateTime, Float, Text, UniqueConstraint
from app.config.database import Base


def _monto():
    # Float de doble precisión: los montos se guardan sin truncar decimales
    return Float(precision=53)


class Proveedor(Base):
    __tablename__ = "proveedores"
    __table_args__ = (UniqueConstraint("company_id", "rif", name="uq_proveedor_company_rif"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(String(50), index=True, nullable=False)
    nombre = Column(String(200), nullable=False)
    rif = Column(String(20), index=True, nullable=False)
    direccion = Column(Text, nullable=True)
    # tipo_cambio: 'USD' | 'EUR' | 'PAR'
    tipo_cambio = Column(String(3), nullable=False, default="USD")
    porcentaje_retencion = Column(_monto(), nullable=False, default=75)
    creado_en = Column(DateTime, nullable=False, default=datetime.utcnow)


class FacturaCxP(Base):
    __tablename__ = "facturas"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(String(50), index=True, nullable=False)

    numero = Column(String(50), index=True, nullable=False)
    numero_control = Column(String(50), nullable=False)
    fecha = Column(Date, nullable=False)
    fecha_vencimiento = Column(Date, nullable=True)

    # Estado de pago: 'pendiente' | 'pagada' | 'pendiente_aprobacion' | 'vencida'
    estado_pago = Column(String(30), nullable=False, default="pendiente")
    fecha_pago = Column(Date, nullable=True)
    notas_pago = Column(Text, nullable=True)
    tipo_pago = Column(String(20), nullable=False, default="deposito")

    # Proveedor
    proveedor_nombre = Column(String(200), nullable=False)
    proveedor_rif = Column(String(20), index=True, nullable=False)
    proveedor_direccion = Column(Text, nullable=True)

    # Cliente (empresa)
    cliente_nombre = Column(String(200), nullable=True)
    cliente_rif = Column(String(20), nullable=True)
    cliente_direccion = Column(Text, nullable=True)

    # Montos originales
    sub_total = Column(_monto(), nullable=False, default=0)
    monto_exento = Column(_monto(), nullable=False, default=0)
    base_imponible = Column(_monto(), nullable=False, default=0)
    alicuota_iva = Column(_monto(), nullable=False, default=16)
    iva = Column(_monto(), nullable=False, default=0)
    total = Column(_monto(), nullable=False, default=0)
    tasa_cambio = Column(_monto(), nullable=False)
    monto_usd = Column(_monto(), nullable=False, default=0)
    porcentaje_retencion = Column(_monto(), nullable=False, default=75)
    retencion_iva = Column(_monto(), nullable=False, default=0)

    created_by = Column(String(100), nullable=True)
    creado_en = Column(DateTime, nullable=False, default=datetime.utcnow)
    actualizado_en = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)


class NotaCreditoCxP(Base):
    __tablename__ = "notas_credito"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(String(50), index=True, nullable=False)
    # Sin clave foránea: solo referencia lógica a facturas.id
    factura_id = Column(Integer, index=True, nullable=False)
    factura_afectada = Column(String(50), nullable=False)

    numero = Column(String(50), nullable=False)
    numero_control = Column(String(50), nullable=False)
    fecha = Column(Date, nullable=False)

    sub_total = Column(_monto(), nullable=False, default=0)
    monto_exento = Column(_monto(), nullable=False, default=0)
    base_imponible = Column(_monto(), nullable=False, default=0)
    alicuota_iva = Column(_monto(), nullable=False, default=16)
    iva = Column(_monto(), nullable=False, default=0)
    total = Column(_monto(), nullable=False, default=0)
    tasa_cambio = Column(_monto(), nullable=False)
    monto_usd = Column(_monto(), nullable=False, default=0)
    porcentaje_retencion = Column(_monto(), nullable=False, default=75)
    retencion_iva = Column(_monto(), nullable=False, default=0)

    created_by = Column(String(100), nullable=True)
    creado_en = Column(DateTime, nullable=False, default=datetime.utcnow)


class NotaDebito(Base):
    __tablename__ = "notas_debito"
    __table_args__ = (UniqueConstraint("company_id", "numero", name="uq_nota_debito_company_numero"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(String(50), index=True, nullable=False)
    numero = Column(String(20), nullable=False)
    fecha = Column(Date, nullable=False)
    # Sin clave foránea: solo referencia lógica a facturas.id
    factura_id = Column(Integer, index=True, nullable=False)

    tasa_cambio_original = Column(_monto(), nullable=False)
    tasa_cambio_pago = Column(_monto(), nullable=False)
    monto_usd_neto = Column(_monto(), nullable=False)
    diferencial_cambiario_con_iva = Column(_monto(), nullable=False)
    base_imponible_diferencial = Column(_monto(), nullable=False)
    iva_diferencial = Column(_monto(), nullable=False)
    retencion_iva_diferencial = Column(_monto(), nullable=False)
    monto_neto_pagar_nota_debito = Column(_monto(), nullable=False)

    # 'manual' | 'automatica'
    origen = Column(String(20), nullable=False, default="manual")
    notas = Column(Text, nullable=True)

    created_by = Column(String(100), nullable=True)
    creado_en = Column(DateTime, nullable=False, default=datetime.utcnow)

    # Auditoría
    usuario_modificacion = Column(String(100), nullable=True)
    fecha_modificacion = Column(DateTime, nullable=True)


class NotaDebitoNotaCredito(Base):
    """Notas de crédito consideradas al calcular una nota de débito."""
    __tablename__ = "notas_debito_notas_credito"

    id = Column(Integer, primary_key=True, autoincrement=True)
    nota_debito_id = Column(Integer, index=True, nullable=False)
    nota_credito_id = Column(Integer, index=True, nullable=False)


class TasaCambio(Base):
    __tablename__ = "tasas_cambio"

    id = Column(Integer, primary_key=True, autoincrement=True)
    company_id = Column(String(50), index=True, nullable=False)
    # 'USD' | 'EUR' | 'PAR'
    moneda = Column(String(3), nullable=False)
    tasa = Column(_monto(), nullable=False)
    fecha = Column(Date, nullable=False)
    fuente = Column(String(50), nullable=True)
    usuario = Column(String(100), nullable=True)
    notas = Column(Text, nullable=True)
    creado_en = Column(DateTime, nullable=False, default=datetime.utcnow)
