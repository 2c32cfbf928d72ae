import pytest
from app.domain.calculos import (
    calcular_monto_final_pagar,
    calcular_nota_debito,
    calcular_total_notas_credito,
    extraer_base_imponible,
    recalcular_documento,
    validar_necesidad_nota_debito,
    verificar_limite_notas_credito,
)
from app.domain.exceptions import InvalidRateError
from app.domain.models.documentos import DatosDocumento, Factura, NotaCredito


def _factura(**overrides):
    datos = {
        "numero": "F-001",
        "monto_usd": 1000,
        "tasa_cambio": 36.00,
        "alicuota_iva": 16,
        "porcentaje_retencion": 75,
        "total": 1160,
    }
    datos.update(overrides)
    return datos


def test_recalcular_documento_campos_derivados():
    resultado = recalcular_documento({
        "base_imponible": 1000,
        "monto_exento": 200,
        "alicuota_iva": 16,
        "porcentaje_retencion": 75,
        "tasa_cambio": 40,
    })
    assert resultado.sub_total == pytest.approx(1200)
    assert resultado.iva == pytest.approx(160)
    assert resultado.total == pytest.approx(1360)
    assert resultado.retencion_iva == pytest.approx(120)
    assert resultado.monto_usd == pytest.approx(34)


def test_recalcular_documento_campos_invalidos_valen_cero():
    resultado = recalcular_documento({
        "base_imponible": "abc",
        "monto_exento": None,
        "alicuota_iva": "",
        "tasa_cambio": "0",
    })
    assert resultado.sub_total == 0
    assert resultado.total == 0
    assert resultado.monto_usd == 0


def test_recalcular_documento_acepta_modelo_pydantic():
    datos = DatosDocumento(base_imponible="100,5", alicuota_iva=16, tasa_cambio=10)
    resultado = recalcular_documento(datos)
    assert resultado.sub_total == pytest.approx(100.5)
    assert resultado.monto_usd == pytest.approx(100.5 * 1.16 / 10)


def test_nota_debito_ejemplo_completo():
    nd = calcular_nota_debito(_factura(), [], 40.00)
    assert nd.monto_usd_neto == pytest.approx(1000)
    assert nd.diferencial_cambiario_con_iva == pytest.approx(4000)
    assert nd.base_imponible_diferencial == pytest.approx(3448.2759, abs=1e-4)
    assert nd.iva_diferencial == pytest.approx(551.7241, abs=1e-4)
    assert nd.retencion_iva_diferencial == pytest.approx(413.7931, abs=1e-4)
    assert nd.monto_neto_pagar_nota_debito == pytest.approx(3586.2069, abs=1e-4)
    assert nd.tasa_cambio_original == 36.00
    assert nd.tasa_cambio_pago == 40.00
    assert nd.factura_numero == "F-001"


def test_nota_debito_con_nota_credito():
    nd = calcular_nota_debito(_factura(), [{"numero": "NC-1", "monto_usd": 200}], 40.00)
    assert nd.monto_usd_neto == pytest.approx(800)
    assert nd.diferencial_cambiario_con_iva == pytest.approx(3200)
    assert nd.monto_neto_pagar_nota_debito == pytest.approx(3586.2069 * 0.8, abs=1e-4)
    assert nd.notas_credito == ["NC-1"]


def test_nota_debito_misma_tasa_es_cero():
    nd = calcular_nota_debito(_factura(), [{"monto_usd": 150}], 36.00)
    assert nd.diferencial_cambiario_con_iva == 0
    assert nd.base_imponible_diferencial == 0
    assert nd.iva_diferencial == 0
    assert nd.retencion_iva_diferencial == 0
    assert nd.monto_neto_pagar_nota_debito == 0


@pytest.mark.parametrize("tasa_pago", [0.5, 12.3, 36.01, 99.99])
def test_nota_debito_descomposicion(tasa_pago):
    nd = calcular_nota_debito(_factura(alicuota_iva=8), [{"monto_usd": 33.3}], tasa_pago)
    assert nd.base_imponible_diferencial + nd.iva_diferencial == pytest.approx(
        nd.diferencial_cambiario_con_iva, abs=1e-9
    )
    assert nd.monto_neto_pagar_nota_debito == nd.diferencial_cambiario_con_iva - nd.retencion_iva_diferencial


def test_nota_debito_simetria_de_signo():
    subida = calcular_nota_debito(_factura(tasa_cambio=36), [], 40)
    bajada = calcular_nota_debito(_factura(tasa_cambio=40), [], 36)
    assert subida.diferencial_cambiario_con_iva == pytest.approx(-bajada.diferencial_cambiario_con_iva)
    assert bajada.iva_diferencial < 0
    assert bajada.retencion_iva_diferencial < 0


def test_nota_debito_independiente_del_orden_de_notas_credito():
    notas = [
        {"numero": "NC-3", "monto_usd": 0.1},
        {"numero": "NC-1", "monto_usd": 0.2},
        {"numero": "NC-2", "monto_usd": 0.3},
    ]
    a = calcular_nota_debito(_factura(), notas, 41.7)
    b = calcular_nota_debito(_factura(), list(reversed(notas)), 41.7)
    assert a.model_dump() == b.model_dump()
    assert a.notas_credito == ["NC-1", "NC-2", "NC-3"]


def test_nota_debito_tasa_pago_invalida():
    with pytest.raises(InvalidRateError) as exc:
        calcular_nota_debito(_factura(), [], 0)
    assert exc.value.campo == "tasa_cambio_pago"
    with pytest.raises(InvalidRateError):
        calcular_nota_debito(_factura(), [], "abc")


def test_nota_debito_tasa_factura_invalida():
    with pytest.raises(InvalidRateError) as exc:
        calcular_nota_debito(_factura(tasa_cambio=0), [], 10)
    assert exc.value.campo == "tasa_cambio"


def test_nota_debito_alicuota_negativa():
    with pytest.raises(InvalidRateError):
        calcular_nota_debito(_factura(alicuota_iva=-1), [], 40)


def test_nota_debito_acepta_modelos():
    factura = Factura(numero="F-9", monto_usd=1000, tasa_cambio=36, alicuota_iva=16, porcentaje_retencion=75)
    nota = NotaCredito(numero="NC-9", monto_usd=200)
    nd = calcular_nota_debito(factura, [nota], 40)
    assert nd.monto_usd_neto == pytest.approx(800)


def test_monto_final_pagar():
    monto = calcular_monto_final_pagar(
        {"total": 1160},
        [{"total": 116}],
        {"monto_neto_pagar_nota_debito": 3586.2069},
    )
    assert monto == pytest.approx(4630.2069)


def test_monto_final_sin_nota_debito_y_sobreacreditado():
    assert calcular_monto_final_pagar({"total": 1160}, [{"total": 116}]) == pytest.approx(1044)
    assert calcular_monto_final_pagar({"total": 100}, [{"total": 150}]) == pytest.approx(-50)


def test_total_notas_credito():
    totales = calcular_total_notas_credito([
        {"monto_usd": 10, "total": 116, "retencion_iva": 12},
        {"monto_usd": 5, "total": 58, "retencion_iva": 6},
    ])
    assert totales.total_usd == pytest.approx(15)
    assert totales.total_retencion_iva == pytest.approx(18)
    assert totales.total_pagar == pytest.approx(156)


def test_limite_notas_credito():
    limite = verificar_limite_notas_credito({"monto_usd": 100}, [{"monto_usd": 60}])
    assert not limite.excede_limite
    assert limite.monto_disponible_usd == pytest.approx(40)

    excedido = verificar_limite_notas_credito({"monto_usd": 100}, [{"monto_usd": 60}, {"monto_usd": 50}])
    assert excedido.excede_limite
    assert excedido.monto_disponible_usd == 0


def test_validar_necesidad_nota_debito():
    assert not validar_necesidad_nota_debito(_factura(), 35).necesaria
    assert not validar_necesidad_nota_debito(_factura(monto_usd=0.001), 36.5).necesaria
    necesidad = validar_necesidad_nota_debito(_factura(), 40)
    assert necesidad.necesaria
    assert necesidad.impacto == pytest.approx(4000)


def test_extraer_base_imponible():
    assert extraer_base_imponible(1160, 16) == pytest.approx(1000)
    assert extraer_base_imponible(500, 0) == 500
    assert extraer_base_imponible(-116, 16) == pytest.approx(-100)


def test_necesidad_nota_debito_descuenta_notas_credito():
    necesidad = validar_necesidad_nota_debito(_factura(), 40, notas_credito=[{"monto_usd": 400}])
    assert necesidad.impacto == pytest.approx(2400)
    assert necesidad.impacto == pytest.approx(
        calcular_nota_debito(_factura(), [{"monto_usd": 400}], 40).diferencial_cambiario_con_iva
    )

    # Factura acreditada por completo: no hay diferencial que cobrar
    totalmente_acreditada = validar_necesidad_nota_debito(_factura(), 40, notas_credito=[{"monto_usd": 1000}])
    assert not totalmente_acreditada.necesaria
