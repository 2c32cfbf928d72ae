import pytest
from io import BytesIO

import jwt
import openpyxl
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker

from main import app
from app.config.database import Base, crear_engine, get_db
from app.config.settings import get_jwt_secret


def _token(company_id="EMP-1", sub="u1"):
    token = jwt.encode({"sub": sub, "company_id": company_id, "name": "Ana"}, get_jwt_secret(), algorithm="HS256")
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def client():
    engine = crear_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    TestingSession = sessionmaker(bind=engine)

    def override_get_db():
        db = TestingSession()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()
    Base.metadata.drop_all(bind=engine)


FACTURA = {
    "numero": "F-001",
    "numero_control": "00-001",
    "fecha": "2024-03-01",
    "fecha_vencimiento": "2024-03-31",
    "proveedor_nombre": "Suministros Caracas",
    "proveedor_rif": "J-12345678-9",
    "base_imponible": 36000,
    "alicuota_iva": 16,
    "porcentaje_retencion": 75,
    "tasa_cambio": 36,
}


def _crear_factura(client, **overrides):
    response = client.post("/api/cuentas-por-pagar/facturas", json={**FACTURA, **overrides}, headers=_token())
    assert response.status_code == 201, response.text
    return response.json()


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_requiere_token(client):
    assert client.get("/api/cuentas-por-pagar/facturas").status_code == 401
    headers = {"Authorization": "Bearer no-es-un-jwt"}
    assert client.get("/api/notas-debito", headers=headers).status_code == 401


def test_registrar_factura_recalcula_montos(client):
    factura = _crear_factura(client, total=1)
    assert factura["total"] == pytest.approx(41760)
    assert factura["monto_usd"] == pytest.approx(1160)
    assert factura["retencion_iva"] == pytest.approx(4320)
    assert factura["estado_pago"] == "pendiente"
    assert factura["created_by"] == "u1"


def test_registrar_factura_sin_tasa(client):
    response = client.post(
        "/api/cuentas-por-pagar/facturas", json={**FACTURA, "tasa_cambio": 0}, headers=_token()
    )
    assert response.status_code == 400
    assert "tasa_cambio" in response.json()["detail"]


def test_flujo_nota_credito_nota_debito_y_pago(client):
    factura = _crear_factura(client)

    nc = client.post(
        f"/api/cuentas-por-pagar/facturas/{factura['id']}/notas-credito",
        json={"numero": "NC-1", "numero_control": "00-010", "fecha": "2024-03-05",
              "base_imponible": 7200, "alicuota_iva": 16, "tasa_cambio": 36},
        headers=_token(),
    )
    assert nc.status_code == 201, nc.text
    assert nc.json()["factura_afectada"] == "F-001"

    nd = client.post(
        "/api/notas-debito",
        json={"factura_id": factura["id"], "tasa_cambio_pago": 40},
        headers=_token(),
    )
    assert nd.status_code == 201, nd.text
    nota = nd.json()
    assert nota["numero"] == "ND-000001"
    # 1160 USD - 232 USD de la nota de crédito
    assert nota["monto_usd_neto"] == pytest.approx(928)
    assert nota["diferencial_cambiario_con_iva"] == pytest.approx(928 * 4)

    listado = client.get("/api/notas-debito", headers=_token()).json()
    assert listado["total"] == 1
    assert listado["notas_debito"][0]["factura"]["numero"] == "F-001"

    editada = client.patch(
        f"/api/notas-debito/{nota['id']}", json={"tasa_cambio_pago": 38, "fecha": "2024-04-02"}, headers=_token()
    )
    assert editada.status_code == 200, editada.text
    assert editada.json()["diferencial_cambiario_con_iva"] == pytest.approx(928 * 2)
    assert editada.json()["fecha"] == "2024-04-02"
    assert editada.json()["usuario_modificacion"] == "u1"

    detalle = client.get(f"/api/cuentas-por-pagar/facturas/{factura['id']}", headers=_token()).json()
    assert detalle["nota_debito_generada"] is True
    assert len(detalle["notas_credito"]) == 1

    pago = client.post(
        f"/api/cuentas-por-pagar/facturas/{factura['id']}/pago",
        json={"tasa_cambio_pago": 45, "fecha_pago": "2024-04-05"},
        headers=_token(),
    )
    assert pago.status_code == 200, pago.text
    body = pago.json()
    assert body["factura"]["estado_pago"] == "pagada"
    # Ya existía nota de débito: no se genera otra
    assert body["nota_debito"]["numero"] == "ND-000001"

    segundo_pago = client.post(
        f"/api/cuentas-por-pagar/facturas/{factura['id']}/pago", json={}, headers=_token()
    )
    assert segundo_pago.status_code == 409


def test_nota_credito_excede_limite(client):
    factura = _crear_factura(client)
    response = client.post(
        f"/api/cuentas-por-pagar/facturas/{factura['id']}/notas-credito",
        json={"numero": "NC-1", "numero_control": "00-010", "fecha": "2024-03-05",
              "base_imponible": 50000, "alicuota_iva": 16, "tasa_cambio": 36},
        headers=_token(),
    )
    assert response.status_code == 400


def test_nota_debito_tasa_invalida_y_sin_diferencial(client):
    factura = _crear_factura(client)
    invalida = client.post(
        "/api/notas-debito", json={"factura_id": factura["id"], "tasa_cambio_pago": 0}, headers=_token()
    )
    assert invalida.status_code == 400

    sin_diferencial = client.post(
        "/api/notas-debito", json={"factura_id": factura["id"], "tasa_cambio_pago": 30}, headers=_token()
    )
    assert sin_diferencial.status_code == 409


def test_factura_de_otra_empresa_no_visible(client):
    factura = _crear_factura(client)
    response = client.get(f"/api/cuentas-por-pagar/facturas/{factura['id']}", headers=_token(company_id="EMP-2"))
    assert response.status_code == 404
    nd = client.post(
        "/api/notas-debito",
        json={"factura_id": factura["id"], "tasa_cambio_pago": 40},
        headers=_token(company_id="EMP-2"),
    )
    assert nd.status_code == 404


def test_listado_filtros_y_metricas(client):
    _crear_factura(client)
    _crear_factura(client, numero="F-002", proveedor_nombre="Otro Proveedor", proveedor_rif="J-999")

    listado = client.get(
        "/api/cuentas-por-pagar/facturas", params={"proveedor": "caracas"}, headers=_token()
    ).json()
    assert listado["total"] == 1
    assert listado["facturas"][0]["numero"] == "F-001"
    assert listado["facturas"][0]["monto_final_pagar"] == pytest.approx(41760)

    invalido = client.get(
        "/api/cuentas-por-pagar/facturas", params={"estado_pago": "perdida"}, headers=_token()
    )
    assert invalido.status_code == 400

    metricas = client.get("/api/cuentas-por-pagar/metricas", headers=_token()).json()
    assert metricas["total_facturas"] == 2
    assert metricas["total_monto_pendiente"] == pytest.approx(41760 * 2)


def test_exportar_excel(client):
    factura = _crear_factura(client)
    client.post("/api/notas-debito", json={"factura_id": factura["id"], "tasa_cambio_pago": 40}, headers=_token())

    response = client.get("/api/notas-debito/excel", headers=_token())
    assert response.status_code == 200
    assert response.headers["content-type"].startswith(
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
    )
    wb = openpyxl.load_workbook(BytesIO(response.content))
    ws = wb["Notas de Débito"]
    assert ws["A2"].value == "ND-000001"
    assert ws["M2"].value == pytest.approx(1160 * 4)

    facturas = client.get("/api/cuentas-por-pagar/facturas/excel", headers=_token())
    assert facturas.status_code == 200
    ws = openpyxl.load_workbook(BytesIO(facturas.content)).active
    assert ws["A2"].value == "F-001"


def test_calculos_endpoints(client):
    documento = client.post(
        "/api/calculos/documento",
        json={"base_imponible": 1000, "alicuota_iva": 16, "porcentaje_retencion": 75, "tasa_cambio": 40},
    )
    assert documento.status_code == 200
    assert documento.json()["total"] == pytest.approx(1160)

    factura = {"numero": "F-1", "monto_usd": 1000, "tasa_cambio": 36, "alicuota_iva": 16, "porcentaje_retencion": 75}
    preview = client.post("/api/calculos/nota-debito", json={"factura": factura, "tasa_cambio_pago": 40})
    assert preview.status_code == 200
    assert preview.json()["monto_neto_pagar_nota_debito"] == pytest.approx(3586.2069, abs=1e-4)
    assert preview.json()["necesidad"]["necesaria"] is True

    negativa = client.post("/api/calculos/nota-debito", json={"factura": factura, "tasa_cambio_pago": 30})
    assert negativa.json()["diferencial_cambiario_con_iva"] == pytest.approx(-6000)

    invalida = client.post("/api/calculos/nota-debito", json={"factura": factura, "tasa_cambio_pago": 0})
    assert invalida.status_code == 400

    final = client.post(
        "/api/calculos/monto-final",
        json={
            "factura": {"total": 1160},
            "notas_credito": [{"total": 116}],
            "nota_debito": {"monto_neto_pagar_nota_debito": 3586.2069},
        },
    )
    assert final.json()["monto_final_pagar"] == pytest.approx(4630.2069)
    assert final.json()["saldo_a_favor"] is False


def test_tasas_cambio_endpoints(client):
    from app.interfaces.tasas_cambio_controller import get_servicio_tasas

    class FakeServicio:
        def obtener_todas(self):
            return {"usd": {"moneda": "USD", "tasa": 36.5}, "eur": None, "error": "Error EUR: sin datos"}

    app.dependency_overrides[get_servicio_tasas] = lambda: FakeServicio()

    fuera_de_rango = client.post("/api/tasas-cambio/manual", json={"tasa": 5}, headers=_token())
    assert fuera_de_rango.status_code == 400

    manual = client.post("/api/tasas-cambio/manual", json={"tasa": 45.678, "notas": "paralelo"}, headers=_token())
    assert manual.status_code == 201, manual.text
    assert manual.json()["tasa"] == 45.68
    assert manual.json()["formateada"] == "Bs. 45,68 / $1"

    tasas = client.get("/api/tasas-cambio", headers=_token()).json()
    assert tasas["usd"]["tasa"] == 36.5
    assert tasas["par"]["tasa"] == 45.68


def test_generar_lote_endpoint(client):
    from app.interfaces.notas_debito_controller import get_servicio_tasas

    class FakeServicio:
        def obtener_tasa_segun_tipo(self, tipo_cambio):
            return {"moneda": tipo_cambio, "tasa": 40.0}

    app.dependency_overrides[get_servicio_tasas] = lambda: FakeServicio()
    usd = _crear_factura(client)
    par = _crear_factura(client, numero="F-002", proveedor_rif="J-777", tipo_cambio_proveedor="PAR")

    response = client.post(
        "/api/notas-debito/lote",
        json={"factura_ids": [usd["id"], par["id"]], "tasas_personalizadas": {"J-777": 42}},
        headers=_token(),
    )
    assert response.status_code == 200, response.text
    body = response.json()
    assert body["exitosas"] == 2
    assert body["errores"] == []
    assert sorted(n["tasa_cambio_pago"] for n in body["notas_debito"]) == [40.0, 42.0]
    assert {n["origen"] for n in body["notas_debito"]} == {"automatica"}


def test_nota_debito_unica_por_factura(client):
    factura = _crear_factura(client)
    body = {"factura_id": factura["id"], "tasa_cambio_pago": 40}
    assert client.post("/api/notas-debito", json=body, headers=_token()).status_code == 201

    duplicada = client.post("/api/notas-debito", json=body, headers=_token())
    assert duplicada.status_code == 409
    assert "ND-000001" in duplicada.json()["detail"]

    listado = client.get("/api/notas-debito", params={"factura_id": factura["id"]}, headers=_token()).json()
    assert listado["total"] == 1


def test_editar_nota_debito_sin_diferencial(client):
    factura = _crear_factura(client)
    nota = client.post(
        "/api/notas-debito", json={"factura_id": factura["id"], "tasa_cambio_pago": 40}, headers=_token()
    ).json()

    editada = client.patch(f"/api/notas-debito/{nota['id']}", json={"tasa_cambio_pago": 30}, headers=_token())
    assert editada.status_code == 409

    guardada = client.get(f"/api/notas-debito/{nota['id']}", headers=_token()).json()
    assert guardada["tasa_cambio_pago"] == 40
    assert guardada["diferencial_cambiario_con_iva"] == pytest.approx(1160 * 4)


def test_resumen_notas_debito(client):
    vacio = client.get("/api/notas-debito/resumen", headers=_token())
    assert vacio.status_code == 200
    assert vacio.json()["total_notas"] == 0
    assert vacio.json()["promedio_tasa_pago"] == 0

    factura = _crear_factura(client)
    client.post(
        "/api/notas-debito",
        json={"factura_id": factura["id"], "tasa_cambio_pago": 40, "fecha": "2024-04-01"},
        headers=_token(),
    )

    resumen = client.get(
        "/api/notas-debito/resumen", params={"fecha_desde": "2024-04-01", "fecha_hasta": "2024-04-30"}, headers=_token()
    ).json()
    assert resumen["total_notas"] == 1
    assert resumen["monto_total_diferencial"] == pytest.approx(1160 * 4)
    assert resumen["promedio_tasa_original"] == pytest.approx(36)

    fuera_de_rango = client.get(
        "/api/notas-debito/resumen", params={"fecha_desde": "2024-05-01"}, headers=_token()
    ).json()
    assert fuera_de_rango["total_notas"] == 0


def test_montos_se_guardan_sin_truncar(client):
    from sqlalchemy import Float
    from app.domain.models.cuentas_por_pagar import FacturaCxP, NotaDebito

    assert isinstance(FacturaCxP.__table__.c.monto_usd.type, Float)
    assert isinstance(NotaDebito.__table__.c.diferencial_cambiario_con_iva.type, Float)

    factura = _crear_factura(client, tasa_cambio=36.123456789)
    detalle = client.get(f"/api/cuentas-por-pagar/facturas/{factura['id']}", headers=_token()).json()
    assert detalle["monto_usd"] == 41760 / 36.123456789


def test_preview_nota_debito_con_notas_credito(client):
    factura = {"numero": "F-1", "monto_usd": 1000, "tasa_cambio": 36, "alicuota_iva": 16, "porcentaje_retencion": 75}
    preview = client.post(
        "/api/calculos/nota-debito",
        json={"factura": factura, "notas_credito": [{"monto_usd": 1000}], "tasa_cambio_pago": 40},
    ).json()
    assert preview["diferencial_cambiario_con_iva"] == 0
    assert preview["necesidad"]["necesaria"] is False
