import logging
from datetime import date, datetime, timedelta
from typing import Any, Dict, Optional

import requests

from app.config import settings
from app.domain.constants import (
    SIMBOLOS_MONEDA,
    TASA_MANUAL_MAXIMA,
    TASA_MANUAL_MINIMA,
    TIPO_CAMBIO_EUR,
    TIPO_CAMBIO_PAR,
    TIPO_CAMBIO_USD,
)
from app.domain.exceptions import InvalidRateError, TasaCambioNoDisponibleError
from app.utils.numeros import a_numero, formatear_bs, redondear

logger = logging.getLogger("services.tasas_cambio")


def _hoy_iso() -> str:
    return date.today().isoformat()


class ServicioTasasCambio:
    """Consulta tasas Bs/USD y Bs/EUR en APIs públicas, con fuente de respaldo."""

    def __init__(self, session: Optional[requests.Session] = None):
        self._http = session or requests
        self._timeout = settings.get_http_timeout_seconds()

    def _get_json(self, url: str) -> Dict[str, Any]:
        response = self._http.get(
            url,
            headers={"Accept": "application/json"},
            timeout=self._timeout,
        )
        if response.status_code != 200:
            raise RuntimeError(f"Error HTTP {response.status_code} consultando {url}")
        return response.json()

    def obtener_tasa_usd(self) -> Dict[str, Any]:
        """
        Tasa Bs/USD del BCV.

        Si el BCV falla, usa la API de respaldo, que publica USD por bolívar y
        por lo tanto se invierte y redondea a 2 decimales.

        Raises:
            TasaCambioNoDisponibleError si ambas fuentes fallan
        """
        try:
            data = self._get_json(settings.get_bcv_api_url())
            usd = data.get("usd") or {}
            tasa = a_numero(usd.get("rate"))
            if tasa <= 0:
                raise ValueError("Formato de respuesta inválido del BCV")
            return {
                "moneda": TIPO_CAMBIO_USD,
                "tasa": tasa,
                "fecha": usd.get("date") or _hoy_iso(),
                "fuente": "BCV",
            }
        except Exception as e:
            logger.warning(f"Error con API del BCV, intentando con API de respaldo: {e}")

        try:
            data = self._get_json(settings.get_backup_api_url())
            usd_por_bs = a_numero((data.get("rates") or {}).get("USD"))
            if usd_por_bs <= 0:
                raise ValueError("Formato de respuesta inválido del API de respaldo")
            return {
                "moneda": TIPO_CAMBIO_USD,
                "tasa": redondear(1 / usd_por_bs),
                "fecha": data.get("date") or _hoy_iso(),
                "fuente": "ExchangeRate-API",
            }
        except Exception as e:
            logger.error(f"Error con API de respaldo: {e}")
            raise TasaCambioNoDisponibleError(
                "No se pudo obtener la tasa de cambio USD. Verifique su conexión a internet."
            )

    def obtener_tasa_eur(self) -> Dict[str, Any]:
        """
        Tasa Bs/EUR. Si la API no publica VES, se calcula como tasa USD × (USD por EUR).

        Raises:
            TasaCambioNoDisponibleError si no se puede obtener ni calcular
        """
        data: Dict[str, Any] = {}
        try:
            data = self._get_json(settings.get_eur_api_url())
            tasa = a_numero((data.get("rates") or {}).get("VES"))
            if tasa > 0:
                return {
                    "moneda": TIPO_CAMBIO_EUR,
                    "tasa": tasa,
                    "fecha": data.get("date") or _hoy_iso(),
                    "fuente": "ExchangeRate-API",
                }
            logger.warning("No se encontró la tasa EUR/VES, calculando desde USD")
        except Exception as e:
            logger.error(f"Error al obtener tasa EUR: {e}")

        try:
            usd_por_eur = a_numero((data.get("rates") or {}).get("USD"))
            if usd_por_eur <= 0:
                usd_por_eur = a_numero((self._get_json(settings.get_eur_api_url()).get("rates") or {}).get("USD"))
            if usd_por_eur <= 0:
                raise ValueError("No se encontró la relación EUR/USD")
            tasa_usd = self.obtener_tasa_usd()["tasa"]
            return {
                "moneda": TIPO_CAMBIO_EUR,
                "tasa": redondear(tasa_usd * usd_por_eur),
                "fecha": _hoy_iso(),
                "fuente": "Calculado (USD*EUR/USD)",
            }
        except Exception as e:
            logger.error(f"Error al calcular EUR: {e}")
            raise TasaCambioNoDisponibleError(
                "No se pudo obtener la tasa de cambio EUR. Verifique su conexión a internet."
            )

    def obtener_todas(self) -> Dict[str, Any]:
        """Tasas USD y EUR; una fuente caída no impide devolver la otra."""
        tasas: Dict[str, Any] = {"usd": None, "eur": None}
        errores = []
        for clave, consulta in (("usd", self.obtener_tasa_usd), ("eur", self.obtener_tasa_eur)):
            try:
                tasas[clave] = consulta()
            except TasaCambioNoDisponibleError as e:
                errores.append(f"Error {clave.upper()}: {e}")
        tasas["error"] = "; ".join(errores) if errores else None
        return tasas

    @staticmethod
    def crear_tasa_manual(tasa: Any, usuario: str, notas: Optional[str] = None) -> Dict[str, Any]:
        """
        Valida una tasa paralela (PAR) ingresada a mano.

        Raises:
            InvalidRateError si no es positiva o está fuera del rango esperado
        """
        valor = a_numero(tasa)
        if valor <= 0:
            raise InvalidRateError("La tasa debe ser un número positivo", campo="tasa")
        if valor < TASA_MANUAL_MINIMA or valor > TASA_MANUAL_MAXIMA:
            raise InvalidRateError(
                f"La tasa parece estar fuera del rango esperado "
                f"({TASA_MANUAL_MINIMA:.0f}-{TASA_MANUAL_MAXIMA:.0f} Bs/USD)",
                campo="tasa",
            )
        return {
            "moneda": TIPO_CAMBIO_PAR,
            "tasa": redondear(valor),
            "fecha": _hoy_iso(),
            "fuente": "Manual",
            "usuario": usuario,
            "notas": notas,
        }

    def obtener_tasa_segun_tipo(
        self,
        tipo_cambio: str,
        tasa_manual: Optional[float] = None,
        usuario: Optional[str] = None,
    ) -> Dict[str, Any]:
        if tipo_cambio == TIPO_CAMBIO_USD:
            return self.obtener_tasa_usd()
        if tipo_cambio == TIPO_CAMBIO_EUR:
            return self.obtener_tasa_eur()
        if tipo_cambio == TIPO_CAMBIO_PAR:
            if not tasa_manual or not usuario:
                raise InvalidRateError("Para tipo PAR se requiere tasa manual y usuario", campo="tasa")
            return self.crear_tasa_manual(tasa_manual, usuario)
        raise InvalidRateError(f"Tipo de cambio no válido: {tipo_cambio}", campo="tipo_cambio")

    @staticmethod
    def es_tasa_actualizada(fecha: str, ahora: Optional[datetime] = None) -> bool:
        """True si la tasa tiene menos de 24 horas."""
        try:
            fecha_tasa = datetime.fromisoformat(fecha)
        except (TypeError, ValueError):
            return False
        ahora = ahora or datetime.now()
        return ahora - fecha_tasa < timedelta(hours=24)

    @staticmethod
    def formatear_tasa(tasa: float, moneda: str) -> str:
        simbolo = SIMBOLOS_MONEDA.get(moneda, "$")
        return f"{formatear_bs(tasa)} / {simbolo}1"
