import logging
from datetime import date
from typing import Any, Dict, Optional

from app.config.settings import get_umbral_minimo_diferencial
from app.domain.calculos import calcular_nota_debito
from app.domain.exceptions import NotaDebitoNoGenerableError, RegistroNoEncontradoError
from app.infrastructure.repositorio_notas_debito import CAMPOS_CALCULADOS

logger = logging.getLogger("notas_debito")


class ActualizarNotaDebito:
    def __init__(self, repo_cxp, repo_notas_debito):
        self.repo_cxp = repo_cxp
        self.repo_notas_debito = repo_notas_debito

    def execute(
        self,
        company_id: str,
        nota_id: int,
        usuario: Optional[str] = None,
        fecha: Optional[date] = None,
        tasa_cambio_pago: Optional[float] = None,
        notas: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Edita la fecha y/o la tasa de pago de una nota de débito.

        Cambiar la tasa recalcula todos los montos con la factura y las mismas
        notas de crédito que se usaron al generarla.

        Raises:
            RegistroNoEncontradoError si la nota o su factura no existen
            InvalidRateError si la nueva tasa es <= 0
            NotaDebitoNoGenerableError si con la nueva tasa el diferencial no alcanza el umbral mínimo
        """
        nota = self.repo_notas_debito.obtener(company_id, nota_id)
        if not nota:
            raise RegistroNoEncontradoError(f"Nota de débito {nota_id} no encontrada")

        cambios: Dict[str, Any] = {}
        if fecha is not None:
            cambios["fecha"] = fecha
        if notas is not None:
            cambios["notas"] = notas

        if tasa_cambio_pago is not None:
            factura = self.repo_cxp.obtener_factura(company_id, nota["factura_id"])
            if not factura:
                raise RegistroNoEncontradoError(f"Factura {nota['factura_id']} no encontrada")
            notas_credito = self.repo_cxp.obtener_notas_credito_por_ids(company_id, nota["notas_credito_ids"])
            calculo = calcular_nota_debito(factura, notas_credito, tasa_cambio_pago).model_dump()
            if calculo["diferencial_cambiario_con_iva"] < get_umbral_minimo_diferencial():
                raise NotaDebitoNoGenerableError(
                    f"Con la tasa {calculo['tasa_cambio_pago']} no queda diferencial cambiario "
                    f"significativo en la nota de débito {nota['numero']}"
                )
            cambios.update({campo: calculo[campo] for campo in CAMPOS_CALCULADOS})
            logger.info(
                f"Nota de débito {nota['numero']} recalculada: tasa pago "
                f"{nota['tasa_cambio_pago']} -> {calculo['tasa_cambio_pago']}"
            )

        if not cambios:
            return nota
        return self.repo_notas_debito.actualizar(company_id, nota_id, usuario=usuario, **cambios)
