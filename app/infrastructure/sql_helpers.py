"""
Utilidades para construcción de queries SQLAlchemy.

Filtros por rango y paginación compartidos por los repositorios de
facturas y notas de débito.
"""
import math
from typing import Any, Callable, Dict, List, Optional, Tuple

from sqlalchemy.orm import Query

from app.config.settings import get_default_page_size, get_max_page_size


def normalizar_paginacion(page: Optional[int], limit: Optional[int]) -> Tuple[int, int]:
    """
    Ajusta page/limit a valores válidos.

    Returns:
        Tupla (page, limit) con page >= 1 y 1 <= limit <= MAX_PAGE_SIZE
    """
    page = max(1, int(page or 1))
    limit = int(limit or get_default_page_size())
    limit = max(1, min(limit, get_max_page_size()))
    return page, limit


def agregar_rango(filters: List[Any], columna: Any, desde: Any = None, hasta: Any = None) -> None:
    """Agrega a `filters` las condiciones columna >= desde y columna <= hasta."""
    if desde is not None:
        filters.append(columna >= desde)
    if hasta is not None:
        filters.append(columna <= hasta)


def paginar(
    query: Query,
    page: Optional[int],
    limit: Optional[int],
    to_dict: Callable[[Any], Dict[str, Any]],
    clave: str = "items",
) -> Dict[str, Any]:
    """
    Ejecuta una query paginada.

    Returns:
        {"page", "limit", "total", "total_pages", <clave>: [...]}
    """
    page, limit = normalizar_paginacion(page, limit)
    total = query.order_by(None).count()
    rows = query.offset((page - 1) * limit).limit(limit).all()
    return {
        "page": page,
        "limit": limit,
        "total": total,
        "total_pages": math.ceil(total / limit) if total else 0,
        clave: [to_dict(r) for r in rows],
    }
