from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Header, HTTPException

from app.config.settings import get_jwt_algorithm, get_jwt_secret


@dataclass(frozen=True)
class UsuarioActual:
    id: str
    company_id: str
    nombre: Optional[str] = None


def decodificar_token(token: str) -> UsuarioActual:
    """
    Decodifica el JWT emitido por el login y extrae usuario y empresa.

    Raises:
        jwt.PyJWTError si la firma es inválida o el token expiró
        ValueError si faltan los claims sub o company_id
    """
    data = jwt.decode(token, get_jwt_secret(), algorithms=[get_jwt_algorithm()])
    sub = data.get("sub") or data.get("oid")
    company_id = data.get("company_id")
    if not sub or not company_id:
        raise ValueError("Token sin usuario o empresa")
    return UsuarioActual(
        id=str(sub),
        company_id=str(company_id),
        nombre=data.get("name") or data.get("preferred_username"),
    )


def get_usuario_actual(authorization: Optional[str] = Header(default=None)) -> UsuarioActual:
    """Usuario autenticado a partir de Authorization: Bearer <jwt>."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Missing bearer token")
    token = authorization.split(" ", 1)[1]
    try:
        return decodificar_token(token)
    except (jwt.PyJWTError, ValueError):
        raise HTTPException(status_code=401, detail="Invalid or expired token")
