from fastapi import APIRouter, Depends

from app.auth.dependencies import UsuarioActual, get_usuario_actual

router = APIRouter(prefix="/auth", tags=["Auth"])


@router.get("/me")
def me(usuario: UsuarioActual = Depends(get_usuario_actual)):
    """Returns the current user decoded from Authorization: Bearer <jwt>."""
    return {
        "user": {
            "id": usuario.id,
            "company_id": usuario.company_id,
            "nombre": usuario.nombre,
        }
    }
