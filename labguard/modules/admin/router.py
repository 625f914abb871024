from typing import Optional

from fastapi import APIRouter, Depends, Request

from labguard.auth import require_admin
from .schemas import ActiveUpdate, RoleAssignment, RoleCreate, RoleUpdate, UserCreate
from .service import AdminService

router = APIRouter(
    prefix="/api/admin",
    tags=["Administración"],
    dependencies=[Depends(require_admin)],
)


def get_admin_service(request: Request) -> AdminService:
    return AdminService(request.app.state.supabase)


# ===== USUARIOS =====

@router.post("/users")
def crear_usuario(body: UserCreate, service: AdminService = Depends(get_admin_service)):
    """Crear cuenta + perfil con rol"""
    user_id = service.create_user(body.email, body.password, body.full_name, body.role_id, body.role)
    return {"ok": True, "user_id": user_id}


@router.get("/users")
def listar_usuarios(service: AdminService = Depends(get_admin_service)):
    return {"data": service.list_users()}


@router.patch("/users/{user_id}/role")
def cambiar_rol(user_id: str, body: RoleAssignment, service: AdminService = Depends(get_admin_service)):
    service.assign_role(user_id, body.role_id)
    return {"ok": True}


@router.patch("/users/{user_id}/active")
def cambiar_estado(user_id: str, body: ActiveUpdate, service: AdminService = Depends(get_admin_service)):
    """Activar / desactivar perfil (los perfiles no se eliminan)"""
    service.set_active(user_id, body.active)
    return {"ok": True}


# ===== ROLES =====

@router.get("/roles")
def listar_roles(service: AdminService = Depends(get_admin_service)):
    return {"data": service.list_roles()}


@router.post("/roles")
def crear_rol(body: RoleCreate, service: AdminService = Depends(get_admin_service)):
    return {"data": service.create_role(body.name, body.description, body.slug)}


@router.patch("/roles/{role_id}")
def actualizar_rol(role_id: str, body: RoleUpdate, service: AdminService = Depends(get_admin_service)):
    return {"data": service.update_role(role_id, body.name, body.description)}


@router.delete("/roles/{role_id}")
def eliminar_rol(role_id: str, service: AdminService = Depends(get_admin_service)):
    service.delete_role(role_id)
    return {"ok": True}


# ===== PERFILES =====

@router.get("/profiles")
def buscar_perfiles(ids: Optional[str] = None, service: AdminService = Depends(get_admin_service)):
    """Resolver nombres para una lista de ids (?ids=a,b)"""
    return {"data": service.lookup_profiles(ids)}
