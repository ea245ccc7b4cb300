from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from movie_api.core.database import get_db
from movie_api.core.security import require_roles
from movie_api.models.user import UserRole
from movie_api.routers.auth import get_auth_service
from movie_api.schemas.auth import RoleUpdate, UserOut
from movie_api.services.auth import AuthService

router = APIRouter(prefix="/api/users", tags=["users"])


@router.patch("/{user_id}/role", response_model=UserOut)
def change_role(
    user_id: str,
    update: RoleUpdate,
    admin: Dict[str, Any] = Depends(require_roles({UserRole.ADMIN.value})),
    db: Session = Depends(get_db),
    service: AuthService = Depends(get_auth_service),
) -> UserOut:
    """Takes effect on the user's next refresh; already issued access tokens keep the old role."""
    user = service.change_role(db, user_id, update.role, actor_id=admin["sub"])
    return UserOut.model_validate(user)
