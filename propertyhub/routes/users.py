import logging

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy.orm import Session

from ..auth import require_admin
from ..database import get_db
from ..models import Role, User
from .auth import serialize_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["Users"])


class RoleChangeRequest(BaseModel):
    roleId: int


def _get_user(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


@router.get("/users")
async def list_users(_: User = Depends(require_admin), db: Session = Depends(get_db)):
    users = db.query(User).order_by(User.created_at.desc(), User.id.desc()).all()
    return [serialize_user(u) for u in users]


@router.get("/users/{user_id}")
async def get_user(user_id: int, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    return serialize_user(_get_user(db, user_id))


@router.put("/users/{user_id}/role")
async def change_user_role(
    user_id: int,
    data: RoleChangeRequest,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    role = db.query(Role).filter(Role.id == data.roleId).first()
    if not role:
        raise HTTPException(status_code=404, detail="Role not found")

    user = _get_user(db, user_id)
    user.role_id = role.id
    db.commit()
    db.refresh(user)
    logger.info(f"🔑 User {user.id} moved to role '{role.name}' by admin {current_user.id}")
    return {"message": "Role updated", "user": serialize_user(user)}


@router.delete("/users/{user_id}")
async def delete_user(
    user_id: int,
    current_user: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = _get_user(db, user_id)
    if user.id == current_user.id:
        raise HTTPException(status_code=400, detail="You cannot delete your own account")
    db.delete(user)
    db.commit()
    logger.info(f"🗑️ User {user_id} deleted by admin {current_user.id}")
    return {"message": "User deleted"}


@router.get("/roles")
async def list_roles(_: User = Depends(require_admin), db: Session = Depends(get_db)):
    return [{"id": r.id, "name": r.name} for r in db.query(Role).order_by(Role.id).all()]
