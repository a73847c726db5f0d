"""Startup seeding: the three roles and the bootstrap admin account"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from .config import (
    SETUP_ADMIN_EMAIL,
    SETUP_ADMIN_PHONE,
    SETUP_ADMIN_PWD,
    SETUP_ADMIN_USERNAME,
    SETUP_ROLE_ADMIN,
    SETUP_ROLE_CO_ADMIN,
    SETUP_ROLE_USER,
)
from .models import Role, User
from .security_utils import hash_password_bcrypt

logger = logging.getLogger(__name__)


def seed_roles(db: Session) -> dict[str, Role]:
    roles = {role.name: role for role in db.query(Role).all()}
    for name in (SETUP_ROLE_USER, SETUP_ROLE_ADMIN, SETUP_ROLE_CO_ADMIN):
        if name not in roles:
            roles[name] = Role(name=name)
            db.add(roles[name])
            logger.info(f"🔧 Creating role '{name}'")
    db.commit()
    return roles


def seed_admin(db: Session, roles: dict[str, Role]) -> Optional[User]:
    if not (SETUP_ADMIN_USERNAME and SETUP_ADMIN_EMAIL and SETUP_ADMIN_PWD):
        logger.info("ℹ️ SETUP_ADMIN_* not set, skipping bootstrap admin")
        return None

    existing = db.query(User).filter(User.username == SETUP_ADMIN_USERNAME).first()
    if existing:
        return existing

    admin = User(
        username=SETUP_ADMIN_USERNAME,
        email=SETUP_ADMIN_EMAIL.strip().lower(),
        phone=SETUP_ADMIN_PHONE,
        password_hash=hash_password_bcrypt(SETUP_ADMIN_PWD),
        role_id=roles[SETUP_ROLE_ADMIN].id,
        email_verified=True,
        phone_verified=True,
    )
    db.add(admin)
    db.commit()
    logger.info(f"👑 Bootstrap admin '{SETUP_ADMIN_USERNAME}' created")
    return admin


def initialize_setup(db: Session) -> None:
    roles = seed_roles(db)
    seed_admin(db, roles)
