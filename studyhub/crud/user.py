from typing import List, Optional

from sqlalchemy.orm import Session

from studyhub import models


def create_user(
    db: Session,
    *,
    name: str,
    email: str,
    password_hash: str,
    role: str = models.UserRole.STUDENT.value,
    subject: Optional[str] = None,
    mobile: Optional[str] = None,
) -> models.User:
    db_user = models.User(
        name=name,
        email=email,
        password_hash=password_hash,
        role=role,
        subject=subject,
        mobile=mobile,
        is_active=True,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user


def get_user_by_email(db: Session, email: str) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.email == email).first()


def get_user(db: Session, user_id: int) -> Optional[models.User]:
    return db.query(models.User).filter(models.User.id == user_id).first()


def get_user_with_role(db: Session, user_id: int, role: str) -> Optional[models.User]:
    return db.query(models.User).filter(
        models.User.id == user_id,
        models.User.role == role,
        models.User.is_active.is_(True),
    ).first()


def list_users_by_role(db: Session, role: str) -> List[models.User]:
    return (
        db.query(models.User)
        .filter(models.User.role == role, models.User.is_active.is_(True))
        .order_by(models.User.name.asc(), models.User.id.asc())
        .all()
    )
