import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from studyhub import crud, schemas
from studyhub.database import get_db
from studyhub.models.user import UserRole
from studyhub.utils.security import authenticate_user, create_access_token, get_password_hash

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])

SELF_SERVICE_ROLES = {
    UserRole.STUDENT.value,
    UserRole.TEACHER.value,
    UserRole.CAREER_GUIDER.value,
}


# ===== REGISTER ENDPOINT =====

@router.post("/register")
def register(user_data: schemas.RegisterRequest, db: Session = Depends(get_db)):
    """Register a student, teacher or career guider account"""
    requested_role = (user_data.role or UserRole.STUDENT.value).strip().lower()
    if requested_role not in SELF_SERVICE_ROLES:
        raise HTTPException(
            status_code=400,
            detail="Role must be one of: student, teacher, career_guider"
        )

    normalized_email = user_data.email.strip().lower()
    if crud.user.get_user_by_email(db, normalized_email):
        raise HTTPException(status_code=400, detail="Email already registered")

    try:
        user = crud.user.create_user(
            db,
            name=user_data.name.strip(),
            email=normalized_email,
            password_hash=get_password_hash(user_data.password),
            role=requested_role,
            subject=user_data.subject,
            mobile=user_data.mobile,
        )
    except SQLAlchemyError as exc:
        db.rollback()
        logger.error("Registration failed for %s: %s", normalized_email, exc)
        raise HTTPException(status_code=500, detail="Internal server error")

    logger.info("Registered user %s (role=%s)", user.id, user.role)
    return {"message": "Registration successful", "user_id": user.id}


# ===== LOGIN ENDPOINT =====

@router.post("/login", response_model=schemas.Token)
def login(credentials: schemas.LoginRequest, db: Session = Depends(get_db)):
    """Verify credentials and return access token"""
    user = authenticate_user(db, credentials.email.strip().lower(), credentials.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid email or password")
    if not user.is_active:
        raise HTTPException(status_code=403, detail="Account is disabled")

    access_token = create_access_token(data={"sub": user.email, "role": user.role})

    return {
        "access_token": access_token,
        "token_type": "bearer",
        "role": user.role
    }
