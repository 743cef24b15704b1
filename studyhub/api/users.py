from typing import List

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from studyhub import crud, models, schemas
from studyhub.database import get_db
from studyhub.models.user import UserRole
from studyhub.utils.security import get_current_user

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=schemas.User)
def get_me(current_user: models.User = Depends(get_current_user)):
    return current_user


@router.get("/teachers", response_model=List[schemas.TeacherSummary])
def list_teachers(
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    """Teachers a student can address a session request to."""
    return crud.user.list_users_by_role(db, UserRole.TEACHER.value)
