from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from studyhub import models, schemas
from studyhub.database import get_db
from studyhub.exceptions import MaterialNotFound
from studyhub.models.user import UserRole
from studyhub.services import material_service
from studyhub.utils.security import get_current_user, require_role

router = APIRouter(prefix="/materials", tags=["Materials"])

require_uploader = require_role(UserRole.TEACHER.value, UserRole.ADMIN.value)


@router.get("", response_model=List[schemas.MaterialResponse])
def list_materials(
    subject: Optional[str] = Query(None),
    chapter: Optional[str] = Query(None),
    kind: Optional[str] = Query(None, pattern="^(material|video)$"),
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    return material_service.list_materials(db, subject_key=subject, chapter_key=chapter, kind=kind)


@router.post("", response_model=schemas.MaterialResponse, status_code=201)
def create_material(
    payload: schemas.MaterialCreate,
    current_user: models.User = Depends(require_uploader),
    db: Session = Depends(get_db)
):
    """Register a file already placed in object storage."""
    return material_service.create_material(
        db,
        uploaded_by=current_user.id,
        subject_key=payload.subject_key,
        chapter_key=payload.chapter_key,
        kind=payload.kind,
        title=payload.title,
        url=str(payload.url),
    )


@router.get("/{material_id}", response_model=schemas.MaterialResponse)
def open_material(
    material_id: int,
    current_user: models.User = Depends(get_current_user),
    db: Session = Depends(get_db)
):
    try:
        return material_service.open_material(db, material_id)
    except MaterialNotFound as exc:
        raise exc.to_http_exception()
