from typing import List, Optional

from sqlalchemy.orm import Session

from studyhub.exceptions import MaterialNotFound
from studyhub.models.material import Material


def create_material(
    db: Session,
    *,
    uploaded_by: int,
    subject_key: str,
    title: str,
    url: str,
    kind: str = "material",
    chapter_key: Optional[str] = None,
) -> Material:
    material = Material(
        subject_key=subject_key.strip(),
        chapter_key=chapter_key.strip() if chapter_key else None,
        kind=kind,
        title=title.strip(),
        url=url,
        uploaded_by=uploaded_by,
        view_count=0,
    )
    db.add(material)
    db.commit()
    db.refresh(material)
    return material


def list_materials(
    db: Session,
    *,
    subject_key: Optional[str] = None,
    chapter_key: Optional[str] = None,
    kind: Optional[str] = None,
) -> List[Material]:
    query = db.query(Material)
    if subject_key:
        query = query.filter(Material.subject_key == subject_key)
    if chapter_key:
        query = query.filter(Material.chapter_key == chapter_key)
    if kind:
        query = query.filter(Material.kind == kind)
    return query.order_by(Material.created_at.desc(), Material.id.desc()).all()


def open_material(db: Session, material_id: int) -> Material:
    """Fetch a material and count the view in the same round trip."""
    updated = db.query(Material).filter(Material.id == material_id).update(
        {"view_count": Material.view_count + 1}, synchronize_session=False
    )
    if not updated:
        db.rollback()
        raise MaterialNotFound(material_id)
    db.commit()
    return db.query(Material).filter(Material.id == material_id).one()
