import enum

from sqlalchemy import Column, Integer, String, ForeignKey, TIMESTAMP, func

from studyhub.database import Base


class MaterialKind(str, enum.Enum):
    MATERIAL = "material"
    VIDEO = "video"


class Material(Base):
    __tablename__ = "materials"

    id = Column(Integer, primary_key=True, index=True)
    subject_key = Column(String(100), nullable=False, index=True)
    chapter_key = Column(String(100), index=True)
    kind = Column(String(20), nullable=False, default=MaterialKind.MATERIAL.value)
    title = Column(String(200), nullable=False)
    url = Column(String(1000), nullable=False)
    uploaded_by = Column(Integer, ForeignKey("users.id", ondelete="SET NULL"))
    view_count = Column(Integer, nullable=False, default=0)
    created_at = Column(TIMESTAMP, server_default=func.now())
