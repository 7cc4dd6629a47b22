"""
Directory tables the VIP lifecycle reads for ownership checks.

They are owned and written by the directory side of the platform; this
service only queries them.
"""
from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey, Index, JSON
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.db.base import Base


class Employee(Base):
    __tablename__ = "employees"

    id = Column(String(36), primary_key=True, index=True)
    name = Column(String, nullable=False)
    nickname = Column(String, nullable=True)
    # Account linked to the profile (self-managed profiles only)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Establishment(Base):
    __tablename__ = "establishments"

    id = Column(String(36), primary_key=True, index=True)
    name = Column(String, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class EstablishmentOwner(Base):
    __tablename__ = "establishment_owners"

    id = Column(String(36), primary_key=True)
    user_id = Column(String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    establishment_id = Column(String(36), ForeignKey("establishments.id", ondelete="CASCADE"), nullable=False, index=True)
    owner_role = Column(String(20), nullable=False, default="owner")  # owner, manager
    permissions = Column(JSON, nullable=True)  # e.g. {"can_edit_employees": true}
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    establishment = relationship("Establishment")

    __table_args__ = (
        Index("idx_establishment_owners_user_establishment", "user_id", "establishment_id"),
    )


class CurrentEmployment(Base):
    __tablename__ = "current_employment"

    id = Column(String(36), primary_key=True)
    employee_id = Column(String(36), ForeignKey("employees.id", ondelete="CASCADE"), nullable=False, index=True)
    establishment_id = Column(String(36), ForeignKey("establishments.id", ondelete="CASCADE"), nullable=False, index=True)
    is_current = Column(Boolean, nullable=False, default=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
