"""
College Management Models
- College and Department records that scope staff/HOD approvals
"""

from sqlalchemy import Column, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from app.core.database import Base
from app.core.types import GUID, generate_uuid, utcnow


class College(Base):
    """College/Institution model"""
    __tablename__ = "colleges"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    name = Column(String(255), nullable=False)
    code = Column(String(50), unique=True, nullable=False)  # e.g., JNTUH, CBIT
    city = Column(String(100), nullable=True)
    phone = Column(String(20), nullable=True)
    email = Column(String(255), nullable=True)

    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    departments = relationship("Department", back_populates="college", cascade="all, delete-orphan")

    def __repr__(self):
        return f"<College {self.code}>"


class Department(Base):
    """Department model"""
    __tablename__ = "departments"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    college_id = Column(GUID, ForeignKey("colleges.id"), nullable=True)
    name = Column(String(255), nullable=False)  # e.g., Computer Science and Engineering
    code = Column(String(20), unique=True, nullable=False)   # e.g., CSE

    is_active = Column(Boolean, default=True)
    created_at = Column(DateTime, default=utcnow)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    college = relationship("College", back_populates="departments")
    members = relationship("User", back_populates="department")

    def __repr__(self):
        return f"<Department {self.code}>"
