from sqlalchemy import Column, String, Boolean, DateTime, Enum as SQLEnum, ForeignKey
from sqlalchemy.orm import relationship
import enum

from app.core.database import Base
from app.core.types import GUID, generate_uuid, utcnow, enum_values


class UserRole(str, enum.Enum):
    """Campus roles taking part in the gate pass chain"""
    STUDENT = "student"
    STAFF = "staff"
    HOD = "hod"
    HOSTEL_WARDEN = "hostel_warden"
    ACADEMIC_DIRECTOR = "academic_director"
    SECURITY = "security"
    ADMIN = "admin"


class BoardingType(str, enum.Enum):
    DAY_SCHOLAR = "day_scholar"
    HOSTELLER = "hosteller"


class User(Base):
    """User model"""
    __tablename__ = "users"

    id = Column(GUID, primary_key=True, default=generate_uuid)
    email = Column(String(255), unique=True, index=True, nullable=False)
    full_name = Column(String(255), nullable=False)

    role = Column(
        SQLEnum(UserRole, values_callable=enum_values, native_enum=False, length=32),
        default=UserRole.STUDENT,
        nullable=False,
    )
    is_active = Column(Boolean, default=True)

    # Profile fields
    phone = Column(String(20), nullable=True)

    # College fields
    department_id = Column(GUID, ForeignKey("departments.id"), nullable=True, index=True)

    # Student-only fields
    boarding_type = Column(
        SQLEnum(BoardingType, values_callable=enum_values, native_enum=False, length=32),
        nullable=True,
    )
    parent_phone = Column(String(20), nullable=True)

    # Timestamps
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    # Relationships
    department = relationship("Department", back_populates="members")

    def __repr__(self):
        return f"<User {self.email}>"
