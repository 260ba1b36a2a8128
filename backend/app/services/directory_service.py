"""
Directory Service
Resolves user ids to the profile facts the gate pass engine needs (role,
department, boarding type, contact numbers). Roles and boarding types are
normalised here once, so nothing downstream compares raw strings.
"""

from dataclasses import dataclass
from typing import Any, List, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import ValidationError
from app.models.user import User, UserRole, BoardingType


@dataclass(frozen=True)
class DirectoryUser:
    id: str
    name: str
    email: str
    role: UserRole
    department_id: Optional[str] = None
    phone: Optional[str] = None
    boarding_type: Optional[BoardingType] = None
    parent_phone: Optional[str] = None


def _enum_key(value: Any) -> str:
    # Accept enum members, plain strings and role-like objects ({"name": "hod"} or obj.name)
    if isinstance(value, dict):
        value = value.get("name", "")
    elif not isinstance(value, str) and hasattr(value, "name"):
        value = value.name
    return str(value).strip().lower().replace("-", "_").replace(" ", "_")


def normalize_role(value: Any) -> UserRole:
    if isinstance(value, UserRole):
        return value
    key = _enum_key(value)
    try:
        return UserRole(key)
    except ValueError:
        raise ValidationError(f"Unknown role: {value!r}", field="role")


def normalize_boarding_type(value: Any) -> Optional[BoardingType]:
    if value is None or isinstance(value, BoardingType):
        return value
    key = _enum_key(value)
    if not key:
        return None
    try:
        return BoardingType(key)
    except ValueError:
        raise ValidationError(f"Unknown boarding type: {value!r}", field="boarding_type")


def to_directory_user(user: User) -> DirectoryUser:
    return DirectoryUser(
        id=str(user.id),
        name=user.full_name,
        email=user.email,
        role=normalize_role(user.role),
        department_id=str(user.department_id) if user.department_id else None,
        phone=user.phone,
        boarding_type=normalize_boarding_type(user.boarding_type),
        parent_phone=user.parent_phone,
    )


class Directory(Protocol):
    async def get_user(self, user_id: str) -> Optional[DirectoryUser]:
        ...

    async def find_users(self, role: UserRole, department_id: Optional[str] = None) -> List[DirectoryUser]:
        ...


class SqlDirectory:
    """Directory backed by the users table"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_user(self, user_id: str) -> Optional[DirectoryUser]:
        # Always re-read the row: boarding type is decided from the live value
        result = await self.db.execute(
            select(User).where(User.id == user_id).execution_options(populate_existing=True)
        )
        user = result.scalar_one_or_none()
        if not user:
            return None
        return to_directory_user(user)

    async def find_users(self, role: Any, department_id: Optional[str] = None) -> List[DirectoryUser]:
        """Active users holding `role`, optionally limited to one department"""
        query = select(User).where(
            User.role == normalize_role(role),
            User.is_active == True,  # noqa: E712
        )
        if department_id is not None:
            query = query.where(User.department_id == department_id)
        result = await self.db.execute(query.order_by(User.full_name))
        return [to_directory_user(user) for user in result.scalars().all()]
