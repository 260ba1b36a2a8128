"""
Database Seed Data Module

Demo college, departments and one user per campus role. Idempotent: rows
are matched by department code / user email and only missing ones are added.
Run with: python -m app.db.seed_data          (seed and print demo tokens)
          python -m app.db.seed_data clear    (delete everything)
"""
import asyncio
from typing import Dict, List

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import AsyncSessionLocal, init_db
from app.core.security import create_access_token
from app.models.college_management import College, Department
from app.models.gate_pass import GatePass, GatePassTransition
from app.models.user import User, UserRole, BoardingType


# ==================== Sample Data Constants ====================

SAMPLE_COLLEGE = {"name": "Government College of Engineering", "code": "GCE", "city": "Chennai"}

SAMPLE_DEPARTMENTS = [
    {"code": "CSE", "name": "Computer Science and Engineering"},
    {"code": "ECE", "name": "Electronics and Communication Engineering"},
    {"code": "MECH", "name": "Mechanical Engineering"},
]

SAMPLE_USERS = [
    # Requesters
    {"email": "hosteller@college.edu", "full_name": "Rahul Sharma", "role": UserRole.STUDENT,
     "department": "CSE", "boarding_type": BoardingType.HOSTELLER, "parent_phone": "9876543210"},
    {"email": "dayscholar@college.edu", "full_name": "Priya Patel", "role": UserRole.STUDENT,
     "department": "CSE", "boarding_type": BoardingType.DAY_SCHOLAR, "parent_phone": "9876543211"},
    {"email": "ece.student@college.edu", "full_name": "Amit Kumar", "role": UserRole.STUDENT,
     "department": "ECE", "boarding_type": BoardingType.HOSTELLER, "parent_phone": "9876543212"},

    # Department approvers
    {"email": "staff.cse@college.edu", "full_name": "Prof. Lakshmi Devi", "role": UserRole.STAFF, "department": "CSE"},
    {"email": "hod.cse@college.edu", "full_name": "Dr. Srinivas Kumar", "role": UserRole.HOD, "department": "CSE"},
    {"email": "staff.ece@college.edu", "full_name": "Prof. Meera Shah", "role": UserRole.STAFF, "department": "ECE"},
    {"email": "hod.ece@college.edu", "full_name": "Dr. Karthik Rajan", "role": UserRole.HOD, "department": "ECE"},

    # College-wide roles
    {"email": "warden@college.edu", "full_name": "Suresh Babu", "role": UserRole.HOSTEL_WARDEN},
    {"email": "director@college.edu", "full_name": "Dr. Neha Agarwal", "role": UserRole.ACADEMIC_DIRECTOR},
    {"email": "security@college.edu", "full_name": "Gate Security", "role": UserRole.SECURITY},
    {"email": "admin@college.edu", "full_name": "System Admin", "role": UserRole.ADMIN},
]


async def seed_departments(db: AsyncSession) -> Dict[str, Department]:
    """Create the demo college and its departments; returns departments by code"""
    result = await db.execute(select(College).where(College.code == SAMPLE_COLLEGE["code"]))
    college = result.scalar_one_or_none()
    if not college:
        college = College(**SAMPLE_COLLEGE)
        db.add(college)
        await db.flush()

    departments: Dict[str, Department] = {}
    for dept_data in SAMPLE_DEPARTMENTS:
        result = await db.execute(select(Department).where(Department.code == dept_data["code"]))
        department = result.scalar_one_or_none()
        if not department:
            department = Department(college_id=college.id, **dept_data)
            db.add(department)
        departments[dept_data["code"]] = department

    await db.flush()
    print(f"  ✓ {len(departments)} departments ready")
    return departments


async def seed_users(db: AsyncSession, departments: Dict[str, Department]) -> List[User]:
    """Create one user per campus role (plus hosteller and day-scholar students)"""
    users = []
    created = 0

    for user_data in SAMPLE_USERS:
        result = await db.execute(select(User).where(User.email == user_data["email"]))
        user = result.scalar_one_or_none()
        if not user:
            department_code = user_data.get("department")
            user = User(
                email=user_data["email"],
                full_name=user_data["full_name"],
                role=user_data["role"],
                department_id=departments[department_code].id if department_code else None,
                boarding_type=user_data.get("boarding_type"),
                parent_phone=user_data.get("parent_phone"),
                is_active=True,
            )
            db.add(user)
            created += 1
        users.append(user)

    await db.flush()
    print(f"  ✓ {created} users created ({len(users) - created} already present)")
    return users


async def seed_all():
    """Seed all sample data"""
    print("=" * 50)
    print("Starting database seeding...")
    print("=" * 50)

    await init_db()

    async with AsyncSessionLocal() as db:
        try:
            departments = await seed_departments(db)
            users = await seed_users(db, departments)
            await db.commit()
        except Exception as e:
            await db.rollback()
            print(f"Error seeding database: {e}")
            raise

    print("=" * 50)
    print("Demo bearer tokens:")
    for user in users:
        token = create_access_token({"sub": str(user.id)})
        print(f"  {user.role.value:<18} {user.email:<28} {token}")
    print("=" * 50)
    print("Database seeding completed successfully!")


async def clear_all():
    """Clear all data from database"""
    print("Clearing all data...")
    async with AsyncSessionLocal() as db:
        # Delete in reverse order of dependencies
        await db.execute(delete(GatePassTransition))
        await db.execute(delete(GatePass))
        await db.execute(delete(User))
        await db.execute(delete(Department))
        await db.execute(delete(College))
        await db.commit()
        print("All data cleared!")


if __name__ == "__main__":
    import sys

    if len(sys.argv) > 1 and sys.argv[1] == "clear":
        asyncio.run(clear_all())
    else:
        asyncio.run(seed_all())
