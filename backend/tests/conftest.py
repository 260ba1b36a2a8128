"""
Campus Gate Pass - Test Configuration and Fixtures
"""
import os
from datetime import timedelta
from typing import AsyncGenerator, Callable, List, Optional, Tuple
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import StaticPool
from faker import Faker

# Set testing environment
os.environ['TESTING'] = 'true'
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATABASE_URL'] = 'sqlite+aiosqlite:///:memory:'
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['LOG_FILE'] = ''
os.environ['SMTP_USER'] = ''
os.environ['TWILIO_ACCOUNT_SID'] = ''

from app.main import app
from app.core.database import Base, get_db
from app.core.security import create_access_token
from app.core.types import utcnow
from app.models.college_management import Department
from app.models.user import User, UserRole, BoardingType
from app.services import notification_service
from app.services.gate_pass_queries import GatePassQueryService
from app.services.gate_pass_service import GatePassService
from app.services.notification_service import NotificationDispatcher

fake = Faker()


class RecordingNotifier:
    """Notifier that records every call; set `fail` to make each call raise"""

    def __init__(self):
        self.calls: List[Tuple[str, object, object]] = []
        self.fail = False

    async def _record(self, kind: str, notice, recipient) -> None:
        self.calls.append((kind, notice, recipient))
        if self.fail:
            raise RuntimeError(f"{kind} delivery failed")

    async def notify_approval_pending(self, notice, approver, stage) -> None:
        await self._record("approval_pending", notice, approver)

    async def notify_outcome(self, notice, recipient) -> None:
        await self._record("outcome", notice, recipient)

    async def notify_parent_exit(self, notice, student) -> None:
        await self._record("parent_exit", notice, student)

    def of_kind(self, kind: str) -> list:
        return [(notice, recipient) for k, notice, recipient in self.calls if k == kind]

    def recipients(self, kind: str) -> List[str]:
        return sorted(recipient.id for _, recipient in self.of_kind(kind))


@pytest.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Fresh in-memory database per test"""
    engine = create_async_engine(
        'sqlite+aiosqlite:///:memory:',
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
        await session.rollback()

    await engine.dispose()


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def dispatcher() -> NotificationDispatcher:
    return NotificationDispatcher()


@pytest.fixture(autouse=True)
def _patch_notifications(monkeypatch, notifier, dispatcher):
    """Route every service (including those built by the API) to the recording notifier"""
    monkeypatch.setattr(notification_service, "_notifier", notifier)
    monkeypatch.setattr(notification_service, "_dispatcher", dispatcher)


@pytest.fixture
def service(db_session, notifier, dispatcher) -> GatePassService:
    return GatePassService(db_session, notifier=notifier, dispatcher=dispatcher)


@pytest.fixture
def queries(db_session) -> GatePassQueryService:
    return GatePassQueryService(db_session)


@pytest.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database override"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


# ==================== Campus fixtures ====================

@pytest.fixture
async def cse(db_session: AsyncSession) -> Department:
    department = Department(code="CSE", name="Computer Science and Engineering")
    db_session.add(department)
    await db_session.commit()
    db_session.expunge(department)
    return department


@pytest.fixture
async def ece(db_session: AsyncSession) -> Department:
    department = Department(code="ECE", name="Electronics and Communication Engineering")
    db_session.add(department)
    await db_session.commit()
    db_session.expunge(department)
    return department


@pytest.fixture
def make_user(db_session: AsyncSession) -> Callable:
    """Factory creating a committed user with the given role.

    Fixture rows are detached so a rollback inside the service under test
    leaves their loaded attributes readable.
    """
    async def _make_user(
        role: UserRole,
        department: Optional[Department] = None,
        boarding_type: Optional[BoardingType] = None,
        parent_phone: Optional[str] = None,
        is_active: bool = True,
    ) -> User:
        user = User(
            email=fake.unique.email(),
            full_name=fake.name(),
            role=role,
            department_id=department.id if department else None,
            boarding_type=boarding_type,
            parent_phone=parent_phone,
            phone=fake.msisdn()[:10],
            is_active=is_active,
        )
        db_session.add(user)
        await db_session.commit()
        db_session.expunge(user)
        return user

    return _make_user


@pytest.fixture
async def hosteller(make_user, cse) -> User:
    return await make_user(UserRole.STUDENT, cse, BoardingType.HOSTELLER, parent_phone="9876543210")


@pytest.fixture
async def day_scholar(make_user, cse) -> User:
    return await make_user(UserRole.STUDENT, cse, BoardingType.DAY_SCHOLAR)


@pytest.fixture
async def staff(make_user, cse) -> User:
    return await make_user(UserRole.STAFF, cse)


@pytest.fixture
async def hod(make_user, cse) -> User:
    return await make_user(UserRole.HOD, cse)


@pytest.fixture
async def ece_staff(make_user, ece) -> User:
    return await make_user(UserRole.STAFF, ece)


@pytest.fixture
async def ece_hod(make_user, ece) -> User:
    return await make_user(UserRole.HOD, ece)


@pytest.fixture
async def warden(make_user) -> User:
    return await make_user(UserRole.HOSTEL_WARDEN)


@pytest.fixture
async def director(make_user) -> User:
    return await make_user(UserRole.ACADEMIC_DIRECTOR)


@pytest.fixture
async def security(make_user) -> User:
    return await make_user(UserRole.SECURITY)


@pytest.fixture
async def admin(make_user) -> User:
    return await make_user(UserRole.ADMIN)


@pytest.fixture
def pass_window():
    """(start, end) for a pass starting in an hour and lasting a day"""
    start = utcnow() + timedelta(hours=1)
    return start, start + timedelta(days=1)


def auth_headers_for(user: User) -> dict:
    token = create_access_token({'sub': str(user.id), 'role': user.role.value})
    return {'Authorization': f'Bearer {token}'}


@pytest.fixture
def headers() -> Callable[[User], dict]:
    """Authentication headers for any user: headers(user)"""
    return auth_headers_for
