"""
Maintrack - Test Configuration and Fixtures
"""
import os
import tempfile
from pathlib import Path
from typing import AsyncGenerator, Callable, Dict, Any
import pytest
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool
from faker import Faker

# Set testing environment
_TEST_ROOT = Path(tempfile.mkdtemp(prefix="maintrack-tests-"))
os.environ['ENVIRONMENT'] = 'testing'
os.environ['DATA_DIR'] = str(_TEST_ROOT / 'data')
os.environ['DATABASE_URL'] = f"sqlite+aiosqlite:///{_TEST_ROOT / 'test.db'}"
os.environ['JWT_SECRET_KEY'] = 'test-jwt-secret-key-for-testing'
os.environ['BCRYPT_ROUNDS'] = '4'
os.environ['LOG_FILE'] = ''
os.environ['REQUIRE_AUTH'] = 'false'

from app.main import app
from app.core.database import Base, get_db
from app.core.security import get_password_hash, create_access_token
from app.models.user import User
from app.modules.storage.record_store import RecordStore
from app.modules.works.service import WorkService, get_work_service

fake = Faker()

TEST_PASSWORD = 'testpassword123'

# Test database setup
TEST_DATABASE_URL = f"sqlite+aiosqlite:///{_TEST_ROOT / 'test_session.db'}"
test_engine = create_async_engine(TEST_DATABASE_URL, echo=False, poolclass=NullPool)
TestSessionLocal = async_sessionmaker(
    bind=test_engine,
    class_=AsyncSession,
    expire_on_commit=False
)


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    """Existing, empty data directory"""
    path = tmp_path / 'data'
    path.mkdir()
    return path


@pytest.fixture
def store(data_dir: Path) -> RecordStore:
    return RecordStore(data_dir)


@pytest.fixture
def make_work() -> Callable[..., Dict[str, Any]]:
    """Build a valid work item payload for a date"""
    def _make(date: str = '2025-06-01', **overrides) -> Dict[str, Any]:
        work = {
            'id': fake.uuid4(),
            'number': str(fake.random_int(min=1, max=9999)),
            'reference': fake.bothify(text='REF-####'),
            'description': fake.sentence(nb_words=5),
            'department': 'Mechanical',
            'status': 'Pending',
            'remarks': '',
            'date': date,
        }
        work.update(overrides)
        return work
    return _make


@pytest.fixture(scope='function')
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test"""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionLocal() as session:
        yield session
        await session.rollback()

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest.fixture
async def client(db_session: AsyncSession, store: RecordStore) -> AsyncGenerator[AsyncClient, None]:
    """Create test client with database and storage overrides"""
    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_work_service] = lambda: WorkService(store)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url='http://test') as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture
async def test_user(db_session: AsyncSession) -> User:
    """Create a test user"""
    user = User(
        username=fake.user_name() + str(fake.random_int(min=100, max=999)),
        password_hash=get_password_hash(TEST_PASSWORD),
    )
    db_session.add(user)
    await db_session.commit()
    await db_session.refresh(user)
    return user


@pytest.fixture
def auth_headers(test_user: User) -> dict:
    """Generate authentication headers for test user"""
    token = create_access_token({'sub': str(test_user.id), 'username': test_user.username})
    return {'Authorization': f'Bearer {token}'}
