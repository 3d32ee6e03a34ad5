# ---------- tests/conftest.py ----------
import pytest
from dotenv import load_dotenv
from fastapi.testclient import TestClient
from sqlmodel import SQLModel, Session, create_engine
from sqlmodel.pool import StaticPool

# Import backend.main explicitly (not just main)
from backend import security
from backend.database import enable_sqlite_foreign_keys, get_session
from backend.main import app
from backend.models import TodoPriority, UserRole
from backend.repository import TodoRepository, UserRepository
from backend.schemas import UserCreate
from backend.storage import FileStore, get_file_store

# Load environment variables from .env file
load_dotenv()

# Minimum bcrypt cost keeps the suite fast; hashes still verify the same way
security.pwd_context.update(bcrypt__rounds=4)

PASSWORD = "Testpass123"


# Use in-memory SQLite for testing
@pytest.fixture(name="engine")
def engine_fixture():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    enable_sqlite_foreign_keys(engine)
    SQLModel.metadata.create_all(engine)
    yield engine
    SQLModel.metadata.drop_all(engine)


@pytest.fixture(name="session")
def session_fixture(engine):
    with Session(engine) as session:
        yield session


@pytest.fixture(name="file_store")
def file_store_fixture(tmp_path):
    return FileStore(upload_dir=str(tmp_path / "uploads"), max_file_size=1024 * 1024, max_files=5)


@pytest.fixture(name="client")
def client_fixture(engine, session, file_store):
    # Dependencies override
    def get_test_session():
        yield session

    app.dependency_overrides = {}
    app.dependency_overrides[get_session] = get_test_session
    app.dependency_overrides[get_file_store] = lambda: file_store

    yield TestClient(app)

    # Restore original settings
    app.dependency_overrides = {}


def _make_user(session, email, name, role=UserRole.USER):
    user_repo = UserRepository(session)
    user = user_repo.get_by_email(email)
    if not user:
        user = user_repo.create_user(UserCreate(email=email, name=name, password=PASSWORD, role=role))
    return user


@pytest.fixture(name="test_user")
def test_user_fixture(session):
    """Create a test user for testing."""
    return _make_user(session, "test@example.com", "Test User")


@pytest.fixture(name="other_user")
def other_user_fixture(session):
    """A second regular user, used as assignee."""
    return _make_user(session, "other@example.com", "Other User")


@pytest.fixture(name="outsider")
def outsider_fixture(session):
    """A user with no relation to the test todos."""
    return _make_user(session, "outsider@example.com", "Outsider")


@pytest.fixture(name="test_admin")
def test_admin_fixture(session):
    """Create a test admin user for testing."""
    return _make_user(session, "admin@example.com", "Admin User", role=UserRole.ADMIN)


@pytest.fixture(name="test_todo")
def test_todo_fixture(session, test_user, other_user):
    """A todo created by test_user and assigned to other_user."""
    todo_repo = TodoRepository(session)
    return todo_repo.create(
        title="Test Todo",
        description="This is a test todo",
        priority=TodoPriority.MEDIUM,
        creator_id=test_user.id,
        assignee_id=other_user.id,
        position=1,
    )


def headers_for(user):
    token, _ = security.issue_token(user)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture(name="user_token_headers")
def user_token_headers_fixture(test_user):
    """Create authorization headers with user JWT token."""
    return headers_for(test_user)


@pytest.fixture(name="other_token_headers")
def other_token_headers_fixture(other_user):
    return headers_for(other_user)


@pytest.fixture(name="outsider_token_headers")
def outsider_token_headers_fixture(outsider):
    return headers_for(outsider)


@pytest.fixture(name="admin_token_headers")
def admin_token_headers_fixture(test_admin):
    """Create authorization headers with admin JWT token."""
    return headers_for(test_admin)


@pytest.fixture(name="make_todo")
def make_todo_fixture(session):
    """Factory for extra todos with arbitrary fields."""
    def _make(creator, assignee, **fields):
        fields.setdefault("title", "Another todo")
        return TodoRepository(session).create(creator_id=creator.id, assignee_id=assignee.id, **fields)
    return _make


@pytest.fixture(name="make_headers")
def make_headers_fixture():
    return headers_for
