"""Pytest configuration and fixtures for Inspect360 tests."""
import copy
import os
import tempfile
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from backend.app import create_app
from backend.models import db
from backend import deps
from backend.repositories.template_repository import TemplateRepository
from backend.repositories.inspection_repository import InspectionRepository
from backend.repositories.assignment_repository import AssignmentRepository
from backend.repositories.user_directory import UserDirectory
from backend.services.template_service import TemplateService
from backend.services.inspection_service import InspectionService
from backend.services.assignment_service import AssignmentService
from backend.services.dashboard_service import DashboardService
from shared.enums import UserRole, UserStatus
from shared.models import Base
from shared.schemas import Caller

PASSWORD = 'correct-horse-battery'

SAMPLE_SECTIONS = [
    {
        'id': 1,
        'title': 'General Information',
        'fields': [
            {'id': 'inspector', 'label': 'Inspector Name', 'type': 'text', 'required': True},
            {'id': 'date', 'label': 'Inspection Date', 'type': 'date', 'required': True},
            {'id': 'location', 'label': 'Location', 'type': 'text', 'required': True},
        ],
    },
    {
        'id': 2,
        'title': 'Safety Equipment',
        'fields': [
            {'id': 'fire_extinguishers', 'label': 'Fire Extinguishers Present', 'type': 'boolean', 'required': True},
            {'id': 'extinguisher_count', 'label': 'Extinguisher Count', 'type': 'number',
             'validation': {'min': 0, 'max': 50}},
            {'id': 'condition', 'label': 'Overall Condition', 'type': 'select', 'required': True,
             'options': ['Good', 'Fair', 'Poor']},
            {'id': 'notes', 'label': 'Notes', 'type': 'textarea'},
        ],
    },
]


@pytest.fixture
def sample_sections():
    """Fresh copy of the two-section warehouse template body."""
    return copy.deepcopy(SAMPLE_SECTIONS)


@pytest.fixture
def app():
    """Create and configure a test app instance."""
    db_fd, db_path = tempfile.mkstemp()

    test_config = {
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f'sqlite:///{db_path}',
        'LOG_TO_FILE': False,
        'SEED_PREBUILT_ON_STARTUP': False,
    }

    app = create_app(test_config)

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.engine.dispose()
    os.close(db_fd)
    os.unlink(db_path)


@pytest.fixture
def client(app):
    """A test client for the app."""
    return app.test_client()


@pytest.fixture
def runner(app):
    """A test runner for the app's Click commands."""
    return app.test_cli_runner()


@pytest.fixture
def api_users(app, client):
    """Admin registered through the API plus approved manager and inspector.

    Returns a dict of role -> {'user': UserProfile, 'headers': auth headers}.
    """
    response = client.post('/api/auth/register', json={
        'email': 'admin@example.com', 'password': PASSWORD, 'full_name': 'Ada Admin'
    })
    assert response.status_code == 201

    with app.app_context():
        directory = deps.user_directory()
        directory.create_user('manager@example.com', PASSWORD, 'Max Manager',
                              role=UserRole.MANAGER, status=UserStatus.APPROVED)
        directory.create_user('inspector@example.com', PASSWORD, 'Ivy Inspector',
                              role=UserRole.INSPECTOR, status=UserStatus.APPROVED)

    users = {}
    for role in ('admin', 'manager', 'inspector'):
        response = client.post('/api/auth/login', json={'email': f'{role}@example.com', 'password': PASSWORD})
        assert response.status_code == 200
        body = response.get_json()
        users[role] = {'user': body['user'], 'headers': {'Authorization': f"Bearer {body['token']}"}}
    return users


# In-memory stores and services
@pytest.fixture
def session_factory():
    """Session factory over a fresh in-memory SQLite database."""
    engine = create_engine(
        'sqlite://', connect_args={'check_same_thread': False}, poolclass=StaticPool
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def template_store(session_factory):
    return TemplateRepository(session_factory)


@pytest.fixture
def inspection_store(session_factory):
    return InspectionRepository(session_factory)


@pytest.fixture
def assignment_store(session_factory):
    return AssignmentRepository(session_factory)


@pytest.fixture
def user_directory(session_factory):
    return UserDirectory(session_factory)


@pytest.fixture
def template_service(template_store):
    return TemplateService(template_store)


@pytest.fixture
def assignment_service(assignment_store, inspection_store, template_store, user_directory):
    return AssignmentService(assignment_store, inspection_store, template_store, user_directory)


@pytest.fixture
def inspection_service(inspection_store, template_store, assignment_store, assignment_service):
    return InspectionService(inspection_store, template_store, assignments=assignment_store,
                             assignment_service=assignment_service)


@pytest.fixture
def dashboard_service(inspection_service, assignment_store, template_store, user_directory):
    return DashboardService(inspection_service, assignment_store, template_store, user_directory)


@pytest.fixture
def users(user_directory):
    """Approved admin, manager and two inspectors, plus a pending inspector."""
    make = user_directory.create_user
    return {
        'admin': make('admin@example.com', PASSWORD, 'Ada Admin', UserRole.ADMIN, UserStatus.APPROVED),
        'manager': make('manager@example.com', PASSWORD, 'Max Manager', UserRole.MANAGER, UserStatus.APPROVED),
        'other_manager': make('other@example.com', PASSWORD, 'Olga Other', UserRole.MANAGER, UserStatus.APPROVED),
        'inspector': make('inspector@example.com', PASSWORD, 'Ivy Inspector', UserRole.INSPECTOR, UserStatus.APPROVED),
        'second_inspector': make('second@example.com', PASSWORD, '', UserRole.INSPECTOR, UserStatus.APPROVED),
        'pending': make('pending@example.com', PASSWORD, 'Pat Pending', UserRole.INSPECTOR, UserStatus.PENDING),
    }


@pytest.fixture
def callers(users):
    return {name: Caller.from_user(user) for name, user in users.items()}


@pytest.fixture
def system():
    return Caller.system()


@pytest.fixture
def sample_template(template_service, callers):
    return template_service.create(callers['admin'], {
        'title': 'Warehouse Walkthrough',
        'description': 'Monthly warehouse check',
        'category': 'safety',
        'tags': ['warehouse'],
        'sections': SAMPLE_SECTIONS,
    })
