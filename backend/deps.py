"""Builds stores and services for the current Flask application."""
from flask import current_app
from sqlalchemy.orm import sessionmaker
from shared.permissions import RolePolicy
from .models import db
from .repositories.template_repository import TemplateRepository
from .repositories.inspection_repository import InspectionRepository
from .repositories.assignment_repository import AssignmentRepository
from .repositories.user_directory import UserDirectory
from .services.template_service import TemplateService
from .services.inspection_service import InspectionService
from .services.assignment_service import AssignmentService
from .services.dashboard_service import DashboardService

EXTENSION_KEY = 'inspect360_session_factory'


def session_factory(app=None):
    """Session factory bound to the app's engine, created once per app."""
    app = app or current_app
    factory = app.extensions.get(EXTENSION_KEY)
    if factory is None:
        factory = sessionmaker(bind=db.engine, expire_on_commit=False)
        app.extensions[EXTENSION_KEY] = factory
    return factory


def policy(app=None):
    app = app or current_app
    return RolePolicy(managers_can_manage_users=app.config.get('MANAGERS_CAN_MANAGE_USERS', True))


def user_directory():
    return UserDirectory(session_factory())


def template_service():
    return TemplateService(TemplateRepository(session_factory()), policy=policy())


def assignment_service():
    factory = session_factory()
    return AssignmentService(
        AssignmentRepository(factory),
        InspectionRepository(factory),
        TemplateRepository(factory),
        UserDirectory(factory),
        policy=policy(),
        default_location=current_app.config.get('DEFAULT_ASSIGNMENT_LOCATION', 'To be determined'),
    )


def inspection_service():
    factory = session_factory()
    return InspectionService(
        InspectionRepository(factory),
        TemplateRepository(factory),
        assignments=AssignmentRepository(factory),
        assignment_service=assignment_service(),
        policy=policy(),
    )


def dashboard_service():
    factory = session_factory()
    return DashboardService(
        inspection_service(),
        AssignmentRepository(factory),
        TemplateRepository(factory),
        UserDirectory(factory),
        policy=policy(),
    )
