import click
import logging
from flask import current_app
from flask.cli import with_appcontext
from shared.enums import UserRole, UserStatus
from shared.schemas import UserRegister
from shared.validation import ConflictError, parse_model, ValidationError
from .models import db
from . import deps
from .services.template_service import load_default_templates

logger = logging.getLogger(__name__)


def seed_prebuilt(directory=None):
    """Load prebuilt template definitions and insert the missing ones."""
    directory = directory or current_app.config.get('TEMPLATES_DATA_DIR')
    defaults = load_default_templates(directory)
    return deps.template_service().seed_prebuilt(defaults)


@click.command('init-db')
@with_appcontext
def init_db_command():
    """Create tables and seed the prebuilt templates."""
    logger.info("Starting database initialization")
    db.create_all()
    logger.info("Database tables created successfully")
    inserted = seed_prebuilt()
    click.echo(f'Initialized the database ({inserted} prebuilt template(s) added).')


@click.command('seed-templates')
@click.option('--directory', type=click.Path(file_okay=False), help='Directory with template JSON files')
@with_appcontext
def seed_templates_command(directory):
    """Insert prebuilt templates that are not present yet."""
    inserted = seed_prebuilt(directory)
    click.echo(f'Seeded {inserted} prebuilt template(s).')


@click.command('create-admin')
@click.option('--email', required=True)
@click.option('--password', required=True, prompt=True, hide_input=True, confirmation_prompt=True)
@click.option('--full-name', default='', help='Display name')
@with_appcontext
def create_admin_command(email, password, full_name):
    """Create an approved administrator account."""
    try:
        payload = parse_model(UserRegister, {'email': email, 'password': password, 'full_name': full_name})
        user = deps.user_directory().create_user(
            payload.email, payload.password, payload.full_name,
            role=UserRole.ADMIN, status=UserStatus.APPROVED,
        )
    except (ValidationError, ConflictError) as e:
        raise click.ClickException(str(e))
    click.echo(f'Created administrator {user.email} ({user.id}).')


@click.command('list-overdue')
@with_appcontext
def list_overdue_command():
    """Print assignments that are past due and not completed."""
    service = deps.assignment_service()
    overdue = service.list_overdue()
    if not overdue:
        click.echo('No overdue assignments.')
        return
    directory = deps.user_directory()
    for assignment in overdue:
        assignee = directory.get(assignment.assigned_to)
        name = assignee.display_name if assignee else assignment.assigned_to
        click.echo(f"{assignment.id}\t{assignment.due_date.isoformat()}\t{assignment.priority}\t{name}")
    logger.info(f"Listed {len(overdue)} overdue assignment(s)")
