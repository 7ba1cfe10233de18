"""Tests for the flask CLI commands."""
import json
from datetime import timedelta
from backend import deps
from shared.enums import UserRole, UserStatus
from shared.models import now
from shared.schemas import Caller


class TestCliCommands:
    def test_init_db_seeds_prebuilt_templates(self, app, runner):
        result = runner.invoke(args=['init-db'])
        assert result.exit_code == 0
        assert '2 prebuilt template(s) added' in result.output

        result = runner.invoke(args=['init-db'])
        assert '0 prebuilt template(s) added' in result.output
        with app.app_context():
            titles = {t.title for t in deps.template_service().list()}
        assert titles == {'Safety Inspection Checklist', 'Incident Report Form'}

    def test_seed_templates_from_directory(self, app, runner, tmp_path):
        (tmp_path / 'ladder.json').write_text(json.dumps({
            'title': 'Ladder Check',
            'category': 'safety',
            'sections': [{'id': 1, 'title': 'Ladder', 'fields': [
                {'id': 'feet', 'label': 'Feet intact', 'type': 'boolean', 'required': True},
            ]}],
        }))
        (tmp_path / 'notes.txt').write_text('ignored')

        result = runner.invoke(args=['seed-templates', '--directory', str(tmp_path)])
        assert result.exit_code == 0
        assert 'Seeded 1 prebuilt template(s).' in result.output
        with app.app_context():
            [template] = deps.template_service().list()
        assert template.is_prebuilt
        assert template.title == 'Ladder Check'

    def test_create_admin(self, app, runner):
        result = runner.invoke(args=['create-admin', '--email', 'Boss@Example.com',
                                     '--password', 'longenough', '--full-name', 'The Boss'])
        assert result.exit_code == 0
        assert 'Created administrator boss@example.com' in result.output
        with app.app_context():
            user = deps.user_directory().get_by_email('boss@example.com')
        assert (user.role, user.status) == ('admin', 'approved')

        result = runner.invoke(args=['create-admin', '--email', 'boss@example.com', '--password', 'longenough'])
        assert result.exit_code != 0
        assert 'already exists' in result.output

        result = runner.invoke(args=['create-admin', '--email', 'bad', '--password', 'longenough'])
        assert result.exit_code != 0

    def test_list_overdue(self, app, runner):
        result = runner.invoke(args=['list-overdue'])
        assert 'No overdue assignments.' in result.output

        with app.app_context():
            directory = deps.user_directory()
            admin = directory.create_user('admin@example.com', 'longenough', 'Ada Admin',
                                          UserRole.ADMIN, UserStatus.APPROVED)
            inspector = directory.create_user('ivy@example.com', 'longenough', 'Ivy Inspector',
                                              UserRole.INSPECTOR, UserStatus.APPROVED)
            caller = Caller.from_user(admin)
            template = deps.template_service().create(caller, {'title': 'Quick check'})
            assignment = deps.assignment_service().create(caller, template.id, inspector.id,
                                                          due_date=now() - timedelta(days=1))

        result = runner.invoke(args=['list-overdue'])
        assert result.exit_code == 0
        assert assignment.id in result.output
        assert 'Ivy Inspector' in result.output
