"""Initial inspection schema

Revision ID: 001_initial_schema
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

USER_ROLES = ('admin', 'manager', 'inspector')
USER_STATUSES = ('approved', 'pending', 'rejected')
TEMPLATE_STATUSES = ('active', 'archived', 'draft')
INSPECTION_STATUSES = ('pending', 'in-progress', 'completed')
INSPECTION_PRIORITIES = ('critical', 'high', 'low', 'medium')
ASSIGNMENT_PRIORITIES = ('high', 'low', 'medium', 'urgent')
ASSIGNMENT_STATUSES = ('assigned', 'in_progress', 'completed', 'overdue')


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.String(120), nullable=False, unique=True, server_default=''),
        sa.Column('full_name', sa.String(200), nullable=False, server_default=''),
        sa.Column('password_hash', sa.String(256), nullable=False, server_default=''),
        sa.Column('role', sa.Enum(*USER_ROLES, name='userrole'), nullable=False, server_default='inspector'),
        sa.Column('status', sa.Enum(*USER_STATUSES, name='userstatus'), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
    )
    op.create_index('idx_user_role_status', 'users', ['role', 'status'])

    op.create_table(
        'app_config',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('key', sa.String(100), nullable=False, unique=True, server_default=''),
        sa.Column('value', sa.Text(), server_default=''),
        sa.Column('description', sa.String(300), server_default=''),
        sa.Column('category', sa.String(50), server_default=''),
        sa.Column('updated_at', sa.DateTime()),
    )

    op.create_table(
        'templates',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('title', sa.String(200), nullable=False, server_default='Untitled Template'),
        sa.Column('description', sa.Text(), server_default=''),
        sa.Column('category', sa.String(50), server_default=''),
        sa.Column('tags', sa.JSON()),
        sa.Column('sections', sa.JSON()),
        sa.Column('status', sa.Enum(*TEMPLATE_STATUSES, name='templatestatus'), nullable=False, server_default='active'),
        sa.Column('is_active', sa.Boolean(), server_default='1'),
        sa.Column('is_prebuilt', sa.Boolean(), server_default='0'),
        sa.Column('created_by', sa.String(36), server_default=''),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
    )
    op.create_index('ix_templates_is_prebuilt', 'templates', ['is_prebuilt'])
    op.create_index('idx_template_status_category', 'templates', ['status', 'category'])
    op.create_index('idx_template_prebuilt_title', 'templates', ['is_prebuilt', 'title'])

    op.create_table(
        'inspections',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('template_id', sa.String(36), nullable=True),
        sa.Column('title', sa.String(300), nullable=False, server_default=''),
        sa.Column('location', sa.String(300), server_default=''),
        sa.Column('inspector', sa.String(200), server_default=''),
        sa.Column('date', sa.String(10), server_default=''),
        sa.Column('time', sa.String(8), server_default=''),
        sa.Column('status', sa.Enum(*INSPECTION_STATUSES, name='inspectionstatus'), nullable=False, server_default='pending'),
        sa.Column('priority', sa.Enum(*INSPECTION_PRIORITIES, name='inspectionpriority'), nullable=False, server_default='medium'),
        sa.Column('sections', sa.JSON()),
        sa.Column('responses', sa.JSON()),
        sa.Column('photos', sa.JSON()),
        sa.Column('score', sa.Float(), nullable=True),
        sa.Column('issues', sa.Integer(), server_default='0'),
        sa.Column('categories', sa.JSON()),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime()),
        sa.Column('updated_at', sa.DateTime()),
    )
    op.create_index('ix_inspections_template_id', 'inspections', ['template_id'])
    op.create_index('idx_inspection_status', 'inspections', ['status'])
    op.create_index('idx_inspection_updated_at', 'inspections', ['updated_at'])

    op.create_table(
        'inspection_assignments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('inspection_id', sa.String(36), sa.ForeignKey('inspections.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assigned_to', sa.String(36), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assigned_by', sa.String(36), nullable=False, server_default=''),
        sa.Column('assigned_at', sa.DateTime(), nullable=False),
        sa.Column('due_date', sa.DateTime(), nullable=True),
        sa.Column('priority', sa.Enum(*ASSIGNMENT_PRIORITIES, name='assignmentpriority'), nullable=False, server_default='medium'),
        sa.Column('status', sa.Enum(*ASSIGNMENT_STATUSES, name='assignmentstatus'), nullable=False, server_default='assigned'),
        sa.Column('notes', sa.Text(), nullable=True),
    )
    op.create_index('ix_inspection_assignments_inspection_id', 'inspection_assignments', ['inspection_id'])
    op.create_index('ix_inspection_assignments_assigned_to', 'inspection_assignments', ['assigned_to'])
    op.create_index('ix_inspection_assignments_assigned_by', 'inspection_assignments', ['assigned_by'])
    op.create_index('idx_assignment_due_date', 'inspection_assignments', ['due_date'])
    op.create_index('idx_assignment_status', 'inspection_assignments', ['status'])


def downgrade():
    op.drop_table('inspection_assignments')
    op.drop_table('inspections')
    op.drop_table('templates')
    op.drop_table('app_config')
    op.drop_table('users')
