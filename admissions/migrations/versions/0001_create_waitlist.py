"""create waitlist and collaborator tables

Revision ID: 0001
Revises:
Create Date: 2025-06-01 00:00:00

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'schools',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.String(255), nullable=False),
    )
    op.create_table(
        'leads',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('school_id', sa.String(36), sa.ForeignKey('schools.id'), nullable=False),
        sa.Column('child_name', sa.String(255)),
        sa.Column('parent_name', sa.String(255)),
        sa.Column('parent_email', sa.String(255)),
        sa.Column('parent_phone', sa.String(50)),
        sa.Column('program', sa.String(100)),
        sa.Column('lead_status', sa.String(30), nullable=False, server_default='new'),
        sa.Column('lead_score', sa.Integer()),
        sa.Column('notes', sa.Text()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('next_follow_up_at', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_leads_school_id', 'leads', ['school_id'])
    op.create_index('ix_leads_parent_email', 'leads', ['parent_email'])
    op.create_table(
        'enrollments',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('lead_id', sa.String(36), sa.ForeignKey('leads.id'), nullable=False),
        sa.Column('school_id', sa.String(36), sa.ForeignKey('schools.id'), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_enrollments_lead_id', 'enrollments', ['lead_id'])
    op.create_table(
        'classes',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('school_id', sa.String(36), sa.ForeignKey('schools.id'), nullable=False),
        sa.Column('name', sa.String(255)),
        sa.Column('program', sa.String(100)),
        sa.Column('capacity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('current_enrollment', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_index('ix_classes_school_id', 'classes', ['school_id'])
    op.create_table(
        'waitlist',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('lead_id', sa.String(36), sa.ForeignKey('leads.id', ondelete='CASCADE'), nullable=False),
        sa.Column('school_id', sa.String(36), sa.ForeignKey('schools.id'), nullable=False),
        sa.Column('program', sa.String(100), nullable=False),
        sa.Column('waitlist_position', sa.Integer(), nullable=False),
        sa.Column('priority_score', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(20), nullable=False, server_default='waitlisted'),
        sa.Column('notes', sa.Text()),
        sa.Column('offer_date', sa.DateTime(timezone=True)),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index('ix_waitlist_lead_id', 'waitlist', ['lead_id'])
    op.create_index('ix_waitlist_partition', 'waitlist', ['school_id', 'program', 'waitlist_position'])
    op.create_index(
        'uq_waitlist_active_lead', 'waitlist', ['lead_id'], unique=True,
        postgresql_where=sa.text("status IN ('waitlisted', 'contacted', 'interested', 'toured')"),
        sqlite_where=sa.text("status IN ('waitlisted', 'contacted', 'interested', 'toured')"),
    )


def downgrade() -> None:
    op.drop_index('uq_waitlist_active_lead', table_name='waitlist')
    op.drop_index('ix_waitlist_partition', table_name='waitlist')
    op.drop_index('ix_waitlist_lead_id', table_name='waitlist')
    op.drop_table('waitlist')
    op.drop_index('ix_classes_school_id', table_name='classes')
    op.drop_table('classes')
    op.drop_index('ix_enrollments_lead_id', table_name='enrollments')
    op.drop_table('enrollments')
    op.drop_index('ix_leads_parent_email', table_name='leads')
    op.drop_index('ix_leads_school_id', table_name='leads')
    op.drop_table('leads')
    op.drop_table('schools')
