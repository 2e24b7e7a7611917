"""initial journey schema

Revision ID: a1c4e7b2d3f0
Revises:
Create Date: 2026-10-19 09:00:00

Tables: user_journeys, email_templates, email_ab_variants, email_events,
reminder_logs.
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = 'a1c4e7b2d3f0'
down_revision = None
branch_labels = None
depends_on = None


def _base_columns():
    return [
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    ]


def _base_indexes(table: str) -> None:
    op.create_index(f'ix_{table}_id', table, ['id'])
    op.create_index(f'ix_{table}_created_at', table, ['created_at'])


def upgrade() -> None:
    """Create journey tables."""
    op.create_table(
        'user_journeys',
        *_base_columns(),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column(
            'journey_stage',
            sa.String(length=32),
            nullable=False,
            comment='signup, profile_completed, plan_selected, payment_pending, payment_confirmed, active',
        ),
        sa.Column('stage_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('extra_metadata', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='{}'),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('user_journeys')
    op.create_index('ix_user_journeys_user_id', 'user_journeys', ['user_id'])
    op.create_index('ix_user_journeys_journey_stage', 'user_journeys', ['journey_stage'])
    # Current record per user: newest created_at
    op.create_index('ix_user_journeys_user_created', 'user_journeys', ['user_id', 'created_at'])

    op.create_table(
        'email_templates',
        *_base_columns(),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('subject', sa.String(length=500), nullable=False),
        sa.Column('html_content', sa.Text(), nullable=False),
        sa.Column('text_content', sa.Text(), nullable=True),
        sa.Column('journey_stage', sa.String(length=32), nullable=False),
        sa.Column('variables', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='[]'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('email_templates')
    op.create_index('ix_email_templates_journey_stage', 'email_templates', ['journey_stage'])
    op.create_index('ix_email_templates_is_active', 'email_templates', ['is_active'])

    op.create_table(
        'email_ab_variants',
        *_base_columns(),
        sa.Column('template_id', sa.Uuid(), nullable=False),
        sa.Column('variant_name', sa.String(length=100), nullable=False),
        sa.Column('subject', sa.String(length=500), nullable=False),
        sa.Column('html_content', sa.Text(), nullable=False),
        sa.Column('text_content', sa.Text(), nullable=True),
        sa.Column('traffic_percentage', sa.Integer(), nullable=False, server_default='50'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.CheckConstraint(
            'traffic_percentage >= 0 AND traffic_percentage <= 100',
            name='ck_email_ab_variants_traffic_range',
        ),
        sa.ForeignKeyConstraint(['template_id'], ['email_templates.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('email_ab_variants')
    op.create_index('ix_email_ab_variants_template_id', 'email_ab_variants', ['template_id'])
    op.create_index('ix_email_ab_variants_is_active', 'email_ab_variants', ['is_active'])

    op.create_table(
        'email_events',
        *_base_columns(),
        sa.Column('variant_id', sa.Uuid(), nullable=False),
        sa.Column('template_id', sa.Uuid(), nullable=False),
        sa.Column('user_id', sa.String(length=64), nullable=True),
        sa.Column(
            'event_type',
            sa.Enum('SENT', 'OPENED', 'CLICKED', 'CONVERTED', name='emaileventtype'),
            nullable=False,
        ),
        sa.Column('occurred_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['variant_id'], ['email_ab_variants.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('email_events')
    op.create_index('ix_email_events_variant_id', 'email_events', ['variant_id'])
    op.create_index('ix_email_events_template_id', 'email_events', ['template_id'])
    op.create_index('ix_email_events_variant_occurred', 'email_events', ['variant_id', 'occurred_at'])

    op.create_table(
        'reminder_logs',
        *_base_columns(),
        sa.Column('user_id', sa.String(length=64), nullable=False),
        sa.Column('user_email', sa.String(length=255), nullable=False),
        sa.Column('journey_stage', sa.String(length=32), nullable=False),
        sa.Column('intent', sa.String(length=32), nullable=False),
        sa.Column('subject', sa.String(length=500), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('sent_by', sa.String(length=255), nullable=True),
        sa.Column('details', postgresql.JSONB(astext_type=sa.Text()), nullable=False, server_default='{}'),
        sa.PrimaryKeyConstraint('id'),
    )
    _base_indexes('reminder_logs')
    op.create_index('ix_reminder_logs_user_id', 'reminder_logs', ['user_id'])


def downgrade() -> None:
    """Drop journey tables."""
    op.drop_table('reminder_logs')
    op.drop_table('email_events')
    op.execute('DROP TYPE IF EXISTS emaileventtype')
    op.drop_table('email_ab_variants')
    op.drop_table('email_templates')
    op.drop_table('user_journeys')
