"""Initial loyalty schema: programs, enrollments, cards, ledger, approvals

Revision ID: c1a2b3d4e5f6
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'c1a2b3d4e5f6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    """Create the loyalty tables."""
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('user_type', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email')
    )

    op.create_table(
        'loyalty_programs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('requires_approval', sa.Boolean(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['business_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_loyalty_programs_business_id', 'loyalty_programs', ['business_id'])

    op.create_table(
        'rewards',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('program_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('points_required', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('points_required >= 0', name='ck_rewards_points_required_non_negative'),
        sa.ForeignKeyConstraint(['program_id'], ['loyalty_programs.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_rewards_program_id', 'rewards', ['program_id'])

    op.create_table(
        'program_enrollments',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('program_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('current_points', sa.Integer(), nullable=False),
        sa.Column('total_points_earned', sa.Integer(), nullable=False),
        sa.Column('enrolled_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('current_points >= 0', name='ck_enrollment_points_non_negative'),
        sa.CheckConstraint('total_points_earned >= 0', name='ck_enrollment_total_non_negative'),
        sa.ForeignKeyConstraint(['customer_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['business_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['program_id'], ['loyalty_programs.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('customer_id', 'program_id', name='uq_enrollment_customer_program')
    )
    op.create_index('ix_program_enrollments_business', 'program_enrollments', ['business_id'])

    op.create_table(
        'loyalty_cards',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('program_id', sa.Integer(), nullable=False),
        sa.Column('card_number', sa.String(32), nullable=False),
        sa.Column('tier', sa.String(20), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('points_multiplier', sa.Numeric(4, 2), nullable=False),
        sa.Column('benefits', sa.JSON(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.CheckConstraint('points >= 0', name='ck_card_points_non_negative'),
        sa.ForeignKeyConstraint(['customer_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['business_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['program_id'], ['loyalty_programs.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('card_number'),
        sa.UniqueConstraint('customer_id', 'program_id', name='uq_card_customer_program')
    )

    op.create_table(
        'card_activities',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('card_id', sa.Integer(), nullable=False),
        sa.Column('activity_type', sa.String(20), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['card_id'], ['loyalty_cards.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_card_activities_card_id', 'card_activities', ['card_id'])

    # program_id has no FK: ledger rows outlive program deletion
    op.create_table(
        'point_transactions',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('program_id', sa.Integer(), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False),
        sa.Column('transaction_type', sa.String(20), nullable=False),
        sa.Column('reward_id', sa.Integer(), nullable=True),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['customer_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['business_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_point_transactions_customer_program', 'point_transactions', ['customer_id', 'program_id'])
    op.create_index('ix_point_transactions_business', 'point_transactions', ['business_id'])

    op.create_table(
        'customer_notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=True),
        sa.Column('type', sa.String(50), nullable=False),
        sa.Column('title', sa.String(255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('reference_id', sa.String(64), nullable=True),
        sa.Column('requires_action', sa.Boolean(), nullable=False),
        sa.Column('action_taken', sa.Boolean(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('read_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['customer_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['business_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_customer_notifications_recipient_created', 'customer_notifications', ['customer_id', 'created_at']
    )

    op.create_table(
        'customer_approval_requests',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('notification_id', sa.Integer(), nullable=True),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('request_type', sa.String(30), nullable=False),
        sa.Column('entity_id', sa.String(64), nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('data', sa.JSON(), nullable=True),
        sa.Column('requested_at', sa.DateTime(), nullable=True),
        sa.Column('responded_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['notification_id'], ['customer_notifications.id'], ),
        sa.ForeignKeyConstraint(['customer_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['business_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index(
        'ix_approval_requests_customer_status', 'customer_approval_requests', ['customer_id', 'status']
    )
    op.create_index(
        'ix_approval_requests_entity', 'customer_approval_requests', ['request_type', 'entity_id']
    )

    op.create_table(
        'customer_notification_preferences',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('customer_id', sa.Integer(), nullable=False),
        sa.Column('email', sa.Boolean(), nullable=False),
        sa.Column('push', sa.Boolean(), nullable=False),
        sa.Column('in_app', sa.Boolean(), nullable=False),
        sa.Column('sms', sa.Boolean(), nullable=False),
        sa.Column('enrollment_notifications', sa.Boolean(), nullable=False),
        sa.Column('points_earned_notifications', sa.Boolean(), nullable=False),
        sa.Column('points_deducted_notifications', sa.Boolean(), nullable=False),
        sa.Column('promo_code_notifications', sa.Boolean(), nullable=False),
        sa.Column('reward_available_notifications', sa.Boolean(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['customer_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('customer_id')
    )


def downgrade():
    """Drop the loyalty tables."""
    op.drop_table('customer_notification_preferences')
    op.drop_index('ix_approval_requests_entity', table_name='customer_approval_requests')
    op.drop_index('ix_approval_requests_customer_status', table_name='customer_approval_requests')
    op.drop_table('customer_approval_requests')
    op.drop_index('ix_customer_notifications_recipient_created', table_name='customer_notifications')
    op.drop_table('customer_notifications')
    op.drop_index('ix_point_transactions_business', table_name='point_transactions')
    op.drop_index('ix_point_transactions_customer_program', table_name='point_transactions')
    op.drop_table('point_transactions')
    op.drop_index('ix_card_activities_card_id', table_name='card_activities')
    op.drop_table('card_activities')
    op.drop_table('loyalty_cards')
    op.drop_index('ix_program_enrollments_business', table_name='program_enrollments')
    op.drop_table('program_enrollments')
    op.drop_index('ix_rewards_program_id', table_name='rewards')
    op.drop_table('rewards')
    op.drop_index('ix_loyalty_programs_business_id', table_name='loyalty_programs')
    op.drop_table('loyalty_programs')
    op.drop_table('users')
