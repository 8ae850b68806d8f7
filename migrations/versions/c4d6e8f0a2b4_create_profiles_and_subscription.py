"""Create profiles and subscription tables

Revision ID: c4d6e8f0a2b4
Revises:
Create Date: 2026-10-19 10:00:00.000000

Subscription records keyed by identity (email or platform id), reconciled
from Stripe webhooks; profiles carry the optional Discord member id.
"""
from alembic import op
import sqlalchemy as sa


revision = 'c4d6e8f0a2b4'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # --- Profiles (user directory) ---
    op.create_table(
        'profiles',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.Column('image_url', sa.String(1024), nullable=True),
        sa.Column('discord_id', sa.String(32), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_profiles_email', 'profiles', ['email'], unique=True)
    op.create_index('ix_profiles_discord_id', 'profiles', ['discord_id'], unique=True)

    # --- Subscription table ---
    op.create_table(
        'subscription',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('plan', sa.String(50), nullable=False, server_default='monthly'),
        sa.Column('customer_id', sa.String(255), nullable=True),
        sa.Column('subscription_id', sa.String(255), nullable=True),
        sa.Column('start_date', sa.DateTime(), nullable=True),
        sa.Column('end_at', sa.DateTime(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint(
            'end_at IS NULL OR start_date IS NULL OR end_at >= start_date',
            name='ck_subscription_period_order',
        ),
    )
    # Upserts resolve conflicts on this index
    op.create_index('ix_subscription_email', 'subscription', ['email'], unique=True)
    op.create_index('ix_subscription_subscription_id', 'subscription', ['subscription_id'], unique=False)


def downgrade():
    op.drop_table('subscription')
    op.drop_table('profiles')
