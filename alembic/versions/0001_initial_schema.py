"""Initial schema: agents, tickets, ticket messages.

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17

Creates:
- agents (push token + web push subscription per operator)
- tickets (partial unique index: one active ticket per phone/channel)
- ticket_messages
"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial_schema'
down_revision = None
branch_labels = None
depends_on = None

ACTIVE_STATUS_CLAUSE = sa.text("status IN ('open', 'in_progress')")


def upgrade() -> None:
    # ==========================================================================
    # agents
    # ==========================================================================
    op.create_table(
        'agents',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(320), nullable=False),
        sa.Column('role', sa.String(32), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('is_available', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('push_token', sa.Text(), nullable=True),
        sa.Column('web_push_subscription', sa.JSON(none_as_null=True), nullable=True),
        sa.Column('token_version', sa.Integer(), server_default=sa.text('1'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_agents')),
        sa.UniqueConstraint('email', name=op.f('uq_agents_email')),
    )

    # ==========================================================================
    # tickets
    # ==========================================================================
    op.create_table(
        'tickets',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('channel', sa.String(32), nullable=False),
        sa.Column('status', sa.String(32), nullable=False),
        sa.Column('priority', sa.String(32), nullable=False),
        sa.Column('subject', sa.Text(), nullable=False),
        sa.Column('customer_phone', sa.String(32), nullable=True),
        sa.Column('customer_name', sa.Text(), nullable=True),
        sa.Column('customer_email', sa.String(320), nullable=True),
        sa.Column('external_customer_id', sa.String(64), nullable=True),
        sa.Column('assigned_agent_id', sa.Uuid(), nullable=True),
        sa.Column('resolution_type', sa.String(64), nullable=True),
        sa.Column('resolution_reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('resolved_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(
            ['assigned_agent_id'], ['agents.id'],
            name=op.f('fk_tickets_assigned_agent_id_agents'),
            ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_tickets')),
    )
    op.create_index(
        'uq_tickets_active_phone_channel',
        'tickets',
        ['customer_phone', 'channel'],
        unique=True,
        postgresql_where=ACTIVE_STATUS_CLAUSE,
        sqlite_where=ACTIVE_STATUS_CLAUSE,
    )
    op.create_index(
        'idx_tickets_phone_channel_status', 'tickets', ['customer_phone', 'channel', 'status']
    )
    op.create_index('idx_tickets_status_resolved_at', 'tickets', ['status', 'resolved_at'])
    op.create_index('idx_tickets_updated_at', 'tickets', ['updated_at'])

    # ==========================================================================
    # ticket_messages
    # ==========================================================================
    op.create_table(
        'ticket_messages',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('ticket_id', sa.Uuid(), nullable=False),
        sa.Column('sender_type', sa.String(32), nullable=False),
        sa.Column('sender_agent_id', sa.Uuid(), nullable=True),
        sa.Column('body', sa.Text(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ['ticket_id'], ['tickets.id'],
            name=op.f('fk_ticket_messages_ticket_id_tickets'),
            ondelete='CASCADE',
        ),
        sa.ForeignKeyConstraint(
            ['sender_agent_id'], ['agents.id'],
            name=op.f('fk_ticket_messages_sender_agent_id_agents'),
            ondelete='SET NULL',
        ),
        sa.PrimaryKeyConstraint('id', name=op.f('pk_ticket_messages')),
    )
    op.create_index(
        'idx_ticket_messages_ticket_created', 'ticket_messages', ['ticket_id', 'created_at']
    )


def downgrade() -> None:
    op.drop_index('idx_ticket_messages_ticket_created', table_name='ticket_messages')
    op.drop_table('ticket_messages')
    op.drop_index('idx_tickets_updated_at', table_name='tickets')
    op.drop_index('idx_tickets_status_resolved_at', table_name='tickets')
    op.drop_index('idx_tickets_phone_channel_status', table_name='tickets')
    op.drop_index('uq_tickets_active_phone_channel', table_name='tickets')
    op.drop_table('tickets')
    op.drop_table('agents')
