"""Initial migration

Revision ID: 001
Revises:
Create Date: 2024-01-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create reservas table
    op.create_table(
        'reservas',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('table_id', sa.Integer()),
        sa.Column('historical_table_id', sa.Integer()),
        sa.Column('customer_name', sa.String(255), nullable=False),
        sa.Column('customer_phone', sa.String(30), nullable=False),
        sa.Column('reservation_date', sa.Date(), nullable=False),
        sa.Column('time_slot', sa.String(5), nullable=False),
        sa.Column('notes', sa.Text(), nullable=False, server_default=''),
        sa.Column('status', sa.String(20), nullable=False, server_default='pendente'),
        sa.Column('reservation_number', sa.Integer()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )

    # Create numeros_reserva table
    op.create_table(
        'numeros_reserva',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )

    # Create webhook_config table
    op.create_table(
        'webhook_config',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('endpoint_url', sa.Text(), nullable=False, server_default=''),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('secret_key', sa.String(255)),
        sa.Column('events', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now()),
    )

    # Create webhook_logs table
    op.create_table(
        'webhook_logs',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column('config_id', postgresql.UUID(as_uuid=True)),
        sa.Column('event', sa.String(50), nullable=False),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('error_message', sa.Text()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now()),
    )

    # Create indexes
    op.create_index('ix_reservas_reservation_date', 'reservas', ['reservation_date'])
    op.create_index('ix_reservas_reservation_number', 'reservas', ['reservation_number'])
    op.create_index('ix_webhook_logs_created_at', 'webhook_logs', ['created_at'])

    # One active booking per table per day
    op.create_index(
        'uq_reservas_mesa_ativa',
        'reservas',
        ['reservation_date', 'table_id'],
        unique=True,
        postgresql_where=sa.text("status IN ('confirmada', 'pendente')"),
    )


def downgrade() -> None:
    op.drop_table('webhook_logs')
    op.drop_table('webhook_config')
    op.drop_table('numeros_reserva')
    op.drop_table('reservas')
