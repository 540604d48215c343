"""create health store tables

Revision ID: 20261019_create_health_store
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20261019_create_health_store"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'ingest_batches',
        sa.Column('id', sa.String(25), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('metric_type', sa.String(32), nullable=False),
        sa.Column('batch_time', sa.BigInteger(), nullable=False),
        sa.Column('received_at', sa.DateTime(), nullable=True),
        sa.Column('count_received', sa.Integer(), nullable=True),
        sa.Column('count_stored', sa.Integer(), nullable=True),
        sa.Column('count_duplicates', sa.Integer(), nullable=True),
        sa.Column('count_rejected', sa.Integer(), nullable=True),
    )
    op.create_index('ix_ingest_batches_id', 'ingest_batches', ['id'])
    op.create_index('ix_ingest_batches_user_id', 'ingest_batches', ['user_id'])
    op.create_index('ix_ingest_user_metric', 'ingest_batches', ['user_id', 'metric_type'])

    op.create_table(
        'metric_records',
        sa.Column('id', sa.String(25), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('metric_type', sa.String(32), nullable=False),
        sa.Column('ingest_batch_id', sa.String(25), sa.ForeignKey('ingest_batches.id'), nullable=True),
        sa.Column('timestamp', sa.BigInteger(), nullable=False),
        sa.Column('sample_values', sa.JSON(), nullable=False),
        sa.Column('batch_time', sa.BigInteger(), nullable=False),
        sa.Column('is_synced', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'metric_type', 'timestamp', name='uq_metric_user_type_ts'),
    )
    op.create_index('ix_metric_records_id', 'metric_records', ['id'])
    op.create_index('ix_metric_records_user_id', 'metric_records', ['user_id'])
    op.create_index('ix_metric_type_batch', 'metric_records', ['metric_type', 'batch_time'])
    op.create_index('ix_metric_type_synced', 'metric_records', ['metric_type', 'is_synced', 'timestamp'])

    op.create_table(
        'daily_aggregates',
        sa.Column('id', sa.String(25), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('metric_type', sa.String(32), nullable=False),
        sa.Column('date', sa.String(10), nullable=False),
        sa.Column('value', sa.Float(), nullable=True),
        sa.Column('secondary_value', sa.Float(), nullable=True),
        sa.Column('stats', sa.JSON(), nullable=False),
        sa.Column('sample_count', sa.Integer(), nullable=False),
        sa.Column('last_updated', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'metric_type', 'date', name='uq_daily_user_type_date'),
    )
    op.create_index('ix_daily_aggregates_id', 'daily_aggregates', ['id'])
    op.create_index('ix_daily_aggregates_user_id', 'daily_aggregates', ['user_id'])
    op.create_index('ix_daily_type_date', 'daily_aggregates', ['metric_type', 'date'])

    op.create_table(
        'sleep_sessions',
        sa.Column('id', sa.String(25), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('statistic_time', sa.BigInteger(), nullable=False),
        sa.Column('start_time', sa.BigInteger(), nullable=False),
        sa.Column('end_time', sa.BigInteger(), nullable=False),
        sa.Column('total_times', sa.Integer(), nullable=False),
        sa.Column('deep_sleep_times', sa.Integer(), nullable=False),
        sa.Column('light_sleep_times', sa.Integer(), nullable=False),
        sa.Column('rem_sleep_times', sa.Integer(), nullable=False),
        sa.Column('wakeup_times', sa.Integer(), nullable=False),
        sa.Column('batch_time', sa.BigInteger(), nullable=False),
        sa.Column('is_synced', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('user_id', 'statistic_time', name='uq_sleep_user_statistic_time'),
    )
    op.create_index('ix_sleep_sessions_id', 'sleep_sessions', ['id'])
    op.create_index('ix_sleep_sessions_user_id', 'sleep_sessions', ['user_id'])
    op.create_index('ix_sleep_user_start', 'sleep_sessions', ['user_id', 'start_time'])
    op.create_index('ix_sleep_synced', 'sleep_sessions', ['is_synced', 'statistic_time'])

    op.create_table(
        'sleep_details',
        sa.Column('id', sa.String(25), primary_key=True),
        sa.Column('session_id', sa.String(25), sa.ForeignKey('sleep_sessions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('start_time', sa.BigInteger(), nullable=False),
        sa.Column('end_time', sa.BigInteger(), nullable=False),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('sleep_type', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_sleep_details_id', 'sleep_details', ['id'])
    op.create_index('ix_sleep_details_session_id', 'sleep_details', ['session_id'])

    op.create_table(
        'ecg_records',
        sa.Column('timestamp', sa.String(19), primary_key=True),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('heart_rate', sa.Integer(), nullable=False),
        sa.Column('sbp', sa.Integer(), nullable=False),
        sa.Column('dbp', sa.Integer(), nullable=False),
        sa.Column('hrv', sa.Integer(), nullable=False),
        sa.Column('blood_oxygen', sa.Integer(), nullable=False),
        sa.Column('temperature', sa.Float(), nullable=False),
        sa.Column('respiratory_rate', sa.Integer(), nullable=False),
        sa.Column('diagnose_type', sa.Integer(), nullable=False),
        sa.Column('is_afib', sa.Boolean(), nullable=False),
        sa.Column('hrv_index', sa.Integer(), nullable=False),
        sa.Column('load_index', sa.Integer(), nullable=False),
        sa.Column('pressure_index', sa.Integer(), nullable=False),
        sa.Column('body_index', sa.Integer(), nullable=False),
        sa.Column('sym_para_index', sa.Integer(), nullable=False),
        sa.Column('flag', sa.Integer(), nullable=False),
        sa.Column('sample_count', sa.Integer(), nullable=False),
        sa.Column('waveform', sa.LargeBinary(), nullable=True),
        sa.Column('is_synced', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_ecg_records_user_id', 'ecg_records', ['user_id'])
    op.create_index('ix_ecg_synced', 'ecg_records', ['is_synced', 'timestamp'])


def downgrade() -> None:
    op.drop_table('ecg_records')
    op.drop_table('sleep_details')
    op.drop_table('sleep_sessions')
    op.drop_table('daily_aggregates')
    op.drop_table('metric_records')
    op.drop_table('ingest_batches')
