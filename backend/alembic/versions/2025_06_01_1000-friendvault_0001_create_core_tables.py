"""create_core_tables

Revision ID: friendvault_0001
Revises:
Create Date: 2025-06-01 10:00:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = 'friendvault_0001'
down_revision = None
branch_labels = None
depends_on = None

user_status = sa.Enum('ACTIVE', 'SUSPENDED', name='user_status', create_constraint=True)
withdrawal_status = sa.Enum('PENDING', 'APPROVED', 'REJECTED', 'EXECUTED', name='withdrawal_status', create_constraint=True)
vote_decision = sa.Enum('APPROVE', 'REJECT', name='vote_decision', create_constraint=True)
vault_transaction_type = sa.Enum('DEPOSIT', 'WITHDRAWAL', name='vault_transaction_type', create_constraint=True)


def _base_columns():
    return [
        sa.Column('id', sa.Uuid(as_uuid=True), primary_key=True, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('CURRENT_TIMESTAMP'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    ]


def upgrade() -> None:
    # Step 1: users (identity registry)
    op.create_table(
        'users',
        *_base_columns(),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('status', user_status, nullable=False),
        sa.Column('display_name', sa.String(255), nullable=True),
        sa.Column('stellar_address', sa.String(64), nullable=True),
    )
    op.create_index('ix_users_id', 'users', ['id'])
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    # Step 2: vaults and their fixed member sets
    op.create_table(
        'vaults',
        *_base_columns(),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('custodial_address', sa.String(64), nullable=False),
        sa.Column('created_by', sa.String(255), nullable=False),
    )
    op.create_index('ix_vaults_id', 'vaults', ['id'])
    op.create_index('ix_vaults_custodial_address', 'vaults', ['custodial_address'], unique=True)
    op.create_index('ix_vaults_created_by', 'vaults', ['created_by'])

    op.create_table(
        'vault_members',
        *_base_columns(),
        sa.Column('vault_id', sa.Uuid(as_uuid=True), sa.ForeignKey('vaults.id', name='fk_vault_members_vault_id', ondelete='CASCADE'), nullable=False),
        sa.Column('identity', sa.String(255), nullable=False),
        sa.UniqueConstraint('vault_id', 'identity', name='uq_vault_members_vault_identity'),
    )
    op.create_index('ix_vault_members_id', 'vault_members', ['id'])
    op.create_index('ix_vault_members_vault_id', 'vault_members', ['vault_id'])
    op.create_index('ix_vault_members_identity', 'vault_members', ['identity'])

    # Step 3: withdrawal requests and votes
    op.create_table(
        'withdrawal_requests',
        *_base_columns(),
        sa.Column('vault_id', sa.Uuid(as_uuid=True), sa.ForeignKey('vaults.id', name='fk_withdrawal_requests_vault_id'), nullable=False),
        sa.Column('amount', sa.Numeric(28, 7), nullable=False),
        sa.Column('asset_ref', sa.String(64), nullable=False),
        sa.Column('recipient', sa.String(128), nullable=False),
        sa.Column('requested_by', sa.String(255), nullable=False),
        sa.Column('status', withdrawal_status, nullable=False),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('execution_claim', sa.Uuid(as_uuid=True), nullable=True),
        sa.Column('execution_claimed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('executed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('executed_by', sa.String(255), nullable=True),
        sa.Column('transaction_hash', sa.String(128), nullable=True),
        sa.CheckConstraint('amount > 0', name='ck_withdrawal_requests_amount_positive'),
        sa.CheckConstraint(
            "(status = 'EXECUTED' AND transaction_hash IS NOT NULL) OR (status != 'EXECUTED' AND transaction_hash IS NULL)",
            name='ck_withdrawal_requests_hash_iff_executed',
        ),
        sa.UniqueConstraint('transaction_hash', name='uq_withdrawal_requests_transaction_hash'),
    )
    op.create_index('ix_withdrawal_requests_id', 'withdrawal_requests', ['id'])
    op.create_index('ix_withdrawal_requests_vault_id', 'withdrawal_requests', ['vault_id'])
    op.create_index('ix_withdrawal_requests_requested_by', 'withdrawal_requests', ['requested_by'])
    op.create_index('ix_withdrawal_requests_status', 'withdrawal_requests', ['status'])
    op.create_index('ix_withdrawal_requests_vault_status_created', 'withdrawal_requests', ['vault_id', 'status', 'created_at'])

    op.create_table(
        'withdrawal_votes',
        *_base_columns(),
        sa.Column('request_id', sa.Uuid(as_uuid=True), sa.ForeignKey('withdrawal_requests.id', name='fk_withdrawal_votes_request_id', ondelete='CASCADE'), nullable=False),
        sa.Column('voter', sa.String(255), nullable=False),
        sa.Column('decision', vote_decision, nullable=False),
        sa.UniqueConstraint('request_id', 'voter', name='uq_withdrawal_votes_request_voter'),
    )
    op.create_index('ix_withdrawal_votes_id', 'withdrawal_votes', ['id'])
    op.create_index('ix_withdrawal_votes_request_id', 'withdrawal_votes', ['request_id'])

    # Step 4: append-only journal of ledger transfers
    op.create_table(
        'vault_transactions',
        *_base_columns(),
        sa.Column('vault_id', sa.Uuid(as_uuid=True), sa.ForeignKey('vaults.id', name='fk_vault_transactions_vault_id'), nullable=False),
        sa.Column('type', vault_transaction_type, nullable=False),
        sa.Column('amount', sa.Numeric(28, 7), nullable=False),
        sa.Column('asset_ref', sa.String(64), nullable=False),
        sa.Column('sender', sa.String(255), nullable=False),
        sa.Column('recipient', sa.String(128), nullable=False),
        sa.Column('request_id', sa.Uuid(as_uuid=True), sa.ForeignKey('withdrawal_requests.id', name='fk_vault_transactions_request_id'), nullable=True),
        sa.Column('transaction_hash', sa.String(128), nullable=False),
        sa.CheckConstraint('amount > 0', name='ck_vault_transactions_amount_positive'),
        sa.CheckConstraint(
            "(type = 'WITHDRAWAL' AND request_id IS NOT NULL) OR (type = 'DEPOSIT' AND request_id IS NULL)",
            name='ck_vault_transactions_request_iff_withdrawal',
        ),
        sa.UniqueConstraint('request_id', name='uq_vault_transactions_request_id'),
        sa.UniqueConstraint('transaction_hash', name='uq_vault_transactions_transaction_hash'),
    )
    op.create_index('ix_vault_transactions_id', 'vault_transactions', ['id'])
    op.create_index('ix_vault_transactions_vault_id', 'vault_transactions', ['vault_id'])
    op.create_index('ix_vault_transactions_vault_created', 'vault_transactions', ['vault_id', 'created_at'])

    # Step 5: custodial secrets and their access trail
    op.create_table(
        'vault_secrets',
        *_base_columns(),
        sa.Column('vault_id', sa.Uuid(as_uuid=True), sa.ForeignKey('vaults.id', name='fk_vault_secrets_vault_id', ondelete='CASCADE'), nullable=False),
        sa.Column('encrypted_secret', sa.Text(), nullable=False),
    )
    op.create_index('ix_vault_secrets_id', 'vault_secrets', ['id'])
    op.create_index('ix_vault_secrets_vault_id', 'vault_secrets', ['vault_id'], unique=True)

    op.create_table(
        'secret_access_logs',
        *_base_columns(),
        sa.Column('vault_id', sa.Uuid(as_uuid=True), sa.ForeignKey('vaults.id', name='fk_secret_access_logs_vault_id'), nullable=False),
        sa.Column('actor', sa.String(255), nullable=False),
        sa.Column('purpose', sa.String(100), nullable=False),
        sa.Column('reference_id', sa.Uuid(as_uuid=True), nullable=True),
    )
    op.create_index('ix_secret_access_logs_id', 'secret_access_logs', ['id'])
    op.create_index('ix_secret_access_logs_vault_id', 'secret_access_logs', ['vault_id'])
    op.create_index('ix_secret_access_logs_actor', 'secret_access_logs', ['actor'])


def downgrade() -> None:
    op.drop_table('secret_access_logs')
    op.drop_table('vault_secrets')
    op.drop_table('vault_transactions')
    op.drop_table('withdrawal_votes')
    op.drop_table('withdrawal_requests')
    op.drop_table('vault_members')
    op.drop_table('vaults')
    op.drop_table('users')

    bind = op.get_bind()
    for enum_type in (vault_transaction_type, vote_decision, withdrawal_status, user_status):
        enum_type.drop(bind, checkfirst=True)
