"""Initial compensation schema.

Revision ID: 20261019_000001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '20261019_000001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

MONEY = sa.DECIMAL(18, 8)
PERCENT = sa.DECIMAL(10, 4)
TIMESTAMP = sa.DateTime(timezone=True)


def upgrade() -> None:
    """Create members, ledger, packages, binary, ranks, boosters, runs and requests."""

    # Members and the two trees
    op.create_table(
        'members',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('external_ref', sa.String(64), nullable=True),
        sa.Column('sponsor_id', sa.Integer(), nullable=True),
        sa.Column('binary_parent_id', sa.Integer(), nullable=True),
        sa.Column('binary_side', sa.String(5), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('kyc_status', sa.String(20), nullable=False),
        sa.Column('rank', sa.String(50), nullable=True),
        sa.Column('rank_locked', sa.Boolean(), nullable=False),
        sa.Column('joined_at', TIMESTAMP, nullable=False),
        sa.Column('updated_at', TIMESTAMP, nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_members'),
        sa.ForeignKeyConstraint(
            ['sponsor_id'], ['members.id'], ondelete='RESTRICT',
            name='fk_members_sponsor_id_members',
        ),
        sa.ForeignKeyConstraint(
            ['binary_parent_id'], ['members.id'], ondelete='RESTRICT',
            name='fk_members_binary_parent_id_members',
        ),
        sa.UniqueConstraint('external_ref', name='uq_members_external_ref'),
        sa.UniqueConstraint('binary_parent_id', 'binary_side', name='uq_members_binary_slot'),
        sa.CheckConstraint(
            "binary_side IN ('left', 'right') OR binary_side IS NULL",
            name='ck_members_binary_side_valid',
        ),
        sa.CheckConstraint(
            '(binary_parent_id IS NULL) = (binary_side IS NULL)',
            name='ck_members_binary_placement_complete',
        ),
        sa.CheckConstraint(
            'sponsor_id IS NULL OR sponsor_id != id', name='ck_members_no_self_sponsor'
        ),
    )
    op.create_index('ix_members_sponsor_id', 'members', ['sponsor_id'])
    op.create_index('ix_members_binary_parent_id', 'members', ['binary_parent_id'])
    op.create_index('idx_members_status', 'members', ['status'])

    op.create_table(
        'member_balances',
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('balance', MONEY, nullable=False),
        sa.Column('entry_count', sa.Integer(), nullable=False),
        sa.Column('updated_at', TIMESTAMP, nullable=False),
        sa.PrimaryKeyConstraint('member_id', name='pk_member_balances'),
        sa.ForeignKeyConstraint(
            ['member_id'], ['members.id'], ondelete='CASCADE',
            name='fk_member_balances_member_id_members',
        ),
    )

    # Configuration and runs
    op.create_table(
        'commission_settings',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=False),
        sa.Column('saved_by', sa.String(64), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('created_at', TIMESTAMP, nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_commission_settings'),
        sa.UniqueConstraint('version', name='uq_commission_settings_version'),
    )

    op.create_table(
        'commission_runs',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('commission_type', sa.String(20), nullable=False),
        sa.Column('period_from', TIMESTAMP, nullable=False),
        sa.Column('period_to', TIMESTAMP, nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('affected_members', sa.Integer(), nullable=False),
        sa.Column('entries_posted', sa.Integer(), nullable=False),
        sa.Column('total_amount', MONEY, nullable=False),
        sa.Column('succeeded_count', sa.Integer(), nullable=False),
        sa.Column('failed_count', sa.Integer(), nullable=False),
        sa.Column('failures', sa.JSON(), nullable=True),
        sa.Column('error', sa.Text(), nullable=True),
        sa.Column('attempts', sa.Integer(), nullable=False),
        sa.Column('settings_version', sa.Integer(), nullable=True),
        sa.Column('triggered_by', sa.String(64), nullable=True),
        sa.Column('created_at', TIMESTAMP, nullable=False),
        sa.Column('started_at', TIMESTAMP, nullable=True),
        sa.Column('completed_at', TIMESTAMP, nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_commission_runs'),
        sa.CheckConstraint('period_to >= period_from', name='ck_commission_runs_period_ordered'),
    )
    op.create_index('ix_commission_runs_status', 'commission_runs', ['status'])
    op.create_index(
        'idx_commission_runs_type_status', 'commission_runs', ['commission_type', 'status']
    )

    # Ledger
    op.create_table(
        'ledger_entries',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('amount', MONEY, nullable=False),
        sa.Column('kind', sa.String(20), nullable=False),
        sa.Column('idempotency_key', sa.String(191), nullable=False),
        sa.Column('run_id', sa.Integer(), nullable=True),
        sa.Column('reference_type', sa.String(50), nullable=True),
        sa.Column('reference_id', sa.String(128), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('reversal_of_id', sa.Integer(), nullable=True),
        sa.Column('balance_after', MONEY, nullable=False),
        sa.Column('created_at', TIMESTAMP, nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_ledger_entries'),
        sa.ForeignKeyConstraint(
            ['member_id'], ['members.id'], ondelete='RESTRICT',
            name='fk_ledger_entries_member_id_members',
        ),
        sa.ForeignKeyConstraint(
            ['run_id'], ['commission_runs.id'], ondelete='SET NULL',
            name='fk_ledger_entries_run_id_commission_runs',
        ),
        sa.ForeignKeyConstraint(
            ['reversal_of_id'], ['ledger_entries.id'], ondelete='RESTRICT',
            name='fk_ledger_entries_reversal_of_id_ledger_entries',
        ),
        sa.UniqueConstraint('idempotency_key', name='uq_ledger_entries_idempotency_key'),
        sa.UniqueConstraint('reversal_of_id', name='uq_ledger_entries_reversal_of_id'),
        sa.CheckConstraint('amount != 0', name='ck_ledger_entries_amount_non_zero'),
    )
    op.create_index('ix_ledger_entries_member_id', 'ledger_entries', ['member_id'])
    op.create_index('ix_ledger_entries_created_at', 'ledger_entries', ['created_at'])
    op.create_index('idx_ledger_member_kind', 'ledger_entries', ['member_id', 'kind'])
    op.create_index('idx_ledger_run', 'ledger_entries', ['run_id'])

    # Investment packages
    op.create_table(
        'packages',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('principal', MONEY, nullable=False),
        sa.Column('rate_min', PERCENT, nullable=False),
        sa.Column('rate_max', PERCENT, nullable=False),
        sa.Column('booster_rate', PERCENT, nullable=False),
        sa.Column('schedule', sa.String(10), nullable=False),
        sa.Column('roi_cap_percent', PERCENT, nullable=False),
        sa.Column('roi_cap_amount', MONEY, nullable=False),
        sa.Column('roi_paid_amount', MONEY, nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('start_at', TIMESTAMP, nullable=False),
        sa.Column('maturity_at', TIMESTAMP, nullable=True),
        sa.Column('last_accrual_at', TIMESTAMP, nullable=True),
        sa.Column('matured_at', TIMESTAMP, nullable=True),
        sa.Column('cancelled_at', TIMESTAMP, nullable=True),
        sa.Column('created_at', TIMESTAMP, nullable=False),
        sa.Column('updated_at', TIMESTAMP, nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_packages'),
        sa.ForeignKeyConstraint(
            ['member_id'], ['members.id'], ondelete='RESTRICT',
            name='fk_packages_member_id_members',
        ),
        sa.CheckConstraint('principal > 0', name='ck_packages_principal_positive'),
        sa.CheckConstraint(
            'rate_min >= 0 AND rate_max >= rate_min', name='ck_packages_rate_band_valid'
        ),
        sa.CheckConstraint('roi_cap_amount >= 0', name='ck_packages_roi_cap_non_negative'),
        sa.CheckConstraint('roi_paid_amount >= 0', name='ck_packages_roi_paid_non_negative'),
        sa.CheckConstraint(
            'roi_paid_amount <= roi_cap_amount', name='ck_packages_roi_paid_not_exceeds_cap'
        ),
    )
    op.create_index('ix_packages_member_id', 'packages', ['member_id'])
    op.create_index('ix_packages_status', 'packages', ['status'])
    op.create_index('idx_packages_member_status', 'packages', ['member_id', 'status'])
    op.create_index('idx_packages_start_at', 'packages', ['start_at'])

    # Binary legs
    op.create_table(
        'binary_leg_states',
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('left_volume', MONEY, nullable=False),
        sa.Column('right_volume', MONEY, nullable=False),
        sa.Column('total_left', MONEY, nullable=False),
        sa.Column('total_right', MONEY, nullable=False),
        sa.Column('matched_to_date', MONEY, nullable=False),
        sa.Column('last_flush_at', TIMESTAMP, nullable=True),
        sa.Column('last_matched_at', TIMESTAMP, nullable=True),
        sa.Column('day_window', sa.Date(), nullable=True),
        sa.Column('day_paid', MONEY, nullable=False),
        sa.Column('week_window', sa.Date(), nullable=True),
        sa.Column('week_paid', MONEY, nullable=False),
        sa.Column('month_window', sa.Date(), nullable=True),
        sa.Column('month_paid', MONEY, nullable=False),
        sa.Column('updated_at', TIMESTAMP, nullable=False),
        sa.PrimaryKeyConstraint('member_id', name='pk_binary_leg_states'),
        sa.ForeignKeyConstraint(
            ['member_id'], ['members.id'], ondelete='CASCADE',
            name='fk_binary_leg_states_member_id_members',
        ),
        sa.CheckConstraint('left_volume >= 0', name='ck_binary_leg_states_left_volume_non_negative'),
        sa.CheckConstraint(
            'right_volume >= 0', name='ck_binary_leg_states_right_volume_non_negative'
        ),
    )

    op.create_table(
        'binary_matches',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('cycle_id', sa.String(64), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('run_id', sa.Integer(), nullable=True),
        sa.Column('left_before', MONEY, nullable=False),
        sa.Column('right_before', MONEY, nullable=False),
        sa.Column('matched_left', MONEY, nullable=False),
        sa.Column('matched_right', MONEY, nullable=False),
        sa.Column('pair_volume', MONEY, nullable=False),
        sa.Column('raw_bonus', MONEY, nullable=False),
        sa.Column('bonus', MONEY, nullable=False),
        sa.Column('capped_amount', MONEY, nullable=False),
        sa.Column('flushed', sa.Boolean(), nullable=False),
        sa.Column('left_after', MONEY, nullable=False),
        sa.Column('right_after', MONEY, nullable=False),
        sa.Column('cycle_at', TIMESTAMP, nullable=False),
        sa.Column('created_at', TIMESTAMP, nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_binary_matches'),
        sa.ForeignKeyConstraint(
            ['member_id'], ['members.id'], ondelete='CASCADE',
            name='fk_binary_matches_member_id_members',
        ),
        sa.ForeignKeyConstraint(
            ['run_id'], ['commission_runs.id'], ondelete='SET NULL',
            name='fk_binary_matches_run_id_commission_runs',
        ),
        sa.UniqueConstraint('cycle_id', 'member_id', name='uq_binary_matches_cycle_member'),
    )
    op.create_index('ix_binary_matches_cycle_id', 'binary_matches', ['cycle_id'])
    op.create_index('ix_binary_matches_member_id', 'binary_matches', ['member_id'])

    op.create_table(
        'binary_volume_events',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('event_id', sa.String(128), nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('volume', MONEY, nullable=False),
        sa.Column('ancestors_credited', sa.Integer(), nullable=False),
        sa.Column('created_at', TIMESTAMP, nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_binary_volume_events'),
        sa.ForeignKeyConstraint(
            ['member_id'], ['members.id'], ondelete='CASCADE',
            name='fk_binary_volume_events_member_id_members',
        ),
        sa.UniqueConstraint('event_id', name='uq_binary_volume_events_event_id'),
    )
    op.create_index('ix_binary_volume_events_member_id', 'binary_volume_events', ['member_id'])

    # Boosters
    op.create_table(
        'boosters',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('package_id', sa.Integer(), nullable=True),
        sa.Column('investment_amount', MONEY, nullable=False),
        sa.Column('start_at', TIMESTAMP, nullable=False),
        sa.Column('end_at', TIMESTAMP, nullable=False),
        sa.Column('target_directs', sa.Integer(), nullable=False),
        sa.Column('qualified_directs', sa.Integer(), nullable=False),
        sa.Column('reward_amount', MONEY, nullable=False),
        sa.Column('bonus_roi_percent', PERCENT, nullable=False),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('achieved_at', TIMESTAMP, nullable=True),
        sa.Column('ledger_entry_id', sa.Integer(), nullable=True),
        sa.Column('created_at', TIMESTAMP, nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_boosters'),
        sa.ForeignKeyConstraint(
            ['member_id'], ['members.id'], ondelete='CASCADE',
            name='fk_boosters_member_id_members',
        ),
        sa.ForeignKeyConstraint(
            ['package_id'], ['packages.id'], ondelete='SET NULL',
            name='fk_boosters_package_id_packages',
        ),
        sa.ForeignKeyConstraint(
            ['ledger_entry_id'], ['ledger_entries.id'], ondelete='SET NULL',
            name='fk_boosters_ledger_entry_id_ledger_entries',
        ),
        sa.UniqueConstraint('member_id', name='uq_boosters_member_id'),
    )
    op.create_index('idx_boosters_status_end', 'boosters', ['status', 'end_at'])

    # Ranks
    op.create_table(
        'rank_achievements',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('rank_code', sa.String(50), nullable=False),
        sa.Column('rank_order', sa.Integer(), nullable=False),
        sa.Column('reward_amount', MONEY, nullable=False),
        sa.Column('reward_status', sa.String(20), nullable=False),
        sa.Column('run_id', sa.Integer(), nullable=True),
        sa.Column('ledger_entry_id', sa.Integer(), nullable=True),
        sa.Column('achieved_at', TIMESTAMP, nullable=False),
        sa.Column('paid_at', TIMESTAMP, nullable=True),
        sa.Column('cancelled_at', TIMESTAMP, nullable=True),
        sa.Column('cancel_reason', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id', name='pk_rank_achievements'),
        sa.ForeignKeyConstraint(
            ['member_id'], ['members.id'], ondelete='CASCADE',
            name='fk_rank_achievements_member_id_members',
        ),
        sa.ForeignKeyConstraint(
            ['run_id'], ['commission_runs.id'], ondelete='SET NULL',
            name='fk_rank_achievements_run_id_commission_runs',
        ),
        sa.ForeignKeyConstraint(
            ['ledger_entry_id'], ['ledger_entries.id'], ondelete='SET NULL',
            name='fk_rank_achievements_ledger_entry_id_ledger_entries',
        ),
        sa.UniqueConstraint('member_id', 'rank_code', name='uq_rank_achievements_member_rank'),
    )
    op.create_index('ix_rank_achievements_member_id', 'rank_achievements', ['member_id'])
    op.create_index('idx_rank_achievements_status', 'rank_achievements', ['reward_status'])

    op.create_table(
        'rank_adjustments',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('member_id', sa.Integer(), nullable=False),
        sa.Column('previous_rank', sa.String(50), nullable=True),
        sa.Column('new_rank', sa.String(50), nullable=True),
        sa.Column('reason', sa.Text(), nullable=False),
        sa.Column('admin_id', sa.String(64), nullable=True),
        sa.Column('created_at', TIMESTAMP, nullable=False),
        sa.PrimaryKeyConstraint('id', name='pk_rank_adjustments'),
        sa.ForeignKeyConstraint(
            ['member_id'], ['members.id'], ondelete='CASCADE',
            name='fk_rank_adjustments_member_id_members',
        ),
    )
    op.create_index('ix_rank_adjustments_member_id', 'rank_adjustments', ['member_id'])

    # Deposit and withdrawal requests share one shape
    for table in ('deposit_requests', 'withdrawal_requests'):
        op.create_table(
            table,
            sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
            sa.Column('member_id', sa.Integer(), nullable=False),
            sa.Column('amount', MONEY, nullable=False),
            sa.Column('status', sa.String(20), nullable=False),
            sa.Column('kyc_status_snapshot', sa.String(20), nullable=True),
            sa.Column('balance_snapshot', MONEY, nullable=True),
            sa.Column('reference', sa.String(255), nullable=True),
            sa.Column('rejection_reason', sa.Text(), nullable=True),
            sa.Column('hold_reason', sa.Text(), nullable=True),
            sa.Column('reviewed_by', sa.String(64), nullable=True),
            sa.Column('reviewed_at', TIMESTAMP, nullable=True),
            sa.Column('ledger_entry_id', sa.Integer(), nullable=True),
            sa.Column('created_at', TIMESTAMP, nullable=False),
            sa.Column('updated_at', TIMESTAMP, nullable=False),
            sa.PrimaryKeyConstraint('id', name=f'pk_{table}'),
            sa.ForeignKeyConstraint(
                ['member_id'], ['members.id'], ondelete='RESTRICT',
                name=f'fk_{table}_member_id_members',
            ),
            sa.ForeignKeyConstraint(
                ['ledger_entry_id'], ['ledger_entries.id'], ondelete='SET NULL',
                name=f'fk_{table}_ledger_entry_id_ledger_entries',
            ),
            sa.CheckConstraint('amount > 0', name=f'ck_{table}_amount_positive'),
        )
        op.create_index(f'ix_{table}_member_id', table, ['member_id'])
        op.create_index(f'idx_{table}_status', table, ['status'])


def downgrade() -> None:
    """Drop the compensation schema."""
    for table in (
        'withdrawal_requests',
        'deposit_requests',
        'rank_adjustments',
        'rank_achievements',
        'boosters',
        'binary_volume_events',
        'binary_matches',
        'binary_leg_states',
        'packages',
        'ledger_entries',
        'commission_runs',
        'commission_settings',
        'member_balances',
        'members',
    ):
        op.drop_table(table)
