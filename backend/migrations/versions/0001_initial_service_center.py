"""initial service center tables

Revision ID: 0001_initial_service_center
Revises: 
Create Date: 2026-10-19
"""
from __future__ import annotations
from alembic import op
import sqlalchemy as sa

revision = '0001_initial_service_center'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    ]


def _child(name, *columns):
    op.create_table(name,
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('service_request_id', sa.Integer(), sa.ForeignKey('service_requests.id', ondelete='CASCADE'), nullable=False),
        *columns,
    )
    op.create_index(f'ix_{name}_service_request_id', name, ['service_request_id'])


def upgrade():
    op.create_table('users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('email', sa.String(length=128), nullable=False, unique=True),
        sa.Column('password_hash', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=32), nullable=False, server_default='user'),
        sa.Column('approved', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('branch_id', sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_users_email', 'users', ['email'])
    op.create_index('ix_users_role', 'users', ['role'])
    op.create_index('ix_users_branch_id', 'users', ['branch_id'])

    op.create_table('branches',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('name_key', sa.String(length=120), nullable=False, unique=True),
        sa.Column('manager_user_id', sa.Integer(), nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_branches_name_key', 'branches', ['name_key'])

    op.create_table('service_requests',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('track_number', sa.String(length=32), nullable=False, unique=True),
        sa.Column('branch_id', sa.Integer(), nullable=True),
        sa.Column('nama', sa.String(length=120), nullable=False),
        sa.Column('alamat', sa.Text(), nullable=False),
        sa.Column('no_hp', sa.String(length=32), nullable=False),
        sa.Column('email', sa.String(length=128), nullable=False),
        sa.Column('merk', sa.String(length=80), nullable=False),
        sa.Column('tipe', sa.String(length=80), nullable=False),
        sa.Column('serial_number', sa.String(length=80), nullable=False),
        sa.Column('keluhan', sa.Text(), nullable=False),
        sa.Column('spesifikasi_teknis', sa.Text(), nullable=False),
        sa.Column('jenis_perangkat', sa.JSON()),
        sa.Column('keterangan_perangkat', sa.Text()),
        sa.Column('accessories', sa.JSON()),
        sa.Column('keterangan_accessories', sa.Text()),
        sa.Column('garansi', sa.Boolean(), nullable=False, server_default=sa.text('0')),
        sa.Column('keterangan_garansi', sa.Text()),
        sa.Column('kondisi', sa.JSON()),
        sa.Column('keterangan_kondisi', sa.Text()),
        sa.Column('prioritas_service', sa.String(length=64), nullable=False),
        sa.Column('penerima_service', sa.String(length=128), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='pending'),
        sa.Column('assigned_technicians', sa.JSON()),
        sa.Column('dp', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_biaya', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by', sa.Integer(), nullable=True),
        *_timestamps(),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
    )
    for col in ('track_number', 'branch_id', 'nama', 'no_hp', 'status', 'created_at'):
        op.create_index(f'ix_service_requests_{col}', 'service_requests', [col])

    _child('status_log_entries',
        sa.Column('status', sa.String(length=32), nullable=False),
        sa.Column('note', sa.Text()),
        sa.Column('updated_by', sa.String(length=128), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )
    _child('estimate_items',
        sa.Column('position', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('item', sa.String(length=255), nullable=False, server_default=''),
        sa.Column('harga', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('qty', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('total', sa.Integer(), nullable=False, server_default='0'),
    )
    _child('dp_payments',
        sa.Column('amount', sa.Integer(), nullable=False),
        sa.Column('note', sa.Text()),
        sa.Column('proof', sa.JSON()),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('created_by', sa.String(length=128), nullable=False),
        sa.Column('approved_by', sa.String(length=128)),
        sa.Column('decided_at', sa.DateTime(timezone=True)),
        sa.Column('idempotency_key', sa.String(length=64)),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.UniqueConstraint('service_request_id', 'idempotency_key', name='uq_dp_payment_idempotency'),
    )
    op.create_index('ix_dp_payments_status', 'dp_payments', ['status'])
    _child('work_log_entries',
        sa.Column('description', sa.Text()),
        sa.Column('detailed_note', sa.Text()),
        sa.Column('media', sa.JSON()),
        sa.Column('author_email', sa.String(length=128), nullable=False),
        sa.Column('author_name', sa.String(length=128)),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )
    _child('customer_log_entries',
        sa.Column('comment', sa.Text()),
        sa.Column('media', sa.JSON()),
        sa.Column('author', sa.String(length=128), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )
    _child('media_assets',
        sa.Column('field', sa.String(length=32), nullable=False),
        sa.Column('url', sa.String(length=512), nullable=False),
        sa.Column('public_id', sa.String(length=255), nullable=False),
        sa.Column('resource_type', sa.String(length=16), nullable=False, server_default='image'),
        sa.Column('created_by', sa.String(length=128)),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_media_assets_field', 'media_assets', ['field'])
    _child('public_views',
        sa.Column('token', sa.String(length=64), nullable=False, unique=True),
        sa.Column('created_at', sa.DateTime(timezone=True)),
        sa.Column('expires_at', sa.DateTime(timezone=True)),
        sa.Column('revoked_at', sa.DateTime(timezone=True)),
    )
    op.create_index('ix_public_views_token', 'public_views', ['token'])

    op.create_table('audit_logs',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('actor_user_id', sa.Integer(), nullable=False),
        sa.Column('actor_email', sa.String(length=128)),
        sa.Column('actor_role', sa.String(length=32)),
        sa.Column('action', sa.String(length=64), nullable=False),
        sa.Column('entity', sa.String(length=64)),
        sa.Column('entity_id', sa.String(length=64)),
        sa.Column('meta', sa.JSON()),
        sa.Column('created_at', sa.DateTime(timezone=True)),
    )
    for col in ('actor_user_id', 'action', 'entity_id', 'created_at'):
        op.create_index(f'ix_audit_logs_{col}', 'audit_logs', [col])

    op.create_table('settings',
        sa.Column('key', sa.String(length=64), primary_key=True),
        sa.Column('value', sa.JSON()),
        sa.Column('updated_at', sa.DateTime(timezone=True)),
    )
    op.create_table('track_counters',
        sa.Column('name', sa.String(length=32), primary_key=True),
        sa.Column('value', sa.Integer(), nullable=False, server_default='0'),
    )


def downgrade():
    for table in ('track_counters', 'settings', 'audit_logs', 'public_views', 'media_assets',
                  'customer_log_entries', 'work_log_entries', 'dp_payments', 'estimate_items',
                  'status_log_entries', 'service_requests', 'branches', 'users'):
        op.drop_table(table)
