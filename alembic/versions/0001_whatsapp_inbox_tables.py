"""WhatsApp Inbox Tables

Revision ID: 0001_whatsapp_inbox
Revises:
Create Date: 2026-10-16

Creates tables owned by the WhatsApp inbox:
- whatsapp_accounts: A tenant's binding to one bridge deployment
- whatsapp_sessions: Device sessions (one bridge instance each)
- contacts / whatsapp_contact_identities: Phone number to contact mapping
- whatsapp_conversations: One thread per (account, contact)
- whatsapp_messages: All inbound/outbound messages
- whatsapp_templates: Reusable outbound bodies
- whatsapp_audit_logs: Append-only action log
"""

from alembic import op
import sqlalchemy as sa

revision = '0001_whatsapp_inbox'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    ]


def upgrade():
    # =========================================================================
    # WHATSAPP ACCOUNTS
    # =========================================================================

    op.create_table(
        'whatsapp_accounts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('deployment_type', sa.String(20), server_default='self_hosted', nullable=False),
        sa.Column('provider_base_url', sa.String(255), nullable=True),
        sa.Column('provider_api_key', sa.Text(), nullable=True),
        sa.Column('provider_instance_id', sa.String(100), nullable=True),
        sa.Column('business_name', sa.String(255), nullable=True),
        sa.Column('primary_phone', sa.String(20), nullable=True),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_whatsapp_accounts_tenant_id', 'whatsapp_accounts', ['tenant_id'])
    op.create_index('idx_whatsapp_accounts_tenant_status', 'whatsapp_accounts', ['tenant_id', 'status'])

    # =========================================================================
    # WHATSAPP SESSIONS
    # =========================================================================

    op.create_table(
        'whatsapp_sessions',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('account_id', sa.Uuid(), nullable=False),
        sa.Column('employee_id', sa.Uuid(), nullable=True),
        sa.Column('provider_session_id', sa.String(150), nullable=False),
        sa.Column('qr_code_url', sa.Text(), nullable=True),
        sa.Column('status', sa.String(20), server_default='pending_qr', nullable=False),
        sa.Column('device_name', sa.String(100), nullable=True),
        sa.Column('phone_number', sa.String(32), nullable=True),
        sa.Column('daily_sent_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('daily_recv_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('last_sync_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_seen_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['account_id'], ['whatsapp_accounts.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('provider_session_id', name='uq_whatsapp_sessions_provider_session_id'),
    )
    op.create_index('ix_whatsapp_sessions_account_id', 'whatsapp_sessions', ['account_id'])
    op.create_index('idx_whatsapp_sessions_account_status', 'whatsapp_sessions', ['account_id', 'status'])

    # =========================================================================
    # CONTACTS
    # =========================================================================

    op.create_table(
        'contacts',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(255), nullable=False),
        sa.Column('email', sa.String(255), nullable=True),
        sa.Column('phone', sa.String(32), nullable=True),
        sa.Column('type', sa.String(20), server_default='lead', nullable=False),
        sa.Column('status', sa.String(20), server_default='active', nullable=False),
        sa.Column('source', sa.String(50), server_default='whatsapp', nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_contacts_tenant_id', 'contacts', ['tenant_id'])

    op.create_table(
        'whatsapp_contact_identities',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('tenant_id', sa.Uuid(), nullable=False),
        sa.Column('contact_id', sa.Uuid(), nullable=False),
        sa.Column('whatsapp_number', sa.String(32), nullable=False),
        sa.Column('verified', sa.Boolean(), server_default=sa.false(), nullable=False),
        sa.Column('verification_date', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['contact_id'], ['contacts.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('tenant_id', 'whatsapp_number', name='uq_whatsapp_identities_tenant_number'),
        sa.UniqueConstraint('contact_id', name='uq_whatsapp_identities_contact'),
    )

    # =========================================================================
    # WHATSAPP CONVERSATIONS
    # =========================================================================

    op.create_table(
        'whatsapp_conversations',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('account_id', sa.Uuid(), nullable=False),
        sa.Column('contact_id', sa.Uuid(), nullable=False),
        sa.Column('session_id', sa.Uuid(), nullable=True),
        sa.Column('status', sa.String(20), server_default='open', nullable=False),
        sa.Column('last_message_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_direction', sa.String(3), nullable=True),
        sa.Column('unread_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('ticket_id', sa.String(100), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['account_id'], ['whatsapp_accounts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['contact_id'], ['contacts.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['session_id'], ['whatsapp_sessions.id'], ondelete='SET NULL'),
        sa.UniqueConstraint('account_id', 'contact_id', name='uq_whatsapp_conversations_account_contact'),
    )
    op.create_index('idx_whatsapp_conversations_account_status', 'whatsapp_conversations', ['account_id', 'status'])
    op.create_index(
        'idx_whatsapp_conversations_account_last_message',
        'whatsapp_conversations',
        ['account_id', 'last_message_at'],
    )

    # =========================================================================
    # WHATSAPP MESSAGES
    # =========================================================================

    op.create_table(
        'whatsapp_messages',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('conversation_id', sa.Uuid(), nullable=False),
        sa.Column('session_id', sa.Uuid(), nullable=False),
        sa.Column('employee_id', sa.Uuid(), nullable=True),
        sa.Column('direction', sa.String(3), nullable=False),
        sa.Column('message_type', sa.String(20), server_default='text', nullable=False),
        sa.Column('provider_message_id', sa.String(150), nullable=True),
        sa.Column('from_number', sa.String(32), server_default='', nullable=False),
        sa.Column('to_number', sa.String(32), server_default='', nullable=False),
        sa.Column('text', sa.Text(), nullable=True),
        sa.Column('media_url', sa.Text(), nullable=True),
        sa.Column('media_mime_type', sa.String(100), nullable=True),
        sa.Column('media_caption', sa.Text(), nullable=True),
        sa.Column('template_id', sa.Uuid(), nullable=True),
        sa.Column('status', sa.String(20), server_default='sent', nullable=False),
        sa.Column('error_code', sa.String(50), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['conversation_id'], ['whatsapp_conversations.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['session_id'], ['whatsapp_sessions.id'], ondelete='CASCADE'),
        sa.UniqueConstraint('provider_message_id', name='uq_whatsapp_messages_provider_id'),
    )
    op.create_index('ix_whatsapp_messages_conversation_id', 'whatsapp_messages', ['conversation_id'])
    op.create_index('ix_whatsapp_messages_session_id', 'whatsapp_messages', ['session_id'])
    op.create_index(
        'idx_whatsapp_messages_conversation_created',
        'whatsapp_messages',
        ['conversation_id', 'created_at'],
    )
    op.create_index('idx_whatsapp_messages_session_direction', 'whatsapp_messages', ['session_id', 'direction'])

    # =========================================================================
    # WHATSAPP TEMPLATES
    # =========================================================================

    op.create_table(
        'whatsapp_templates',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('account_id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('category', sa.String(30), server_default='custom', nullable=False),
        sa.Column('language_code', sa.String(10), server_default='en', nullable=False),
        sa.Column('body_template', sa.Text(), nullable=False),
        sa.Column('header_type', sa.String(20), nullable=True),
        sa.Column('header_content', sa.Text(), nullable=True),
        sa.Column('footer_content', sa.Text(), nullable=True),
        sa.Column('buttons', sa.JSON(), nullable=True),
        sa.Column('created_by_id', sa.Uuid(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.ForeignKeyConstraint(['account_id'], ['whatsapp_accounts.id'], ondelete='CASCADE'),
    )
    op.create_index('ix_whatsapp_templates_account_id', 'whatsapp_templates', ['account_id'])

    # =========================================================================
    # WHATSAPP AUDIT LOGS
    # =========================================================================

    op.create_table(
        'whatsapp_audit_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('account_id', sa.Uuid(), nullable=False),
        sa.Column('session_id', sa.Uuid(), nullable=True),
        sa.Column('action', sa.String(50), nullable=False),
        sa.Column('status', sa.String(10), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('details', sa.JSON(), nullable=True),
        sa.Column('error_code', sa.String(50), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('user_id', sa.Uuid(), nullable=True),
        sa.Column('ip_address', sa.String(64), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_whatsapp_audit_logs_account_created', 'whatsapp_audit_logs', ['account_id', 'created_at'])
    op.create_index('idx_whatsapp_audit_logs_session', 'whatsapp_audit_logs', ['session_id'])


def downgrade():
    op.drop_table('whatsapp_audit_logs')
    op.drop_table('whatsapp_templates')
    op.drop_table('whatsapp_messages')
    op.drop_table('whatsapp_conversations')
    op.drop_table('whatsapp_contact_identities')
    op.drop_table('contacts')
    op.drop_table('whatsapp_sessions')
    op.drop_table('whatsapp_accounts')
