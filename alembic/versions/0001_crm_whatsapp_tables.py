"""CRM WhatsApp Pipeline Tables

Revision ID: 0001_crm_whatsapp
Revises:
Create Date: 2026-10-17

Creates tables owned by the webhook/message pipeline:
- whatsapp_numbers: Connected business phone lines
- contacts: Counterparts per (workspace, number, phone)
- conversations: One thread per (workspace, number, contact phone)
- messages: Every inbound/outbound wire message
- webhook_logs: Raw webhook bodies for replay/debugging
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID, JSONB

revision = '0001_crm_whatsapp'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # =========================================================================
    # WHATSAPP NUMBERS
    # =========================================================================

    op.create_table(
        'whatsapp_numbers',
        sa.Column('id', UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('workspace_id', UUID(as_uuid=True), nullable=False),
        sa.Column('phone_number_id', sa.String(100), nullable=False),
        sa.Column('waba_id', sa.String(100), nullable=False),
        sa.Column('display_number', sa.String(32), nullable=False),
        sa.Column('access_token_encrypted', sa.Text(), nullable=False),
        sa.Column('token_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(20), server_default='active', nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('phone_number_id', name='uq_whatsapp_numbers_phone_number_id')
    )
    op.create_index('ix_whatsapp_numbers_workspace_id', 'whatsapp_numbers', ['workspace_id'])
    op.create_index('idx_whatsapp_numbers_workspace_status', 'whatsapp_numbers', ['workspace_id', 'status'])

    # =========================================================================
    # CONTACTS
    # =========================================================================

    # No unique constraint on (workspace, number, phone): duplicate creation is tolerated
    op.create_table(
        'contacts',
        sa.Column('id', UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('workspace_id', UUID(as_uuid=True), nullable=False),
        sa.Column('whatsapp_number_id', UUID(as_uuid=True), nullable=False),
        sa.Column('phone', sa.String(32), nullable=False),
        sa.Column('name', sa.String(255), nullable=True),
        sa.Column('tags', JSONB(), server_default='[]', nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('category', sa.String(100), nullable=True),
        sa.Column('last_message_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_contacts_workspace_id', 'contacts', ['workspace_id'])
    op.create_index('idx_contacts_workspace_number_phone', 'contacts', ['workspace_id', 'whatsapp_number_id', 'phone'])

    # =========================================================================
    # CONVERSATIONS
    # =========================================================================

    op.create_table(
        'conversations',
        sa.Column('id', UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('workspace_id', UUID(as_uuid=True), nullable=False),
        sa.Column('whatsapp_number_id', UUID(as_uuid=True), nullable=False),
        sa.Column('contact_phone', sa.String(32), nullable=False),
        sa.Column('contact_name', sa.String(255), nullable=True),
        sa.Column('status', sa.String(20), server_default='open', nullable=False),
        sa.Column('unread_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('last_message_text', sa.Text(), nullable=True),
        sa.Column('last_message_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_conversations_workspace_id', 'conversations', ['workspace_id'])
    op.create_index(
        'idx_conversations_workspace_number_phone',
        'conversations',
        ['workspace_id', 'whatsapp_number_id', 'contact_phone'],
    )
    op.create_index('idx_conversations_workspace_last_message', 'conversations', ['workspace_id', 'last_message_at'])

    # =========================================================================
    # MESSAGES
    # =========================================================================

    op.create_table(
        'messages',
        sa.Column('id', UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('workspace_id', UUID(as_uuid=True), nullable=False),
        sa.Column('conversation_id', UUID(as_uuid=True), nullable=False),
        sa.Column('whatsapp_number_id', UUID(as_uuid=True), nullable=False),
        sa.Column('wa_message_id', sa.String(128), nullable=True),
        sa.Column('direction', sa.String(10), nullable=False),
        sa.Column('message_type', sa.String(20), server_default='text', nullable=False),
        sa.Column('content', sa.Text(), nullable=True),
        sa.Column('media_url', sa.Text(), nullable=True),
        sa.Column('media_id', sa.String(128), nullable=True),
        sa.Column('media_mime_type', sa.String(100), nullable=True),
        sa.Column('template_name', sa.String(255), nullable=True),
        sa.Column('template_params', JSONB(), nullable=True),
        sa.Column('status', sa.String(20), server_default='pending', nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivered_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('read_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('error_code', sa.String(50), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_messages_workspace_id', 'messages', ['workspace_id'])
    op.create_index('ix_messages_conversation_id', 'messages', ['conversation_id'])
    op.create_index('ix_messages_wa_message_id', 'messages', ['wa_message_id'])
    op.create_index('idx_messages_workspace_conversation', 'messages', ['workspace_id', 'conversation_id'])
    op.create_index('idx_messages_workspace_created', 'messages', ['workspace_id', 'created_at'])

    # =========================================================================
    # WEBHOOK LOGS
    # =========================================================================

    op.create_table(
        'webhook_logs',
        sa.Column('id', UUID(as_uuid=True), server_default=sa.text('gen_random_uuid()'), nullable=False),
        sa.Column('event_type', sa.String(50), nullable=False),
        sa.Column('payload', JSONB(), nullable=False),
        sa.Column('processed', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('idx_webhook_logs_created', 'webhook_logs', ['created_at'])


def downgrade():
    op.drop_table('webhook_logs')
    op.drop_table('messages')
    op.drop_table('conversations')
    op.drop_table('contacts')
    op.drop_table('whatsapp_numbers')
