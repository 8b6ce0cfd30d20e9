"""create chat tables

Revision ID: 0001_create_chat_tables
Revises:
Create Date: 2026-10-19 00:00:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = '0001_create_chat_tables'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


participant_role = sa.Enum('ordinary', 'support', name='participantrole')
message_status = sa.Enum('sent', 'delivered', 'read', name='messagestatus')
attachment_type = sa.Enum('image', 'document', 'drawing', 'other', name='attachmenttype')


def upgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)
    tables = set(insp.get_table_names())

    if 'participants' not in tables:
        op.create_table(
            'participants',
            sa.Column('id', sa.String(length=255), primary_key=True),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('email', sa.String(length=255), nullable=True),
            sa.Column('avatar', sa.Text(), nullable=True),
            sa.Column('role', participant_role, nullable=False, server_default='ordinary'),
            sa.Column('last_active_at', sa.DateTime(), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_participants_email', 'participants', ['email'])

    if 'chat_threads' not in tables:
        op.create_table(
            'chat_threads',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('participant_a_id', sa.String(length=255), sa.ForeignKey('participants.id', ondelete='CASCADE'), nullable=False),
            sa.Column('participant_b_id', sa.String(length=255), sa.ForeignKey('participants.id', ondelete='CASCADE'), nullable=False),
            sa.Column('initiator_id', sa.String(length=255), nullable=False),
            sa.Column('participant_name', sa.String(length=255), nullable=False, server_default='User'),
            sa.Column('participant_avatar', sa.Text(), nullable=True),
            sa.Column('last_message', sa.Text(), nullable=True),
            sa.Column('last_message_at', sa.DateTime(), nullable=True),
            sa.Column('last_message_id', sa.Integer(), nullable=True),
            sa.Column('message_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('unread_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('is_online', sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('updated_at', sa.DateTime(), nullable=False),
            sa.UniqueConstraint('participant_a_id', 'participant_b_id', name='uq_chat_threads_pair'),
        )
        op.create_index('ix_chat_threads_id', 'chat_threads', ['id'])
        op.create_index('ix_chat_threads_participant_a', 'chat_threads', ['participant_a_id'])
        op.create_index('ix_chat_threads_participant_b', 'chat_threads', ['participant_b_id'])
        op.create_index('ix_chat_threads_updated', 'chat_threads', ['updated_at'])

    if 'chat_messages' not in tables:
        op.create_table(
            'chat_messages',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('thread_id', sa.Integer(), sa.ForeignKey('chat_threads.id', ondelete='CASCADE'), nullable=False),
            sa.Column('sender_id', sa.String(length=255), sa.ForeignKey('participants.id', ondelete='CASCADE'), nullable=False),
            sa.Column('sender_name', sa.String(length=255), nullable=False),
            sa.Column('sender_avatar', sa.Text(), nullable=True),
            sa.Column('content', sa.Text(), nullable=False, server_default=''),
            sa.Column('status', message_status, nullable=False, server_default='sent'),
            sa.Column('audio_url', sa.Text(), nullable=True),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_chat_messages_thread_time', 'chat_messages', ['thread_id', 'created_at', 'id'])
        op.create_index('ix_chat_messages_thread_sender', 'chat_messages', ['thread_id', 'sender_id'])

    if 'message_attachments' not in tables:
        op.create_table(
            'message_attachments',
            sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column('message_id', sa.Integer(), sa.ForeignKey('chat_messages.id', ondelete='CASCADE'), nullable=False),
            sa.Column('name', sa.String(length=255), nullable=False),
            sa.Column('type', attachment_type, nullable=False, server_default='other'),
            sa.Column('url', sa.Text(), nullable=False),
            sa.Column('size', sa.BigInteger(), nullable=True),
            sa.Column('uploaded_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_message_attachments_message_id', 'message_attachments', ['message_id'])


def downgrade() -> None:
    bind = op.get_bind()
    insp = sa.inspect(bind)
    tables = set(insp.get_table_names())
    for name in ('message_attachments', 'chat_messages', 'chat_threads', 'participants'):
        if name in tables:
            op.drop_table(name)
    if bind.dialect.name != 'sqlite':
        for enum_type in (attachment_type, message_status, participant_role):
            enum_type.drop(bind, checkfirst=True)
