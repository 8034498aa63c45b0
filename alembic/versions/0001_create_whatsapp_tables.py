from __future__ import annotations

from alembic import op
import sqlalchemy as sa


revision = "0001_create_whatsapp_tables"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "bot_configurations",
        sa.Column("id", sa.String(length=64), nullable=False),
        sa.Column("organization_id", sa.String(length=64), nullable=True),
        sa.Column("bot_name", sa.String(), nullable=False),
        sa.Column("company_name", sa.String(), nullable=True),
        sa.Column("tone_of_voice", sa.String(), nullable=False),
        sa.Column("system_prompt", sa.Text(), nullable=True),
        sa.Column("whatsapp_number", sa.String(), nullable=True),
        sa.Column("typebot_id", sa.String(), nullable=True),
        sa.Column("knowledge_base_enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_bot_configurations_organization_id", "bot_configurations", ["organization_id"])
    op.create_index("ix_bot_configurations_whatsapp_number", "bot_configurations", ["whatsapp_number"])

    op.create_table(
        "whatsapp_instances",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("bot_configuration_id", sa.String(length=64), nullable=False),
        sa.Column("instance_name", sa.String(), nullable=False),
        sa.Column("status", sa.String(), nullable=False, server_default="disconnected"),
        sa.Column("qr_code", sa.Text(), nullable=True),
        sa.Column("qr_code_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("phone_number", sa.String(), nullable=True),
        sa.Column("connected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_seen", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["bot_configuration_id"], ["bot_configurations.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_whatsapp_instances_instance_name", "whatsapp_instances", ["instance_name"], unique=True)
    op.create_index("ix_whatsapp_instances_bot_configuration_id", "whatsapp_instances", ["bot_configuration_id"])

    op.create_table(
        "whatsapp_conversations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("whatsapp_instance_id", sa.Integer(), nullable=False),
        sa.Column("bot_configuration_id", sa.String(length=64), nullable=True),
        sa.Column("customer_phone", sa.String(), nullable=False),
        sa.Column("customer_name", sa.String(), nullable=True),
        sa.Column("last_message_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="active"),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(["whatsapp_instance_id"], ["whatsapp_instances.id"]),
        sa.ForeignKeyConstraint(["bot_configuration_id"], ["bot_configurations.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "whatsapp_instance_id",
            "customer_phone",
            name="uq_whatsapp_conversations_instance_phone",
        ),
    )
    op.create_index(
        "ix_whatsapp_conversations_whatsapp_instance_id",
        "whatsapp_conversations",
        ["whatsapp_instance_id"],
    )
    op.create_index(
        "ix_whatsapp_conversations_bot_configuration_id",
        "whatsapp_conversations",
        ["bot_configuration_id"],
    )

    op.create_table(
        "whatsapp_messages",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("conversation_id", sa.Integer(), nullable=False),
        sa.Column("whatsapp_instance_id", sa.Integer(), nullable=False),
        sa.Column("message_id", sa.String(), nullable=False),
        sa.Column("direction", sa.String(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("media_type", sa.String(), nullable=True),
        sa.Column("status", sa.String(), nullable=False, server_default="sent"),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["conversation_id"], ["whatsapp_conversations.id"]),
        sa.ForeignKeyConstraint(["whatsapp_instance_id"], ["whatsapp_instances.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "whatsapp_instance_id",
            "message_id",
            name="uq_whatsapp_messages_instance_message",
        ),
    )
    op.create_index("ix_whatsapp_messages_conversation_id", "whatsapp_messages", ["conversation_id"])
    op.create_index(
        "ix_whatsapp_messages_conversation_sent",
        "whatsapp_messages",
        ["conversation_id", "sent_at"],
    )


def downgrade() -> None:
    op.drop_index("ix_whatsapp_messages_conversation_sent", table_name="whatsapp_messages")
    op.drop_index("ix_whatsapp_messages_conversation_id", table_name="whatsapp_messages")
    op.drop_table("whatsapp_messages")
    op.drop_index("ix_whatsapp_conversations_bot_configuration_id", table_name="whatsapp_conversations")
    op.drop_index("ix_whatsapp_conversations_whatsapp_instance_id", table_name="whatsapp_conversations")
    op.drop_table("whatsapp_conversations")
    op.drop_index("ix_whatsapp_instances_bot_configuration_id", table_name="whatsapp_instances")
    op.drop_index("ix_whatsapp_instances_instance_name", table_name="whatsapp_instances")
    op.drop_table("whatsapp_instances")
    op.drop_index("ix_bot_configurations_whatsapp_number", table_name="bot_configurations")
    op.drop_index("ix_bot_configurations_organization_id", table_name="bot_configurations")
    op.drop_table("bot_configurations")
