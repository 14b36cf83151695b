"""Baseline Next Market schema

Revision ID: 001
Revises:
Create Date: 2026-10-01 12:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(soft_delete: bool = True):
    columns = [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]
    if soft_delete:
        columns.append(sa.Column("deleted_at", sa.DateTime(), nullable=True))
    return columns


def upgrade() -> None:
    """Create organizations, users, plugins, versions and supporting tables"""

    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("openfga_id", sa.String(length=255), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
        sa.UniqueConstraint("openfga_id"),
    )
    op.create_index(op.f("ix_organizations_id"), "organizations", ["id"])
    op.create_index(op.f("ix_organizations_deleted_at"), "organizations", ["deleted_at"])

    op.create_table(
        "users",
        sa.Column("id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=True),
        sa.Column("avatar", sa.String(length=1024), nullable=True),
        sa.Column("openfga_id", sa.String(length=255), nullable=True),
        sa.Column("verified", sa.Boolean(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email"),
        sa.UniqueConstraint("openfga_id"),
    )
    op.create_index(op.f("ix_users_id"), "users", ["id"])
    op.create_index(op.f("ix_users_deleted_at"), "users", ["deleted_at"])

    op.create_table(
        "organization_members",
        sa.Column("organization_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("organization_id", "user_id"),
    )

    op.create_table(
        "plugins",
        sa.Column("id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.Column("npm_package_name", sa.String(length=214), nullable=False),
        sa.Column("display_name", sa.String(length=255), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("type", sa.String(length=20), nullable=False),
        sa.Column("visibility", sa.String(length=20), nullable=False),
        sa.Column("source", sa.String(length=20), nullable=False),
        sa.Column("latest_version", sa.String(length=128), nullable=True),
        sa.Column("icon_url", sa.String(length=1024), nullable=True),
        sa.Column("icon_object_key", sa.String(length=1024), nullable=True),
        sa.Column("backend_install_guide", sa.Text(), nullable=True),
        sa.Column("upstream_url", sa.String(length=1024), nullable=True),
        sa.Column("max_versions_retention", sa.Integer(), nullable=False, server_default="10"),
        sa.Column("publisher_id", sa.Integer(), nullable=True),
        sa.Column("keywords", sa.Text(), nullable=True),
        sa.Column("download_count", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("verified_publisher", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.ForeignKeyConstraint(["publisher_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_plugins_id"), "plugins", ["id"])
    op.create_index(op.f("ix_plugins_deleted_at"), "plugins", ["deleted_at"])
    op.create_index(op.f("ix_plugins_npm_package_name"), "plugins", ["npm_package_name"], unique=True)
    op.create_index(op.f("ix_plugins_publisher_id"), "plugins", ["publisher_id"])

    op.create_table(
        "plugin_versions",
        sa.Column("id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.Column("plugin_id", sa.Integer(), nullable=False),
        sa.Column("version", sa.String(length=128), nullable=False),
        sa.Column("readme_content", sa.Text(), nullable=True),
        sa.Column("config_schema_json", sa.Text(), nullable=True),
        sa.Column("config_values_json", sa.Text(), nullable=True),
        sa.Column("object_key", sa.String(length=1024), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("channel", sa.String(length=20), nullable=False, server_default="stable"),
        sa.Column("download_count", sa.BigInteger(), nullable=False, server_default="0"),
        sa.Column("security_scan_result", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["plugin_id"], ["plugins.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("plugin_id", "version", name="uq_plugin_versions_plugin_version"),
    )
    op.create_index(op.f("ix_plugin_versions_id"), "plugin_versions", ["id"])
    op.create_index(op.f("ix_plugin_versions_deleted_at"), "plugin_versions", ["deleted_at"])
    op.create_index(op.f("ix_plugin_versions_plugin_id"), "plugin_versions", ["plugin_id"])

    op.create_table(
        "plugin_licenses",
        sa.Column("id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.Column("plugin_id", sa.Integer(), nullable=False),
        sa.Column("organization_id", sa.Integer(), nullable=False),
        sa.Column("expires_at", sa.DateTime(), nullable=True),
        sa.Column("active", sa.Boolean(), nullable=False),
        sa.ForeignKeyConstraint(["plugin_id"], ["plugins.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_plugin_licenses_id"), "plugin_licenses", ["id"])
    op.create_index(op.f("ix_plugin_licenses_deleted_at"), "plugin_licenses", ["deleted_at"])
    op.create_index(op.f("ix_plugin_licenses_plugin_id"), "plugin_licenses", ["plugin_id"])
    op.create_index(op.f("ix_plugin_licenses_organization_id"), "plugin_licenses", ["organization_id"])

    op.create_table(
        "plugin_authorizations",
        sa.Column("id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.Column("plugin_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("organization_id", sa.Integer(), nullable=False),
        sa.Column("granted_by", sa.Integer(), nullable=True),
        sa.ForeignKeyConstraint(["plugin_id"], ["plugins.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["organization_id"], ["organizations.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_plugin_authorizations_id"), "plugin_authorizations", ["id"])
    op.create_index(op.f("ix_plugin_authorizations_deleted_at"), "plugin_authorizations", ["deleted_at"])
    op.create_index(op.f("ix_plugin_authorizations_plugin_id"), "plugin_authorizations", ["plugin_id"])
    op.create_index(op.f("ix_plugin_authorizations_user_id"), "plugin_authorizations", ["user_id"])
    op.create_index(
        op.f("ix_plugin_authorizations_organization_id"), "plugin_authorizations", ["organization_id"]
    )

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("action", sa.String(length=50), nullable=False),
        sa.Column("resource", sa.String(length=255), nullable=True),
        sa.Column("details", sa.Text(), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_audit_logs_id"), "audit_logs", ["id"])
    op.create_index(op.f("ix_audit_logs_user_id"), "audit_logs", ["user_id"])
    op.create_index(op.f("ix_audit_logs_action"), "audit_logs", ["action"])

    op.create_table(
        "cached_remote_plugins",
        sa.Column("id", sa.Integer(), nullable=False),
        *_timestamps(soft_delete=False),
        sa.Column("npm_package_name", sa.String(length=214), nullable=False),
        sa.Column("metadata", sa.Text(), nullable=True),
        sa.Column("last_sync_at", sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("npm_package_name"),
    )
    op.create_index(op.f("ix_cached_remote_plugins_id"), "cached_remote_plugins", ["id"])


def downgrade() -> None:
    """Drop the baseline schema"""
    op.drop_table("cached_remote_plugins")
    op.drop_table("audit_logs")
    op.drop_table("plugin_authorizations")
    op.drop_table("plugin_licenses")
    op.drop_table("plugin_versions")
    op.drop_table("plugins")
    op.drop_table("organization_members")
    op.drop_table("users")
    op.drop_table("organizations")
