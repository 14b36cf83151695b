"""
Relational persistence for Next Market
SQLAlchemy models, engine/session construction and the FastAPI session dependency
"""

import logging
from datetime import datetime
from typing import Generator, Optional

from fastapi import Request
from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Table,
    Text,
    UniqueConstraint,
    create_engine,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker

from .config import Settings

logger = logging.getLogger(__name__)

Base = declarative_base()

# Enumerated string values stored in varchar columns
PLUGIN_TYPE_FREE = "free"
PLUGIN_TYPE_ENTERPRISE = "enterprise"
VISIBILITY_PUBLIC = "public"
VISIBILITY_PRIVATE = "private"
SOURCE_LOCAL = "local"
SOURCE_REMOTE_PROXY = "remote_proxy"
CHANNEL_STABLE = "stable"
CHANNEL_BETA = "beta"


organization_members = Table(
    "organization_members",
    Base.metadata,
    Column("organization_id", Integer, ForeignKey("organizations.id", ondelete="CASCADE"), primary_key=True),
    Column("user_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), primary_key=True),
)


class Organization(Base):  # type: ignore[valid-type, misc]
    """Publisher organization; plugins reference it as their publisher"""

    __tablename__ = "organizations"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True, index=True)
    name = Column(String(255), unique=True, nullable=False)
    openfga_id = Column(String(255), unique=True, nullable=True)

    members = relationship("User", secondary=organization_members, back_populates="organizations")


class User(Base):  # type: ignore[valid-type, misc]
    """Marketplace user"""

    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True, index=True)
    email = Column(String(255), unique=True, nullable=False)
    name = Column(String(255), nullable=True)
    avatar = Column(String(1024), nullable=True)
    openfga_id = Column(String(255), unique=True, nullable=True)
    verified = Column(Boolean, default=False, nullable=False)

    organizations = relationship("Organization", secondary=organization_members, back_populates="members")


class Plugin(Base):  # type: ignore[valid-type, misc]
    """
    A published plugin, identified by its npm package name.

    The package name is unique and never changes after creation. Deleting a
    plugin is permanent and cascades to its versions.
    """

    __tablename__ = "plugins"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True, index=True)
    npm_package_name = Column(String(214), unique=True, index=True, nullable=False)
    display_name = Column(String(255), nullable=True)
    description = Column(Text, nullable=True)
    type = Column(String(20), default=PLUGIN_TYPE_FREE, nullable=False)  # free, enterprise
    visibility = Column(String(20), default=VISIBILITY_PUBLIC, nullable=False)  # public, private
    source = Column(String(20), default=SOURCE_LOCAL, nullable=False)  # local, remote_proxy
    latest_version = Column(String(128), nullable=True)
    icon_url = Column(String(1024), nullable=True)
    icon_object_key = Column(String(1024), nullable=True)
    backend_install_guide = Column(Text, nullable=True)
    upstream_url = Column(String(1024), nullable=True)
    max_versions_retention = Column(Integer, default=10, nullable=False)
    publisher_id = Column(Integer, ForeignKey("organizations.id"), nullable=True, index=True)
    keywords = Column(Text, nullable=True)  # comma separated, searched by substring
    download_count = Column(BigInteger, default=0, nullable=False)
    verified_publisher = Column(Boolean, default=False, nullable=False)

    publisher = relationship("Organization")
    versions = relationship(
        "PluginVersion",
        back_populates="plugin",
        passive_deletes="all",
        order_by="PluginVersion.created_at",
    )


class PluginVersion(Base):  # type: ignore[valid-type, misc]
    """
    One published version of a plugin.

    ``object_key`` is the artifact's location in the blob store, recorded at
    upload time so deletion never has to reconstruct it.
    """

    __tablename__ = "plugin_versions"
    __table_args__ = (UniqueConstraint("plugin_id", "version", name="uq_plugin_versions_plugin_version"),)

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True, index=True)
    plugin_id = Column(Integer, ForeignKey("plugins.id", ondelete="CASCADE"), nullable=False, index=True)
    version = Column(String(128), nullable=False)
    readme_content = Column(Text, nullable=True)
    config_schema_json = Column(Text, nullable=True)
    config_values_json = Column(Text, nullable=True)
    object_key = Column(String(1024), nullable=False)
    file_size = Column(BigInteger, default=0, nullable=False)
    channel = Column(String(20), default=CHANNEL_STABLE, nullable=False)  # stable, beta
    download_count = Column(BigInteger, default=0, nullable=False)
    security_scan_result = Column(Text, nullable=True)

    plugin = relationship("Plugin", back_populates="versions")


class PluginLicense(Base):  # type: ignore[valid-type, misc]
    """Enterprise plugin purchased by an organization"""

    __tablename__ = "plugin_licenses"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True, index=True)
    plugin_id = Column(Integer, ForeignKey("plugins.id", ondelete="CASCADE"), nullable=False, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=True)
    active = Column(Boolean, default=True, nullable=False)

    plugin = relationship("Plugin")
    organization = relationship("Organization")


class PluginAuthorization(Base):  # type: ignore[valid-type, misc]
    """Plugin granted to a user within an organization"""

    __tablename__ = "plugin_authorizations"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    deleted_at = Column(DateTime, nullable=True, index=True)
    plugin_id = Column(Integer, ForeignKey("plugins.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    organization_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    granted_by = Column(Integer, nullable=True)

    plugin = relationship("Plugin")
    user = relationship("User")
    organization = relationship("Organization")


class AuditLog(Base):  # type: ignore[valid-type, misc]
    """Audit trail entry (purchase, assign, install, upload)"""

    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    action = Column(String(50), nullable=False, index=True)
    resource = Column(String(255), nullable=True)  # plugin:123, organization:456
    details = Column(Text, nullable=True)
    ip_address = Column(String(45), nullable=True)

    user = relationship("User")


class CachedRemotePlugin(Base):  # type: ignore[valid-type, misc]
    """Metadata cached from an upstream registry"""

    __tablename__ = "cached_remote_plugins"

    id = Column(Integer, primary_key=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    npm_package_name = Column(String(214), unique=True, nullable=False)
    metadata_json = Column("metadata", Text, nullable=True)
    last_sync_at = Column(DateTime, nullable=True)


def create_db_engine(settings: Settings) -> Engine:
    """Create the SQLAlchemy engine described by the settings."""
    kwargs = {"echo": settings.database_echo, "pool_pre_ping": True}
    if not settings.database_url.startswith("sqlite"):
        kwargs.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
            pool_recycle=3600,  # Recycle connections every hour
        )
    return create_engine(settings.database_url, **kwargs)


def create_session_factory(engine: Engine) -> sessionmaker:
    """Session factory bound to the engine."""
    return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


def create_tables(engine: Engine) -> None:
    """Create database tables if they don't exist."""
    try:
        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created successfully")
    except Exception as e:
        logger.error(f"Failed to create database tables: {e}")
        raise


def ensure_default_organization(session: Session, name: str) -> Organization:
    """
    Make sure the placeholder publisher organization exists.

    Uploads are attributed to it until authentication supplies a real publisher.
    """
    org = session.query(Organization).filter(Organization.name == name).first()
    if org is None:
        org = Organization(name=name, openfga_id="org_default_001")
        session.add(org)
        session.commit()
        logger.info(f"Default organization created (id={org.id})")
    return org


def check_database_health(session_factory: sessionmaker) -> bool:
    """Check database connectivity for health checks"""
    db: Optional[Session] = None
    try:
        db = session_factory()
        db.execute(text("SELECT 1"))
        return True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        return False
    finally:
        if db is not None:
            db.close()


def get_db(request: Request) -> Generator[Session, None, None]:
    """
    Database session dependency for FastAPI endpoints.

    Yields:
        SQLAlchemy Session instance from the factory built at startup.

    Note:
        Session is automatically closed when the request completes.
    """
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
