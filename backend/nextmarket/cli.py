"""
Next Market command line.

Usage:
    nextmarket migrate            # apply database migrations
    nextmarket serve --port 8080  # run the API server
"""

import argparse
import logging
import os
import sys
from typing import List, Optional

from . import __version__
from .config import get_settings
from .database import create_db_engine, create_session_factory, ensure_default_organization
from .main import configure_logging

logger = logging.getLogger(__name__)

ALEMBIC_INI = os.path.join(os.path.dirname(os.path.dirname(os.path.abspath(__file__))), "alembic.ini")


def run_migrations(revision: str = "head") -> None:
    """Upgrade the configured database to ``revision`` and seed the default organization."""
    from alembic import command
    from alembic.config import Config

    settings = get_settings()
    config = Config(ALEMBIC_INI)
    config.set_main_option("script_location", os.path.join(os.path.dirname(ALEMBIC_INI), "alembic"))
    config.set_main_option("sqlalchemy.url", settings.database_url.replace("%", "%%"))
    logger.info(f"Running migrations to {revision}")
    command.upgrade(config, revision)
    logger.info("Migrations completed")

    engine = create_db_engine(settings)
    try:
        session = create_session_factory(engine)()
        try:
            ensure_default_organization(session, settings.default_organization_name)
        finally:
            session.close()
    finally:
        engine.dispose()


def serve(host: str, port: int, reload: bool) -> None:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "nextmarket.main:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_level=settings.log_level.lower(),
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="nextmarket", description="Next Market plugin marketplace backend")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    subparsers = parser.add_subparsers(dest="command", required=True)

    migrate = subparsers.add_parser("migrate", help="Apply database migrations")
    migrate.add_argument("--revision", default="head", help="Target revision (default: head)")

    settings = get_settings()
    server = subparsers.add_parser("serve", help="Run the HTTP API server")
    server.add_argument("--host", default=settings.host, help=f"Bind address (default: {settings.host})")
    server.add_argument("--port", type=int, default=settings.port, help=f"Port (default: {settings.port})")
    server.add_argument("--reload", action="store_true", help="Reload on code changes (development)")
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(get_settings().log_level)

    try:
        if args.command == "migrate":
            run_migrations(args.revision)
        elif args.command == "serve":
            serve(args.host, args.port, args.reload)
    except KeyboardInterrupt:
        return 130
    except Exception as e:
        logger.error(f"{args.command} failed: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
