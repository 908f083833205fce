"""
Command-line interface for store maintenance.

Commands:

- `migrate-family-heads`: normalize legacy single-head family documents.
- `create-indexes` / `verify-indexes`: document store index catalog.
- `create-tables`: create missing relational tables.
- `reset-weekly-points`: zero every pairing's weekly points.
- `promote-admin --email`: give an existing identity the ADMIN role.
"""

import argparse
import asyncio
import sys
from typing import Optional, Sequence

from ace_mentorship.config import Settings, settings as default_settings
from ace_mentorship.container import ServiceContainer
from ace_mentorship.database.indexes import DOCUMENT_INDEXES, create_document_indexes, verify_document_indexes
from ace_mentorship.managers.logging_manager import get_logger, setup_logging
from ace_mentorship.migrations.family_heads_migration import FamilyHeadsMigration
from ace_mentorship.models.identity import Role

logger = get_logger(prefix="[AdminCLI]")


class AdminCLI:
    """Runs one maintenance command against a started `ServiceContainer`."""

    def __init__(self, container: ServiceContainer):
        self.container = container

    async def migrate_family_heads(self) -> bool:
        results = await FamilyHeadsMigration(self.container.db_manager).run()
        logger.info(f"Status: {results['status']}")
        logger.info(f"Documents updated: {results['documents_updated']}")
        for error in results["errors"]:
            logger.error(f"  {error}")
        return results["status"] == "success"

    async def create_indexes(self) -> bool:
        created = await create_document_indexes(self.container.db_manager)
        return created == len(DOCUMENT_INDEXES)

    async def verify_indexes(self) -> bool:
        missing = await verify_document_indexes(self.container.db_manager)
        if not missing:
            logger.info("All document indexes present")
            return True
        for collection, names in missing.items():
            logger.info(f"  - {collection}: {', '.join(names)}")
        return False

    async def create_tables(self) -> bool:
        await self.container.relational.create_all()
        return True

    async def reset_weekly_points(self) -> bool:
        modified = await self.container.pairing_points.reset_weekly()
        logger.info(f"Reset weekly points on {modified} pairings")
        return True

    async def promote_admin(self, email: str) -> bool:
        identity = await self.container.users.get_by_email(email)
        if identity is None:
            logger.error(f"No identity with email {email}")
            return False
        await self.container.users.update_role(identity.id, Role.ADMIN)
        await self.container.mirror.update_fields(identity.id, role=Role.ADMIN.value)
        logger.info(f"{email} is now an admin")
        return True


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ace-admin",
        description="ACE mentorship store maintenance",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", help="Command to execute")

    subparsers.add_parser("migrate-family-heads", help="Move family_head_id into family_head_ids")
    subparsers.add_parser("create-indexes", help="Create document store indexes")
    subparsers.add_parser("verify-indexes", help="Report missing document store indexes")
    subparsers.add_parser("create-tables", help="Create missing relational tables")
    subparsers.add_parser("reset-weekly-points", help="Zero weekly points for every pairing")

    promote_parser = subparsers.add_parser("promote-admin", help="Grant the ADMIN role")
    promote_parser.add_argument("--email", required=True, help="Email of an existing identity")
    return parser


async def run_command(args: argparse.Namespace, settings: Settings) -> bool:
    container = ServiceContainer(settings)
    await container.start()
    try:
        cli = AdminCLI(container)
        if args.command == "migrate-family-heads":
            return await cli.migrate_family_heads()
        if args.command == "create-indexes":
            return await cli.create_indexes()
        if args.command == "verify-indexes":
            return await cli.verify_indexes()
        if args.command == "create-tables":
            return await cli.create_tables()
        if args.command == "reset-weekly-points":
            return await cli.reset_weekly_points()
        if args.command == "promote-admin":
            return await cli.promote_admin(args.email)
        raise ValueError(f"Unknown command: {args.command}")
    finally:
        await container.stop()


def main(argv: Optional[Sequence[str]] = None, settings: Optional[Settings] = None) -> None:
    """Main CLI entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        sys.exit(1)

    setup_logging()
    try:
        success = asyncio.run(run_command(args, settings or default_settings))
    except Exception as e:
        logger.error(f"{args.command} failed: {e}", exc_info=True)
        success = False
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
