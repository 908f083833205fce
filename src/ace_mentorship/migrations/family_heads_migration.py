"""
Family Heads Migration.

One-time normalization of the legacy single-head field on family documents.

Older family documents carry `family_head_id` (a single id). The current representation is
`family_head_ids` (a list). For every document that still has the legacy field:

- the legacy id is merged into `family_head_ids` (first position, without duplicates);
- `family_head_id` is removed.

Documents already in the list form are untouched, so re-running is harmless. Each run is recorded
in the `migrations` collection.
"""

from datetime import datetime
from typing import Any, Callable, Dict, List

from ace_mentorship.database.manager import DatabaseManager
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.utils.week import utc_now

logger = get_logger(prefix="[FAMILY_HEADS_MIGRATION]")

LEGACY_FIELD = "family_head_id"


def merge_heads(legacy_head: Any, current_heads: List[str]) -> List[str]:
    heads = [legacy_head] if legacy_head else []
    return list(dict.fromkeys([*heads, *(current_heads or [])]))


class FamilyHeadsMigration:
    """Move `family_head_id` into `family_head_ids`."""

    def __init__(self, db_manager: DatabaseManager, clock: Callable[[], datetime] = utc_now):
        self.db_manager = db_manager
        self.clock = clock
        self.migration_id = "family_heads_list_v1"

    async def run(self) -> Dict[str, Any]:
        """
        Execute the migration.

        Returns:
            Dict containing migration results and statistics
        """
        logger.info("Starting family heads migration...")
        results: Dict[str, Any] = {
            "migration_id": self.migration_id,
            "started_at": self.clock(),
            "documents_updated": 0,
            "errors": [],
        }

        try:
            collection = self.db_manager.get_collection("families")
            async for family in collection.find({LEGACY_FIELD: {"$exists": True}}):
                try:
                    heads = merge_heads(family.get(LEGACY_FIELD), family.get("family_head_ids") or [])
                    await collection.update_one(
                        {"_id": family["_id"]},
                        {"$set": {"family_head_ids": heads, "updated_at": self.clock()}, "$unset": {LEGACY_FIELD: ""}},
                    )
                    results["documents_updated"] += 1
                    logger.debug(f"Normalized family {family['_id']}: heads={heads}")
                except Exception as e:
                    error_msg = f"Error migrating family {family.get('_id', 'unknown')}: {e}"
                    logger.error(error_msg)
                    results["errors"].append(error_msg)

            results["status"] = "success" if not results["errors"] else "partial"
            results["completed_at"] = self.clock()
            await self._record_migration(results)
            logger.info(f"Family heads migration finished: {results['documents_updated']} documents updated")

        except Exception as e:
            logger.error(f"Migration failed: {e}", exc_info=True)
            results["status"] = "failed"
            results["error"] = str(e)
            results["completed_at"] = self.clock()

        return results

    async def _record_migration(self, results: Dict[str, Any]) -> None:
        try:
            await self.db_manager.get_collection("migrations").insert_one(
                {
                    "migration_id": self.migration_id,
                    "migration_type": "family_heads_normalization",
                    "executed_at": results["started_at"],
                    "results": results,
                }
            )
        except Exception as e:
            logger.error(f"Failed to record migration history: {e}")
