"""
# Document Store Indexes

Index catalog for the document store collections.

## Index Catalog

| Index Name | Collection | Fields | Purpose |
|------------|------------|--------|---------|
| `audit_timestamp_idx` | `audit_logs` | `timestamp` (-1) | Newest-first audit listing |
| `audit_target_timestamp_idx` | `audit_logs` | `target_type`, `target_id`, `timestamp` (-1) | Per-entity history |
| `audit_actor_timestamp_idx` | `audit_logs` | `actor_id`, `timestamp` (-1) | "What did this admin do?" |
| `submission_status_idx` | `submissions` | `status`, `created_at` (-1) | Review queue |
| `submission_archive_idx` | `submissions` | `is_archived`, `archived_at` | Media library and retention |
| `submission_pairing_idx` | `submissions` | `pairing_id`, `week_number`, `year` | Weekly pairing history |
| `announcement_published_idx` | `announcements` | `is_published`, `published_at` (-1) | Public feed |
| `bonus_active_idx` | `bonus_activities` | `is_active` | Active catalog |
| `family_archived_idx` | `families` | `is_archived` | Family listing |
| `pairing_points_family_idx` | `pairing_points` | `family_id` | Family point sums |
| `users_email_idx` | `users` | `email` (unique, sparse) | Mirror lookups |
| `application_role_idx` | `ace_applications` | `role`, `created_at` (-1) | Admin application review |

`create_document_indexes()` is idempotent and used by the application lifespan and by
`ace-admin create-indexes`. Individual failures are logged and skipped.
"""

from typing import Any, Dict, List

from ace_mentorship.database.manager import DatabaseManager
from ace_mentorship.managers.logging_manager import get_logger

logger = get_logger(prefix="[DocumentIndexes]")

DOCUMENT_INDEXES: List[Dict[str, Any]] = [
    # Audit trail
    {"collection": "audit_logs", "index": [("timestamp", -1)], "options": {"name": "audit_timestamp_idx"}},
    {
        "collection": "audit_logs",
        "index": [("target_type", 1), ("target_id", 1), ("timestamp", -1)],
        "options": {"name": "audit_target_timestamp_idx"},
    },
    {
        "collection": "audit_logs",
        "index": [("actor_id", 1), ("timestamp", -1)],
        "options": {"name": "audit_actor_timestamp_idx"},
    },
    # Submissions / media
    {
        "collection": "submissions",
        "index": [("status", 1), ("created_at", -1)],
        "options": {"name": "submission_status_idx"},
    },
    {
        "collection": "submissions",
        "index": [("is_archived", 1), ("archived_at", 1)],
        "options": {"name": "submission_archive_idx"},
    },
    {
        "collection": "submissions",
        "index": [("pairing_id", 1), ("week_number", 1), ("year", 1)],
        "options": {"name": "submission_pairing_idx"},
    },
    # Content
    {
        "collection": "announcements",
        "index": [("is_published", 1), ("published_at", -1)],
        "options": {"name": "announcement_published_idx"},
    },
    {"collection": "bonus_activities", "index": [("is_active", 1)], "options": {"name": "bonus_active_idx"}},
    {"collection": "families", "index": [("is_archived", 1)], "options": {"name": "family_archived_idx"}},
    {"collection": "pairing_points", "index": [("family_id", 1)], "options": {"name": "pairing_points_family_idx"}},
    {
        "collection": "users",
        "index": [("email", 1)],
        "options": {"name": "users_email_idx", "unique": True, "sparse": True},
    },
    {
        "collection": "ace_applications",
        "index": [("role", 1), ("created_at", -1)],
        "options": {"name": "application_role_idx"},
    },
]


async def create_document_indexes(db_manager: DatabaseManager) -> int:
    """
    Create every index in `DOCUMENT_INDEXES`.

    Returns the number of indexes created or confirmed. A connection failure propagates; a
    single index failing (for example an options conflict) is logged and skipped.
    """
    logger.info("Creating document store indexes...")
    created_count = 0
    for index_spec in DOCUMENT_INDEXES:
        collection_name = index_spec["collection"]
        options = index_spec.get("options", {})
        collection = db_manager.get_collection(collection_name)
        try:
            await collection.create_index(index_spec["index"], **options)
            created_count += 1
            logger.debug("Created index %s on collection %s", options.get("name", "unnamed"), collection_name)
        except Exception as e:
            logger.warning(
                "Failed to create index %s on collection %s: %s", options.get("name", "unnamed"), collection_name, e
            )

    logger.info("Document index creation completed: %d/%d indexes", created_count, len(DOCUMENT_INDEXES))
    return created_count


async def verify_document_indexes(db_manager: DatabaseManager) -> Dict[str, List[str]]:
    """Report catalog indexes that are missing, keyed by collection."""
    missing: Dict[str, List[str]] = {}
    for index_spec in DOCUMENT_INDEXES:
        collection_name = index_spec["collection"]
        name = index_spec["options"]["name"]
        existing = await db_manager.get_collection(collection_name).index_information()
        if name not in existing:
            missing.setdefault(collection_name, []).append(name)
    if missing:
        logger.warning("Missing document indexes: %s", missing)
    return missing
