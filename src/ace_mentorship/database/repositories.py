"""
Relational repositories.

Repositories encapsulate data access against the relational store and hand back pydantic records
(`Identity`, `PairingRecord`) so nothing outside this module touches ORM rows or sessions. Each
public method runs in its own transaction; batch methods (`bulk_create`, `upsert_many`) commit all
rows atomically or none.

No business rules live here: mentee limits, audit and validation messages belong to services.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Sequence

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ace_mentorship.database.relational import RelationalDatabase
from ace_mentorship.database.tables import PairingMenteeRow, PairingRow, UserRow
from ace_mentorship.managers.logging_manager import get_logger
from ace_mentorship.models.identity import Identity, Role
from ace_mentorship.models.pairing import PairingRecord

logger = get_logger(prefix="[Repositories]")


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _to_identity(row: UserRow) -> Identity:
    return Identity(
        id=row.id,
        email=row.email,
        name=row.name,
        role=Role(row.role),
        family_id=row.family_id,
        avatar_url=row.avatar_url,
        external_uid=row.external_uid,
    )


async def _assign_family(session: AsyncSession, user_ids: Iterable[str], family_id: Optional[str]) -> int:
    ids = list(set(user_ids))
    if not ids:
        return 0
    result = await session.execute(update(UserRow).where(UserRow.id.in_(ids)).values(family_id=family_id))
    return result.rowcount


def _to_pairing(row: PairingRow, with_people: bool = False) -> PairingRecord:
    record = PairingRecord(
        id=row.id,
        family_id=row.family_id,
        mentor_id=row.mentor_id,
        mentee_ids=row.mentee_ids,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
    if with_people:
        record.mentor = _to_identity(row.mentor)
        record.mentees = [_to_identity(link.mentee) for link in row.mentee_links]
    return record


class UserRepository:
    """Identity records in the relational store."""

    def __init__(self, db: RelationalDatabase):
        self.db = db

    async def get_by_id(self, user_id: str) -> Optional[Identity]:
        async with self.db.get_session() as session:
            row = await session.get(UserRow, user_id)
            return _to_identity(row) if row else None

    async def get_by_external_uid(self, external_uid: str) -> Optional[Identity]:
        async with self.db.get_session() as session:
            result = await session.execute(select(UserRow).where(UserRow.external_uid == external_uid))
            row = result.scalar_one_or_none()
            return _to_identity(row) if row else None

    async def get_by_email(self, email: str) -> Optional[Identity]:
        async with self.db.get_session() as session:
            result = await session.execute(select(UserRow).where(UserRow.email == normalize_email(email)))
            row = result.scalar_one_or_none()
            return _to_identity(row) if row else None

    async def get_many(self, user_ids: Iterable[str]) -> List[Identity]:
        ids = list(set(user_ids))
        if not ids:
            return []
        async with self.db.get_session() as session:
            result = await session.execute(select(UserRow).where(UserRow.id.in_(ids)))
            return [_to_identity(row) for row in result.scalars().all()]

    async def find_by_emails(self, emails: Iterable[str]) -> Dict[str, Identity]:
        """Map normalized email -> identity for every email that exists."""
        wanted = list({normalize_email(e) for e in emails if e})
        if not wanted:
            return {}
        async with self.db.get_session() as session:
            result = await session.execute(select(UserRow).where(UserRow.email.in_(wanted)))
            return {row.email: _to_identity(row) for row in result.scalars().all()}

    async def list_all(self) -> List[Identity]:
        async with self.db.get_session() as session:
            result = await session.execute(select(UserRow).order_by(UserRow.name))
            return [_to_identity(row) for row in result.scalars().all()]

    async def created_dates(self) -> Dict[str, datetime]:
        async with self.db.get_session() as session:
            result = await session.execute(select(UserRow.id, UserRow.created_at))
            return {user_id: created_at for user_id, created_at in result.all()}

    async def count(self) -> int:
        async with self.db.get_session() as session:
            return int((await session.execute(select(func.count()).select_from(UserRow))).scalar_one())

    async def create(
        self,
        email: str,
        name: str,
        role: Role = Role.MENTEE,
        external_uid: Optional[str] = None,
        avatar_url: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Identity:
        async with self.db.get_transaction() as session:
            row = UserRow(
                email=normalize_email(email),
                name=name,
                role=Role(role).value,
                external_uid=external_uid,
                avatar_url=avatar_url,
            )
            if user_id:
                row.id = user_id
            session.add(row)
            await session.flush()
            logger.info("Created user %s (%s)", row.id, row.role)
            return _to_identity(row)

    async def bulk_create(self, users: Sequence[Dict[str, Any]]) -> List[Identity]:
        """Insert all users in one transaction. A no-op for an empty batch."""
        if not users:
            return []
        async with self.db.get_transaction() as session:
            rows = []
            for data in users:
                row = UserRow(
                    email=normalize_email(data["email"]),
                    name=data.get("name", ""),
                    role=Role(data.get("role", Role.MENTEE)).value,
                    external_uid=data.get("external_uid"),
                )
                if data.get("id"):
                    row.id = data["id"]
                rows.append(row)
            session.add_all(rows)
            await session.flush()
            logger.info("Bulk created %d users", len(rows))
            return [_to_identity(row) for row in rows]

    async def link_external_uid(self, user_id: str, external_uid: str) -> None:
        async with self.db.get_transaction() as session:
            await session.execute(update(UserRow).where(UserRow.id == user_id).values(external_uid=external_uid))

    async def update_role(self, user_id: str, role: Role) -> bool:
        async with self.db.get_transaction() as session:
            result = await session.execute(update(UserRow).where(UserRow.id == user_id).values(role=Role(role).value))
            return result.rowcount > 0

    async def update_profile(
        self, user_id: str, name: Optional[str] = None, avatar_url: Optional[str] = None
    ) -> Optional[Identity]:
        async with self.db.get_transaction() as session:
            row = await session.get(UserRow, user_id)
            if row is None:
                return None
            if name is not None:
                row.name = name
            if avatar_url is not None:
                row.avatar_url = avatar_url
            await session.flush()
            return _to_identity(row)

    async def delete(self, user_id: str) -> bool:
        async with self.db.get_transaction() as session:
            result = await session.execute(delete(UserRow).where(UserRow.id == user_id))
            return result.rowcount > 0


class PairingRepository:
    """Pairings and their mentee associations."""

    def __init__(self, db: RelationalDatabase):
        self.db = db

    @staticmethod
    def _select(with_people: bool = False):
        stmt = select(PairingRow)
        if with_people:
            return stmt.options(
                selectinload(PairingRow.mentor),
                selectinload(PairingRow.mentee_links).selectinload(PairingMenteeRow.mentee),
            )
        return stmt.options(selectinload(PairingRow.mentee_links))

    async def _load(self, session: AsyncSession, pairing_id: str) -> Optional[PairingRow]:
        result = await session.execute(self._select().where(PairingRow.id == pairing_id))
        return result.scalar_one_or_none()

    async def get(self, pairing_id: str, with_people: bool = False) -> Optional[PairingRecord]:
        async with self.db.get_session() as session:
            result = await session.execute(self._select(with_people).where(PairingRow.id == pairing_id))
            row = result.scalar_one_or_none()
            return _to_pairing(row, with_people) if row else None

    async def exists(self, pairing_id: str) -> bool:
        async with self.db.get_session() as session:
            result = await session.execute(select(PairingRow.id).where(PairingRow.id == pairing_id))
            return result.scalar_one_or_none() is not None

    async def list_all(self, with_people: bool = False) -> List[PairingRecord]:
        async with self.db.get_session() as session:
            result = await session.execute(self._select(with_people).order_by(PairingRow.created_at))
            return [_to_pairing(row, with_people) for row in result.scalars().all()]

    async def list_by_family(self, family_id: str) -> List[PairingRecord]:
        async with self.db.get_session() as session:
            result = await session.execute(self._select().where(PairingRow.family_id == family_id))
            return [_to_pairing(row) for row in result.scalars().all()]

    async def find_for_member(self, user_id: str) -> Optional[PairingRecord]:
        """The pairing where the user is mentor or mentee, if any."""
        async with self.db.get_session() as session:
            stmt = (
                self._select()
                .outerjoin(PairingMenteeRow, PairingMenteeRow.pairing_id == PairingRow.id)
                .where(or_(PairingRow.mentor_id == user_id, PairingMenteeRow.mentee_id == user_id))
                .limit(1)
            )
            result = await session.execute(stmt)
            row = result.scalars().first()
            return _to_pairing(row) if row else None

    async def count(self) -> int:
        async with self.db.get_session() as session:
            return int((await session.execute(select(func.count()).select_from(PairingRow))).scalar_one())

    async def count_by_family(self, family_id: str) -> int:
        async with self.db.get_session() as session:
            stmt = select(func.count()).select_from(PairingRow).where(PairingRow.family_id == family_id)
            return int((await session.execute(stmt)).scalar_one())

    async def create(
        self,
        mentor_id: str,
        mentee_ids: Sequence[str],
        family_id: Optional[str] = None,
        pairing_id: Optional[str] = None,
        assign_family: bool = False,
    ) -> PairingRecord:
        """Insert a pairing; with `assign_family` the members' `family_id` moves in the same commit."""
        async with self.db.get_transaction() as session:
            row = PairingRow(mentor_id=mentor_id, family_id=family_id)
            if pairing_id:
                row.id = pairing_id
            row.mentee_links = [
                PairingMenteeRow(mentee_id=mentee_id, position=i) for i, mentee_id in enumerate(mentee_ids)
            ]
            session.add(row)
            await session.flush()
            if assign_family:
                await _assign_family(session, [mentor_id, *mentee_ids], family_id)
            logger.info("Created pairing %s (mentor %s, %d mentees)", row.id, mentor_id, len(mentee_ids))
            return _to_pairing(row)

    @staticmethod
    def _replace_mentees(row: PairingRow, mentee_ids: Sequence[str]) -> None:
        wanted = list(dict.fromkeys(mentee_ids))
        row.mentee_links = [link for link in row.mentee_links if link.mentee_id in wanted]
        existing = {link.mentee_id: link for link in row.mentee_links}
        for position, mentee_id in enumerate(wanted):
            link = existing.get(mentee_id)
            if link is None:
                row.mentee_links.append(PairingMenteeRow(mentee_id=mentee_id, position=position))
            else:
                link.position = position

    async def update(
        self,
        pairing_id: str,
        *,
        mentor_id: Optional[str] = None,
        mentee_ids: Optional[Sequence[str]] = None,
        family_id: Optional[str] = None,
        clear_family: bool = False,
        assign_family: bool = False,
    ) -> Optional[PairingRecord]:
        """
        Change a pairing in place.

        With `assign_family` the current members take the pairing's `family_id` and members that
        left the pairing have theirs cleared, all in the same commit.
        """
        async with self.db.get_transaction() as session:
            row = await self._load(session, pairing_id)
            if row is None:
                return None
            before = set(_to_pairing(row).member_ids)
            if mentor_id is not None:
                row.mentor_id = mentor_id
            if family_id is not None or clear_family:
                row.family_id = family_id
            if mentee_ids is not None:
                self._replace_mentees(row, mentee_ids)
            await session.flush()
            record = _to_pairing(row)
            if assign_family:
                await _assign_family(session, before - set(record.member_ids), None)
                await _assign_family(session, record.member_ids, record.family_id)
            return record

    async def add_mentee(self, pairing_id: str, mentee_id: str, assign_family: bool = False) -> Optional[PairingRecord]:
        async with self.db.get_transaction() as session:
            row = await self._load(session, pairing_id)
            if row is None:
                return None
            row.mentee_links.append(PairingMenteeRow(mentee_id=mentee_id, position=len(row.mentee_links)))
            await session.flush()
            if assign_family:
                await _assign_family(session, [mentee_id], row.family_id)
            return _to_pairing(row)

    async def remove_mentee(
        self, pairing_id: str, mentee_id: str, assign_family: bool = False
    ) -> Optional[PairingRecord]:
        async with self.db.get_transaction() as session:
            row = await self._load(session, pairing_id)
            if row is None:
                return None
            self._replace_mentees(row, [m for m in row.mentee_ids if m != mentee_id])
            await session.flush()
            if assign_family:
                await _assign_family(session, [mentee_id], None)
            return _to_pairing(row)

    async def delete(self, pairing_id: str) -> bool:
        async with self.db.get_transaction() as session:
            row = await self._load(session, pairing_id)
            if row is None:
                return False
            await session.delete(row)
            return True

    async def upsert_many(
        self, pairings: Sequence[Dict[str, Any]], assign_family: bool = False
    ) -> List[PairingRecord]:
        """
        Create or merge pairings in one transaction.

        Each item carries `id`, `mentor_id`, `mentee_ids` and optionally `family_id`. Existing
        pairings keep fields the item does not supply. With `assign_family` the members of every
        pairing that has a family take its `family_id` in the same commit. A no-op for an empty
        batch.
        """
        if not pairings:
            return []
        async with self.db.get_transaction() as session:
            rows = []
            for data in pairings:
                row = await self._load(session, data["id"])
                if row is None:
                    row = PairingRow(id=data["id"], mentor_id=data["mentor_id"], family_id=data.get("family_id"))
                    row.mentee_links = []
                    session.add(row)
                else:
                    row.mentor_id = data["mentor_id"]
                    if data.get("family_id"):
                        row.family_id = data["family_id"]
                self._replace_mentees(row, data["mentee_ids"])
                rows.append(row)
            await session.flush()
            records = [_to_pairing(row) for row in rows]
            if assign_family:
                for record in records:
                    if record.family_id:
                        await _assign_family(session, record.member_ids, record.family_id)
            logger.info("Upserted %d pairings", len(rows))
            return records
