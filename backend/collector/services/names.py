"""Name interner - maps strings to stable ids in the name table."""
import logging
from typing import Dict, Iterable, List

from sqlalchemy import select, insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..models import Name
from ..utils.db_utils import insert_or_fetch
from ..utils.ids import generate_id

logger = logging.getLogger(__name__)


class NameInterner:
    """Find-or-create for interned names.

    Inserts run inside SAVEPOINTs so a uniqueness conflict with a concurrent
    report only rolls back the insert, never the caller's transaction.
    """

    async def resolve(self, session: AsyncSession, text: str) -> int:
        """Get the id for a single name, creating it if needed."""
        ids = await self.resolve_batch(session, [text])
        return ids[text]

    async def resolve_batch(self, session: AsyncSession, texts: Iterable[str]) -> Dict[str, int]:
        """Get ids for many names with one lookup and at most one insert."""
        wanted = list(dict.fromkeys(texts))
        if not wanted:
            return {}

        resolved = await self._select_ids(session, wanted)
        missing = [text for text in wanted if text not in resolved]
        if missing:
            resolved.update(await self._insert_missing(session, missing))
        return resolved

    async def _select_ids(self, session: AsyncSession, texts: List[str]) -> Dict[str, int]:
        result = await session.execute(select(Name.name, Name.id).where(Name.name.in_(texts)))
        return {name: name_id for name, name_id in result.all()}

    async def _insert_missing(self, session: AsyncSession, texts: List[str]) -> Dict[str, int]:
        rows = [{"id": generate_id(), "name": text} for text in texts]
        try:
            async with session.begin_nested():
                await session.execute(insert(Name), rows)
        except IntegrityError:
            logger.debug(f"Batch insert of {len(texts)} names conflicted, resolving individually")
            resolved = {}
            for text in texts:
                resolved[text] = await self._insert_one(session, text)
            return resolved
        return {row["name"]: row["id"] for row in rows}

    async def _insert_one(self, session: AsyncSession, text: str) -> int:
        """Insert one name, or return the id another writer gave it."""

        async def insert_row() -> int:
            new_id = generate_id()
            await session.execute(insert(Name).values(id=new_id, name=text))
            return new_id

        async def fetch_row():
            return (await self._select_ids(session, [text])).get(text)

        return await insert_or_fetch(session, insert_row, fetch_row)


# Global instance
name_interner = NameInterner()
