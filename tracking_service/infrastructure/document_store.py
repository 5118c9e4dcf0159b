import asyncio
import uuid
from typing import Any, Iterable, Literal

from sqlalchemy import ColumnElement, Row, Table, delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

SortDirection = Literal["asc", "desc"]
Document = dict[str, Any]


class DoesNotExist(Exception):
    pass


class DuplicateKey(Exception):
    pass


class StoreTimeout(Exception):
    pass


def is_valid_id(raw: Any) -> bool:
    """Check a raw value before using it for an id lookup."""
    if raw is None:
        return False
    try:
        uuid.UUID(str(raw).strip())
    except ValueError:
        return False
    return True


def parse_id(raw: Any) -> uuid.UUID:
    if not is_valid_id(raw):
        raise DoesNotExist
    return uuid.UUID(str(raw).strip())


UNIQUE_VIOLATION_SQLSTATE = "23505"


def is_unique_violation(error: IntegrityError) -> bool:
    """Tell a unique-key clash apart from NOT NULL, FK and check violations."""
    sqlstate = getattr(error.orig, "sqlstate", None) or getattr(error.orig, "pgcode", None)
    if sqlstate:
        return sqlstate == UNIQUE_VIOLATION_SQLSTATE
    return "unique" in str(error.orig).lower()


class DocumentCollection:
    """Collection-scoped find/insert/update/delete over one table.

    Filters are SQLAlchemy boolean clauses built against ``table.c``.
    Updates touch only the given columns of a single row.
    """

    def __init__(self, session: AsyncSession, table: Table, timeout: float = 5.0):
        self._session = session
        self._table = table
        self._timeout = timeout

    @property
    def c(self):
        return self._table.c

    async def _execute(self, stmt):
        try:
            async with asyncio.timeout(self._timeout):
                return await self._session.execute(stmt)
        except TimeoutError as e:
            raise StoreTimeout(
                f"{self._table.name}: store call exceeded {self._timeout}s"
            ) from e

    @staticmethod
    def _to_document(row: Row) -> Document:
        document = dict(row._mapping)
        if isinstance(document.get("id"), uuid.UUID):
            document["id"] = str(document["id"])
        return document

    async def find(
        self,
        where: ColumnElement[bool] | None = None,
        *,
        projection: Iterable[str] | None = None,
        sort: Iterable[tuple[str, SortDirection]] | None = None,
        limit: int | None = None,
    ) -> list[Document]:
        columns = [self._table.c[name] for name in projection] if projection else []
        stmt = select(*columns) if columns else select(self._table)
        if where is not None:
            stmt = stmt.where(where)
        for name, direction in sort or ():
            column = self._table.c[name]
            stmt = stmt.order_by(column.desc() if direction == "desc" else column.asc())
        if limit is not None:
            stmt = stmt.limit(limit)

        result = await self._execute(stmt)
        return [self._to_document(row) for row in result.fetchall()]

    async def find_one(
        self,
        where: ColumnElement[bool],
        *,
        projection: Iterable[str] | None = None,
    ) -> Document | None:
        documents = await self.find(where, projection=projection, limit=1)
        return documents[0] if documents else None

    async def count(self, where: ColumnElement[bool] | None = None) -> int:
        stmt = select(func.count()).select_from(self._table)
        if where is not None:
            stmt = stmt.where(where)
        result = await self._execute(stmt)
        return result.scalar_one()

    async def insert_one(self, document: Document) -> str:
        values = dict(document)
        values.setdefault("id", uuid.uuid4())
        try:
            await self._execute(insert(self._table).values(values))
        except IntegrityError as e:
            if not is_unique_violation(e):
                raise
            raise DuplicateKey(f"{self._table.name}: {e.orig}") from e
        return str(values["id"])

    def _single_row(self, where: ColumnElement[bool]):
        return (
            select(self._table.c.id)
            .where(where)
            .limit(1)
            .correlate(None)
            .scalar_subquery()
        )

    async def update_one(self, where: ColumnElement[bool], values: Document) -> int:
        """Merge ``values`` into the first matching row. Returns matched count."""
        stmt = (
            update(self._table)
            .where(self._table.c.id == self._single_row(where))
            .values(values)
        )
        result = await self._execute(stmt)
        return result.rowcount

    async def delete_one(self, where: ColumnElement[bool]) -> int:
        stmt = delete(self._table).where(self._table.c.id == self._single_row(where))
        result = await self._execute(stmt)
        return result.rowcount
