"""
School Directory Backend: School Service (Repository)
======================================================

What:  CRUD over the `schools` table with validation and email uniqueness.
Why:   The only component that reads or writes School rows. Routes, the
       description endpoint and tests all go through it.
How:   The session factory (the shared connection pool) is injected at
       construction. Every operation opens one session for its statements and
       releases it on every exit path via `async with`.

Consistency Model:
    The duplicate-email check and the following INSERT/UPDATE are separate
    statements. Two concurrent writers can both pass the check; the UNIQUE
    constraint on email_id then rejects the second at commit, and that
    IntegrityError is surfaced as DuplicateEmailError like the checked case.

Error Contract:
    ValidationError      candidate failed the School rules
    InvalidIdError       id is not a positive integer
    NotFoundError        update/delete target does not exist
    DuplicateEmailError  email_id already used by another school
    StorageError         any other database failure

    Nothing is retried here and nothing is swallowed or logged at error
    level; the caller decides what a failure means.
"""

import logging
import re
from datetime import datetime, timedelta
from typing import Any, List, Mapping, Optional

from sqlalchemy import delete, desc, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.exceptions import (
    DuplicateEmailError,
    InvalidIdError,
    NotFoundError,
    StorageError,
)
from app.models.school import School, utcnow
from app.schemas.school import validate_school

logger = logging.getLogger(__name__)

ASCII_DIGITS = re.compile(r"[0-9]+")

# Upper bound of the INTEGER id column
MAX_SCHOOL_ID = 2**31 - 1


def parse_school_id(value: Any) -> int:
    """
    Coerce an id argument to a positive int.

    Accepts ints (but not bools) and strings of ASCII digits, since path
    parameters arrive as text.

    Raises:
        InvalidIdError: for anything else, including 0, negatives and
            values beyond the id column's range.
    """
    if isinstance(value, bool):
        raise InvalidIdError(value)
    if isinstance(value, int):
        school_id = value
    elif isinstance(value, str) and ASCII_DIGITS.fullmatch(value.strip()):
        digits = value.strip().lstrip("0") or "0"
        # Keeps int() clear of its digit-count limit on absurdly long input
        if len(digits) > len(str(MAX_SCHOOL_ID)):
            raise InvalidIdError(value)
        school_id = int(digits)
    else:
        raise InvalidIdError(value)
    if not 0 < school_id <= MAX_SCHOOL_ID:
        raise InvalidIdError(value)
    return school_id


class SchoolService:
    """
    Repository for School records.

    Holds no mutable state besides the injected session factory, so one
    instance is shared by all requests.

    Example:
        >>> service = SchoolService(async_session_factory)
        >>> school = await service.create({"name": "Oak Hill", ...})
        >>> await service.find_by_city("Springfield")
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    # ── Writes ────────────────────────────────────────────────────────────

    async def create(self, candidate: Mapping[str, Any]) -> School:
        """
        Validate and insert a new school.

        Flow:
            1. Validate the candidate (all fields, all errors)
            2. Reject if another school already has this email_id
            3. INSERT with server-assigned id and timestamps
            4. Return the freshly read row

        Raises:
            ValidationError, DuplicateEmailError, StorageError
        """
        school_in = validate_school(candidate)

        async with self._session_factory() as session:
            try:
                if await self._email_taken(session, school_in.email_id):
                    raise DuplicateEmailError(school_in.email_id)

                now = utcnow()
                school = School(**school_in.column_values(), created_at=now, updated_at=now)
                session.add(school)
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateEmailError(
                    school_in.email_id, context={"constraint": type(exc.orig).__name__}
                ) from exc
            except SQLAlchemyError as exc:
                await session.rollback()
                raise StorageError(context={"operation": "create", "error_type": type(exc).__name__}) from exc

            new_id = school.id

        logger.info("School created: id=%s email_id=%s", new_id, school_in.email_id)
        created = await self.find_by_id(new_id)
        if created is None:
            raise StorageError(
                message="The new school could not be read back.",
                context={"operation": "create", "id": new_id},
            )
        return created

    async def update_by_id(self, school_id: Any, candidate: Mapping[str, Any]) -> School:
        """
        Replace every mutable field of an existing school.

        Flow:
            1. Validate id, then the candidate
            2. Load the existing row (NotFoundError if absent)
            3. If email_id changed, check uniqueness excluding this id
            4. Write all fields; image keeps its stored value when the
               candidate supplies none
            5. Refresh updated_at and return the reloaded row

        Raises:
            InvalidIdError, ValidationError, NotFoundError,
            DuplicateEmailError, StorageError
        """
        school_id = parse_school_id(school_id)
        school_in = validate_school(candidate)

        async with self._session_factory() as session:
            try:
                school = await session.get(School, school_id)
                if school is None:
                    raise NotFoundError(resource="school", resource_id=str(school_id))

                if school_in.email_id != school.email_id and await self._email_taken(
                    session, school_in.email_id, exclude_id=school_id
                ):
                    raise DuplicateEmailError(school_in.email_id)

                values = school_in.column_values()
                if values["image"] is None:
                    values["image"] = school.image
                for column, value in values.items():
                    setattr(school, column, value)
                school.updated_at = self._next_updated_at(school.created_at)

                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise DuplicateEmailError(
                    school_in.email_id, context={"constraint": type(exc.orig).__name__}
                ) from exc
            except SQLAlchemyError as exc:
                await session.rollback()
                raise StorageError(context={"operation": "update", "error_type": type(exc).__name__}) from exc

        logger.info("School updated: id=%s", school_id)
        updated = await self.find_by_id(school_id)
        if updated is None:
            # Deleted by a concurrent request between the commit and the reload
            raise NotFoundError(resource="school", resource_id=str(school_id))
        return updated

    async def delete_by_id(self, school_id: Any) -> bool:
        """
        Hard-delete a school.

        Returns:
            True if a row was removed. A concurrent delete between the
            existence check and the DELETE yields False.

        Raises:
            InvalidIdError, NotFoundError, StorageError
        """
        school_id = parse_school_id(school_id)

        async with self._session_factory() as session:
            try:
                existing = await session.get(School, school_id)
                if existing is None:
                    raise NotFoundError(resource="school", resource_id=str(school_id))

                result = await session.execute(delete(School).where(School.id == school_id))
                await session.commit()
            except SQLAlchemyError as exc:
                await session.rollback()
                raise StorageError(context={"operation": "delete", "error_type": type(exc).__name__}) from exc

        deleted = (result.rowcount or 0) > 0
        logger.info("School deleted: id=%s removed=%s", school_id, deleted)
        return deleted

    # ── Reads ─────────────────────────────────────────────────────────────

    async def find_all(self) -> List[School]:
        """All schools, newest first (created_at DESC, then id DESC)."""
        return await self._fetch_all(
            select(School).order_by(desc(School.created_at), desc(School.id)),
            operation="find_all",
        )

    async def find_by_id(self, school_id: Any) -> Optional[School]:
        """
        Fetch one school.

        Returns:
            The School, or None when no row has this id.

        Raises:
            InvalidIdError: id is not a positive integer.
            StorageError
        """
        school_id = parse_school_id(school_id)

        async with self._session_factory() as session:
            try:
                result = await session.execute(select(School).where(School.id == school_id))
                return result.scalar_one_or_none()
            except SQLAlchemyError as exc:
                raise StorageError(context={"operation": "find_by_id", "error_type": type(exc).__name__}) from exc

    async def find_by_city(self, city: str) -> List[School]:
        """
        Exact-match lookup by city, ordered by name.

        Case sensitivity follows the store's collation: case-sensitive on
        PostgreSQL and SQLite, case-insensitive on MySQL's default collation.
        """
        return await self._fetch_all(
            select(School).where(School.city == city.strip()).order_by(School.name.asc()),
            operation="find_by_city",
        )

    async def find_by_state(self, state: str) -> List[School]:
        """Exact-match lookup by state, ordered by name. See find_by_city."""
        return await self._fetch_all(
            select(School).where(School.state == state.strip()).order_by(School.name.asc()),
            operation="find_by_state",
        )

    # ── Helpers ───────────────────────────────────────────────────────────

    async def _fetch_all(self, statement, operation: str) -> List[School]:
        async with self._session_factory() as session:
            try:
                result = await session.execute(statement)
                return list(result.scalars().all())
            except SQLAlchemyError as exc:
                raise StorageError(context={"operation": operation, "error_type": type(exc).__name__}) from exc

    @staticmethod
    async def _email_taken(
        session: AsyncSession, email_id: str, exclude_id: Optional[int] = None
    ) -> bool:
        query = select(School.id).where(School.email_id == email_id)
        if exclude_id is not None:
            query = query.where(School.id != exclude_id)
        result = await session.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    @staticmethod
    def _next_updated_at(created_at: datetime) -> datetime:
        """
        A fresh timestamp that is never earlier than created_at.

        Stores without timezone support (SQLite) hand back naive datetimes,
        so the comparison is done on naive UTC values.
        """
        now = utcnow()
        if created_at.tzinfo is None:
            now = now.replace(tzinfo=None)
        if now <= created_at:
            now = created_at + timedelta(microseconds=1)
        return now
