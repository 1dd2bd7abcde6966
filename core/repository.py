"""Repository pattern base class for database operations.

Provides the common get/create/delete operations shared by the plan and
user stores. `create` turns unique constraint violations into a
`ConflictError` and any other integrity failure into a `DatabaseError`, so
callers never see a raw `IntegrityError`.
"""

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from typing import TypeVar, Generic, Type, Optional, Any
from database.models import Base
from core.exceptions import ConflictError, DatabaseError

T = TypeVar('T', bound=Base)


def is_unique_violation(exc: IntegrityError) -> bool:
    """True when the error comes from a unique or primary key constraint.

    PostgreSQL reports SQLSTATE 23505; SQLite and MySQL only say so in the
    message text.
    """
    orig = exc.orig
    if getattr(orig, "pgcode", None) == "23505" or getattr(orig, "sqlstate", None) == "23505":
        return True
    text = str(orig).lower()
    return "unique" in text or "duplicate" in text


class BaseRepository(Generic[T]):
    """Generic repository for common database operations.

    Attributes:
        model: SQLAlchemy model class to operate on.
        session: Database session for executing queries.
    """

    conflict_message = "Record conflicts with an existing one"

    def __init__(self, model: Type[T], session: Session):
        self.model = model
        self.session = session

    def create(self, obj: T) -> T:
        """Add, commit and refresh a new object.

        Raises:
            ConflictError: If a unique constraint rejects the row.
            DatabaseError: If any other integrity constraint rejects it.
        """
        self.session.add(obj)
        try:
            self.session.commit()
        except IntegrityError as exc:
            self.session.rollback()
            if is_unique_violation(exc):
                raise ConflictError(self.conflict_message)
            raise DatabaseError(f"Failed to save {self.model.__name__}", operation="create")
        self.session.refresh(obj)
        return obj

    def get_by_id(self, id: Any) -> Optional[T]:
        """Retrieve an object by its primary key."""
        return self.session.get(self.model, id)

    def update(self, obj: T) -> T:
        """Commit changes to an existing object and refresh."""
        self.session.commit()
        self.session.refresh(obj)
        return obj

    def delete(self, obj: T) -> None:
        """Delete an object and commit."""
        self.session.delete(obj)
        self.session.commit()
