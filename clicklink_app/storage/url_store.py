"""
URL record storage.

Thin wrapper over a SQLAlchemy session. The unique constraint on
urls.short_code is what actually guarantees uniqueness; `short_code_exists`
is only a cheap pre-check.
"""

from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from clicklink_app.models.url import URL


class ShortCodeTakenError(Exception):
    """The unique constraint on short_code rejected an insert"""

    def __init__(self, short_code: str):
        self.short_code = short_code
        super().__init__(f"Short code already taken: {short_code}")


class URLStore:
    """Persistent storage of URL records keyed by id and short code"""

    def __init__(self, db: Session):
        self.db = db

    def get_by_short_code(self, short_code: str) -> Optional[URL]:
        return self.db.execute(
            select(URL).where(URL.short_code == short_code)
        ).scalar_one_or_none()

    def get_by_id(self, url_id: int) -> Optional[URL]:
        return self.db.get(URL, url_id)

    def short_code_exists(self, short_code: str) -> bool:
        return self.db.execute(
            select(URL.id).where(URL.short_code == short_code)
        ).first() is not None

    def insert(self, url: URL) -> URL:
        """
        Add and flush a new record inside the caller's transaction.

        Raises:
            ShortCodeTakenError: if another record already owns the code.
                The caller must roll back the session.
        """
        self.db.add(url)
        try:
            self.db.flush()
        except IntegrityError as e:
            if self._is_short_code_violation(e):
                raise ShortCodeTakenError(url.short_code) from e
            raise
        return url

    def list_by_owner(self, owner_id: int) -> List[URL]:
        return list(self.db.execute(
            select(URL)
            .where(URL.owner_id == owner_id)
            .options(selectinload(URL.analytics))
            .order_by(URL.created_at.desc(), URL.id.desc())
        ).scalars())

    def delete(self, url: URL) -> None:
        """Delete a record; clicks and aggregate go with it (FK cascade)."""
        self.db.delete(url)

    @staticmethod
    def _is_short_code_violation(error: IntegrityError) -> bool:
        text = str(error.orig).lower()
        return "short_code" in text or "unique" in text
