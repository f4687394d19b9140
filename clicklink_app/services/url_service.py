import logging
from typing import List

from sqlalchemy.orm import Session

from clicklink_app.exceptions import ForbiddenError, GoneError, NotFoundError, ValidationError
from clicklink_app.models.url import URL
from clicklink_app.schemas.url import URLUpdate
from clicklink_app.services.creation_service import MAX_TITLE_LENGTH, validate_original_url
from clicklink_app.storage import URLStore
from clicklink_app.utils.clock import ensure_utc

logger = logging.getLogger(__name__)


class URLService:
    """
    Owner-scoped management of existing URLs.

    Creation lives in CreationService and visits in RedirectService; this
    covers read/update/delete for the owner plus the public info lookup.
    """

    def __init__(self, db: Session):
        self.db = db
        self.urls = URLStore(db)

    def get_public(self, short_code: str) -> URL:
        """Look up a link for display without recording a click"""
        url = self.urls.get_by_short_code(short_code)
        if url is None:
            raise NotFoundError()
        if not url.is_active:
            raise GoneError("URL is inactive")
        if url.is_expired():
            raise GoneError("URL has expired")
        return url

    def get_owned(self, url_id: int, principal_id: int) -> URL:
        url = self.urls.get_by_id(url_id)
        if url is None:
            raise NotFoundError()
        # Anonymous links have no owner and are never manageable
        if url.owner_id is None or url.owner_id != principal_id:
            raise ForbiddenError()
        return url

    def list_owned(self, principal_id: int) -> List[URL]:
        return self.urls.list_by_owner(principal_id)

    def update(self, url_id: int, principal_id: int, changes: URLUpdate) -> URL:
        """
        Apply the fields present in `changes`.

        owner_id and short_code are never touched. Sending expires_at as null
        clears the expiry.
        """
        url = self.get_owned(url_id, principal_id)
        fields = changes.model_dump(exclude_unset=True)

        if "original_url" in fields:
            url.original_url = validate_original_url(fields["original_url"])
        if "title" in fields:
            title = fields["title"]
            if title is not None and len(title) > MAX_TITLE_LENGTH:
                raise ValidationError(f"Title must be at most {MAX_TITLE_LENGTH} characters")
            url.title = title
        if "is_active" in fields:
            if fields["is_active"] is None:
                raise ValidationError("is_active cannot be null")
            url.is_active = fields["is_active"]
        if "expires_at" in fields:
            url.expires_at = ensure_utc(fields["expires_at"])

        self.db.commit()
        self.db.refresh(url)
        logger.info("Updated URL %s", url.short_code)
        return url

    def delete(self, url_id: int, principal_id: int) -> None:
        """Delete a URL together with its clicks and aggregate row"""
        url = self.get_owned(url_id, principal_id)
        short_code = url.short_code
        self.urls.delete(url)
        self.db.commit()
        logger.info("Deleted URL %s", short_code)
