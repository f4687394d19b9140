import logging
import re
from datetime import datetime
from typing import Optional
from urllib.parse import urlparse

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from clicklink_app.config import Settings
from clicklink_app.exceptions import (
    AliasConflictError,
    CodeSpaceExhaustedError,
    InternalError,
    ValidationError,
)
from clicklink_app.models.url import URL
from clicklink_app.services.short_code_strategies import (
    RandomShortCodeStrategy,
    ShortCodeAttemptPlan,
    ShortCodeStrategy,
)
from clicklink_app.storage import AggregateStore, ShortCodeTakenError, URLStore
from clicklink_app.utils.clock import ensure_utc

logger = logging.getLogger(__name__)

ALIAS_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
ALLOWED_SCHEMES = ("http", "https")
MAX_TITLE_LENGTH = 255


class CreationService:
    """
    Creates short URLs.

    A URL row and its zeroed url_analytics row are committed together or not
    at all. Generated codes walk a bounded attempt plan (6 chars, then 8);
    both the pre-check and the unique constraint at insert time count as a
    collision. Explicit aliases are never substituted.
    """

    def __init__(self, db: Session, settings: Settings, short_code_strategy: Optional[ShortCodeStrategy] = None):
        self.db = db
        self.settings = settings
        self.urls = URLStore(db)
        self.aggregates = AggregateStore(db)
        self.short_code_strategy = short_code_strategy or RandomShortCodeStrategy()
        self.attempt_plan = ShortCodeAttemptPlan(
            default_length=settings.short_code_length,
            escalated_length=settings.short_code_escalated_length,
            max_attempts=settings.short_code_max_attempts,
        )

    def create(
        self,
        original_url: Optional[str],
        custom_alias: Optional[str] = None,
        owner_id: Optional[int] = None,
        title: Optional[str] = None,
        expires_at: Optional[datetime] = None,
    ) -> URL:
        """
        Create a short URL for original_url.

        Raises:
            ValidationError: missing/malformed URL, bad alias or title
            AliasConflictError: custom_alias is already taken
            CodeSpaceExhaustedError: every generated candidate collided
            InternalError: the store failed while persisting
        """
        original_url = validate_original_url(original_url)
        if title is not None and len(title) > MAX_TITLE_LENGTH:
            raise ValidationError(f"Title must be at most {MAX_TITLE_LENGTH} characters")
        expires_at = ensure_utc(expires_at)

        if custom_alias is not None and custom_alias.strip():
            alias = self._validate_alias(custom_alias.strip())
            if self.urls.short_code_exists(alias):
                raise AliasConflictError(f"Custom alias '{alias}' already exists")
            try:
                return self._persist(original_url, alias, alias, owner_id, title, expires_at)
            except ShortCodeTakenError:
                raise AliasConflictError(f"Custom alias '{alias}' already exists")

        for attempt, length in enumerate(self.attempt_plan, start=1):
            candidate = self.short_code_strategy.generate(length)

            if self.urls.short_code_exists(candidate):
                logger.info("Short code collision on attempt %d (length %d)", attempt, length)
                continue

            try:
                return self._persist(original_url, candidate, None, owner_id, title, expires_at)
            except ShortCodeTakenError:
                # Another request inserted the same code after our pre-check
                logger.warning("Short code %s taken concurrently on attempt %d", candidate, attempt)

        logger.error("No unique short code after %d attempts", len(self.attempt_plan))
        raise CodeSpaceExhaustedError()

    def _persist(self, original_url, short_code, custom_alias, owner_id, title, expires_at) -> URL:
        url = URL(
            owner_id=owner_id,
            original_url=original_url,
            short_code=short_code,
            custom_alias=custom_alias,
            title=title,
            is_active=True,
            expires_at=expires_at,
        )
        try:
            self.urls.insert(url)
            self.aggregates.initialize(url.id)
            self.db.commit()
        except ShortCodeTakenError:
            self.db.rollback()
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("Failed to persist URL %s", short_code)
            raise InternalError(str(e)) from e

        self.db.refresh(url)
        logger.info("Created short URL %s (owner=%s)", url.short_code, owner_id)
        return url

    def _validate_alias(self, alias: str) -> str:
        if len(alias) > self.settings.max_alias_length:
            raise ValidationError(
                f"Custom alias must be at most {self.settings.max_alias_length} characters"
            )
        if not ALIAS_PATTERN.match(alias):
            raise ValidationError("Custom alias can only contain letters, digits, '-' and '_'")
        if alias.lower() in {word.lower() for word in self.settings.reserved_aliases}:
            raise ValidationError(f"'{alias}' is a reserved word and cannot be used")
        return alias


def validate_original_url(original_url: Optional[str]) -> str:
    """Return the stripped URL or raise ValidationError"""
    if original_url is None or not str(original_url).strip():
        raise ValidationError("Original URL is required")

    original_url = str(original_url).strip()
    if any(ch.isspace() for ch in original_url):
        raise ValidationError("Invalid URL format")

    try:
        parsed = urlparse(original_url)
        # Accessing port validates it
        parsed.port
    except ValueError:
        raise ValidationError("Invalid URL format")

    if parsed.scheme.lower() not in ALLOWED_SCHEMES or not parsed.hostname:
        raise ValidationError("Invalid URL format")

    return original_url
