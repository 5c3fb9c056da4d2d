import asyncio
import logging
from datetime import datetime
from functools import partial

from pricedrop.config import IngestionConfig
from pricedrop.exceptions.custom import GmailError, RateLimitError, RepositoryError
from pricedrop.mappers.email_parser import parse_booking_email
from pricedrop.mappers.gmail_payload import extract_body, get_header
from pricedrop.schemas.booking import Booking
from pricedrop.schemas.extraction import MatchRule, ParsingRules
from pricedrop.services.gmail import GmailService
from pricedrop.services.google_oauth import GoogleOAuthService
from pricedrop.services.repository import BookingRepository
from pricedrop.services.retry import Sleep, TokenState, call_with_auth_retry

logger = logging.getLogger(__name__)


def build_search_query(match: MatchRule) -> str:
    return f"from:{match.sender} subject:({match.subject_contains})"


class EmailIngestionService:
    def __init__(
        self,
        gmail: GmailService,
        repository: BookingRepository,
        config: IngestionConfig,
        oauth: GoogleOAuthService | None = None,
        sleep: Sleep = asyncio.sleep,
    ):
        self._gmail = gmail
        self._repository = repository
        self._config = config
        self._oauth = oauth
        self._sleep = sleep

    async def sync(
        self,
        access_token: str,
        user_id: str,
        rules: ParsingRules | None = None,
        refresh_token: str | None = None,
        now: datetime | None = None,
    ) -> list[Booking]:
        """Import booking confirmations from the mailbox.

        Messages are handled one at a time and capped per run; a message that
        cannot be fetched or stored is skipped. Auth failures that survive the
        retry loop abort the run with ReconnectRequiredError.
        """
        rules = rules or ParsingRules()
        tokens = TokenState(access_token)
        if refresh_token and self._oauth is not None:
            tokens.refresh = partial(self._oauth.refresh_access_token, refresh_token)

        query = build_search_query(rules.match)
        refs = await self._with_retry(
            lambda token: self._gmail.search_messages(token, query, self._config.max_messages),
            tokens,
        )
        if not refs:
            logger.info("No confirmation emails found for user %s", user_id)
            return []

        bookings: list[Booking] = []
        for ref in refs[: self._config.max_messages]:
            booking = await self._import_message(ref.id, tokens, rules, user_id, now)
            if booking is not None:
                bookings.append(booking)

        logger.info(
            "Imported %d bookings from %d messages for user %s",
            len(bookings), min(len(refs), self._config.max_messages), user_id,
        )
        return bookings

    async def _import_message(
        self,
        message_id: str,
        tokens: TokenState,
        rules: ParsingRules,
        user_id: str,
        now: datetime | None,
    ) -> Booking | None:
        try:
            message = await self._with_retry(
                lambda token: self._gmail.get_message(token, message_id), tokens
            )

            subject = get_header(message, "Subject") or ""
            if rules.match.subject_contains.lower() not in subject.lower():
                logger.debug("Skipping message %s, subject %r does not match", message_id, subject)
                return None

            body = extract_body(message)
            booking = parse_booking_email(
                body,
                message.id,
                rules=rules.extract,
                user_id=user_id,
                tz=self._config.tz,
                currency=self._config.default_currency,
                now=now,
            )
            return await self._repository.upsert_booking(booking)
        except (GmailError, RateLimitError, RepositoryError, ValueError) as exc:
            logger.warning("Skipping message %s: %s", message_id, exc)
            return None

    async def _with_retry(self, operation, tokens: TokenState):
        return await call_with_auth_retry(
            operation,
            tokens,
            max_retries=self._config.max_auth_retries,
            sleep=self._sleep,
        )
