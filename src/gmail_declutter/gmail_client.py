"""Gmail API client functions for paging, fetching and trashing messages."""

from __future__ import annotations

import logging
import re
from datetime import timezone
from email.utils import parsedate_to_datetime
from typing import Iterator

from google.auth.exceptions import RefreshError
from googleapiclient.errors import HttpError
from httplib2 import HttpLib2Error
from tenacity import retry, retry_if_exception, stop_after_attempt, wait_exponential

from gmail_declutter.constants import (
    METADATA_HEADERS,
    PAGE_SIZE,
    RETRY_ATTEMPTS,
    TRASH_EXCLUSION,
)
from gmail_declutter.errors import FetchError, MalformedMessageError, TrashOperationError, Unauthorized
from gmail_declutter.models import RawMessage

logger = logging.getLogger(__name__)

_FROM_RE = re.compile(r"^(.*?)\s*<([^>]+)>$")

# Failures that only affect the current page or item
TRANSIENT_ERRORS = (HttpError, HttpLib2Error, OSError)


def _is_retryable_http_error(exc: BaseException) -> bool:
    return isinstance(exc, HttpError) and exc.resp.status in (429, 500, 503)


def _is_auth_error(exc: BaseException) -> bool:
    if isinstance(exc, RefreshError):
        return True
    return isinstance(exc, HttpError) and exc.resp.status == 401


def _parse_from_header(from_value: str) -> tuple[str, str]:
    """Parse a From header into (display name, email address).

    Handles formats like:
      "John Doe <john@example.com>" -> ("John Doe", "john@example.com")
      "<john@example.com>"          -> ("", "john@example.com")
      "john@example.com"            -> ("", "john@example.com")
    """
    if not from_value:
        return ("", "")
    m = _FROM_RE.match(from_value.strip())
    if m:
        name = m.group(1).strip().strip('"').strip("'")
        return (name, m.group(2).strip())
    email = from_value.strip().strip("<>")
    return ("", email)


def sender_display_name(from_value: str) -> str:
    """Return a human-friendly sender name.

    Falls back to the capitalised first label of the sender's domain
    ("Acme <noreply@acme.com>" -> "Acme", "<noreply@acme.com>" -> "Acme"),
    and finally to the raw header.
    """
    name, email = _parse_from_header(from_value)
    if name:
        return name
    if "@" in email:
        label = email.split("@", 1)[1].split(".")[0]
        if label:
            return label[:1].upper() + label[1:]
    return from_value


def with_trash_exclusion(query: str) -> str:
    """Append the trash-exclusion clause so trashed items are never counted."""
    query = (query or "").strip()
    if TRASH_EXCLUSION in query:
        return query
    return f"{query} {TRASH_EXCLUSION}".strip()


@retry(
    retry=retry_if_exception(_is_retryable_http_error),
    wait=wait_exponential(multiplier=1, min=1, max=60),
    stop=stop_after_attempt(RETRY_ATTEMPTS),
    reraise=True,
)
def _execute(request) -> dict:
    return request.execute()


def _run(request, attempts: int = RETRY_ATTEMPTS) -> dict:
    """Execute a request with retries, mapping credential failures to Unauthorized."""
    try:
        if attempts == RETRY_ATTEMPTS:
            return _execute(request)
        return _execute.retry_with(stop=stop_after_attempt(attempts))(request)
    except Exception as exc:
        if _is_auth_error(exc):
            raise Unauthorized(f"Gmail rejected the credential: {exc}") from exc
        raise


def page_message_ids(
    service,
    query: str,
    total_limit: int,
    page_size: int = PAGE_SIZE,
    limiter=None,
) -> Iterator[str]:
    """Yield message IDs matching ``query`` across pages, at most ``total_limit``.

    Trashed items are always excluded.  A page request that fails with a
    transient error ends the listing; IDs already yielded stand.  Pages are
    never retried.  When a ``limiter`` is given, a token is taken before
    every page request.
    """
    q = with_trash_exclusion(query)
    yielded = 0
    page_token: str | None = None
    page_num = 0

    while yielded < total_limit:
        page_num += 1
        kwargs: dict = {
            "userId": "me",
            "q": q,
            "maxResults": min(page_size, total_limit - yielded),
            "fields": "messages/id,nextPageToken",
        }
        if page_token:
            kwargs["pageToken"] = page_token

        if limiter is not None:
            limiter.acquire()
        try:
            resp = _run(service.users().messages().list(**kwargs), attempts=1)
        except Unauthorized:
            raise
        except TRANSIENT_ERRORS as exc:
            logger.warning("Listing stopped on page %d after %d messages: %s", page_num, yielded, exc)
            return

        messages = resp.get("messages", [])
        logger.debug("Page %d returned %d messages", page_num, len(messages))
        for msg in messages:
            yield msg["id"]
            yielded += 1
            if yielded >= total_limit:
                return

        page_token = resp.get("nextPageToken")
        if not page_token or not messages:
            return


def message_from_response(message_id: str, response: dict) -> RawMessage:
    """Build a RawMessage from a ``messages.get`` metadata response."""
    headers: dict[str, str] = {}
    for h in response.get("payload", {}).get("headers", []):
        headers.setdefault(h.get("name", "").lower(), h.get("value", ""))

    missing = [name for name in METADATA_HEADERS if name.lower() not in headers]
    if missing:
        raise MalformedMessageError(message_id, missing)

    try:
        date = parsedate_to_datetime(headers["date"])
    except (TypeError, ValueError, IndexError) as exc:
        raise MalformedMessageError(message_id, ["Date"]) from exc
    if date is None:
        raise MalformedMessageError(message_id, ["Date"])
    if date.tzinfo is None:
        date = date.replace(tzinfo=timezone.utc)

    from_value = headers["from"]
    _, email = _parse_from_header(from_value)

    return RawMessage(
        message_id=response.get("id", message_id),
        sender=from_value,
        sender_email=email.lower(),
        sender_name=sender_display_name(from_value),
        subject=headers["subject"],
        date=date,
        thread_id=response.get("threadId", ""),
        size_estimate=int(response.get("sizeEstimate", 0) or 0),
        labels=tuple(response.get("labelIds", [])),
        snippet=response.get("snippet", ""),
    )


def fetch_message(service, message_id: str, attempts: int = RETRY_ATTEMPTS) -> RawMessage:
    """Fetch the From/Subject/Date metadata projection of one message."""
    request = service.users().messages().get(
        userId="me",
        id=message_id,
        format="metadata",
        metadataHeaders=METADATA_HEADERS,
    )
    try:
        response = _run(request, attempts=attempts)
    except Unauthorized:
        raise
    except TRANSIENT_ERRORS as exc:
        raise FetchError(message_id, str(exc)) from exc

    return message_from_response(message_id, response)


def trash_message(service, message_id: str, attempts: int = RETRY_ATTEMPTS) -> dict:
    """Move one message to trash with the dedicated ``trash`` verb."""
    try:
        return _run(service.users().messages().trash(userId="me", id=message_id), attempts=attempts)
    except Unauthorized:
        raise
    except TRANSIENT_ERRORS as exc:
        raise TrashOperationError(message_id, "trash", str(exc)) from exc


def modify_to_trash(service, message_id: str, attempts: int = RETRY_ATTEMPTS) -> dict:
    """Trash one message by label mutation: add TRASH, remove INBOX."""
    request = service.users().messages().modify(
        userId="me",
        id=message_id,
        body={
            "addLabelIds": ["TRASH"],
            "removeLabelIds": ["INBOX"],
        },
    )
    try:
        return _run(request, attempts=attempts)
    except Unauthorized:
        raise
    except TRANSIENT_ERRORS as exc:
        raise TrashOperationError(message_id, "modify", str(exc)) from exc


def get_profile(service) -> dict:
    """Return the mailbox profile (address, message and thread totals)."""
    return _run(service.users().getProfile(userId="me"))
