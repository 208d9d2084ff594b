"""Shared fixtures for tests."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from email.utils import format_datetime

import httplib2
import pytest
from googleapiclient.errors import HttpError

from gmail_declutter.constants import CATEGORY_QUERIES
from gmail_declutter.gmail_client import _parse_from_header, sender_display_name, with_trash_exclusion
from gmail_declutter.models import RawMessage

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def http_error(status: int, reason: str = "error") -> HttpError:
    return HttpError(httplib2.Response({"status": status}), reason.encode())


def query_for(category: str) -> str:
    """The exact query the pager sends for ``category``."""
    return with_trash_exclusion(CATEGORY_QUERIES[category])


def metadata_response(
    message_id: str,
    sender: str = "Shop <deals@shop.example>",
    subject: str = "Hello",
    date: datetime | None = None,
    labels: list[str] | None = None,
) -> dict:
    headers = []
    if sender is not None:
        headers.append({"name": "From", "value": sender})
    if subject is not None:
        headers.append({"name": "Subject", "value": subject})
    headers.append({"name": "Date", "value": format_datetime(date or NOW - timedelta(days=3))})
    return {
        "id": message_id,
        "threadId": f"t_{message_id}",
        "labelIds": labels or ["INBOX"],
        "snippet": f"snippet of {message_id}",
        "sizeEstimate": 2048,
        "payload": {"headers": headers},
    }


class _Request:
    def __init__(self, fn) -> None:
        self._fn = fn

    def execute(self):
        return self._fn()


class FakeGmailService:
    """In-memory stand-in for the ``users().messages()`` resource chain.

    ``ids`` maps a full query string to the message IDs it matches; list
    pages are sliced from it with ``maxResults`` and an offset page token.
    """

    def __init__(
        self,
        ids: dict[str, list[str]] | None = None,
        messages: dict[str, dict] | None = None,
        profile: dict | None = None,
    ) -> None:
        self.ids = ids or {}
        self.message_store = messages or {}
        self.profile = profile or {"emailAddress": "me@example.com", "messagesTotal": 100, "threadsTotal": 80}
        self.list_errors: dict[str, Exception] = {}  # query -> error on every page
        self.page_errors: dict[int, Exception] = {}  # page number -> error
        self.fetch_errors: dict[str, Exception] = {}
        self.trash_errors: dict[str, Exception] = {}
        self.modify_errors: dict[str, Exception] = {}
        self.on_list = None
        self.list_calls: list[dict] = []
        self.get_calls: list[str] = []
        self.trashed: list[str] = []
        self.modified: list[tuple[str, dict]] = []

    # resource chain
    def users(self):
        return self

    def messages(self):
        return self

    def getProfile(self, userId):
        return _Request(lambda: dict(self.profile))

    def list(self, userId, q, maxResults, fields=None, pageToken=None):
        def run():
            self.list_calls.append({"q": q, "maxResults": maxResults, "pageToken": pageToken})
            if self.on_list is not None:
                self.on_list(q)
            if q in self.list_errors:
                raise self.list_errors[q]
            page_num = sum(1 for call in self.list_calls if call["q"] == q)
            if page_num in self.page_errors:
                raise self.page_errors[page_num]
            ids = self.ids.get(q, [])
            start = int(pageToken or 0)
            chunk = ids[start:start + maxResults]
            resp: dict = {}
            if chunk:
                resp["messages"] = [{"id": i, "threadId": f"t_{i}"} for i in chunk]
            if start + maxResults < len(ids):
                resp["nextPageToken"] = str(start + maxResults)
            return resp

        return _Request(run)

    def get(self, userId, id, format=None, metadataHeaders=None):
        def run():
            self.get_calls.append(id)
            if id in self.fetch_errors:
                raise self.fetch_errors[id]
            if id not in self.message_store:
                raise http_error(404, "not found")
            return self.message_store[id]

        return _Request(run)

    def trash(self, userId, id):
        def run():
            if id in self.trash_errors:
                raise self.trash_errors[id]
            self.trashed.append(id)
            return {"id": id, "labelIds": ["TRASH"]}

        return _Request(run)

    def modify(self, userId, id, body):
        def run():
            if id in self.modify_errors:
                raise self.modify_errors[id]
            self.modified.append((id, body))
            return {"id": id, "labelIds": body["addLabelIds"]}

        return _Request(run)


@pytest.fixture
def make_message():
    """Factory for RawMessage snapshots with sensible defaults."""

    def _make(
        subject: str = "Hello",
        sender: str = "Shop <deals@shop.example>",
        days_old: float = 3,
        labels: tuple[str, ...] = ("INBOX",),
        message_id: str = "m1",
    ) -> RawMessage:
        _, email = _parse_from_header(sender)
        return RawMessage(
            message_id=message_id,
            sender=sender,
            sender_email=email.lower(),
            sender_name=sender_display_name(sender),
            subject=subject,
            date=NOW - timedelta(days=days_old),
            labels=labels,
        )

    return _make
