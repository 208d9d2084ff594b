"""Tests for the Gmail API client functions."""

from datetime import timezone

import pytest

from conftest import FakeGmailService, http_error, metadata_response
from gmail_declutter.errors import FetchError, MalformedMessageError, TrashOperationError, Unauthorized
from gmail_declutter.gmail_client import (
    _parse_from_header,
    fetch_message,
    message_from_response,
    modify_to_trash,
    page_message_ids,
    sender_display_name,
    trash_message,
    with_trash_exclusion,
)

QUERY = with_trash_exclusion("subject:sale")


def _service_with(count: int) -> FakeGmailService:
    return FakeGmailService(ids={QUERY: [f"m{i}" for i in range(count)]})


class _CountingLimiter:
    def __init__(self) -> None:
        self.calls = 0

    def acquire(self) -> None:
        self.calls += 1


def test_pager_stops_at_total_limit():
    """The pager never yields more than total_limit IDs."""
    service = _service_with(1200)
    ids = list(page_message_ids(service, "subject:sale", total_limit=1000, page_size=500))
    assert len(ids) == 1000
    assert ids == [f"m{i}" for i in range(1000)]
    assert [call["maxResults"] for call in service.list_calls] == [500, 500]


def test_pager_shrinks_last_page():
    """The last page only asks for what is left of the limit."""
    service = _service_with(2000)
    ids = list(page_message_ids(service, "subject:sale", total_limit=700, page_size=500))
    assert len(ids) == 700
    assert [call["maxResults"] for call in service.list_calls] == [500, 200]


def test_pager_does_not_pad_short_mailbox():
    """Fewer matches than the limit yields exactly the matches, in one page."""
    service = _service_with(3)
    ids = list(page_message_ids(service, "subject:sale", total_limit=1000))
    assert ids == ["m0", "m1", "m2"]
    assert len(service.list_calls) == 1


def test_pager_stops_on_empty_page():
    """An empty first page ends the listing."""
    service = FakeGmailService()
    assert list(page_message_ids(service, "subject:sale", total_limit=10)) == []
    assert len(service.list_calls) == 1


def test_pager_keeps_prefix_on_page_error():
    """A failing page ends the listing without discarding earlier pages."""
    service = _service_with(1500)
    service.page_errors[2] = http_error(503, "backend error")
    ids = list(page_message_ids(service, "subject:sale", total_limit=1500, page_size=500))
    assert ids == [f"m{i}" for i in range(500)]
    # Pages are never retried
    assert len(service.list_calls) == 2


def test_pager_appends_trash_exclusion():
    """Every page request excludes trashed messages."""
    service = _service_with(5)
    list(page_message_ids(service, "subject:sale", total_limit=10))
    assert service.list_calls[0]["q"] == "subject:sale -in:trash"


def test_trash_exclusion_is_not_duplicated():
    assert with_trash_exclusion("subject:sale -in:trash") == "subject:sale -in:trash"
    assert with_trash_exclusion("") == "-in:trash"


def test_pager_takes_a_token_per_page():
    """The rate limiter is consulted before every page request."""
    service = _service_with(25)
    limiter = _CountingLimiter()
    ids = list(page_message_ids(service, "subject:sale", total_limit=25, page_size=10, limiter=limiter))
    assert len(ids) == 25
    assert limiter.calls == 3


def test_pager_unauthorized_propagates():
    """A rejected credential is not swallowed like a transient error."""
    service = _service_with(5)
    service.list_errors[QUERY] = http_error(401, "invalid credentials")
    with pytest.raises(Unauthorized):
        list(page_message_ids(service, "subject:sale", total_limit=10))


def test_message_from_response():
    """Headers are parsed case-insensitively into a RawMessage."""
    response = metadata_response("abc", sender='"Acme Store" <Orders@Acme.COM>', subject="Your order")
    response["payload"]["headers"][0]["name"] = "FROM"
    message = message_from_response("abc", response)
    assert message.message_id == "abc"
    assert message.sender_email == "orders@acme.com"
    assert message.sender_name == "Acme Store"
    assert message.subject == "Your order"
    assert message.date.tzinfo is not None
    assert message.thread_id == "t_abc"
    assert message.size_estimate == 2048
    assert message.labels == ("INBOX",)


def test_message_missing_subject_is_malformed():
    response = metadata_response("abc", subject=None)
    with pytest.raises(MalformedMessageError) as excinfo:
        message_from_response("abc", response)
    assert excinfo.value.missing == ["Subject"]


def test_message_bad_date_is_malformed():
    response = metadata_response("abc")
    response["payload"]["headers"][2]["value"] = "not a date"
    with pytest.raises(MalformedMessageError):
        message_from_response("abc", response)


def test_naive_date_is_treated_as_utc():
    response = metadata_response("abc")
    response["payload"]["headers"][2]["value"] = "Sat, 15 Jun 2024 12:00:00 -0000"
    message = message_from_response("abc", response)
    assert message.date.tzinfo == timezone.utc


def test_fetch_message_failure_is_fetch_error():
    """A failing fetch raises FetchError for just that message."""
    service = FakeGmailService()
    with pytest.raises(FetchError) as excinfo:
        fetch_message(service, "missing", attempts=1)
    assert excinfo.value.message_id == "missing"


def test_fetch_message_unauthorized():
    service = FakeGmailService(messages={"m1": metadata_response("m1")})
    service.fetch_errors["m1"] = http_error(401)
    with pytest.raises(Unauthorized):
        fetch_message(service, "m1", attempts=1)


def test_trash_message_failure():
    service = FakeGmailService()
    service.trash_errors["m1"] = http_error(400, "failed precondition")
    with pytest.raises(TrashOperationError) as excinfo:
        trash_message(service, "m1", attempts=1)
    assert excinfo.value.operation == "trash"


def test_modify_to_trash_moves_labels():
    service = FakeGmailService()
    modify_to_trash(service, "m1", attempts=1)
    assert service.modified == [("m1", {"addLabelIds": ["TRASH"], "removeLabelIds": ["INBOX"]})]


def test_parse_from_header():
    assert _parse_from_header("John Doe <john@example.com>") == ("John Doe", "john@example.com")
    assert _parse_from_header("<john@example.com>") == ("", "john@example.com")
    assert _parse_from_header("john@example.com") == ("", "john@example.com")
    assert _parse_from_header("") == ("", "")


def test_sender_display_name_falls_back_to_domain():
    """Without a display name the domain's first label is used."""
    assert sender_display_name("Acme <noreply@acme.com>") == "Acme"
    assert sender_display_name("<noreply@netflix.com>") == "Netflix"
    assert sender_display_name("noreply@mail.github.com") == "Mail"
