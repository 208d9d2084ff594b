"""Rule-based classification of messages into cleanup categories.

Every category is confirmed independently: the provider query in
``CATEGORY_QUERIES`` is only a coarse pre-filter, and the rule below is
re-checked on the fetched metadata.  A message can therefore satisfy more
than one category (a "weekly newsletter" is both a subscription and a
newsletter); no priority between categories is applied.
"""

from __future__ import annotations

import math
import re
from datetime import datetime

from .constants import (
    CATEGORIES,
    CODE_PATTERN,
    COMMERCIAL_INDICATORS,
    EXPIRY_DAYS,
    EXPLICIT_COMMERCIAL_INDICATORS,
    FREQUENCY_PATTERNS,
    GMAIL_CATEGORY_LABELS,
    NEWSLETTER_DEFAULT_TYPE,
    NEWSLETTER_SENDER_KEYWORDS,
    NEWSLETTER_SUBJECT_PATTERN,
    NEWSLETTER_TYPE_PATTERNS,
    NEWSLETTERS,
    OTP_PATTERN,
    PERSONAL_DOMAINS,
    PERSONAL_INDICATORS,
    PROMOTION_DEFAULT_TYPE,
    PROMOTION_LABELS,
    PROMOTION_SENDER_KEYWORDS,
    PROMOTION_SUBJECT_PATTERN,
    PROMOTION_TYPE_PATTERNS,
    PROMOTIONS,
    RECEIPT_KEYWORDS,
    RECEIPT_TYPE_KEYWORDS,
    RECEIPTS,
    REGULAR,
    REGULAR_NEGATIVE_PATTERN,
    SECURITY_PATTERN,
    SUBSCRIPTION_SENDER_KEYWORDS,
    SUBSCRIPTION_SUBJECT_PATTERN,
    SUBSCRIPTIONS,
    TEMP_CODES,
    VERIFICATION_PATTERN,
)
from .models import (
    CategoryResult,
    NewsletterResult,
    PromotionalResult,
    RawMessage,
    ReceiptResult,
    RegularResult,
    SubscriptionResult,
    TemporaryCodeResult,
    utcnow,
)

_SECONDS_PER_DAY = 24 * 60 * 60


def days_since(date: datetime, now: datetime) -> int:
    """Whole days between ``date`` and ``now``, rounded up."""
    return math.ceil(abs((now - date).total_seconds()) / _SECONDS_PER_DAY)


def _search(pattern: str, text: str) -> re.Match | None:
    return re.search(pattern, text, re.IGNORECASE)


def _first_kind(patterns: list[tuple[str, str]], text: str, default: str | None) -> str | None:
    for kind, pattern in patterns:
        if _search(pattern, text):
            return kind
    return default


def _sender_has(message: RawMessage, keywords: list[str]) -> bool:
    sender = message.sender.lower()
    return any(keyword in sender for keyword in keywords)


def _classify_temp_code(message: RawMessage, days_ago: int) -> TemporaryCodeResult | None:
    subject = message.subject
    is_verification = _search(VERIFICATION_PATTERN, subject)
    is_otp = _search(OTP_PATTERN, subject)
    is_security = _search(SECURITY_PATTERN, subject)
    code_match = _search(CODE_PATTERN, subject)

    if not (is_verification or is_otp or is_security or code_match):
        return None

    if is_otp:
        code_type = "otp"
    elif is_security:
        code_type = "security"
    else:
        code_type = "verification"

    return TemporaryCodeResult.from_message(
        message,
        days_ago,
        code_type=code_type,
        code=code_match.group(0) if code_match else None,
        is_expired=days_ago > EXPIRY_DAYS,
    )


def _classify_subscription(message: RawMessage, days_ago: int) -> SubscriptionResult | None:
    if not (
        _search(SUBSCRIPTION_SUBJECT_PATTERN, message.subject)
        or _sender_has(message, SUBSCRIPTION_SENDER_KEYWORDS)
    ):
        return None
    frequency = _first_kind(FREQUENCY_PATTERNS, message.subject, None)
    return SubscriptionResult.from_message(message, days_ago, frequency=frequency)


def _classify_promotion(message: RawMessage, days_ago: int) -> PromotionalResult | None:
    if not (
        _search(PROMOTION_SUBJECT_PATTERN, message.subject)
        or _sender_has(message, PROMOTION_SENDER_KEYWORDS)
        or any(label in message.labels for label in PROMOTION_LABELS)
    ):
        return None
    promotion_type = _first_kind(PROMOTION_TYPE_PATTERNS, message.subject, PROMOTION_DEFAULT_TYPE)
    return PromotionalResult.from_message(message, days_ago, promotion_type=promotion_type)


def _classify_newsletter(message: RawMessage, days_ago: int) -> NewsletterResult | None:
    if not (
        _search(NEWSLETTER_SUBJECT_PATTERN, message.subject)
        or _sender_has(message, NEWSLETTER_SENDER_KEYWORDS)
    ):
        return None
    newsletter_type = _first_kind(NEWSLETTER_TYPE_PATTERNS, message.subject, NEWSLETTER_DEFAULT_TYPE)
    return NewsletterResult.from_message(message, days_ago, newsletter_type=newsletter_type)


def is_personal_sender(message: RawMessage) -> bool:
    """True when the sender looks like an individual on a webmail provider."""
    domain = message.sender_email.rsplit("@", 1)[-1]
    if any(domain == d or domain.endswith("." + d) for d in PERSONAL_DOMAINS):
        return True
    return _sender_has(message, PERSONAL_INDICATORS)


def _classify_receipt(message: RawMessage, days_ago: int) -> ReceiptResult | None:
    sender = message.sender.lower()
    name = message.sender_name.lower()
    subject = message.subject.lower()

    # Receipt keywords alone over-match personal correspondence
    if is_personal_sender(message) and not any(
        indicator in sender or indicator in subject for indicator in EXPLICIT_COMMERCIAL_INDICATORS
    ):
        return None

    has_commercial = any(
        indicator in sender or indicator in name for indicator in COMMERCIAL_INDICATORS
    )
    has_keyword = any(keyword in subject for keyword in RECEIPT_KEYWORDS)
    if not (has_commercial or has_keyword):
        return None

    receipt_type = None
    for kind, keywords in RECEIPT_TYPE_KEYWORDS:
        if any(keyword in subject for keyword in keywords):
            receipt_type = kind
            break

    return ReceiptResult.from_message(message, days_ago, receipt_type=receipt_type)


def _classify_regular(message: RawMessage, days_ago: int) -> RegularResult | None:
    if any(label in message.labels for label in GMAIL_CATEGORY_LABELS):
        return None
    if _search(REGULAR_NEGATIVE_PATTERN, message.subject):
        return None
    return RegularResult.from_message(message, days_ago)


_RULES = {
    TEMP_CODES: _classify_temp_code,
    SUBSCRIPTIONS: _classify_subscription,
    PROMOTIONS: _classify_promotion,
    NEWSLETTERS: _classify_newsletter,
    RECEIPTS: _classify_receipt,
    REGULAR: _classify_regular,
}


def has_required_fields(message: RawMessage) -> bool:
    return bool(message.sender) and message.subject is not None and message.date is not None


def classify(
    message: RawMessage,
    category: str,
    now: datetime | None = None,
) -> CategoryResult | None:
    """Confirm ``message`` against one category's rule.

    Returns the category result with its sub-attributes, or None when the
    message does not confirm or lacks a required field.  ``days_ago`` is
    computed against ``now`` on every call.
    """
    try:
        rule = _RULES[category]
    except KeyError:
        raise ValueError(f"Unknown category: {category}") from None

    if not has_required_fields(message):
        return None

    now = now or utcnow()
    return rule(message, days_since(message.date, now))


def classify_all(message: RawMessage, now: datetime | None = None) -> list[CategoryResult]:
    """Return a result for every category ``message`` confirms."""
    now = now or utcnow()
    results = []
    for category in CATEGORIES:
        result = classify(message, category, now=now)
        if result is not None:
            results.append(result)
    return results
