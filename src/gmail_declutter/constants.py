"""Constants for Gmail Declutter."""

from pathlib import Path

# --- Config paths ---
CONFIG_DIR = Path.home() / ".gmail-declutter"
CREDENTIALS_PATH = CONFIG_DIR / "credentials.json"
TOKEN_PATH = CONFIG_DIR / "token.json"
CACHE_DB_PATH = CONFIG_DIR / "summaries.db"
STATE_PATH = CONFIG_DIR / "state.json"
DELETION_LOG_PATH = CONFIG_DIR / "deletion_log.json"
RULES_PATH = CONFIG_DIR / "automation_rules.json"

# --- Gmail API ---
SCOPES = ["https://www.googleapis.com/auth/gmail.modify"]
PAGE_SIZE = 500  # provider maximum per list page
DEFAULT_TOTAL_LIMIT = 1000  # identifiers per category query
METADATA_HEADERS = ["From", "Subject", "Date"]
TRASH_EXCLUSION = "-in:trash"
HTTP_TIMEOUT = 30  # seconds
RETRY_ATTEMPTS = 5
REQUESTS_PER_SECOND = 10.0
FETCH_CONCURRENCY = 1
GMAIL_TRASH_URL = "https://mail.google.com/mail/u/0/#trash"
GMAIL_TRASH_SEARCH_URL = "https://mail.google.com/mail/u/0/#search/in%3Atrash+"

# --- Categories ---
TEMP_CODES = "temp-codes"
SUBSCRIPTIONS = "subscriptions"
PROMOTIONS = "promotions"
NEWSLETTERS = "newsletters"
RECEIPTS = "receipts"
REGULAR = "regular"

CATEGORIES = [TEMP_CODES, SUBSCRIPTIONS, PROMOTIONS, NEWSLETTERS, RECEIPTS, REGULAR]

CATEGORY_TITLES = {
    TEMP_CODES: "Temporary Codes",
    SUBSCRIPTIONS: "Subscriptions",
    PROMOTIONS: "Promotions",
    NEWSLETTERS: "Newsletters",
    RECEIPTS: "Orders & Receipts",
    REGULAR: "Regular Emails",
}

# Categories counted towards the declutter potential
DECLUTTER_CATEGORIES = [TEMP_CODES, SUBSCRIPTIONS, PROMOTIONS, NEWSLETTERS]

CATEGORY_QUERIES = {
    TEMP_CODES: (
        'subject:(verification OR code OR otp OR "security code" OR "confirmation code" '
        'OR verify OR authenticate OR "login code" OR "access code" OR pin OR token '
        'OR "two-factor" OR 2fa OR "multi-factor" OR mfa OR "sign in" OR activation '
        'OR validation OR temporary OR "one-time") '
        'OR from:(noreply OR "no-reply" OR security OR auth OR verification OR support)'
    ),
    SUBSCRIPTIONS: (
        'subject:(subscription OR subscribed OR renewal OR renew OR membership '
        'OR "your plan" OR trial OR daily OR weekly OR monthly) '
        "OR from:(subscriptions OR subscription OR billing OR membership)"
    ),
    PROMOTIONS: (
        'category:promotions OR subject:(sale OR deal OR deals OR offer OR coupon '
        'OR discount OR "% off" OR promo OR "limited time" OR "free shipping")'
    ),
    NEWSLETTERS: (
        'subject:(newsletter OR digest OR roundup OR bulletin OR edition OR news '
        'OR update OR alert) OR from:(newsletter OR news OR digest OR substack)'
    ),
    RECEIPTS: (
        '(receipt OR order OR invoice OR bill OR purchase OR payment OR transaction '
        'OR confirmation OR "order confirmation" OR "shipping confirmation" '
        'OR "order details" OR "payment receipt") '
        "-from:personal -from:friend -from:family"
    ),
    REGULAR: (
        "-category:promotions -category:social -category:updates -category:forums "
        "-subject:(verification OR code OR otp OR unsubscribe OR newsletter OR digest "
        "OR receipt OR order OR invoice OR sale OR deal OR offer OR subscription)"
    ),
}

CATEGORY_LIMITS = {
    TEMP_CODES: 1000,
    SUBSCRIPTIONS: 1000,
    PROMOTIONS: 1000,
    NEWSLETTERS: 1000,
    RECEIPTS: 100,
    REGULAR: 1000,
}

# --- Temporary codes ---
CODE_PATTERN = r"\b\d{4,8}\b"
VERIFICATION_PATTERN = r"verification|verify|confirm"
OTP_PATTERN = r"otp|one-?time|passcode"
SECURITY_PATTERN = r"security code|secure|authentication"
EXPIRY_DAYS = 1

# --- Subscriptions ---
SUBSCRIPTION_SUBJECT_PATTERN = r"subscri|renew|membership|your plan|trial|daily|weekly|monthly"
SUBSCRIPTION_SENDER_KEYWORDS = ["subscription", "billing@", "membership"]
FREQUENCY_PATTERNS = [
    ("daily", r"\bdaily\b|every day|today'?s"),
    ("weekly", r"\bweekly\b|this week|every week"),
    ("monthly", r"\bmonthly\b|this month|every month"),
]

# --- Promotions ---
PROMOTION_SUBJECT_PATTERN = (
    r"\bsale\b|\bdeals?\b|\boffers?\b|coupon|discount|% off|\bpromo|limited time|free shipping"
)
PROMOTION_SENDER_KEYWORDS = ["marketing", "promo", "deals", "offers", "shop"]
PROMOTION_LABELS = ["CATEGORY_PROMOTIONS"]
PROMOTION_TYPE_PATTERNS = [
    ("coupon", r"coupon|promo code|voucher"),
    ("sale", r"\bsale\b|% off|discount|clearance"),
    ("deal", r"\bdeals?\b"),
]
PROMOTION_DEFAULT_TYPE = "offer"

# --- Newsletters ---
NEWSLETTER_SUBJECT_PATTERN = (
    r"newsletter|digest|roundup|bulletin|edition|issue #|\bnews\b|\bupdates?\b|\balerts?\b"
)
NEWSLETTER_SENDER_KEYWORDS = ["newsletter", "news@", "digest", "substack", "updates@"]
NEWSLETTER_TYPE_PATTERNS = [
    ("digest", r"digest|roundup|recap"),
    ("alert", r"\balerts?\b|breaking"),
    ("update", r"\bupdates?\b"),
]
NEWSLETTER_DEFAULT_TYPE = "news"

# --- Receipts ---
PERSONAL_DOMAINS = [
    "gmail.com",
    "yahoo.com",
    "hotmail.com",
    "outlook.com",
    "icloud.com",
]
PERSONAL_INDICATORS = ["personal", "friend", "family", "@student", "@edu"]
EXPLICIT_COMMERCIAL_INDICATORS = [
    "noreply",
    "no-reply",
    "invoice",
    "order confirmation",
    "receipt",
    "payment confirmation",
]
COMMERCIAL_INDICATORS = [
    "noreply",
    "no-reply",
    "receipt",
    "order",
    "invoice",
    "billing",
    "payment",
    "shop",
    "store",
    "amazon",
    "paypal",
    "stripe",
    "square",
    "uber",
    "lyft",
    "doordash",
    "grubhub",
    "apple",
    "google",
    "microsoft",
    "netflix",
    "spotify",
]
RECEIPT_KEYWORDS = [
    "receipt",
    "order confirmation",
    "purchase confirmation",
    "payment confirmation",
    "invoice",
    "bill",
    "payment received",
    "transaction",
    "order details",
    "shipping confirmation",
    "delivery confirmation",
    "payment summary",
]
RECEIPT_TYPE_KEYWORDS = [
    ("order", ["order", "purchase", "shipping"]),
    ("bill", ["bill", "payment due"]),
    ("invoice", ["invoice"]),
    ("receipt", ["receipt", "payment", "transaction"]),
]

# --- Regular ---
GMAIL_CATEGORY_LABELS = [
    "CATEGORY_PROMOTIONS",
    "CATEGORY_SOCIAL",
    "CATEGORY_UPDATES",
    "CATEGORY_FORUMS",
]
REGULAR_NEGATIVE_PATTERN = (
    r"verification|\bcode\b|\botp\b|unsubscribe|newsletter|digest|receipt|\border\b"
    r"|invoice|\bsale\b|\bdeal\b|\boffer\b|subscription"
)

# --- Reconciliation state ---
STATE_SCHEMA_VERSION = 1

# --- Display / history ---
SAMPLE_LIMIT = 5
HISTORY_WINDOW_DAYS = 30
AVERAGE_EMAIL_SIZE_KB = 100
RULE_FREQUENCIES = ["daily", "weekly", "monthly"]
