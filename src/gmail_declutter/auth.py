"""Authentication helpers for Gmail API."""

from __future__ import annotations

from typing import Callable

import httplib2
from google.auth.exceptions import RefreshError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_httplib2 import AuthorizedHttp
from google_auth_oauthlib.flow import InstalledAppFlow
from googleapiclient.discovery import build, Resource

from gmail_declutter.config import Settings
from gmail_declutter.constants import CONFIG_DIR, CREDENTIALS_PATH, SCOPES, TOKEN_PATH
from gmail_declutter.errors import Unauthorized
from gmail_declutter.gmail_client import get_profile


def get_credentials() -> Credentials:
    """Return valid OAuth credentials for the Gmail API.

    Loads cached token from TOKEN_PATH if available.  When the token is
    expired it is silently refreshed; a rejected refresh raises
    Unauthorized.  If no token exists, an OAuth browser flow is launched
    (requires credentials.json at CREDENTIALS_PATH).
    """
    CONFIG_DIR.mkdir(parents=True, exist_ok=True)

    creds: Credentials | None = None

    if TOKEN_PATH.exists():
        creds = Credentials.from_authorized_user_file(str(TOKEN_PATH), SCOPES)

    if creds and creds.expired and creds.refresh_token:
        try:
            creds.refresh(Request())
        except RefreshError as exc:
            raise Unauthorized(
                f"Stored Gmail token was rejected ({exc}). Delete {TOKEN_PATH} and sign in again."
            ) from exc
    elif not creds or not creds.valid:
        if not CREDENTIALS_PATH.exists():
            raise FileNotFoundError(
                f"Credentials file not found at {CREDENTIALS_PATH}.\n"
                "Download your OAuth client credentials from the Google Cloud Console "
                "and save them as:\n"
                f"  {CREDENTIALS_PATH}"
            )
        flow = InstalledAppFlow.from_client_secrets_file(str(CREDENTIALS_PATH), SCOPES)
        creds = flow.run_local_server(port=0)

    TOKEN_PATH.write_text(creds.to_json())

    return creds


def build_service(creds: Credentials, timeout: float | None = None) -> Resource:
    """Build a Gmail v1 service whose HTTP calls time out after ``timeout`` seconds."""
    timeout = timeout if timeout is not None else Settings().http_timeout
    http = AuthorizedHttp(creds, http=httplib2.Http(timeout=timeout))
    return build("gmail", "v1", http=http, cache_discovery=False)


def service_factory(settings: Settings | None = None) -> Callable[[], Resource]:
    """Return a factory producing one independent service per caller thread."""
    settings = settings or Settings()
    creds = get_credentials()

    def factory() -> Resource:
        return build_service(creds, settings.http_timeout)

    return factory


def get_gmail_service(settings: Settings | None = None) -> Resource:
    """Return an authenticated Gmail API service object."""
    return service_factory(settings)()


def check_auth() -> bool:
    """Test whether Gmail authentication is working.

    Returns True when the service can reach the Gmail API, False otherwise.
    Prints human-readable status messages.
    """
    try:
        service = get_gmail_service()
        profile = get_profile(service)
        print(f"Authenticated as {profile['emailAddress']}")
        return True
    except (FileNotFoundError, Unauthorized) as exc:
        print(f"Authentication failed: {exc}")
        return False
    except Exception as exc:  # noqa: BLE001
        print(f"Authentication failed: {exc}")
        return False
