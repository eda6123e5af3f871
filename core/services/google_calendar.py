"""
Google Calendar API service for handling OAuth and event fetching.
"""
import logging
from datetime import datetime, timedelta, timezone as dt_timezone
from typing import Dict, List

from django.conf import settings
from django.utils import timezone
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import Flow
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from core.services.calendar_provider import (
    CalendarEventData, CalendarSyncError, _parse_iso_datetime, normalize_status,
)

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"


def _client_config() -> Dict:
    return {
        "web": {
            "client_id": settings.GOOGLE_OAUTH_CLIENT_ID,
            "client_secret": settings.GOOGLE_OAUTH_CLIENT_SECRET,
            "auth_uri": "https://accounts.google.com/o/oauth2/auth",
            "token_uri": TOKEN_URI,
        }
    }


class GoogleOAuthService:
    """Service for Google OAuth operations"""

    @staticmethod
    def get_authorization_url(state: str = None) -> str:
        """Generate Google OAuth authorization URL"""
        flow = Flow.from_client_config(
            _client_config(),
            scopes=settings.GOOGLE_SCOPES,
            redirect_uri=settings.GOOGLE_REDIRECT_URI
        )

        authorization_url, _ = flow.authorization_url(
            access_type='offline',
            include_granted_scopes='true',
            prompt='consent',
            state=state
        )

        return authorization_url

    @staticmethod
    def exchange_code_for_tokens(code: str) -> Dict:
        """Exchange authorization code for access and refresh tokens"""
        flow = Flow.from_client_config(
            _client_config(),
            scopes=settings.GOOGLE_SCOPES,
            redirect_uri=settings.GOOGLE_REDIRECT_URI
        )

        flow.fetch_token(code=code)
        credentials = flow.credentials

        if credentials.expiry:
            # google-auth hands back a naive UTC expiry
            expiry = credentials.expiry
            if expiry.tzinfo is None:
                expiry = expiry.replace(tzinfo=dt_timezone.utc)
        else:
            expiry = timezone.now() + timedelta(hours=1)

        return {
            'access_token': credentials.token,
            'refresh_token': credentials.refresh_token,
            'expires_at': expiry,
        }


class GoogleCalendarService:
    """Google Calendar access on behalf of one ``CalendarIntegration``"""

    def __init__(self, integration):
        self.integration = integration

    def get_credentials(self) -> Credentials:
        """Get or refresh Google OAuth credentials"""
        if not self.integration.refresh_token and not self.integration.access_token:
            raise CalendarSyncError("Google calendar is not connected")

        credentials = Credentials(
            token=self.integration.access_token,
            refresh_token=self.integration.refresh_token,
            token_uri=TOKEN_URI,
            client_id=settings.GOOGLE_OAUTH_CLIENT_ID,
            client_secret=settings.GOOGLE_OAUTH_CLIENT_SECRET,
            scopes=settings.GOOGLE_SCOPES,
        )

        # google-auth compares expiry against a naive utcnow
        if self.integration.token_expires_at:
            credentials.expiry = self.integration.token_expires_at.astimezone(dt_timezone.utc).replace(tzinfo=None)

        if not credentials.valid and credentials.refresh_token:
            self.refresh(credentials)

        return credentials

    def refresh(self, credentials: Credentials = None) -> None:
        credentials = credentials or Credentials(
            token=self.integration.access_token,
            refresh_token=self.integration.refresh_token,
            token_uri=TOKEN_URI,
            client_id=settings.GOOGLE_OAUTH_CLIENT_ID,
            client_secret=settings.GOOGLE_OAUTH_CLIENT_SECRET,
            scopes=settings.GOOGLE_SCOPES,
        )
        try:
            credentials.refresh(Request())
        except GoogleAuthError as e:
            logger.error(f"Failed to refresh token: {str(e)}")
            raise CalendarSyncError(f"Failed to refresh Google token: {e}") from e
        self._update_tokens(credentials)

    def _update_tokens(self, credentials: Credentials):
        """Update tokens in the database"""
        self.integration.access_token = credentials.token
        if credentials.expiry:
            self.integration.token_expires_at = credentials.expiry.replace(tzinfo=dt_timezone.utc)
        if credentials.refresh_token:
            self.integration.refresh_token = credentials.refresh_token
        self.integration.save(update_fields=['access_token', 'token_expires_at', 'refresh_token', 'updated_at'])

    def get_service(self):
        """Get authenticated Google Calendar service"""
        credentials = self.get_credentials()
        return build('calendar', 'v3', credentials=credentials, cache_discovery=False)

    def list_events(self, start_time: datetime, end_time: datetime) -> List[CalendarEventData]:
        """Events of the integration's calendar between ``start_time`` and ``end_time``"""
        try:
            service = self.get_service()
            events_result = service.events().list(
                calendarId=self.integration.calendar_id or 'primary',
                timeMin=start_time.isoformat(),
                timeMax=end_time.isoformat(),
                singleEvents=True,
                orderBy='startTime'
            ).execute()
        except HttpError as e:
            logger.error(f"Failed to list Google events: {str(e)}")
            raise CalendarSyncError(f"Failed to fetch Google Calendar events: {e}") from e

        events = []
        for item in events_result.get('items', []):
            start = item.get('start', {})
            end = item.get('end', {})
            start_value = start.get('dateTime', start.get('date'))
            end_value = end.get('dateTime', end.get('date'))
            if not start_value or not end_value:
                continue
            events.append(CalendarEventData(
                event_id=item['id'],
                title=item.get('summary', ''),
                start_time=_parse_iso_datetime(start_value),
                end_time=_parse_iso_datetime(end_value),
                all_day='date' in start,
                recurrence=(item.get('recurringEventId') or None),
                status=normalize_status(item.get('status')),
                # Events marked "free" do not block calls
                make_unavailable=item.get('transparency') != 'transparent',
            ))
        return events
