"""
Microsoft 365 / Outlook service for OAuth and calendar events (Graph API).
"""
import logging
from datetime import datetime, timedelta
from typing import Dict, List
from urllib.parse import urlencode

import requests
from django.conf import settings
from django.utils import timezone

from core.services.calendar_provider import (
    CalendarEventData, CalendarSyncError, _parse_iso_datetime, normalize_status,
)

logger = logging.getLogger(__name__)

GRAPH_URL = 'https://graph.microsoft.com/v1.0'


class MicrosoftOAuthService:
    """Service for Microsoft OAuth (authorization code flow)"""

    @staticmethod
    def _token_url() -> str:
        return f"https://login.microsoftonline.com/{settings.MS_AUTH_TENANT}/oauth2/v2.0/token"

    @staticmethod
    def build_authorize_url(state: str = None) -> str:
        params = {
            'client_id': settings.MS_CLIENT_ID,
            'response_type': 'code',
            'redirect_uri': settings.MS_REDIRECT_URI,
            'response_mode': 'query',
            'scope': ' '.join(settings.MS_SCOPES),
        }
        if state:
            params['state'] = state
        return f"https://login.microsoftonline.com/{settings.MS_AUTH_TENANT}/oauth2/v2.0/authorize?{urlencode(params)}"

    @staticmethod
    def _token_request(data: Dict) -> Dict:
        data = {
            'client_id': settings.MS_CLIENT_ID,
            'client_secret': settings.MS_CLIENT_SECRET,
            'redirect_uri': settings.MS_REDIRECT_URI,
            **data,
        }
        headers = {'Content-Type': 'application/x-www-form-urlencoded'}
        try:
            resp = requests.post(MicrosoftOAuthService._token_url(), data=data, headers=headers, timeout=30)
            resp.raise_for_status()
            return resp.json()
        except requests.RequestException as e:
            raise CalendarSyncError(f"Microsoft token request failed: {e}") from e

    @staticmethod
    def exchange_code_for_tokens(code: str) -> Dict:
        return MicrosoftOAuthService._token_request({'grant_type': 'authorization_code', 'code': code})

    @staticmethod
    def refresh_tokens(refresh_token: str) -> Dict:
        return MicrosoftOAuthService._token_request({'grant_type': 'refresh_token', 'refresh_token': refresh_token})


def store_tokens(integration, token: Dict) -> None:
    integration.access_token = token.get('access_token', integration.access_token)
    integration.refresh_token = token.get('refresh_token') or integration.refresh_token
    integration.token_expires_at = timezone.now() + timedelta(seconds=int(token.get('expires_in', 3600)))


class MicrosoftCalendarService:
    """Service for Microsoft Graph calendar operations"""

    def __init__(self, integration):
        self.integration = integration

    def _auth_headers(self) -> Dict[str, str]:
        return {
            'Authorization': f'Bearer {self.integration.access_token}',
            'Content-Type': 'application/json',
            'Prefer': 'outlook.timezone="UTC"',
        }

    def _refresh(self) -> None:
        token = MicrosoftOAuthService.refresh_tokens(self.integration.refresh_token)
        store_tokens(self.integration, token)
        self.integration.save(update_fields=['access_token', 'refresh_token', 'token_expires_at', 'updated_at'])

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        """Do a Graph request with a single refresh on 401"""
        if self.integration.token_expires_at and self.integration.token_expires_at <= timezone.now() \
                and self.integration.refresh_token:
            self._refresh()
        try:
            resp = requests.request(method, url, headers=self._auth_headers(), timeout=30, **kwargs)
            if resp.status_code == 401 and self.integration.refresh_token:
                self._refresh()
                resp = requests.request(method, url, headers=self._auth_headers(), timeout=30, **kwargs)
        except requests.RequestException as e:
            raise CalendarSyncError(f"Microsoft Graph request failed: {e}") from e
        return resp

    def list_events(self, start_time: datetime, end_time: datetime) -> List[CalendarEventData]:
        resp = self._request(
            'GET',
            f"{GRAPH_URL}/me/calendarView",
            params={
                'startDateTime': start_time.isoformat(),
                'endDateTime': end_time.isoformat(),
                '$top': 100,
            },
        )
        if not resp.ok:
            logger.error(f"Microsoft calendarView failed: {resp.status_code} {resp.text[:200]}")
            raise CalendarSyncError(f"Failed to fetch Microsoft Calendar events: HTTP {resp.status_code}")

        events = []
        for item in resp.json().get('value', []):
            start = (item.get('start') or {}).get('dateTime')
            end = (item.get('end') or {}).get('dateTime')
            if not start or not end:
                continue
            show_as = item.get('showAs')
            events.append(CalendarEventData(
                event_id=item['id'],
                title=item.get('subject', ''),
                start_time=_parse_iso_datetime(f"{start}Z" if not start.endswith('Z') else start),
                end_time=_parse_iso_datetime(f"{end}Z" if not end.endswith('Z') else end),
                all_day=bool(item.get('isAllDay')),
                recurrence=item.get('seriesMasterId'),
                status='cancelled' if item.get('isCancelled') else normalize_status(
                    'tentative' if show_as == 'tentative' else 'confirmed'
                ),
                make_unavailable=show_as != 'free',
            ))
        return events
