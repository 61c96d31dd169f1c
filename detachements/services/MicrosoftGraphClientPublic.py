"""Microsoft Graph mail transport for request notifications."""

import logging
import httpx
from datetime import datetime, timedelta
from typing import Optional

from detachements.core.errors import NotificationError

logger = logging.getLogger(__name__)


class MicrosoftGraphClientPublic:
    """
    Client for sending notification emails through Microsoft Graph.

    Uses the client-credentials flow and a single authorized sender mailbox
    (``MAIL_FROM``). Any failure is raised as ``NotificationError``.
    """

    BASE_URL = "https://graph.microsoft.com/v1.0"

    def __init__(
        self,
        tenant_id: str,
        client_id: str,
        client_secret: str,
        default_sender: str,
        sender_name: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.tenant_id = tenant_id
        self.client_id = client_id
        self.client_secret = client_secret
        self.default_sender = default_sender
        self.sender_name = sender_name
        self._http_client = http_client
        self._access_token = None
        self._token_expiry = None

    @property
    def configured(self) -> bool:
        return bool(self.tenant_id and self.client_id and self.client_secret)

    def _client(self) -> httpx.AsyncClient:
        return self._http_client or httpx.AsyncClient(timeout=30.0)

    async def _get_access_token(self, force_refresh: bool = False) -> str:
        """Get access token for application (not user-delegated)."""
        if not force_refresh and self._access_token and self._token_expiry:
            if datetime.utcnow() < self._token_expiry - timedelta(minutes=5):
                return self._access_token

        token_url = f"https://login.microsoftonline.com/{self.tenant_id}/oauth2/v2.0/token"

        data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "scope": "https://graph.microsoft.com/.default",
            "grant_type": "client_credentials"
        }

        client = self._client()
        try:
            response = await client.post(token_url, data=data)
        except httpx.HTTPError as e:
            raise NotificationError(f"Token request failed: {e}") from e
        finally:
            if client is not self._http_client:
                await client.aclose()

        if response.status_code != 200:
            raise NotificationError(f"Failed to get access token: {response.text}")

        token_data = response.json()
        self._access_token = token_data["access_token"]
        expires_in = token_data.get("expires_in", 3600)
        self._token_expiry = datetime.utcnow() + timedelta(seconds=expires_in)

        logger.info(f"✅ [Mail] New access token obtained, expires in {expires_in}s")
        return self._access_token

    async def clear_token_cache(self):
        """Force clear the token cache to get fresh permissions."""
        self._access_token = None
        self._token_expiry = None

    def build_message(
        self,
        to_emails: list[str],
        subject: str,
        body_html: str,
        cc_emails: list[str] = None,
    ) -> dict:
        """Graph ``sendMail`` payload for an HTML message."""
        message = {
            "message": {
                "subject": subject,
                "body": {
                    "contentType": "HTML",
                    "content": body_html
                },
                "toRecipients": [
                    {"emailAddress": {"address": email}}
                    for email in to_emails
                ],
            },
            "saveToSentItems": "true"
        }

        if self.sender_name:
            message["message"]["from"] = {
                "emailAddress": {"address": self.default_sender, "name": self.sender_name}
            }

        if cc_emails:
            message["message"]["ccRecipients"] = [
                {"emailAddress": {"address": email}}
                for email in cc_emails
            ]

        return message

    async def send_email(
        self,
        to_emails: list[str],
        subject: str,
        body_html: str,
        cc_emails: list[str] = None,
        retry_with_refresh: bool = True
    ) -> dict:
        """
        Send an email.

        Args:
            to_emails: List of recipient email addresses
            subject: Email subject
            body_html: HTML body content
            cc_emails: List of CC recipients (optional)
            retry_with_refresh: If True, retry once with fresh token on 403

        Returns:
            dict with status information

        Raises:
            NotificationError: transport not configured, or message rejected.
        """
        if not self.configured:
            raise NotificationError("Mail transport is not configured (MICROSOFT_* settings missing)")
        if not to_emails:
            raise NotificationError("No recipient")

        token = await self._get_access_token()
        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json"
        }
        message = self.build_message(to_emails, subject, body_html, cc_emails)
        url = f"{self.BASE_URL}/users/{self.default_sender}/sendMail"

        client = self._client()
        try:
            response = await client.post(url, headers=headers, json=message)
        except httpx.HTTPError as e:
            raise NotificationError(f"Failed to send email: {e}") from e
        finally:
            if client is not self._http_client:
                await client.aclose()

        if response.status_code == 403 and retry_with_refresh:
            logger.warning("⚠️ [Mail] Email send got 403, refreshing token and retrying...")
            await self.clear_token_cache()
            return await self.send_email(
                to_emails, subject, body_html, cc_emails, retry_with_refresh=False
            )

        if response.status_code not in [200, 202]:
            if response.status_code == 403:
                error_msg = (
                    "Access denied when sending email. Please ensure: "
                    "1) The app has 'Mail.Send' application permission with admin consent. "
                    f"2) The sender mailbox '{self.default_sender}' exists in your M365 tenant."
                )
            else:
                error_msg = f"Failed to send email: {response.status_code} - {response.text}"
            raise NotificationError(error_msg)

        logger.info(f"✅ [Mail] Email sent to {', '.join(to_emails)}")

        return {
            "status": "sent",
            "from": self.default_sender,
            "to": to_emails,
            "cc": cc_emails or [],
            "subject": subject
        }
