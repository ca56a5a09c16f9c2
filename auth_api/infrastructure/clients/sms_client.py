from __future__ import annotations

import logging

import httpx

from auth_api.application.ports.notification_port import SmsPort


logger = logging.getLogger(__name__)


BULKSMS_API_URL = "https://bulksmsbd.net/api/smsapi"
_ACCEPTED_RESPONSE_CODE = 202


class BulkSmsClient(SmsPort):
    def __init__(
        self,
        *,
        app_name: str,
        api_key: str,
        sender_id: str,
        api_url: str = BULKSMS_API_URL,
        environment: str = "production",
        timeout_seconds: float = 10,
        transport: httpx.BaseTransport | None = None,
    ):
        self._app_name = app_name
        self._api_key = api_key
        self._sender_id = sender_id
        self._api_url = api_url
        self._environment = environment
        self._timeout_seconds = timeout_seconds
        self._transport = transport

    def send_otp(self, *, phone: str, code: str) -> None:
        message = f"Your {self._app_name} OTP is {code}"

        if self._environment == "development":
            logger.info("[SMS] %s", message)
            return
        if not self._api_key:
            logger.warning("sms_client: SMS_API_KEY not configured, skipping send")
            return
        if not self._sender_id:
            logger.warning("sms_client: SMS_SENDER_ID not configured, skipping send")
            return

        payload = {
            "api_key": self._api_key,
            "senderid": self._sender_id,
            "number": f"880{phone[1:]}",
            "message": message,
        }
        with httpx.Client(timeout=self._timeout_seconds, transport=self._transport) as client:
            response = client.post(self._api_url, json=payload)
        data = response.json()
        if data.get("response_code") != _ACCEPTED_RESPONSE_CODE:
            logger.error(
                "sms_client: send_failed url=%s payload=%s response=%s",
                self._api_url,
                {**payload, "api_key": "******"},
                data,
            )
