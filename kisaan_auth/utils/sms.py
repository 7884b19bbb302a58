import logging
from dataclasses import dataclass

import requests

from kisaan_auth.core.config import Settings

logger = logging.getLogger(__name__)
# The console channel: whoever reads this logger receives the code.
console_logger = logging.getLogger("kisaan_auth.sms.console")

FAST2SMS = "Fast2SMS"
CONSOLE = "Console"

OTP_MESSAGE = "Your KisaanMela OTP is: {otp}. Valid for {ttl}. Do not share this OTP with anyone. - KisaanMela"


@dataclass(frozen=True)
class Delivered:
    provider: str
    request_id: str | None = None

    delivered = True
    degraded = False

    @property
    def message(self) -> str:
        return f"OTP sent successfully via {self.provider}"


@dataclass(frozen=True)
class DegradedFallback:
    provider: str
    cause: str

    delivered = True
    degraded = True
    request_id = None

    @property
    def message(self) -> str:
        return "SMS service unavailable, OTP logged to console"


@dataclass(frozen=True)
class Undelivered:
    cause: str

    delivered = False
    degraded = True
    provider = None
    request_id = None

    @property
    def message(self) -> str:
        return "Could not deliver OTP"


DeliveryResult = Delivered | DegradedFallback | Undelivered


class SmsProviderError(Exception):
    pass


def sms_missing_fields(cfg: Settings) -> list[str]:
    missing: list[str] = []
    if not cfg.sms_service_authorization_key:
        missing.append("SMS_SERVICE_AUTHORIZATION_KEY")
    return missing


class SmsGateway:
    """
    Delivers OTP codes through Fast2SMS, falling back to the console channel.

    ``send`` never raises: provider trouble (missing key, timeout, transport
    error, rejection) is folded into the returned result so that callers can
    tell a real delivery from a degraded one by its type.
    """

    def __init__(
        self,
        *,
        api_key: str | None,
        api_url: str,
        timeout: float,
        fallback_enabled: bool = True,
        ttl_label: str = "10 minutes",
    ):
        self.api_key = api_key
        self.api_url = api_url
        self.timeout = timeout
        self.fallback_enabled = fallback_enabled
        self.ttl_label = ttl_label

    @classmethod
    def from_settings(cls, cfg: Settings) -> "SmsGateway":
        return cls(
            api_key=cfg.sms_service_authorization_key,
            api_url=cfg.fast2sms_api_url,
            timeout=cfg.sms_timeout_seconds,
            fallback_enabled=cfg.sms_fallback_enabled,
            ttl_label=cfg.otp_ttl_label,
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    def send(self, phone: str, otp: str) -> DeliveryResult:
        try:
            request_id = self._send_fast2sms(phone, otp)
        except SmsProviderError as e:
            return self._fallback(phone, otp, str(e))
        except requests.Timeout:
            return self._fallback(phone, otp, f"timed out after {self.timeout}s")
        except requests.RequestException as e:
            return self._fallback(phone, otp, f"transport error: {e}")
        logger.info("Fast2SMS accepted OTP for %s request_id=%s", phone, request_id)
        return Delivered(provider=FAST2SMS, request_id=request_id)

    def _send_fast2sms(self, phone: str, otp: str) -> str | None:
        if not self.api_key:
            raise SmsProviderError("SMS_SERVICE_AUTHORIZATION_KEY not configured")

        payload = {
            "route": "q",
            "message": OTP_MESSAGE.format(otp=otp, ttl=self.ttl_label),
            "language": "english",
            "flash": 0,
            "numbers": phone,
        }
        headers = {"authorization": self.api_key, "content-type": "application/json"}
        resp = requests.post(self.api_url, json=payload, headers=headers, timeout=self.timeout)
        try:
            body = resp.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        if resp.status_code // 100 == 2 and body.get("return") is True:
            request_id = body.get("request_id")
            return str(request_id) if request_id is not None else None

        reason = body.get("message") or resp.text[:200] or f"HTTP {resp.status_code}"
        if isinstance(reason, list):
            reason = "; ".join(str(r) for r in reason)
        raise SmsProviderError(f"Fast2SMS rejected: status={resp.status_code} {reason}")

    def _fallback(self, phone: str, otp: str, cause: str) -> DeliveryResult:
        if self.api_key:
            logger.warning("Fast2SMS send failed for %s: %s", phone, cause)
        if not self.fallback_enabled:
            return Undelivered(cause=cause)
        console_logger.warning("[FALLBACK] OTP for %s: %s", phone, otp)
        return DegradedFallback(provider=CONSOLE, cause=cause)
