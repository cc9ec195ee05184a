# app/services/whatsapp.py
import asyncio
import re
from typing import Optional

import aiohttp

from app.models.bid_model import DeliveryChannel, DeliveryResult, Invoice
from app.services.invoice import format_invoice_message
from app.utils.errors import ConfigurationError
from app.utils.helpers import now_ms, utc_now
from app.utils.logger import logger

TWILIO_MESSAGES_URL = "https://api.twilio.com/2010-04-01/Accounts/{sid}/Messages.json"
PLACEHOLDER_CREDENTIALS = {"your_twilio_account_sid", "your_twilio_auth_token"}
DIAGNOSTIC_TEST_PHONE = "+8010822283"


class DeliveryError(Exception):
    """A delivery strategy failed; the next one should be tried."""


def normalize_phone(phone: str, default_country_code: str = "1") -> Optional[str]:
    """
    Turn any user-entered number into Twilio's 'whatsapp:+<digits>' form.

    Non-digits are stripped; a bare 10-digit number gets the default country
    code. Anything outside 10-15 digits is rejected (None).
    """
    digits = re.sub(r"\D", "", phone or "")
    if len(digits) == 10:
        digits = f"{default_country_code}{digits}"
    if len(digits) < 10 or len(digits) > 15:
        logger.error(f"Invalid phone number length: {len(digits)}")
        return None
    return f"whatsapp:+{digits}"


def mask_sid(sid: str) -> str:
    return f"{sid[:8]}..." if sid else "Not set"


class WhatsAppClient:
    """
    Sends invoices over WhatsApp. Strategies run in a fixed order and fall
    through on failure: self-hosted relay, direct Twilio REST, simulation.
    Simulation always succeeds, so send_message never raises.
    """

    def __init__(
        self,
        use_backend_api: bool = False,
        backend_api_url: str = "",
        account_sid: str = "",
        auth_token: str = "",
        whatsapp_number: str = "whatsapp:+14155238886",
        default_country_code: str = "1",
        simulation_delay: float = 0.8,
        tz_name: str = "Asia/Kolkata",
    ):
        self.use_backend_api = use_backend_api
        self.backend_api_url = backend_api_url.rstrip("/")
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.whatsapp_number = whatsapp_number
        self.default_country_code = default_country_code
        self.simulation_delay = simulation_delay
        self.tz_name = tz_name

    @classmethod
    def from_settings(cls, settings) -> "WhatsAppClient":
        return cls(
            use_backend_api=settings.USE_BACKEND_API,
            backend_api_url=settings.BACKEND_API_URL,
            account_sid=settings.TWILIO_ACCOUNT_SID,
            auth_token=settings.TWILIO_AUTH_TOKEN,
            whatsapp_number=settings.TWILIO_WHATSAPP_NUMBER,
            default_country_code=settings.DEFAULT_COUNTRY_CODE,
            simulation_delay=settings.SIMULATION_DELAY_SECONDS,
            tz_name=settings.INVOICE_TIMEZONE,
        )

    @property
    def relay_enabled(self) -> bool:
        return bool(self.use_backend_api and self.backend_api_url)

    @property
    def direct_configured(self) -> bool:
        return bool(
            self.account_sid
            and self.auth_token
            and self.account_sid not in PLACEHOLDER_CREDENTIALS
            and self.auth_token not in PLACEHOLDER_CREDENTIALS
        )

    @property
    def is_configured(self) -> bool:
        return self.relay_enabled or self.direct_configured

    def check_configuration(self) -> None:
        """Raise ConfigurationError when no real delivery channel is set up."""
        if not self.is_configured:
            raise ConfigurationError(
                "WhatsApp not configured: set USE_BACKEND_API=true and BACKEND_API_URL, "
                "or TWILIO_ACCOUNT_SID / TWILIO_AUTH_TOKEN / TWILIO_WHATSAPP_NUMBER. "
                "Messages will be simulated."
            )

    def log_configuration(self) -> None:
        status = self.get_status()
        logger.info("📱 WhatsApp Service Configuration:")
        logger.info(f"   Backend API: {'Enabled' if self.use_backend_api else 'Disabled'}")
        logger.info(f"   API URL: {self.backend_api_url}")
        logger.info(f"   Account SID: {status['accountSid']}")
        logger.info(f"   Auth Token: {status['authToken']}")
        logger.info(f"   WhatsApp Number: {self.whatsapp_number}")
        try:
            self.check_configuration()
            logger.info("✅ WhatsApp service configured and ready")
        except ConfigurationError as e:
            logger.warning(f"⚠️ {e.message}")

    async def send_invoice(self, phone_number: str, invoice: Invoice) -> DeliveryResult:
        formatted = normalize_phone(phone_number, self.default_country_code)
        if not formatted:
            return DeliveryResult(success=False, error="Invalid phone number format")

        message = format_invoice_message(invoice, self.tz_name)
        logger.info(f"📱 Sending WhatsApp invoice for bid {invoice.bid_id}...")
        return await self.send_message(formatted, message)

    async def send_message(self, to: str, body: str) -> DeliveryResult:
        strategies = []
        if self.relay_enabled:
            strategies.append((DeliveryChannel.RELAY, self._send_via_relay))
        if self.direct_configured:
            strategies.append((DeliveryChannel.DIRECT, self._send_via_twilio))

        for channel, send in strategies:
            try:
                return await send(to, body)
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError, DeliveryError) as e:
                logger.warning(
                    f"❌ WhatsApp {channel.value} delivery failed: {e}. Falling back..."
                )

        return await self._simulate(to, body)

    async def _send_via_relay(self, to: str, body: str) -> DeliveryResult:
        url = f"{self.backend_api_url}/api/send-whatsapp"
        logger.info(f"🌐 Sending via backend API: {url}")

        async with aiohttp.ClientSession() as session:
            async with session.post(url, json={"to": to, "body": body}) as resp:
                data = await resp.json(content_type=None)
                if not isinstance(data, dict):
                    raise DeliveryError(f"Unexpected relay response (HTTP {resp.status})")
                if resp.status >= 400 or not data.get("success"):
                    raise DeliveryError(
                        data.get("error") or f"HTTP {resp.status}: {resp.reason}"
                    )

        logger.info(f"✅ WhatsApp message sent via backend: {data.get('messageId')}")
        return DeliveryResult(
            success=True, message_id=data.get("messageId"), channel=DeliveryChannel.RELAY
        )

    async def _send_via_twilio(self, to: str, body: str) -> DeliveryResult:
        url = TWILIO_MESSAGES_URL.format(sid=self.account_sid)
        logger.info("📞 Attempting direct Twilio API call...")

        form = {"From": self.whatsapp_number, "To": to, "Body": body}
        auth = aiohttp.BasicAuth(self.account_sid, self.auth_token)
        async with aiohttp.ClientSession() as session:
            async with session.post(url, data=form, auth=auth) as resp:
                data = await resp.json(content_type=None)
                if resp.status >= 400:
                    raise DeliveryError(
                        data.get("message") or f"HTTP {resp.status}: {resp.reason}"
                    )

        logger.info(f"✅ WhatsApp message sent directly: {data.get('sid')}")
        return DeliveryResult(
            success=True, message_id=data.get("sid"), channel=DeliveryChannel.DIRECT
        )

    async def _simulate(self, to: str, body: str) -> DeliveryResult:
        rule = "═" * 59
        logger.info(
            "\n".join(
                [
                    rule,
                    "📱 SIMULATED WhatsApp Invoice",
                    rule,
                    f"📞 To: {to}",
                    "📄 Message Content:",
                    body,
                    rule,
                ]
            )
        )
        await asyncio.sleep(self.simulation_delay)
        return DeliveryResult(
            success=True,
            message_id=f"simulated_{now_ms()}",
            channel=DeliveryChannel.SIMULATED,
        )

    async def test_connection(self, phone_number: str) -> DeliveryResult:
        test_invoice = Invoice(
            stock_name="TEST - Connection Verification",
            quantity=1,
            price_per_unit=0,
            profit_loss=0,
            timestamp=utc_now(),
            trader_name="System Test",
            side="buy",
            stock_symbol="TEST",
        )
        logger.info("🧪 Testing WhatsApp connection...")
        return await self.send_invoice(phone_number, test_invoice)

    def get_status(self) -> dict:
        return {
            "configured": self.is_configured,
            "useBackendApi": self.use_backend_api,
            "backendApiUrl": self.backend_api_url,
            "accountSid": mask_sid(self.account_sid),
            "authToken": f"Set ({len(self.auth_token)} chars)" if self.auth_token else "Not set",
            "whatsappNumber": self.whatsapp_number,
        }

    async def run_diagnostics(self) -> dict:
        logger.info("🔍 Running WhatsApp Diagnostics...")
        diagnostics = {
            "timestamp": utc_now().isoformat(),
            "configuration": self.get_status(),
            "tests": {"backendApiTest": None, "phoneFormatTest": None},
        }

        if self.use_backend_api:
            diagnostics["tests"]["backendApiTest"] = await self._probe_relay()

        formatted = normalize_phone(DIAGNOSTIC_TEST_PHONE, self.default_country_code)
        diagnostics["tests"]["phoneFormatTest"] = {
            "input": DIAGNOSTIC_TEST_PHONE,
            "output": formatted,
            "success": formatted is not None,
        }

        logger.info(f"📊 Diagnostics Results: {diagnostics}")
        return diagnostics

    async def _probe_relay(self) -> dict:
        try:
            async with aiohttp.ClientSession() as session:
                async with session.get(f"{self.backend_api_url}/api/health") as resp:
                    ok = resp.status < 400
                    return {
                        "success": ok,
                        "status": resp.status,
                        "message": "Backend API accessible" if ok else "Backend API not responding",
                    }
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return {
                "success": False,
                "error": str(e),
                "message": "Backend API not accessible",
            }
