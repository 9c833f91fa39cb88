import asyncio
import logging
from http import HTTPStatus

import aiohttp

import config
from gateway.port import GatewayError, GatewayInitialization, GatewayVerification, PaymentGateway

logger = logging.getLogger(__name__)


class PaystackGateway(PaymentGateway):
    """
    Paystack transaction API over aiohttp.

    initialize: POST /transaction/initialize
    verify:     GET  /transaction/verify/<reference>
    Both authenticate with the secret key as a Bearer token.
    """

    def __init__(self, secret_key: str | None = None, api_url: str | None = None,
                 timeout_seconds: int | None = None):
        self.secret_key = secret_key if secret_key is not None else config.PAYSTACK_SECRET_KEY
        self.api_url = (api_url or config.PAYSTACK_API_URL).rstrip("/")
        self.timeout = aiohttp.ClientTimeout(total=timeout_seconds or config.PAYMENT_GATEWAY_TIMEOUT_SECONDS)

    def _headers(self) -> dict:
        return {
            "Authorization": f"Bearer {self.secret_key}",
            "Content-Type": "application/json",
        }

    async def _request(self, method: str, path: str, payload: dict | None = None) -> dict:
        url = f"{self.api_url}{path}"
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(method, url, json=payload, headers=self._headers()) as response:
                    try:
                        body = await response.json(content_type=None)
                    except ValueError as e:
                        logger.error(f"Gateway {method} {path} returned a non-JSON body (HTTP {response.status})")
                        raise GatewayError(f"Malformed gateway response (HTTP {response.status})",
                                           status_code=response.status) from e
                    if response.status != HTTPStatus.OK:
                        message = body.get("message") if isinstance(body, dict) else None
                        logger.error(f"Gateway {method} {path} returned HTTP {response.status}: {message}")
                        raise GatewayError(message or f"HTTP {response.status}", status_code=response.status)
        except aiohttp.ClientError as e:
            logger.error(f"Gateway {method} {path} transport error: {e}")
            raise GatewayError(f"Transport error: {e}") from e
        except (TimeoutError, asyncio.TimeoutError) as e:
            logger.error(f"Gateway {method} {path} timed out")
            raise GatewayError("Gateway request timed out") from e

        if not isinstance(body, dict) or body.get("status") is not True:
            message = body.get("message") if isinstance(body, dict) else "Malformed gateway response"
            raise GatewayError(message or "Gateway reported failure")
        return body

    async def initialize(
        self,
        amount_minor: int,
        email: str,
        reference: str,
        callback_url: str,
    ) -> GatewayInitialization:
        body = await self._request("POST", "/transaction/initialize", {
            "amount": amount_minor,
            "email": email,
            "reference": reference,
            "callback_url": callback_url,
            "currency": config.CURRENCY.value,
        })
        data = body.get("data") or {}
        if not data.get("authorization_url"):
            raise GatewayError("Gateway response has no authorization_url")
        logger.info(f"Gateway transaction {reference} initialized for {amount_minor} minor units")
        return GatewayInitialization(
            authorization_url=data["authorization_url"],
            reference=data.get("reference", reference),
            access_code=data.get("access_code"),
        )

    async def verify(self, reference: str) -> GatewayVerification:
        body = await self._request("GET", f"/transaction/verify/{reference}")
        data = body.get("data") or {}
        status = data.get("status")
        return GatewayVerification(
            success=status == "success",
            status=status,
            amount_minor=data.get("amount"),
            raw=data,
        )
