"""Payment gateway HTTP client for automated installment charges"""

import httpx
from typing import Optional
from installment_engine.domain.models import ChargeResult
from installment_engine.domain.exceptions import PaymentGatewayError
from installment_engine.config import settings
from installment_engine.infrastructure.observability.metrics import charge_latency_histogram


class PaymentGatewayClient:
    """Client for the external payment charge capability"""

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url or settings.payment_gateway_base
        self.timeout = timeout or settings.http_timeout_seconds
        self.transport = transport

    async def charge(self, method: str, amount_cents: int, reference: str) -> ChargeResult:
        """
        Charge a stored payment method.

        A declined charge is a normal ChargeResult(success=False); only transport
        and protocol problems raise.

        Raises:
            PaymentGatewayError: On timeout, HTTP errors, or invalid response
        """
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                with charge_latency_histogram.time():
                    response = await client.post(
                        f"{self.base_url}/charges",
                        json={"method": method, "amount_cents": amount_cents, "reference": reference},
                    )
                response.raise_for_status()
                data = response.json()

                if data["success"]:
                    return ChargeResult(
                        success=True,
                        transaction_id=data["transaction_id"],
                        amount_cents=data.get("amount_cents", amount_cents),
                    )
                return ChargeResult(
                    success=False,
                    failure_reason=data.get("failure_reason") or "Charge declined",
                )

            except httpx.TimeoutException as e:
                raise PaymentGatewayError(f"Payment gateway timeout after {self.timeout}s") from e
            except httpx.HTTPStatusError as e:
                raise PaymentGatewayError(f"Payment gateway error: {e.response.status_code}") from e
            except httpx.RequestError as e:
                raise PaymentGatewayError(f"Payment gateway unreachable: {e}") from e
            except (KeyError, ValueError, TypeError) as e:
                raise PaymentGatewayError(f"Invalid charge response from gateway: {e}") from e
