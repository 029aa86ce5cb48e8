#   Copyright 2026 UCP Authors
#
#   Licensed under the Apache License, Version 2.0 (the "License");
#   you may not use this file except in compliance with the License.
#   You may obtain a copy of the License at
#
#       http://www.apache.org/licenses/LICENSE-2.0
#
#   Unless required by applicable law or agreed to in writing, software
#   distributed under the License is distributed on an "AS IS" BASIS,
#   WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
#   See the License for the specific language governing permissions and
#   limitations under the License.

"""Client for the external payment service.

The payment service answers every well-formed request with HTTP 200 and a
`status` of "ok", "invalid" or "fail". Anything other than "ok" is a business
decline and surfaces as `PaymentDeclinedError`. Connectivity problems, timeouts
and non-200 replies mean the outcome is unknown to us and surface as
`PaymentGatewayUnavailableError`.
"""

import logging
from typing import Optional

from exceptions import PaymentDeclinedError
from exceptions import PaymentGatewayUnavailableError
import httpx
from pydantic import BaseModel
from pydantic import ValidationError

logger = logging.getLogger(__name__)

STATUS_OK = "ok"
STATUS_INVALID = "invalid"


class PaymentTokenResponse(BaseModel):
  status: str


class PaymentGatewayClient:
  """Charges card tokens through the payment service."""

  def __init__(
      self,
      base_url: str,
      shop_id: str,
      api_key: str,
      timeout: float = 5.0,
      transport: Optional[httpx.AsyncBaseTransport] = None,
  ):
    self.base_url = base_url.rstrip("/")
    self.shop_id = shop_id
    self.api_key = api_key
    self.timeout = timeout
    self.transport = transport

  async def charge(self, token: str, price: int) -> None:
    """Charges `price` to the card behind `token`.

    Args:
      token: The card token the buyer obtained from the payment service.
      price: The amount to charge.

    Raises:
      PaymentDeclinedError: The payment service refused the charge.
      PaymentGatewayUnavailableError: The payment service could not be
        reached, timed out or answered with an unexpected reply.
    """
    url = f"{self.base_url}/token"
    payload = {
        "shop_id": self.shop_id,
        "token": token,
        "api_key": self.api_key,
        "price": price,
    }

    try:
      async with httpx.AsyncClient(
          timeout=self.timeout, transport=self.transport
      ) as client:
        response = await client.post(url, json=payload)
    except httpx.TimeoutException as e:
      logger.warning("Payment service at %s timed out: %s", url, e)
      raise PaymentGatewayUnavailableError(
          "Payment service timed out"
      ) from e
    except httpx.RequestError as e:
      logger.error("Network error calling payment service at %s: %s", url, e)
      raise PaymentGatewayUnavailableError() from e

    if response.status_code != 200:
      logger.error(
          "Payment service at %s answered with status %d",
          url,
          response.status_code,
      )
      raise PaymentGatewayUnavailableError(
          f"Payment service failed with status {response.status_code}"
      )

    try:
      result = PaymentTokenResponse.model_validate(response.json())
    except (ValueError, ValidationError) as e:
      logger.error("Failed to decode payment service reply: %s", e)
      raise PaymentGatewayUnavailableError(
          "Payment service returned an unreadable reply"
      ) from e

    if result.status == STATUS_OK:
      logger.info("Charged %d to payment token", price)
      return
    if result.status == STATUS_INVALID:
      raise PaymentDeclinedError(
          "Card information is invalid", code="INVALID_CARD"
      )
    raise PaymentDeclinedError(f"Payment was declined ({result.status})")
