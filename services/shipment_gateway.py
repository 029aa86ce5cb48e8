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

"""Client for the external shipment service.

The shipment service creates pickup reservations, renders the shipping label
for a reservation, and reports the carrier status of a reservation. All
failures to get a usable answer are reported as
`ShipmentGatewayUnavailableError`; callers leave local state untouched and
retry later.
"""

import logging
from typing import Any, Dict, Optional

from enums import ShippingStatus
from exceptions import ShipmentGatewayUnavailableError
import httpx
from pydantic import BaseModel
from pydantic import ValidationError

logger = logging.getLogger(__name__)


class Reservation(BaseModel):
  reserve_id: str
  reserve_time: int


class ShipmentStatusResponse(BaseModel):
  status: ShippingStatus
  reserve_time: Optional[int] = None


class ShipmentGatewayClient:
  """Talks to the shipment service on behalf of the marketplace."""

  def __init__(
      self,
      base_url: str,
      api_token: Optional[str] = None,
      timeout: float = 5.0,
      transport: Optional[httpx.AsyncBaseTransport] = None,
  ):
    self.base_url = base_url.rstrip("/")
    self.api_token = api_token
    self.timeout = timeout
    self.transport = transport

  async def create_reservation(
      self, to_address: str, to_name: str, from_address: str, from_name: str
  ) -> Reservation:
    """Reserves a carrier pickup from the seller to the buyer."""
    response = await self._post(
        "/create",
        {
            "to_address": to_address,
            "to_name": to_name,
            "from_address": from_address,
            "from_name": from_name,
        },
    )
    reservation = self._parse(response, Reservation)
    logger.info("Created shipment reservation %s", reservation.reserve_id)
    return reservation

  async def request_label(self, reserve_id: str) -> bytes:
    """Returns the PNG shipping label for a reservation."""
    response = await self._post("/request", {"reserve_id": reserve_id})
    return response.content

  async def get_status(self, reserve_id: str) -> ShippingStatus:
    """Returns the carrier status of a reservation."""
    response = await self._post("/status", {"reserve_id": reserve_id})
    return self._parse(response, ShipmentStatusResponse).status

  async def _post(self, path: str, payload: Dict[str, Any]) -> httpx.Response:
    url = f"{self.base_url}{path}"
    headers = {}
    if self.api_token:
      headers["Authorization"] = self.api_token

    try:
      async with httpx.AsyncClient(
          timeout=self.timeout, transport=self.transport
      ) as client:
        response = await client.post(url, json=payload, headers=headers)
    except httpx.TimeoutException as e:
      logger.warning("Shipment service at %s timed out: %s", url, e)
      raise ShipmentGatewayUnavailableError(
          "Shipment service timed out"
      ) from e
    except httpx.RequestError as e:
      logger.error("Network error calling shipment service at %s: %s", url, e)
      raise ShipmentGatewayUnavailableError() from e

    if response.status_code != 200:
      logger.error(
          "Shipment service at %s answered with status %d",
          url,
          response.status_code,
      )
      raise ShipmentGatewayUnavailableError(
          f"Shipment service failed with status {response.status_code}"
      )
    return response

  def _parse(self, response: httpx.Response, model: type[BaseModel]) -> Any:
    try:
      return model.model_validate(response.json())
    except (ValueError, ValidationError) as e:
      logger.error("Failed to decode shipment service reply: %s", e)
      raise ShipmentGatewayUnavailableError(
          "Shipment service returned an unreadable reply"
      ) from e
