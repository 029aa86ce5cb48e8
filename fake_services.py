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

"""In-process fakes of the payment and shipment services for tests.

Each fake exposes an `httpx.MockTransport` that the real gateway clients are
constructed with, so tests exercise the same request/response handling as
production.
"""

import json
from typing import Dict, List, Optional, Tuple

import httpx

LABEL_PNG = b"\x89PNG\r\n\x1a\nfake-label"
RESERVE_TIME = 1700000000

# Failure modes shared by both fakes.
TIMEOUT = "timeout"
CONNECT_ERROR = "connect_error"
SERVER_ERROR = "server_error"


def _fail(
    mode: Optional[str], request: httpx.Request
) -> Optional[httpx.Response]:
  if mode == TIMEOUT:
    raise httpx.ReadTimeout("timed out", request=request)
  if mode == CONNECT_ERROR:
    raise httpx.ConnectError("connection refused", request=request)
  if mode == SERVER_ERROR:
    return httpx.Response(500, text="internal error")
  return None


class FakePaymentService:
  """Answers /token with the status configured for each card token."""

  def __init__(self) -> None:
    self.token_statuses: Dict[str, str] = {}
    self.charges: List[Tuple[str, int]] = []
    self.requests: List[dict] = []
    self.failure: Optional[str] = None

  @property
  def transport(self) -> httpx.MockTransport:
    return httpx.MockTransport(self._handle)

  def _handle(self, request: httpx.Request) -> httpx.Response:
    failed = _fail(self.failure, request)
    if failed is not None:
      return failed
    if request.url.path != "/token":
      return httpx.Response(404)

    body = json.loads(request.content)
    self.requests.append(body)
    status = self.token_statuses.get(body["token"], "ok")
    if status == "ok":
      self.charges.append((body["token"], body["price"]))
    return httpx.Response(200, json={"status": status})


class FakeShipmentService:
  """Keeps reservations in memory and lets tests move the carrier along."""

  def __init__(self) -> None:
    self.statuses: Dict[str, str] = {}
    self.reservations: List[dict] = []
    self.status_queries = 0
    self.authorization: Optional[str] = None
    self.failure: Optional[str] = None

  @property
  def transport(self) -> httpx.MockTransport:
    return httpx.MockTransport(self._handle)

  def advance(self, reserve_id: str, status: str) -> None:
    self.statuses[reserve_id] = status

  def advance_all(self, status: str) -> None:
    for reserve_id in self.statuses:
      self.statuses[reserve_id] = status

  def _handle(self, request: httpx.Request) -> httpx.Response:
    failed = _fail(self.failure, request)
    if failed is not None:
      return failed

    self.authorization = request.headers.get("Authorization")
    body = json.loads(request.content)
    path = request.url.path

    if path == "/create":
      reserve_id = str(len(self.reservations) + 1)
      self.reservations.append(body)
      self.statuses[reserve_id] = "initial"
      return httpx.Response(
          200, json={"reserve_id": reserve_id, "reserve_time": RESERVE_TIME}
      )

    reserve_id = body.get("reserve_id")
    if reserve_id not in self.statuses:
      return httpx.Response(404, json={"error": "reservation not found"})

    if path == "/request":
      if self.statuses[reserve_id] == "initial":
        self.statuses[reserve_id] = "wait_pickup"
      return httpx.Response(
          200, content=LABEL_PNG, headers={"Content-Type": "image/png"}
      )
    if path == "/status":
      self.status_queries += 1
      return httpx.Response(
          200,
          json={
              "status": self.statuses[reserve_id],
              "reserve_time": RESERVE_TIME,
          },
      )
    return httpx.Response(404)
