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

"""Purchase workflow routes: buy, ship, ship done, complete and labels."""

import dependencies
from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from fastapi import Path
from fastapi import Response
from models import BuyRequest
from models import BuyResponse
from models import ItemActionRequest
from models import ShipResponse
from models import TransactionState
from services.purchase_service import PurchaseService

router = APIRouter()


@router.post("/buy", response_model=BuyResponse, operation_id="buy")
async def buy(
    request: BuyRequest = Body(...),
    user_id: int = Depends(dependencies.current_user_id),
    purchase_service: PurchaseService = Depends(
        dependencies.get_purchase_service
    ),
) -> BuyResponse:
  """Buy an item on sale."""
  evidence_id = await purchase_service.buy(
      request.item_id, user_id, request.token
  )
  return BuyResponse(transaction_evidence_id=evidence_id)


@router.post("/ship", response_model=ShipResponse, operation_id="ship")
async def ship(
    request: ItemActionRequest = Body(...),
    user_id: int = Depends(dependencies.current_user_id),
    purchase_service: PurchaseService = Depends(
        dependencies.get_purchase_service
    ),
) -> ShipResponse:
  """Notify that the seller is shipping the item and issue its label."""
  return await purchase_service.ship_notify(request.item_id, user_id)


@router.post(
    "/ship_done", response_model=TransactionState, operation_id="ship_done"
)
async def ship_done(
    request: ItemActionRequest = Body(...),
    user_id: int = Depends(dependencies.current_user_id),
    purchase_service: PurchaseService = Depends(
        dependencies.get_purchase_service
    ),
) -> TransactionState:
  """Reconcile the shipment with the carrier after handing it over."""
  return await purchase_service.ship_done(request.item_id, user_id)


@router.post(
    "/complete", response_model=TransactionState, operation_id="complete"
)
async def complete(
    request: ItemActionRequest = Body(...),
    user_id: int = Depends(dependencies.current_user_id),
    purchase_service: PurchaseService = Depends(
        dependencies.get_purchase_service
    ),
) -> TransactionState:
  """Confirm receipt of the item."""
  return await purchase_service.complete(request.item_id, user_id)


@router.get(
    "/transactions/{transaction_evidence_id}.png",
    response_class=Response,
    operation_id="get_shipping_label",
)
async def get_shipping_label(
    evidence_id: int = Path(..., alias="transaction_evidence_id"),
    user_id: int = Depends(dependencies.current_user_id),
    purchase_service: PurchaseService = Depends(
        dependencies.get_purchase_service
    ),
) -> Response:
  """Download the shipping label of a transaction."""
  label = await purchase_service.get_shipping_label(evidence_id, user_id)
  return Response(content=label, media_type="image/png")
