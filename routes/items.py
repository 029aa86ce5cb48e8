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

"""Item routes: detail, price edit and bump."""

import dependencies
from fastapi import APIRouter
from fastapi import Body
from fastapi import Depends
from fastapi import Path
from models import ItemActionRequest
from models import ItemDetail
from models import ItemEditRequest
from models import ItemEditResponse
from services.purchase_service import PurchaseService

router = APIRouter()


@router.get(
    "/items/{item_id}", response_model=ItemDetail, operation_id="get_item"
)
async def get_item(
    item_id: int = Path(...),
    user_id: int = Depends(dependencies.current_user_id),
    purchase_service: PurchaseService = Depends(
        dependencies.get_purchase_service
    ),
) -> ItemDetail:
  """Get an item, including its transaction state for the two parties."""
  return await purchase_service.get_item_detail(item_id, user_id)


@router.post(
    "/items/edit", response_model=ItemEditResponse, operation_id="edit_item"
)
async def edit_item(
    request: ItemEditRequest = Body(...),
    user_id: int = Depends(dependencies.current_user_id),
    purchase_service: PurchaseService = Depends(
        dependencies.get_purchase_service
    ),
) -> ItemEditResponse:
  """Change the price of an item on sale."""
  return await purchase_service.edit_item_price(
      request.item_id, user_id, request.item_price
  )


@router.post("/bump", response_model=ItemEditResponse, operation_id="bump")
async def bump(
    request: ItemActionRequest = Body(...),
    user_id: int = Depends(dependencies.current_user_id),
    purchase_service: PurchaseService = Depends(
        dependencies.get_purchase_service
    ),
) -> ItemEditResponse:
  """Bump an item on sale to the top of the listing."""
  return await purchase_service.bump_item(request.item_id, user_id)
