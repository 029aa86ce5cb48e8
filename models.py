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

"""Request and response models for the marketplace server.

The HTTP layer validates incoming bodies into these models before calling the
purchase service, and the service returns them so routes can hand them back
unchanged.
"""

from typing import Optional

from enums import ItemStatus
from enums import ShippingStatus
from enums import TransactionEvidenceStatus
from pydantic import BaseModel
from pydantic import Field


class BuyRequest(BaseModel):
  item_id: int
  token: str = Field(..., min_length=1)


class BuyResponse(BaseModel):
  transaction_evidence_id: int


class ItemActionRequest(BaseModel):
  """Body of the ship, ship-done, complete and bump requests."""

  item_id: int


class ItemEditRequest(BaseModel):
  item_id: int
  # Range is checked by the service so the error matches the other paths.
  item_price: int


class ShipResponse(BaseModel):
  path: str
  reserve_id: str


class TransactionState(BaseModel):
  """Joint status of a transaction evidence and its shipping."""

  transaction_evidence_id: int
  transaction_evidence_status: TransactionEvidenceStatus
  shipping_status: ShippingStatus


class ItemEditResponse(BaseModel):
  item_id: int
  item_price: int
  item_created_at: str
  item_updated_at: str


class ItemDetail(BaseModel):
  """An item as seen by a viewer.

  Transaction fields are only filled in for the seller and the buyer.
  """

  id: int
  seller_id: int
  buyer_id: Optional[int] = None
  status: ItemStatus
  name: str
  price: int
  description: str
  image_name: Optional[str] = None
  category_id: int
  created_at: str
  transaction_evidence_id: Optional[int] = None
  transaction_evidence_status: Optional[TransactionEvidenceStatus] = None
  shipping_status: Optional[ShippingStatus] = None
  reserve_id: Optional[str] = None
