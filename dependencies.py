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

"""FastAPI dependencies for the marketplace server.

This module contains dependency injection logic for FastAPI endpoints,
including:
- Caller identity extraction (X-User-Id header).
- Gateway client instantiation (payment and shipment services).
- Service instantiation (PurchaseService) sharing the process-wide lock tables.
- Database session factory lookup.
"""

import config
import db
from fastapi import Depends
from fastapi import Header
from fastapi import HTTPException
from services.keyed_lock import KeyedLock
from services.payment_gateway import PaymentGatewayClient
from services.purchase_service import PurchaseService
from services.shipment_gateway import ShipmentGatewayClient
from sqlalchemy.orm import sessionmaker

# Shared by every request handled by this process.
item_locks = KeyedLock()
transaction_locks = KeyedLock()


async def current_user_id(x_user_id: int = Header(...)) -> int:
  """Extracts the acting user.

  Note: This is a placeholder for the session layer, which resolves the
  logged-in user before requests reach the purchase workflow.

  Args:
    x_user_id: The authenticated user id forwarded by the session layer.
  """
  if x_user_id <= 0:
    raise HTTPException(status_code=401, detail="Invalid user")
  return x_user_id


def get_session_factory() -> sessionmaker:
  """Dependency provider for the ledger session factory."""
  if db.manager.session_factory is None:
    raise HTTPException(status_code=500, detail="Ledger DB not initialized")
  return db.manager.session_factory


def get_payment_gateway() -> PaymentGatewayClient:
  """Dependency provider for PaymentGatewayClient."""
  return PaymentGatewayClient(
      base_url=config.flag_value("payment_service_url"),
      shop_id=config.flag_value("payment_shop_id"),
      api_key=config.flag_value("payment_api_key"),
      timeout=config.flag_value("gateway_timeout_seconds"),
  )


def get_shipment_gateway() -> ShipmentGatewayClient:
  """Dependency provider for ShipmentGatewayClient."""
  return ShipmentGatewayClient(
      base_url=config.flag_value("shipment_service_url"),
      api_token=config.flag_value("shipment_api_token"),
      timeout=config.flag_value("gateway_timeout_seconds"),
  )


def get_purchase_service(
    session_factory: sessionmaker = Depends(get_session_factory),
    payment_gateway: PaymentGatewayClient = Depends(get_payment_gateway),
    shipment_gateway: ShipmentGatewayClient = Depends(get_shipment_gateway),
) -> PurchaseService:
  """Dependency provider for PurchaseService."""
  return PurchaseService(
      session_factory,
      payment_gateway,
      shipment_gateway,
      item_locks,
      transaction_locks,
  )
