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

"""Purchase service driving an item from sale to completed transaction.

This module provides the `PurchaseService` class, which encapsulates the
business logic of the purchase workflow. It coordinates the ledger database
with the external payment and shipment services and keeps the item,
transaction evidence and shipping state machines in step.

Key responsibilities include:
- Buying an item: validating it under a row lock, charging the buyer, and
  recording the transaction evidence and shipping rows in one commit.
- Reserving the carrier pickup, retried by the seller's ship notification if
  the reservation failed during the purchase.
- Reconciling the local shipping status with the carrier status reported by
  the shipment service, and letting the buyer complete once delivered.
- Seller-side price edits and bumps for items still on sale.

No database transaction is kept open across a call to an external service.
Buys of the same item are serialized by a per-item lock held around the
payment call, so a losing buyer is never charged; later steps of a
transaction only take a per-transaction lock.
"""

import contextlib
import datetime
import logging
from typing import AsyncIterator, Optional, Tuple

import db
from enums import check_transition
from enums import ItemStatus
from enums import reconcile_shipping_status
from enums import ShippingStatus
from enums import TransactionEvidenceStatus
from exceptions import BumpNotAllowedError
from exceptions import CategoryNotFoundError
from exceptions import InvalidRequestError
from exceptions import InvalidStateError
from exceptions import ItemNotFoundError
from exceptions import ItemUnavailableError
from exceptions import NotBuyerError
from exceptions import NotSellerError
from exceptions import SelfPurchaseError
from exceptions import ShipmentGatewayUnavailableError
from exceptions import ShipmentNotDeliveredError
from exceptions import TransactionNotFoundError
from exceptions import UserNotFoundError
from models import ItemDetail
from models import ItemEditResponse
from models import ShipResponse
from models import TransactionState
from services.keyed_lock import KeyedLock
from services.payment_gateway import PaymentGatewayClient
from services.shipment_gateway import ShipmentGatewayClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import sessionmaker

logger = logging.getLogger(__name__)

BUMP_CHARGE_SECONDS = 3 * 60


class PurchaseService:
  """Service orchestrating purchases, shipments and completion."""

  def __init__(
      self,
      session_factory: sessionmaker,
      payment_gateway: PaymentGatewayClient,
      shipment_gateway: ShipmentGatewayClient,
      item_locks: KeyedLock,
      transaction_locks: KeyedLock,
  ):
    self.session_factory = session_factory
    self.payment_gateway = payment_gateway
    self.shipment_gateway = shipment_gateway
    self.item_locks = item_locks
    self.transaction_locks = transaction_locks

  @contextlib.asynccontextmanager
  async def _transaction(self) -> AsyncIterator[AsyncSession]:
    """Opens a session and a transaction committed when the block exits."""
    async with self.session_factory() as session:
      async with session.begin():
        yield session

  async def buy(self, item_id: int, buyer_id: int, token: str) -> int:
    """Buys an item on sale.

    Args:
      item_id: The item to buy.
      buyer_id: The acting user.
      token: The card token to charge.

    Returns:
      The id of the new transaction evidence.

    Raises:
      ItemNotFoundError: The item does not exist.
      ItemUnavailableError: The item is not on sale.
      SelfPurchaseError: The buyer is the seller.
      CategoryNotFoundError: The item's category tree is incomplete.
      PaymentDeclinedError: The payment service refused the card.
      PaymentGatewayUnavailableError: The payment service is unreachable.
    """
    logger.info("User %d buying item %d", buyer_id, item_id)

    async with self.item_locks.hold(item_id):
      async with self._transaction() as session:
        item = await db.get_item(session, item_id, for_update=True)
        if item is None:
          raise ItemNotFoundError(item_id)
        if item.status != ItemStatus.ON_SALE:
          raise ItemUnavailableError()
        if item.seller_id == buyer_id:
          raise SelfPurchaseError()
        buyer = await self._get_user(session, buyer_id)
        seller = await self._get_user(session, item.seller_id)
        root_category_id = await db.get_root_category_id(
            session, item.category_id
        )
        if root_category_id is None:
          raise CategoryNotFoundError(item.category_id)

      # Nothing has been written yet; a decline or an outage leaves the item
      # on sale.
      await self.payment_gateway.charge(token, item.price)

      async with self._transaction() as session:
        check_transition(ItemStatus(item.status), ItemStatus.TRADING)
        if not await db.mark_item_trading(session, item_id, buyer_id):
          # Only reachable when another process sold the item meanwhile.
          logger.error(
              "Item %d was charged to user %d but sold to someone else",
              item_id,
              buyer_id,
          )
          raise ItemUnavailableError()
        evidence = await db.create_transaction(
            session, item, buyer, seller, root_category_id
        )
      evidence_id = evidence.id

    logger.info("Item %d sold in transaction %d", item_id, evidence_id)

    # The charge is captured at this point, so a failed reservation is left
    # for the seller's ship notification to retry.
    try:
      async with self.transaction_locks.hold(evidence_id):
        await self._reserve_shipment(evidence_id)
    except ShipmentGatewayUnavailableError as e:
      logger.warning(
          "Shipment reservation for transaction %d deferred: %s",
          evidence_id,
          e.message,
      )
    return evidence_id

  async def ship_notify(self, item_id: int, seller_id: int) -> ShipResponse:
    """Prepares the shipment of a sold item and fetches its label.

    Retries the pickup reservation if the purchase could not obtain one, then
    asks the shipment service for the label and stores it.
    """
    item, evidence = await self._load_item_transaction(item_id)
    if item.seller_id != seller_id:
      raise NotSellerError()
    if evidence is None:
      raise TransactionNotFoundError()

    async with self.transaction_locks.hold(evidence.id):
      async with self._transaction() as session:
        evidence, shipping = await db.get_transaction_with_shipping(
            session, item_id
        )
      if evidence.status != TransactionEvidenceStatus.WAIT_SHIPPING:
        raise InvalidStateError("Transaction is not waiting for shipping")

      shipping = await self._reserve_shipment(evidence.id)
      label = await self.shipment_gateway.request_label(shipping.reserve_id)

      async with self._transaction() as session:
        shipping = await db.get_shipping(session, evidence.id, for_update=True)
        shipping.img_binary = label
        shipping.updated_at = db.now_iso()

    logger.info("Label issued for transaction %d", evidence.id)
    return ShipResponse(
        path=f"/transactions/{evidence.id}.png",
        reserve_id=shipping.reserve_id,
    )

  async def ship_done(self, item_id: int, seller_id: int) -> TransactionState:
    """Reconciles the shipping with the carrier after the seller hands it over.

    The transaction only moves on to waiting for the buyer once the shipment
    service reports the delivery done; until then repeated calls only record
    the carrier's progress.
    """
    item, evidence = await self._load_item_transaction(item_id)
    if item.seller_id != seller_id:
      raise NotSellerError()
    if evidence is None:
      raise TransactionNotFoundError()

    async with self.transaction_locks.hold(evidence.id):
      async with self._transaction() as session:
        evidence, shipping = await db.get_transaction_with_shipping(
            session, item_id
        )
      if evidence.status != TransactionEvidenceStatus.WAIT_SHIPPING:
        raise InvalidStateError("Transaction is not waiting for shipping")
      if shipping.status == ShippingStatus.INITIAL:
        raise InvalidStateError("Shipment has not been reserved yet")
      return await self._reconcile(evidence.id)

  async def complete(self, item_id: int, buyer_id: int) -> TransactionState:
    """Lets the buyer confirm receipt and closes the transaction.

    Only a transaction the seller has already reported delivered can be
    completed. The delivery is confirmed with the shipment service once more
    before anything is written.

    Raises:
      NotBuyerError: The caller is not the buyer of the item.
      InvalidStateError: The transaction is not waiting for the buyer.
      ShipmentNotDeliveredError: The carrier does not report the delivery done.
      ShipmentGatewayUnavailableError: The carrier status cannot be read.
    """
    item, evidence = await self._load_item_transaction(item_id)
    if item.buyer_id != buyer_id:
      raise NotBuyerError()
    if evidence is None:
      raise TransactionNotFoundError()

    async with self.transaction_locks.hold(evidence.id):
      async with self._transaction() as session:
        evidence, shipping = await db.get_transaction_with_shipping(
            session, item_id
        )
      if evidence.status != TransactionEvidenceStatus.WAIT_DONE:
        raise InvalidStateError("Transaction is not waiting for the buyer")

      reported = await self.shipment_gateway.get_status(shipping.reserve_id)
      if reported != ShippingStatus.DONE:
        logger.warning(
            "Transaction %d is wait_done but the carrier reports %s",
            evidence.id,
            reported.value,
        )
        raise ShipmentNotDeliveredError()

      async with self._transaction() as session:
        evidence = await db.get_transaction_evidence(session, evidence.id)
        item = await db.get_item(session, item_id, for_update=True)
        now = db.now_iso()
        evidence.status = check_transition(
            TransactionEvidenceStatus(evidence.status),
            TransactionEvidenceStatus.DONE,
        ).value
        evidence.updated_at = now
        item.status = check_transition(
            ItemStatus(item.status), ItemStatus.SOLD_OUT
        ).value
        item.updated_at = now

    logger.info("Transaction %d completed", evidence.id)
    return TransactionState(
        transaction_evidence_id=evidence.id,
        transaction_evidence_status=TransactionEvidenceStatus.DONE,
        shipping_status=ShippingStatus.DONE,
    )

  async def get_item_detail(
      self, item_id: int, viewer_id: Optional[int] = None
  ) -> ItemDetail:
    """Returns an item, with its transaction state for the two parties."""
    async with self._transaction() as session:
      item = await db.get_item(session, item_id)
      if item is None:
        raise ItemNotFoundError(item_id)
      detail = ItemDetail(
          id=item.id,
          seller_id=item.seller_id,
          status=item.status,
          name=item.name,
          price=item.price,
          description=item.description,
          image_name=item.image_name,
          category_id=item.category_id,
          created_at=item.created_at,
      )
      if viewer_id is None or viewer_id not in (item.seller_id, item.buyer_id):
        return detail

      detail.buyer_id = item.buyer_id
      evidence, shipping = await db.get_transaction_with_shipping(
          session, item_id
      )
      if evidence is not None:
        detail.transaction_evidence_id = evidence.id
        detail.transaction_evidence_status = TransactionEvidenceStatus(
            evidence.status
        )
      if shipping is not None:
        detail.shipping_status = ShippingStatus(shipping.status)
        detail.reserve_id = shipping.reserve_id
    return detail

  async def get_shipping_label(self, evidence_id: int, viewer_id: int) -> bytes:
    """Returns the stored shipping label of a transaction to its seller."""
    async with self._transaction() as session:
      evidence = await db.get_transaction_evidence(session, evidence_id)
      if evidence is None:
        raise TransactionNotFoundError()
      if evidence.seller_id != viewer_id:
        raise NotSellerError()
      shipping = await db.get_shipping(session, evidence_id)
    if shipping is None or shipping.img_binary is None:
      raise InvalidStateError("Shipping label has not been issued yet")
    return shipping.img_binary

  async def edit_item_price(
      self, item_id: int, seller_id: int, price: int
  ) -> ItemEditResponse:
    """Changes the price of an item still on sale."""
    if price < db.ITEM_MIN_PRICE or price > db.ITEM_MAX_PRICE:
      raise InvalidRequestError(
          f"Item price must be between {db.ITEM_MIN_PRICE} and"
          f" {db.ITEM_MAX_PRICE}"
      )

    async with self.item_locks.hold(item_id):
      async with self._transaction() as session:
        item = await self._get_item_on_sale(session, item_id, seller_id)
        item.price = price
        item.updated_at = db.now_iso()

    logger.info("Item %d repriced to %d", item_id, price)
    return ItemEditResponse(
        item_id=item.id,
        item_price=item.price,
        item_created_at=item.created_at,
        item_updated_at=item.updated_at,
    )

  async def bump_item(self, item_id: int, seller_id: int) -> ItemEditResponse:
    """Moves an item on sale back to the top of the listing."""
    async with self.item_locks.hold(item_id):
      async with self._transaction() as session:
        item = await self._get_item_on_sale(session, item_id, seller_id)
        seller = await self._get_user(session, seller_id)

        now = datetime.datetime.now(datetime.timezone.utc)
        if seller.last_bump:
          elapsed = now - datetime.datetime.fromisoformat(seller.last_bump)
          if elapsed.total_seconds() < BUMP_CHARGE_SECONDS:
            raise BumpNotAllowedError()

        item.created_at = now.isoformat()
        item.updated_at = now.isoformat()
        seller.last_bump = now.isoformat()

    return ItemEditResponse(
        item_id=item.id,
        item_price=item.price,
        item_created_at=item.created_at,
        item_updated_at=item.updated_at,
    )

  async def _reserve_shipment(self, evidence_id: int) -> db.Shipping:
    """Obtains the pickup reservation unless the shipping already has one.

    The caller must hold the transaction lock.
    """
    async with self._transaction() as session:
      shipping = await db.get_shipping(session, evidence_id)
    if shipping is None:
      raise TransactionNotFoundError(
          f"Shipping for transaction {evidence_id} not found"
      )
    if shipping.status != ShippingStatus.INITIAL:
      return shipping

    reservation = await self.shipment_gateway.create_reservation(
        to_address=shipping.to_address,
        to_name=shipping.to_name,
        from_address=shipping.from_address,
        from_name=shipping.from_name,
    )

    async with self._transaction() as session:
      shipping = await db.get_shipping(session, evidence_id, for_update=True)
      shipping.status = check_transition(
          ShippingStatus(shipping.status), ShippingStatus.WAIT_PICKUP
      ).value
      shipping.reserve_id = reservation.reserve_id
      shipping.reserve_time = reservation.reserve_time
      shipping.updated_at = db.now_iso()
    return shipping

  async def _reconcile(self, evidence_id: int) -> TransactionState:
    """Brings the local shipping status in line with the carrier's.

    The caller must hold the transaction lock. Raises
    ShipmentGatewayUnavailableError without touching anything when the
    carrier status cannot be read.
    """
    async with self._transaction() as session:
      shipping = await db.get_shipping(session, evidence_id)

    reported = None
    if shipping.status not in (ShippingStatus.INITIAL, ShippingStatus.DONE):
      reported = await self.shipment_gateway.get_status(shipping.reserve_id)

    async with self._transaction() as session:
      evidence = await db.get_transaction_evidence(session, evidence_id)
      shipping = await db.get_shipping(session, evidence_id, for_update=True)
      now = db.now_iso()

      if reported is not None:
        current = ShippingStatus(shipping.status)
        target = reconcile_shipping_status(current, reported)
        if target != current:
          logger.info(
              "Transaction %d shipping moved from %s to %s",
              evidence_id,
              current.value,
              target.value,
          )
          shipping.status = target.value
          shipping.updated_at = now

      if (
          shipping.status == ShippingStatus.DONE
          and evidence.status == TransactionEvidenceStatus.WAIT_SHIPPING
      ):
        evidence.status = check_transition(
            TransactionEvidenceStatus(evidence.status),
            TransactionEvidenceStatus.WAIT_DONE,
        ).value
        evidence.updated_at = now

    return TransactionState(
        transaction_evidence_id=evidence_id,
        transaction_evidence_status=evidence.status,
        shipping_status=shipping.status,
    )

  async def _load_item_transaction(
      self, item_id: int
  ) -> Tuple[db.Item, Optional[db.TransactionEvidence]]:
    async with self._transaction() as session:
      item = await db.get_item(session, item_id)
      if item is None:
        raise ItemNotFoundError(item_id)
      evidence = await db.get_transaction_evidence_by_item(session, item_id)
    return item, evidence

  async def _get_item_on_sale(
      self, session: AsyncSession, item_id: int, seller_id: int
  ) -> db.Item:
    item = await db.get_item(session, item_id, for_update=True)
    if item is None:
      raise ItemNotFoundError(item_id)
    if item.seller_id != seller_id:
      raise NotSellerError()
    if item.status != ItemStatus.ON_SALE:
      raise ItemUnavailableError()
    return item

  async def _get_user(self, session: AsyncSession, user_id: int) -> db.User:
    user = await db.get_user(session, user_id)
    if user is None:
      raise UserNotFoundError(user_id)
    return user
