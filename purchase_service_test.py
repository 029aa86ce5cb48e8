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

"""Tests for PurchaseService against a temporary ledger and fake services."""

import asyncio
import datetime
import os
import shutil
import tempfile
from typing import Any, Awaitable, Callable, Tuple

from absl.testing import absltest
from absl.testing import parameterized
import db
from exceptions import BumpNotAllowedError
from exceptions import CategoryNotFoundError
from exceptions import InvalidRequestError
from exceptions import InvalidStateError
from exceptions import ItemNotFoundError
from exceptions import ItemUnavailableError
from exceptions import NotBuyerError
from exceptions import NotSellerError
from exceptions import PaymentDeclinedError
from exceptions import PaymentGatewayUnavailableError
from exceptions import SelfPurchaseError
from exceptions import ShipmentGatewayUnavailableError
from exceptions import ShipmentNotDeliveredError
from exceptions import TransactionNotFoundError
import fake_services
from services.keyed_lock import KeyedLock
from services.payment_gateway import PaymentGatewayClient
from services.purchase_service import PurchaseService
from services.shipment_gateway import ShipmentGatewayClient
from sqlalchemy import func
from sqlalchemy import select

SELLER = 1
BUYER = 2
OTHER = 3
EXTRA_BUYERS = (4, 5, 6)

CAMERA = 1  # Sold by SELLER for 1500.
NOVEL = 2  # Sold by BUYER for 300.

ELECTRONICS = 1  # Root of the camera's category 10.
BOOKS = 3  # Root of the novel's category 30.


class PurchaseServiceTest(parameterized.TestCase):
  """Exercises the purchase workflow end to end below the HTTP layer."""

  def setUp(self) -> None:
    super().setUp()
    self.test_dir = tempfile.mkdtemp()
    self.ledger_path = os.path.join(self.test_dir, "ledger.db")
    self.payment = fake_services.FakePaymentService()
    self.shipment = fake_services.FakeShipmentService()
    self.session_factory = None
    self.service = None

  def tearDown(self) -> None:
    shutil.rmtree(self.test_dir)
    super().tearDown()

  def run_scenario(self, scenario: Callable[[], Awaitable[Any]]) -> Any:
    """Runs `scenario` against a freshly seeded ledger in one event loop."""

    async def runner() -> Any:
      manager = db.DatabaseManager()
      await manager.init_db(self.ledger_path)
      try:
        self.session_factory = manager.session_factory
        await self._seed()
        self.service = PurchaseService(
            manager.session_factory,
            PaymentGatewayClient(
                base_url="http://payment.test",
                shop_id="11",
                api_key="secret",
                transport=self.payment.transport,
            ),
            ShipmentGatewayClient(
                base_url="http://shipment.test",
                transport=self.shipment.transport,
            ),
            KeyedLock(),
            KeyedLock(),
        )
        return await scenario()
      finally:
        await manager.close()

    return asyncio.run(runner())

  async def _seed(self) -> None:
    async with self.session_factory() as session:
      session.add_all([
          db.User(id=SELLER, account_name="sakura", address="Tokyo"),
          db.User(id=BUYER, account_name="kaede", address="Osaka"),
          db.User(id=OTHER, account_name="hinata", address="Nagoya"),
      ])
      session.add_all(
          db.User(id=user_id, account_name=f"buyer{user_id}", address="Kobe")
          for user_id in EXTRA_BUYERS
      )
      session.add_all([
          db.Category(id=ELECTRONICS, parent_id=0, category_name="Electronics"),
          db.Category(id=10, parent_id=ELECTRONICS, category_name="Cameras"),
          db.Category(id=BOOKS, parent_id=0, category_name="Books"),
          db.Category(id=30, parent_id=BOOKS, category_name="Novels"),
      ])
      await session.flush()
      session.add_all([
          db.Item(
              id=CAMERA,
              seller_id=SELLER,
              name="Vintage camera",
              price=1500,
              description="Film camera",
              category_id=10,
          ),
          db.Item(
              id=NOVEL,
              seller_id=BUYER,
              name="Paperback novel",
              price=300,
              description="Read once",
              category_id=30,
          ),
      ])
      await session.commit()

  async def get_item(self, item_id: int) -> db.Item:
    async with self.session_factory() as session:
      return await db.get_item(session, item_id)

  async def get_user(self, user_id: int) -> db.User:
    async with self.session_factory() as session:
      return await db.get_user(session, user_id)

  async def joint_state(self, item_id: int) -> Tuple[str, str]:
    """Returns (transaction evidence status, shipping status) of an item."""
    async with self.session_factory() as session:
      evidence, shipping = await db.get_transaction_with_shipping(
          session, item_id
      )
    return evidence.status, shipping.status

  async def count_evidences(self, item_id: int) -> int:
    async with self.session_factory() as session:
      result = await session.execute(
          select(func.count())
          .select_from(db.TransactionEvidence)
          .where(db.TransactionEvidence.item_id == item_id)
      )
      return result.scalar_one()

  async def buy_and_notify(self) -> int:
    evidence_id = await self.service.buy(CAMERA, BUYER, "tok")
    await self.service.ship_notify(CAMERA, SELLER)
    return evidence_id

  # --- Buy ---

  def test_buy_records_transaction_and_reserves_shipment(self) -> None:
    async def scenario():
      evidence_id = await self.service.buy(CAMERA, BUYER, "tok")
      async with self.session_factory() as session:
        evidence = await db.get_transaction_evidence(session, evidence_id)
        shipping = await db.get_shipping(session, evidence_id)
      return evidence, shipping, await self.get_item(CAMERA)

    evidence, shipping, item = self.run_scenario(scenario)

    self.assertEqual(item.status, "trading")
    self.assertEqual(item.buyer_id, BUYER)
    self.assertEqual(evidence.status, "wait_shipping")
    self.assertEqual(evidence.item_id, CAMERA)
    self.assertEqual(evidence.seller_id, SELLER)
    self.assertEqual(evidence.buyer_id, BUYER)
    self.assertEqual(evidence.item_name, "Vintage camera")
    self.assertEqual(evidence.item_price, 1500)
    self.assertEqual(evidence.item_category_id, 10)
    self.assertEqual(evidence.item_root_category_id, ELECTRONICS)
    self.assertEqual(shipping.status, "wait_pickup")
    self.assertEqual(shipping.reserve_id, "1")
    self.assertEqual(shipping.reserve_time, fake_services.RESERVE_TIME)
    self.assertEqual(
        self.shipment.reservations,
        [{
            "to_address": "Osaka",
            "to_name": "kaede",
            "from_address": "Tokyo",
            "from_name": "sakura",
        }],
    )
    self.assertEqual(self.payment.charges, [("tok", 1500)])

  def test_second_buy_is_rejected(self) -> None:
    async def scenario():
      await self.service.buy(CAMERA, BUYER, "tok")
      with self.assertRaises(ItemUnavailableError):
        await self.service.buy(CAMERA, OTHER, "tok2")
      return await self.count_evidences(CAMERA)

    self.assertEqual(self.run_scenario(scenario), 1)
    self.assertEqual(self.payment.charges, [("tok", 1500)])

  def test_concurrent_buyers_only_one_wins(self) -> None:
    buyers = (BUYER, OTHER) + EXTRA_BUYERS

    async def scenario():
      results = await asyncio.gather(
          *(self.service.buy(CAMERA, buyer, f"tok{buyer}") for buyer in buyers),
          return_exceptions=True,
      )
      return results, await self.get_item(CAMERA), await self.count_evidences(
          CAMERA
      )

    results, item, evidences = self.run_scenario(scenario)

    winners = [r for r in results if isinstance(r, int)]
    losers = [r for r in results if isinstance(r, ItemUnavailableError)]
    self.assertLen(winners, 1)
    self.assertLen(losers, len(buyers) - 1)
    self.assertEqual(evidences, 1)
    self.assertLen(self.payment.charges, 1)
    self.assertEqual(self.payment.charges[0], (f"tok{item.buyer_id}", 1500))

  def test_buy_unknown_item(self) -> None:
    async def scenario():
      with self.assertRaises(ItemNotFoundError):
        await self.service.buy(999, BUYER, "tok")

    self.run_scenario(scenario)
    self.assertEmpty(self.payment.requests)

  def test_buy_without_category_charges_nothing(self) -> None:
    async def scenario():
      async with self.session_factory() as session:
        async with session.begin():
          item = await db.get_item(session, CAMERA)
          item.category_id = 99
      with self.assertRaises(CategoryNotFoundError):
        await self.service.buy(CAMERA, BUYER, "tok")
      return await self.get_item(CAMERA), await self.count_evidences(CAMERA)

    item, evidences = self.run_scenario(scenario)

    self.assertEqual(item.status, "on_sale")
    self.assertEqual(evidences, 0)
    self.assertEmpty(self.payment.requests)

  def test_root_category_of_a_root_is_itself(self) -> None:
    async def scenario():
      async with self.session_factory() as session:
        return (
            await db.get_root_category_id(session, BOOKS),
            await db.get_root_category_id(session, 30),
            await db.get_root_category_id(session, 99),
        )

    self.assertEqual(self.run_scenario(scenario), (BOOKS, BOOKS, None))

  def test_seller_cannot_buy_own_item(self) -> None:
    async def scenario():
      with self.assertRaises(SelfPurchaseError):
        await self.service.buy(CAMERA, SELLER, "tok")
      return await self.get_item(CAMERA)

    item = self.run_scenario(scenario)

    self.assertEqual(item.status, "on_sale")
    self.assertEmpty(self.payment.requests)

  @parameterized.named_parameters(
      ("invalid_card", "invalid", "INVALID_CARD"),
      ("failed", "fail", "PAYMENT_FAILED"),
  )
  def test_declined_payment_leaves_item_on_sale(
      self, status: str, code: str
  ) -> None:
    self.payment.token_statuses["tok_bad"] = status

    async def scenario():
      with self.assertRaises(PaymentDeclinedError) as ctx:
        await self.service.buy(CAMERA, BUYER, "tok_bad")
      return ctx.exception, await self.get_item(
          CAMERA
      ), await self.count_evidences(CAMERA)

    error, item, evidences = self.run_scenario(scenario)

    self.assertEqual(error.code, code)
    self.assertEqual(item.status, "on_sale")
    self.assertIsNone(item.buyer_id)
    self.assertEqual(evidences, 0)
    self.assertEmpty(self.shipment.reservations)

  @parameterized.named_parameters(
      ("timeout", fake_services.TIMEOUT),
      ("connect_error", fake_services.CONNECT_ERROR),
      ("server_error", fake_services.SERVER_ERROR),
  )
  def test_payment_outage_is_safe_to_retry(self, failure: str) -> None:
    async def scenario():
      self.payment.failure = failure
      with self.assertRaises(PaymentGatewayUnavailableError):
        await self.service.buy(CAMERA, BUYER, "tok")
      untouched = await self.get_item(CAMERA)

      self.payment.failure = None
      evidence_id = await self.service.buy(CAMERA, BUYER, "tok")
      return untouched, evidence_id

    untouched, evidence_id = self.run_scenario(scenario)

    self.assertEqual(untouched.status, "on_sale")
    self.assertIsNone(untouched.buyer_id)
    self.assertGreater(evidence_id, 0)
    self.assertEqual(self.payment.charges, [("tok", 1500)])

  # --- Ship notify ---

  def test_failed_reservation_is_recovered_by_ship_notify(self) -> None:
    async def scenario():
      self.shipment.failure = fake_services.CONNECT_ERROR
      evidence_id = await self.service.buy(CAMERA, BUYER, "tok")
      after_buy = await self.joint_state(CAMERA)
      item = await self.get_item(CAMERA)

      self.shipment.failure = None
      shipped = await self.service.ship_notify(CAMERA, SELLER)
      return evidence_id, after_buy, item, shipped, await self.joint_state(
          CAMERA
      )

    evidence_id, after_buy, item, shipped, after_ship = self.run_scenario(
        scenario
    )

    self.assertEqual(after_buy, ("wait_shipping", "initial"))
    self.assertEqual(item.status, "trading")
    self.assertEqual(self.payment.charges, [("tok", 1500)])
    self.assertEqual(shipped.reserve_id, "1")
    self.assertEqual(shipped.path, f"/transactions/{evidence_id}.png")
    self.assertEqual(after_ship, ("wait_shipping", "wait_pickup"))
    self.assertLen(self.shipment.reservations, 1)

  def test_ship_notify_does_not_reserve_twice(self) -> None:
    async def scenario():
      await self.buy_and_notify()
      return await self.service.ship_notify(CAMERA, SELLER)

    shipped = self.run_scenario(scenario)

    self.assertEqual(shipped.reserve_id, "1")
    self.assertLen(self.shipment.reservations, 1)

  def test_ship_notify_while_shipment_down_keeps_state(self) -> None:
    async def scenario():
      self.shipment.failure = fake_services.TIMEOUT
      await self.service.buy(CAMERA, BUYER, "tok")
      with self.assertRaises(ShipmentGatewayUnavailableError):
        await self.service.ship_notify(CAMERA, SELLER)
      return await self.joint_state(CAMERA)

    self.assertEqual(
        self.run_scenario(scenario), ("wait_shipping", "initial")
    )

  def test_ship_notify_requires_seller(self) -> None:
    async def scenario():
      await self.service.buy(CAMERA, BUYER, "tok")
      with self.assertRaises(NotSellerError):
        await self.service.ship_notify(CAMERA, BUYER)
      with self.assertRaises(TransactionNotFoundError):
        await self.service.ship_notify(NOVEL, BUYER)

    self.run_scenario(scenario)

  # --- Ship done ---

  def test_ship_done_before_carrier_acceptance_is_a_noop(self) -> None:
    async def scenario():
      await self.buy_and_notify()
      states = []
      for _ in range(2):
        await self.service.ship_done(CAMERA, SELLER)
        states.append(await self.joint_state(CAMERA))

      self.shipment.advance_all("shipping")
      for _ in range(2):
        await self.service.ship_done(CAMERA, SELLER)
        states.append(await self.joint_state(CAMERA))
      return states

    states = self.run_scenario(scenario)

    self.assertEqual(
        states,
        [
            ("wait_shipping", "wait_pickup"),
            ("wait_shipping", "wait_pickup"),
            ("wait_shipping", "shipping"),
            ("wait_shipping", "shipping"),
        ],
    )

  def test_ship_done_with_carrier_unavailable_changes_nothing(self) -> None:
    async def scenario():
      await self.buy_and_notify()
      self.shipment.advance_all("done")
      self.shipment.failure = fake_services.SERVER_ERROR
      with self.assertRaises(ShipmentGatewayUnavailableError):
        await self.service.ship_done(CAMERA, SELLER)
      return await self.joint_state(CAMERA)

    self.assertEqual(
        self.run_scenario(scenario), ("wait_shipping", "wait_pickup")
    )

  def test_ship_done_before_reservation_is_invalid(self) -> None:
    async def scenario():
      self.shipment.failure = fake_services.CONNECT_ERROR
      await self.service.buy(CAMERA, BUYER, "tok")
      self.shipment.failure = None
      with self.assertRaises(InvalidStateError):
        await self.service.ship_done(CAMERA, SELLER)

    self.run_scenario(scenario)
    self.assertEqual(self.shipment.status_queries, 0)

  def test_ship_done_requires_seller(self) -> None:
    async def scenario():
      await self.buy_and_notify()
      with self.assertRaises(NotSellerError):
        await self.service.ship_done(CAMERA, BUYER)

    self.run_scenario(scenario)

  # --- Complete ---

  def test_complete_by_non_buyer_mutates_nothing(self) -> None:
    async def scenario():
      await self.buy_and_notify()
      self.shipment.advance_all("done")
      for user_id in (OTHER, SELLER):
        with self.assertRaises(NotBuyerError):
          await self.service.complete(CAMERA, user_id)
      return await self.joint_state(CAMERA), await self.get_item(CAMERA)

    state, item = self.run_scenario(scenario)

    self.assertEqual(state, ("wait_shipping", "wait_pickup"))
    self.assertEqual(item.status, "trading")
    self.assertEqual(self.shipment.status_queries, 0)

  def test_complete_before_ship_done_is_invalid(self) -> None:
    async def scenario():
      await self.buy_and_notify()
      # Delivered, but the seller has not reported it yet.
      self.shipment.advance_all("done")
      with self.assertRaises(InvalidStateError):
        await self.service.complete(CAMERA, BUYER)
      return await self.joint_state(CAMERA), await self.get_item(CAMERA)

    state, item = self.run_scenario(scenario)

    self.assertEqual(state, ("wait_shipping", "wait_pickup"))
    self.assertEqual(item.status, "trading")
    self.assertEqual(self.shipment.status_queries, 0)

  def test_complete_while_in_transit_is_invalid(self) -> None:
    async def scenario():
      await self.buy_and_notify()
      self.shipment.advance_all("shipping")
      await self.service.ship_done(CAMERA, SELLER)
      with self.assertRaises(InvalidStateError):
        await self.service.complete(CAMERA, BUYER)
      return await self.joint_state(CAMERA)

    self.assertEqual(
        self.run_scenario(scenario), ("wait_shipping", "shipping")
    )

  def test_complete_rejected_when_carrier_disagrees(self) -> None:
    async def scenario():
      await self.buy_and_notify()
      self.shipment.advance_all("done")
      await self.service.ship_done(CAMERA, SELLER)

      self.shipment.advance_all("shipping")
      with self.assertRaises(ShipmentNotDeliveredError):
        await self.service.complete(CAMERA, BUYER)
      return await self.joint_state(CAMERA), await self.get_item(CAMERA)

    state, item = self.run_scenario(scenario)

    self.assertEqual(state, ("wait_done", "done"))
    self.assertEqual(item.status, "trading")

  def test_complete_with_carrier_unavailable_changes_nothing(self) -> None:
    async def scenario():
      await self.buy_and_notify()
      self.shipment.advance_all("done")
      await self.service.ship_done(CAMERA, SELLER)

      self.shipment.failure = fake_services.TIMEOUT
      with self.assertRaises(ShipmentGatewayUnavailableError):
        await self.service.complete(CAMERA, BUYER)
      return await self.joint_state(CAMERA), await self.get_item(CAMERA)

    state, item = self.run_scenario(scenario)

    self.assertEqual(state, ("wait_done", "done"))
    self.assertEqual(item.status, "trading")

  def test_round_trip_passes_through_every_joint_state(self) -> None:
    async def scenario():
      states = []
      self.shipment.failure = fake_services.CONNECT_ERROR
      await self.service.buy(CAMERA, BUYER, "tok")
      states.append(await self.joint_state(CAMERA))

      self.shipment.failure = None
      await self.service.ship_notify(CAMERA, SELLER)
      states.append(await self.joint_state(CAMERA))

      self.shipment.advance_all("shipping")
      await self.service.ship_done(CAMERA, SELLER)
      states.append(await self.joint_state(CAMERA))

      self.shipment.advance_all("done")
      await self.service.ship_done(CAMERA, SELLER)
      states.append(await self.joint_state(CAMERA))

      await self.service.complete(CAMERA, BUYER)
      states.append(await self.joint_state(CAMERA))
      return states, await self.get_item(CAMERA), await self.get_user(SELLER)

    states, item, seller = self.run_scenario(scenario)

    self.assertEqual(
        states,
        [
            ("wait_shipping", "initial"),
            ("wait_shipping", "wait_pickup"),
            ("wait_shipping", "shipping"),
            ("wait_done", "done"),
            ("done", "done"),
        ],
    )
    self.assertEqual(item.status, "sold_out")
    self.assertEqual(item.buyer_id, BUYER)
    self.assertEqual(seller.num_sell_items, 0)

  def test_complete_rechecks_delivery_with_carrier(self) -> None:
    async def scenario():
      await self.buy_and_notify()
      self.shipment.advance_all("done")
      await self.service.ship_done(CAMERA, SELLER)
      queries_before = self.shipment.status_queries

      result = await self.service.complete(CAMERA, BUYER)
      return result, await self.joint_state(CAMERA), queries_before

    result, state, queries_before = self.run_scenario(scenario)

    self.assertEqual(result.transaction_evidence_status, "done")
    self.assertEqual(result.shipping_status, "done")
    self.assertEqual(state, ("done", "done"))
    self.assertEqual(self.shipment.status_queries, queries_before + 1)

  def test_no_step_after_completion(self) -> None:
    async def scenario():
      await self.buy_and_notify()
      self.shipment.advance_all("done")
      await self.service.ship_done(CAMERA, SELLER)
      await self.service.complete(CAMERA, BUYER)

      with self.assertRaises(InvalidStateError):
        await self.service.complete(CAMERA, BUYER)
      with self.assertRaises(InvalidStateError):
        await self.service.ship_done(CAMERA, SELLER)
      with self.assertRaises(InvalidStateError):
        await self.service.ship_notify(CAMERA, SELLER)
      with self.assertRaises(ItemUnavailableError):
        await self.service.buy(CAMERA, OTHER, "tok")

    self.run_scenario(scenario)

  # --- Queries ---

  def test_item_detail_shows_transaction_to_parties_only(self) -> None:
    async def scenario():
      evidence_id = await self.service.buy(CAMERA, BUYER, "tok")
      details = {
          viewer: await self.service.get_item_detail(CAMERA, viewer)
          for viewer in (SELLER, BUYER, OTHER)
      }
      return evidence_id, details

    evidence_id, details = self.run_scenario(scenario)

    for viewer in (SELLER, BUYER):
      self.assertEqual(details[viewer].transaction_evidence_id, evidence_id)
      self.assertEqual(
          details[viewer].transaction_evidence_status, "wait_shipping"
      )
      self.assertEqual(details[viewer].shipping_status, "wait_pickup")
      self.assertEqual(details[viewer].buyer_id, BUYER)
    self.assertEqual(details[OTHER].status, "trading")
    self.assertIsNone(details[OTHER].buyer_id)
    self.assertIsNone(details[OTHER].transaction_evidence_id)
    self.assertIsNone(details[OTHER].shipping_status)

  def test_shipping_label_is_served_to_seller(self) -> None:
    async def scenario():
      evidence_id = await self.service.buy(CAMERA, BUYER, "tok")
      with self.assertRaises(InvalidStateError):
        await self.service.get_shipping_label(evidence_id, SELLER)

      await self.service.ship_notify(CAMERA, SELLER)
      with self.assertRaises(NotSellerError):
        await self.service.get_shipping_label(evidence_id, BUYER)
      with self.assertRaises(TransactionNotFoundError):
        await self.service.get_shipping_label(999, SELLER)
      return await self.service.get_shipping_label(evidence_id, SELLER)

    self.assertEqual(self.run_scenario(scenario), fake_services.LABEL_PNG)

  # --- Seller edits ---

  @parameterized.parameters(0, 99, 1000001)
  def test_edit_rejects_price_out_of_range(self, price: int) -> None:
    async def scenario():
      with self.assertRaises(InvalidRequestError):
        await self.service.edit_item_price(CAMERA, SELLER, price)
      return await self.get_item(CAMERA)

    self.assertEqual(self.run_scenario(scenario).price, 1500)

  @parameterized.parameters(100, 1000000)
  def test_edit_accepts_price_bounds(self, price: int) -> None:
    async def scenario():
      edited = await self.service.edit_item_price(CAMERA, SELLER, price)
      await self.service.buy(CAMERA, BUYER, "tok")
      return edited

    edited = self.run_scenario(scenario)

    self.assertEqual(edited.item_price, price)
    self.assertEqual(self.payment.charges, [("tok", price)])

  def test_edit_requires_seller_and_item_on_sale(self) -> None:
    async def scenario():
      with self.assertRaises(NotSellerError):
        await self.service.edit_item_price(CAMERA, BUYER, 2000)
      await self.service.buy(CAMERA, BUYER, "tok")
      with self.assertRaises(ItemUnavailableError):
        await self.service.edit_item_price(CAMERA, SELLER, 2000)
      async with self.session_factory() as session:
        evidence = await db.get_transaction_evidence_by_item(session, CAMERA)
      return evidence

    self.assertEqual(self.run_scenario(scenario).item_price, 1500)

  def test_bump_is_rate_limited(self) -> None:
    async def scenario():
      first = await self.service.bump_item(CAMERA, SELLER)
      with self.assertRaises(BumpNotAllowedError):
        await self.service.bump_item(CAMERA, SELLER)

      long_ago = datetime.datetime.now(
          datetime.timezone.utc
      ) - datetime.timedelta(minutes=4)
      async with self.session_factory() as session:
        seller = await db.get_user(session, SELLER)
        seller.last_bump = long_ago.isoformat()
        await session.commit()
      second = await self.service.bump_item(CAMERA, SELLER)
      return first, second

    first, second = self.run_scenario(scenario)

    self.assertGreater(second.item_created_at, first.item_created_at)

  def test_bump_requires_item_on_sale(self) -> None:
    async def scenario():
      await self.service.buy(CAMERA, BUYER, "tok")
      with self.assertRaises(ItemUnavailableError):
        await self.service.bump_item(CAMERA, SELLER)
      with self.assertRaises(NotSellerError):
        await self.service.bump_item(NOVEL, SELLER)

    self.run_scenario(scenario)


if __name__ == "__main__":
  absltest.main()
