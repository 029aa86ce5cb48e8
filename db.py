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

"""Ledger store for the marketplace server.

This module provides the schema definitions, database session management, and
asynchronous data access helpers used by the purchase workflow. It utilizes
SQLAlchemy with SQLite (via aiosqlite).

Key features include:
- `DatabaseManager`: Handles asynchronous engine initialization and session
  factory setup for the ledger database.
- WAL Mode: Automatically enables SQLite Write-Ahead Logging so readers do not
  block the single writer.
- Declarative Models: Defines tables for users, categories, items, transaction
  evidences and shippings.
- Data Access Helpers: Row-locking reads and the guarded status updates the
  orchestrator relies on. Helpers never commit; the caller owns the
  transaction boundary.
"""

import datetime
import logging
from typing import List, Optional, Tuple

from enums import ItemStatus
from enums import ShippingStatus
from enums import TransactionEvidenceStatus
from sqlalchemy import CheckConstraint
from sqlalchemy import Column
from sqlalchemy import ForeignKey
from sqlalchemy import Integer
from sqlalchemy import LargeBinary
from sqlalchemy import select
from sqlalchemy import String
from sqlalchemy import text
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncEngine
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import declarative_base
from sqlalchemy.orm import sessionmaker

logger = logging.getLogger(__name__)

ITEM_MIN_PRICE = 100
ITEM_MAX_PRICE = 1000000

LedgerBase = declarative_base()


def now_iso() -> str:
  return datetime.datetime.now(datetime.timezone.utc).isoformat()


class DatabaseManager:
  """Manages the ledger engine and sessions without using global variables."""

  def __init__(self) -> None:
    self.engine: Optional[AsyncEngine] = None
    self.session_factory: Optional[sessionmaker] = None

  async def init_db(self, ledger_path: str) -> None:
    """Initializes the database engine and creates tables."""
    url = f"sqlite+aiosqlite:///{ledger_path}"
    self.engine = create_async_engine(url, echo=False)

    async with self.engine.connect() as conn:
      await conn.execute(text("PRAGMA journal_mode=WAL"))

    self.session_factory = sessionmaker(
        self.engine, expire_on_commit=False, class_=AsyncSession
    )

    async with self.engine.begin() as conn:
      await conn.run_sync(LedgerBase.metadata.create_all)
    logger.info("Ledger database ready at %s", ledger_path)

  async def close(self) -> None:
    """Closes the database engine."""
    if self.engine:
      await self.engine.dispose()


# Global manager instance (to be initialized via lifespan)
manager = DatabaseManager()


class User(LedgerBase):
  __tablename__ = "users"

  id = Column(Integer, primary_key=True, autoincrement=True)
  account_name = Column(String, unique=True, nullable=False)
  address = Column(String, nullable=False)
  num_sell_items = Column(Integer, nullable=False, default=0)
  last_bump = Column(String, nullable=True)
  created_at = Column(String, default=now_iso)


class Category(LedgerBase):
  __tablename__ = "categories"

  id = Column(Integer, primary_key=True)
  # 0 marks a root category.
  parent_id = Column(Integer, nullable=False, default=0)
  category_name = Column(String, nullable=False)


class Item(LedgerBase):
  __tablename__ = "items"
  __table_args__ = (
      CheckConstraint(
          f"price >= {ITEM_MIN_PRICE} AND price <= {ITEM_MAX_PRICE}",
          name="ck_items_price_range",
      ),
  )

  id = Column(Integer, primary_key=True, autoincrement=True)
  seller_id = Column(Integer, ForeignKey("users.id"), nullable=False)
  buyer_id = Column(Integer, ForeignKey("users.id"), nullable=True)
  status = Column(String, nullable=False, default=ItemStatus.ON_SALE.value)
  name = Column(String, nullable=False)
  price = Column(Integer, nullable=False)
  description = Column(String, nullable=False, default="")
  image_name = Column(String, nullable=True)
  category_id = Column(Integer, ForeignKey("categories.id"), nullable=False)
  created_at = Column(String, default=now_iso)
  updated_at = Column(String, default=now_iso)


class TransactionEvidence(LedgerBase):
  __tablename__ = "transaction_evidences"

  id = Column(Integer, primary_key=True, autoincrement=True)
  seller_id = Column(Integer, ForeignKey("users.id"), nullable=False)
  buyer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
  status = Column(String, nullable=False)
  # One evidence per item: the item can only be sold once.
  item_id = Column(Integer, ForeignKey("items.id"), unique=True, nullable=False)
  # Snapshot of the item at purchase time
  item_name = Column(String, nullable=False)
  item_price = Column(Integer, nullable=False)
  item_description = Column(String, nullable=False)
  item_category_id = Column(Integer, nullable=False)
  item_root_category_id = Column(Integer, nullable=False)
  created_at = Column(String, default=now_iso)
  updated_at = Column(String, default=now_iso)


class Shipping(LedgerBase):
  __tablename__ = "shippings"

  transaction_evidence_id = Column(
      Integer, ForeignKey("transaction_evidences.id"), primary_key=True
  )
  status = Column(String, nullable=False)
  item_name = Column(String, nullable=False)
  item_id = Column(Integer, nullable=False)
  reserve_id = Column(String, nullable=True)
  reserve_time = Column(Integer, nullable=True)
  to_address = Column(String, nullable=False)
  to_name = Column(String, nullable=False)
  from_address = Column(String, nullable=False)
  from_name = Column(String, nullable=False)
  img_binary = Column(LargeBinary, nullable=True)
  created_at = Column(String, default=now_iso)
  updated_at = Column(String, default=now_iso)


# --- Data Access Helpers ---


async def get_user(session: AsyncSession, user_id: int) -> Optional[User]:
  """Retrieves a user by ID."""
  return await session.get(User, user_id)


async def get_root_category_id(
    session: AsyncSession, category_id: int
) -> Optional[int]:
  """Follows parent links up to the root category.

  Returns:
    The id of the root category, or None if a category on the way is missing.
  """
  category = await session.get(Category, category_id)
  while category is not None and category.parent_id:
    category = await session.get(Category, category.parent_id)
  return None if category is None else category.id


async def get_item(
    session: AsyncSession, item_id: int, for_update: bool = False
) -> Optional[Item]:
  """Retrieves an item by ID.

  Args:
    session: The database session to use.
    item_id: The item to look up.
    for_update: Whether to take an exclusive row lock for the rest of the
      session's transaction. Backends without row locks (SQLite) ignore it.

  Returns:
    The Item if found, otherwise None.
  """
  stmt = select(Item).where(Item.id == item_id)
  if for_update:
    stmt = stmt.with_for_update()
  result = await session.execute(stmt)
  return result.scalar_one_or_none()


async def mark_item_trading(
    session: AsyncSession, item_id: int, buyer_id: int
) -> bool:
  """Atomically moves an item from on sale to trading.

  The update only matches while the item is still on sale, so of two racing
  writers at most one sees a row count of 1.

  Returns:
    True if this call won the item.
  """
  stmt = (
      update(Item)
      .where(Item.id == item_id)
      .where(Item.status == ItemStatus.ON_SALE.value)
      .values(
          status=ItemStatus.TRADING.value,
          buyer_id=buyer_id,
          updated_at=now_iso(),
      )
  )
  result = await session.execute(stmt)
  return result.rowcount > 0


async def create_transaction(
    session: AsyncSession,
    item: Item,
    buyer: User,
    seller: User,
    root_category_id: int,
) -> TransactionEvidence:
  """Inserts the transaction evidence and its shipping placeholder.

  Both rows are added to the caller's transaction; the evidence is flushed so
  its generated id can key the shipping row.
  """
  evidence = TransactionEvidence(
      seller_id=item.seller_id,
      buyer_id=buyer.id,
      status=TransactionEvidenceStatus.WAIT_SHIPPING.value,
      item_id=item.id,
      item_name=item.name,
      item_price=item.price,
      item_description=item.description,
      item_category_id=item.category_id,
      item_root_category_id=root_category_id,
  )
  session.add(evidence)
  await session.flush()

  session.add(
      Shipping(
          transaction_evidence_id=evidence.id,
          status=ShippingStatus.INITIAL.value,
          item_name=item.name,
          item_id=item.id,
          to_address=buyer.address,
          to_name=buyer.account_name,
          from_address=seller.address,
          from_name=seller.account_name,
      )
  )
  return evidence


async def get_transaction_evidence(
    session: AsyncSession, evidence_id: int
) -> Optional[TransactionEvidence]:
  """Retrieves a transaction evidence by ID."""
  return await session.get(TransactionEvidence, evidence_id)


async def get_transaction_evidence_by_item(
    session: AsyncSession, item_id: int, for_update: bool = False
) -> Optional[TransactionEvidence]:
  """Retrieves the transaction evidence created from an item."""
  stmt = select(TransactionEvidence).where(
      TransactionEvidence.item_id == item_id
  )
  if for_update:
    stmt = stmt.with_for_update()
  result = await session.execute(stmt)
  return result.scalar_one_or_none()


async def get_shipping(
    session: AsyncSession, evidence_id: int, for_update: bool = False
) -> Optional[Shipping]:
  """Retrieves the shipping row of a transaction evidence."""
  stmt = select(Shipping).where(
      Shipping.transaction_evidence_id == evidence_id
  )
  if for_update:
    stmt = stmt.with_for_update()
  result = await session.execute(stmt)
  return result.scalar_one_or_none()


async def get_transaction_with_shipping(
    session: AsyncSession, item_id: int, for_update: bool = False
) -> Tuple[Optional[TransactionEvidence], Optional[Shipping]]:
  """Retrieves an item's transaction evidence together with its shipping."""
  evidence = await get_transaction_evidence_by_item(
      session, item_id, for_update=for_update
  )
  if evidence is None:
    return None, None
  shipping = await get_shipping(session, evidence.id, for_update=for_update)
  return evidence, shipping


async def list_transactions(
    session: AsyncSession,
) -> List[Tuple[TransactionEvidence, Optional[Shipping]]]:
  """Retrieves every transaction evidence with its shipping, oldest first."""
  result = await session.execute(
      select(TransactionEvidence, Shipping)
      .outerjoin(
          Shipping,
          Shipping.transaction_evidence_id == TransactionEvidence.id,
      )
      .order_by(TransactionEvidence.id)
  )
  return [(evidence, shipping) for evidence, shipping in result.all()]
