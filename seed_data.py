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

"""Database initialization script for the marketplace server.

This script imports users, categories and items from CSV files into the
configured ledger database. It clears existing transactions, shippings, items,
users and categories before populating the tables, so every item starts out on
sale.

Usage:
  uv run seed_data.py --ledger_db_path=... --data_dir=...
"""

import asyncio
import csv
import logging
import os
from typing import List
from absl import app as absl_app
from absl import flags
import db
from db import Category
from db import Item
from db import Shipping
from db import TransactionEvidence
from db import User
from enums import ItemStatus
from sqlalchemy import delete

FLAGS = flags.FLAGS
flags.DEFINE_string("ledger_db_path", "ledger.db", "Path to the ledger DB")
flags.DEFINE_string(
    "data_dir",
    os.path.join(os.path.dirname(os.path.abspath(__file__)), "data"),
    "Directory containing users.csv, categories.csv and items.csv",
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


def read_users(path: str) -> List[User]:
  with open(path, "r") as f:
    return [
        User(
            id=int(row["id"]),
            account_name=row["account_name"],
            address=row["address"],
            num_sell_items=int(row.get("num_sell_items") or 0),
        )
        for row in csv.DictReader(f)
    ]


def read_categories(path: str) -> List[Category]:
  with open(path, "r") as f:
    return [
        Category(
            id=int(row["id"]),
            parent_id=int(row.get("parent_id") or 0),
            category_name=row["category_name"],
        )
        for row in csv.DictReader(f)
    ]


def read_items(path: str) -> List[Item]:
  """Reads items, skipping rows whose price is out of range."""
  items = []
  with open(path, "r") as f:
    for row in csv.DictReader(f):
      price = int(row["price"])
      if price < db.ITEM_MIN_PRICE or price > db.ITEM_MAX_PRICE:
        logger.warning(
            "Skipping item %s: price %d out of range", row["id"], price
        )
        continue
      items.append(
          Item(
              id=int(row["id"]),
              seller_id=int(row["seller_id"]),
              status=ItemStatus.ON_SALE.value,
              name=row["name"],
              price=price,
              description=row.get("description", ""),
              image_name=row.get("image_name") or None,
              category_id=int(row["category_id"]),
          )
      )
  return items


async def import_csv_data() -> None:
  """Reads CSV files and populates the database."""
  data_dir = FLAGS.data_dir
  # Ensure tables exist
  await db.manager.init_db(FLAGS.ledger_db_path)

  try:
    async with db.manager.session_factory() as session:
      logger.info("Clearing existing transactions...")
      await session.execute(delete(Shipping))
      await session.execute(delete(TransactionEvidence))

      logger.info("Clearing existing items, users and categories...")
      await session.execute(delete(Item))
      await session.execute(delete(User))
      await session.execute(delete(Category))

      logger.info("Importing Users from CSV...")
      users = read_users(os.path.join(data_dir, "users.csv"))
      session.add_all(users)

      logger.info("Importing Categories from CSV...")
      categories = read_categories(os.path.join(data_dir, "categories.csv"))
      session.add_all(categories)
      await session.flush()

      logger.info("Importing Items from CSV...")
      items = read_items(os.path.join(data_dir, "items.csv"))
      session.add_all(items)

      await session.commit()
      logger.info(
          "Imported %d users, %d categories and %d items",
          len(users),
          len(categories),
          len(items),
      )
  finally:
    await db.manager.close()


def main(argv):
  """Main entry point for the seed script."""
  del argv
  asyncio.run(import_csv_data())


if __name__ == "__main__":
  absl_app.run(main)
