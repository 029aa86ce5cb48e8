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

"""Utility script to dump marketplace transactions.

This script reads from the configured ledger SQLite database and prints a
summary of every transaction evidence together with its shipping, i.e. the
joint state of the purchase workflow. It is useful for debugging and for
spotting transactions stuck waiting for a shipment reservation.

Usage:
  uv run dump_transactions.py --ledger_db_path=...
"""

import asyncio
import sys
from absl import app as absl_app
from absl import flags
import db
from enums import ShippingStatus
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker

FLAGS = flags.FLAGS
flags.DEFINE_string("ledger_db_path", None, "Path to the ledger DB")


async def dump_transactions():
  """Queries the database and prints all transactions."""
  if not FLAGS.ledger_db_path:
    print("Error: --ledger_db_path is required.")
    sys.exit(1)

  db_url = f"sqlite+aiosqlite:///{FLAGS.ledger_db_path}"
  engine = create_async_engine(db_url, echo=False)
  session_factory = sessionmaker(
      engine, expire_on_commit=False, class_=AsyncSession
  )

  try:
    async with session_factory() as session:
      transactions = await db.list_transactions(session)

      if not transactions:
        print("No transactions found.")
        return

      for evidence, shipping in transactions:
        shipping_status = shipping.status if shipping else "missing"
        print(
            f"Transaction: {evidence.id} [{evidence.status},"
            f" {shipping_status}]"
        )
        print(
            f"  - {evidence.item_name} (ID: {evidence.item_id}) @"
            f" {evidence.item_price}"
        )
        print(f"  seller {evidence.seller_id} -> buyer {evidence.buyer_id}")
        if shipping and shipping.reserve_id:
          print(f"  reservation {shipping.reserve_id}")
        elif shipping and shipping.status == ShippingStatus.INITIAL:
          print("  (no shipment reservation yet)")
        print("-" * 60)
  finally:
    await engine.dispose()


def main(argv):
  """Main entry point for the transaction dump script."""
  del argv
  asyncio.run(dump_transactions())


if __name__ == "__main__":
  absl_app.run(main)
