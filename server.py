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

"""Marketplace Server (Python/FastAPI)."""

import logging
import sys
from typing import Sequence
from absl import app as absl_app
import config
from exceptions import MarketplaceError
from fastapi import FastAPI
from fastapi import Request
from fastapi.responses import JSONResponse
from routes.items import router as items_router
from routes.transactions import router as transactions_router
from sqlalchemy.exc import SQLAlchemyError
import uvicorn

# --- App Setup ---

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Marketplace Service",
    version=config.SERVER_VERSION,
    description="Purchase, shipment and completion of marketplace items",
    lifespan=config.lifespan,
)


@app.exception_handler(MarketplaceError)
async def marketplace_exception_handler(
    request: Request, exc: MarketplaceError
):
  """Handles marketplace exceptions and converts them to JSON responses."""
  del request  # Unused.
  return JSONResponse(
      status_code=exc.status_code,
      content={"detail": exc.message, "code": exc.code},
  )


@app.exception_handler(SQLAlchemyError)
async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
  """Reports storage failures; the failed commit has already rolled back."""
  logger.error("Storage failure on %s: %s", request.url.path, exc)
  return JSONResponse(
      status_code=500,
      content={"detail": "Internal storage error", "code": "INTERNAL_ERROR"},
  )


app.include_router(transactions_router)
app.include_router(items_router)


def main(argv: Sequence[str]) -> None:
  """Main entry point for the Marketplace Server."""
  del argv  # Unused.

  if config.FLAGS.ledger_db_path is None or config.FLAGS.port is None:
    logger.error("Both --ledger_db_path and --port must be provided.")
    print("\nUsage:")
    print(config.FLAGS.main_module_help())
    sys.exit(1)

  uvicorn.run(app, host="0.0.0.0", port=config.FLAGS.port)


if __name__ == "__main__":
  absl_app.run(main)
