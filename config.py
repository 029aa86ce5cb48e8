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

"""Shared configuration and startup logic for the marketplace server."""

import contextlib
from typing import Any

from absl import flags
import db
from fastapi import FastAPI

FLAGS = flags.FLAGS

SERVER_VERSION = "1.0.0"

DEFAULT_PAYMENT_SERVICE_URL = "http://localhost:5555"
DEFAULT_SHIPMENT_SERVICE_URL = "http://localhost:7000"

# Define flags only if they haven't been defined yet (to avoid duplicates
# during tests or re-imports)
try:
  flags.DEFINE_string("ledger_db_path", None, "Path to the ledger DB")
  flags.DEFINE_integer("port", None, "Port to run the server on")
  flags.DEFINE_string(
      "payment_service_url",
      DEFAULT_PAYMENT_SERVICE_URL,
      "Base URL of the external payment service",
  )
  flags.DEFINE_string(
      "shipment_service_url",
      DEFAULT_SHIPMENT_SERVICE_URL,
      "Base URL of the external shipment service",
  )
  flags.DEFINE_string(
      "payment_shop_id", "11", "Shop ID registered with the payment service"
  )
  flags.DEFINE_string(
      "payment_api_key",
      "a15400e46c83635eb181-946abb51ff26a868317c",
      "API key for the payment service",
  )
  flags.DEFINE_string(
      "shipment_api_token",
      None,
      "Authorization header value sent to the shipment service",
  )
  flags.DEFINE_float(
      "gateway_timeout_seconds",
      5.0,
      "Timeout for each call to an external service",
  )
except flags.DuplicateFlagError:
  pass


def flag_value(name: str) -> Any:
  """Returns a flag's value, or its default when flags were never parsed.

  Tests and embedded uses import the server without going through
  `absl.app.run`, so reading `FLAGS.<name>` directly would raise.
  """
  return FLAGS[name].value


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
  """Shared lifespan manager for initializing the ledger database."""
  del app  # Unused.
  # In tests the flags are not parsed; the test wires its own database.
  if FLAGS.is_parsed() and FLAGS.ledger_db_path:
    await db.manager.init_db(FLAGS.ledger_db_path)
  yield
  await db.manager.close()
