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

"""Status enumerations and their transition tables.

Items, transaction evidences and shippings each move through a closed set of
states. Every mutation of a status column goes through `check_transition`,
which rejects anything not listed in the corresponding table.
"""

import enum
from typing import Dict, FrozenSet, Type, TypeVar

from exceptions import InvalidStateError


class ItemStatus(str, enum.Enum):
  ON_SALE = "on_sale"
  TRADING = "trading"
  SOLD_OUT = "sold_out"
  STOP = "stop"
  CANCEL = "cancel"


class TransactionEvidenceStatus(str, enum.Enum):
  WAIT_SHIPPING = "wait_shipping"
  WAIT_DONE = "wait_done"
  DONE = "done"


class ShippingStatus(str, enum.Enum):
  INITIAL = "initial"
  WAIT_PICKUP = "wait_pickup"
  SHIPPING = "shipping"
  DONE = "done"


_Status = TypeVar(
    "_Status", ItemStatus, TransactionEvidenceStatus, ShippingStatus
)

ITEM_TRANSITIONS: Dict[ItemStatus, FrozenSet[ItemStatus]] = {
    ItemStatus.ON_SALE: frozenset(
        {ItemStatus.TRADING, ItemStatus.STOP, ItemStatus.CANCEL}
    ),
    ItemStatus.TRADING: frozenset({ItemStatus.SOLD_OUT}),
    ItemStatus.SOLD_OUT: frozenset(),
    ItemStatus.STOP: frozenset(),
    ItemStatus.CANCEL: frozenset(),
}

TRANSACTION_EVIDENCE_TRANSITIONS: Dict[
    TransactionEvidenceStatus, FrozenSet[TransactionEvidenceStatus]
] = {
    TransactionEvidenceStatus.WAIT_SHIPPING: frozenset(
        {TransactionEvidenceStatus.WAIT_DONE}
    ),
    TransactionEvidenceStatus.WAIT_DONE: frozenset(
        {TransactionEvidenceStatus.DONE}
    ),
    TransactionEvidenceStatus.DONE: frozenset(),
}

# The carrier may finish delivery between two status queries, so a shipping
# waiting for pickup can be reconciled straight to done.
SHIPPING_TRANSITIONS: Dict[ShippingStatus, FrozenSet[ShippingStatus]] = {
    ShippingStatus.INITIAL: frozenset({ShippingStatus.WAIT_PICKUP}),
    ShippingStatus.WAIT_PICKUP: frozenset(
        {ShippingStatus.SHIPPING, ShippingStatus.DONE}
    ),
    ShippingStatus.SHIPPING: frozenset({ShippingStatus.DONE}),
    ShippingStatus.DONE: frozenset(),
}

_TRANSITIONS = {
    ItemStatus: ITEM_TRANSITIONS,
    TransactionEvidenceStatus: TRANSACTION_EVIDENCE_TRANSITIONS,
    ShippingStatus: SHIPPING_TRANSITIONS,
}

_SHIPPING_ORDER = {status: rank for rank, status in enumerate(ShippingStatus)}


def check_transition(current: _Status, target: _Status) -> _Status:
  """Validates a status change against its transition table.

  Args:
    current: The status currently stored.
    target: The status the caller wants to store.

  Returns:
    The target status, so callers can assign the result directly.

  Raises:
    InvalidStateError: If the transition is not listed.
  """
  status_type: Type[enum.Enum] = type(current)
  if type(target) is not status_type:
    raise InvalidStateError(
        f"Cannot move {status_type.__name__} to {target!r}"
    )
  if target not in _TRANSITIONS[status_type][current]:
    raise InvalidStateError(
        f"{status_type.__name__} cannot move from '{current.value}' to"
        f" '{target.value}'"
    )
  return target


def reconcile_shipping_status(
    local: ShippingStatus, reported: ShippingStatus
) -> ShippingStatus:
  """Returns the local shipping status implied by the carrier's report.

  Local state only ever moves forward, and never past what the carrier has
  reported: a stale or lagging report leaves the local status unchanged.
  """
  if _SHIPPING_ORDER[reported] <= _SHIPPING_ORDER[local]:
    return local
  return check_transition(local, reported)
