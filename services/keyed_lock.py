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

"""Per-key mutual exclusion for asyncio code."""

import asyncio
import contextlib
from typing import AsyncIterator, Dict, Hashable


class KeyedLock:
  """A table of asyncio locks, one per key.

  Holders of different keys never wait on each other. An entry is dropped as
  soon as nobody holds or waits for it, so the table stays as small as the
  number of keys in use.
  """

  def __init__(self) -> None:
    self._locks: Dict[Hashable, asyncio.Lock] = {}
    self._users: Dict[Hashable, int] = {}

  @contextlib.asynccontextmanager
  async def hold(self, key: Hashable) -> AsyncIterator[None]:
    """Holds the lock for `key` for the duration of the block."""
    lock = self._locks.get(key)
    if lock is None:
      lock = self._locks[key] = asyncio.Lock()
      self._users[key] = 0
    self._users[key] += 1
    try:
      async with lock:
        yield
    finally:
      self._users[key] -= 1
      if not self._users[key]:
        del self._users[key]
        del self._locks[key]

  def locked(self, key: Hashable) -> bool:
    lock = self._locks.get(key)
    return lock is not None and lock.locked()

  def __len__(self) -> int:
    return len(self._locks)
