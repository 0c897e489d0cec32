"""Per-key asyncio locks for serializing writes to a single entity."""

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator, Hashable


class KeyedLock:
	"""Hands out one asyncio.Lock per key and forgets it once nobody holds or waits on it."""

	def __init__(self) -> None:
		self._locks: dict[Hashable, asyncio.Lock] = {}
		self._waiters: dict[Hashable, int] = {}

	@asynccontextmanager
	async def hold(self, key: Hashable) -> AsyncIterator[None]:
		lock = self._locks.get(key)
		if lock is None:
			lock = asyncio.Lock()
			self._locks[key] = lock
		self._waiters[key] = self._waiters.get(key, 0) + 1
		try:
			async with lock:
				yield
		finally:
			remaining = self._waiters[key] - 1
			if remaining:
				self._waiters[key] = remaining
			else:
				del self._waiters[key]
				del self._locks[key]

	def __len__(self) -> int:
		return len(self._locks)
