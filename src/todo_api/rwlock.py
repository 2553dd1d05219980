from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
from typing import AsyncIterator


# PUBLIC_INTERFACE
class RWLock:
    """
    Asyncio reader/writer lock.

    Any number of readers may hold the lock at the same time; a writer holds
    it alone. Once a writer is waiting, new readers queue behind it so a
    steady stream of readers cannot starve writers.

    Usage:
        lock = RWLock()
        async with lock.read():
            ...
        async with lock.write():
            ...
    """

    def __init__(self) -> None:
        self._cond = asyncio.Condition()
        self._readers = 0
        self._writer = False
        self._writers_waiting = 0

    @property
    def readers(self) -> int:
        return self._readers

    @property
    def writing(self) -> bool:
        return self._writer

    @asynccontextmanager
    async def read(self) -> AsyncIterator[None]:
        async with self._cond:
            while self._writer or self._writers_waiting:
                await self._cond.wait()
            self._readers += 1
        try:
            yield
        finally:
            # Counters change before the first suspension point.
            self._readers -= 1
            if self._readers == 0:
                await asyncio.shield(self._wake())

    @asynccontextmanager
    async def write(self) -> AsyncIterator[None]:
        async with self._cond:
            self._writers_waiting += 1
            try:
                while self._writer or self._readers:
                    await self._cond.wait()
            except BaseException:
                # Readers may be parked behind this writer.
                self._writers_waiting -= 1
                self._cond.notify_all()
                raise
            self._writers_waiting -= 1
            self._writer = True
        try:
            yield
        finally:
            self._writer = False
            await asyncio.shield(self._wake())

    async def _wake(self) -> None:
        async with self._cond:
            self._cond.notify_all()
