from __future__ import annotations

import asyncio
import threading
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Hashable

CacheKey = tuple[Hashable, ...]
Loader = Callable[[], Awaitable[Any]]


@dataclass
class _Entry:
    value: Any
    stale: bool = False


class QueryCache:
    """(엔티티 종류, 파라미터...) 튜플 키 기반의 프로세스 로컬 조회 캐시

    무효화는 키 접두사 단위로 동작하며 멱등이다. 무효화 시 세대 번호가
    증가하므로, 무효화 이전에 시작된 조회 결과는 저장되더라도 stale로 남는다.
    """

    def __init__(self) -> None:
        self._entries: dict[CacheKey, _Entry] = {}
        self._generations: dict[CacheKey, int] = {}
        self._inflight: dict[CacheKey, tuple[int, asyncio.Task]] = {}
        # 스케줄러 스레드의 eviction과 공유
        self._lock = threading.Lock()

    async def fetch(self, key: CacheKey, loader: Loader) -> Any:
        """신선한 캐시 값을 반환하거나 loader로 다시 조회

        Args:
            key: 캐시 키
            loader: 값을 조회하는 코루틴 함수

        Returns:
            캐시 값
        """
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and not entry.stale:
                return entry.value
            generation = self._generations.setdefault(key, 0)
            inflight = self._inflight.get(key)
            if inflight is not None and inflight[0] == generation:
                task = inflight[1]
            else:
                task = asyncio.ensure_future(self._load(key, generation, loader))
                self._inflight[key] = (generation, task)
        return await asyncio.shield(task)

    async def _load(self, key: CacheKey, generation: int, loader: Loader) -> Any:
        try:
            value = await loader()
        except BaseException:
            with self._lock:
                self._release(key, generation)
                if key not in self._entries and key not in self._inflight:
                    self._generations.pop(key, None)
            raise
        with self._lock:
            current = self._generations.get(key)
            self._entries[key] = _Entry(value=value, stale=current != generation)
            self._release(key, generation)
        return value

    def _release(self, key: CacheKey, generation: int) -> None:
        inflight = self._inflight.get(key)
        if inflight is not None and inflight[0] == generation:
            del self._inflight[key]

    def invalidate(self, prefix: CacheKey) -> int:
        """접두사가 일치하는 모든 키를 stale로 표시

        Args:
            prefix: 키 접두사(예: ("visits", "2024-01-01"))

        Returns:
            표시된 키 수
        """
        count = 0
        with self._lock:
            for key in set(self._entries) | set(self._generations):
                if key[: len(prefix)] != prefix:
                    continue
                self._generations[key] = self._generations.get(key, 0) + 1
                entry = self._entries.get(key)
                if entry is not None:
                    entry.stale = True
                count += 1
        return count

    def evict(self, predicate: Callable[[CacheKey], bool]) -> int:
        """조건에 맞는 키를 캐시에서 제거

        Args:
            predicate: 제거 대상 판정 함수

        Returns:
            제거된 키 수
        """
        removed = 0
        with self._lock:
            for key in list(set(self._entries) | set(self._generations)):
                if not predicate(key):
                    continue
                if self._entries.pop(key, None) is not None:
                    removed += 1
                if key in self._inflight:
                    self._generations[key] = self._generations.get(key, 0) + 1
                else:
                    self._generations.pop(key, None)
        return removed

    def peek(self, key: CacheKey) -> Any:
        with self._lock:
            entry = self._entries.get(key)
            return None if entry is None else entry.value

    def is_fresh(self, key: CacheKey) -> bool:
        with self._lock:
            entry = self._entries.get(key)
            return entry is not None and not entry.stale

    def keys(self) -> list[CacheKey]:
        with self._lock:
            return list(self._entries)

    def tracked_keys(self) -> int:
        """항목 또는 세대 번호를 가진 키 수"""
        with self._lock:
            return len(set(self._entries) | set(self._generations))
