from __future__ import annotations

import logging
from typing import Callable

from app.models.change import ChangeEvent

ChangeHandler = Callable[[ChangeEvent], None]

logger = logging.getLogger("clinic-link")


class Channel:
    """테이블 변경 알림 구독 핸들"""

    def __init__(self, name: str, table: str, event: str, handler: ChangeHandler) -> None:
        self.name = name
        self.table = table
        self.event = event
        self._handler = handler
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def matches(self, change: ChangeEvent) -> bool:
        if change.table != self.table:
            return False
        return self.event == "*" or self.event == change.type

    def dispatch(self, change: ChangeEvent) -> bool:
        """핸들러 호출(닫힌 채널은 무시)

        Returns:
            핸들러 호출 여부
        """
        if self._closed or not self.matches(change):
            return False
        self._handler(change)
        return True

    def close(self) -> bool:
        """채널을 닫음

        Returns:
            이번 호출로 닫혔으면 True
        """
        if self._closed:
            return False
        self._closed = True
        return True


class ChangeFeed:
    """백엔드 변경 알림을 열린 채널로 전달하는 구독 허브"""

    def __init__(self) -> None:
        self._channels: list[Channel] = []

    @property
    def channels(self) -> list[Channel]:
        return list(self._channels)

    async def subscribe(
        self, name: str, table: str, handler: ChangeHandler, event: str = "*"
    ) -> Channel:
        """테이블 변경 구독 채널을 연다

        Args:
            name: 채널 이름
            table: 감시할 테이블
            handler: 변경마다 호출될 핸들러
            event: INSERT/UPDATE/DELETE 또는 * (전체)

        Returns:
            채널 핸들
        """
        if event not in {"*", "INSERT", "UPDATE", "DELETE"}:
            raise ValueError(f"지원하지 않는 이벤트: {event}")
        channel = Channel(name, table, event, handler)
        self._channels.append(channel)
        return channel

    async def remove_channel(self, channel: Channel) -> None:
        """채널을 닫고 허브에서 제거(중복 호출 허용)"""
        channel.close()
        if channel in self._channels:
            self._channels.remove(channel)

    def publish(self, change: ChangeEvent) -> int:
        """변경 알림을 구독 채널에 전달

        Args:
            change: 변경 알림

        Returns:
            핸들러가 호출된 채널 수
        """
        delivered = 0
        for channel in list(self._channels):
            if channel.dispatch(change):
                delivered += 1
        logger.debug(
            "변경 알림 전달 table=%s type=%s channels=%d",
            change.table,
            change.type,
            delivered,
            extra={"event": "change_published", "stage": "realtime"},
        )
        return delivered
