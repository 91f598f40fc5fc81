"""
キャッシュ関連モデル

永続ストアに保存する CacheEntry と、インメモリの重複排除テーブル用の型。
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

from trave_cache.shared.utils.clock import Cancellable

T = TypeVar("T")

Producer = Callable[[], Awaitable[T]]


class CacheEntry(BaseModel):
    """永続ストア上のキャッシュエントリ

    JSON 形式: {"value": ..., "writtenAt": <ms>, "ttl": <ms>}
    """

    model_config = ConfigDict(populate_by_name=True)

    value: Any = Field(description="キャッシュされたペイロード（JSONシリアライズ可能）")
    written_at: int = Field(alias="writtenAt", description="書き込み時刻（ミリ秒）")
    ttl: int = Field(ge=0, description="有効期間（ミリ秒）")

    def age_ms(self, now_ms: int) -> int:
        return now_ms - self.written_at

    def is_expired(self, now_ms: int) -> bool:
        """TTL 0 は常に期限切れ。age == ttl はまだ有効（厳密な > 比較）。"""
        return self.ttl == 0 or self.age_ms(now_ms) > self.ttl

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


@dataclass(slots=True)
class CacheInfo:
    """キャッシュ件数と論理キー一覧"""

    count: int
    keys: list[str]


@dataclass(slots=True)
class ResultEntry(Generic[T]):
    value: T
    stored_at: int
    cache_duration: int


@dataclass(slots=True)
class PendingRequest(Generic[T]):
    """実行中（または直近に完了した）producer 呼び出し"""

    key: str
    task: asyncio.Task[T]
    started_at: int
    settled_at: int | None = None
    clear_handle: Cancellable | None = None

    @property
    def in_flight(self) -> bool:
        return not self.task.done()

    def cancel_clear_timer(self) -> None:
        if self.clear_handle is not None:
            self.clear_handle.cancel()
            self.clear_handle = None


@dataclass(slots=True)
class DeduplicationStats:
    cached_requests: int
    pending_requests: int
    total: int = field(init=False)

    def __post_init__(self) -> None:
        self.total = self.cached_requests + self.pending_requests


@dataclass(slots=True)
class BatchItem(Generic[T]):
    key: str
    producer: Producer[T]
