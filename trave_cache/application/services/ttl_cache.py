"""
TTL Cache Engine

永続ストア上に有効期限付きのキャッシュを実装する。

- 読み取り時に期限切れを判定して遅延削除（バックグラウンド掃除は purge_expired で任意）
- fetch_with_cache はキャッシュアサイド + serve-stale-on-error
- 予約プレフィックス配下のキーのみを管理し、他のストアデータには触れない
"""

from __future__ import annotations

from typing import Any, Awaitable, Callable, TypeVar

from loguru import logger
from pydantic import ValidationError

from trave_cache.application.services.durable_cache_store import DurableCacheStore
from trave_cache.models.cache import CacheEntry, CacheInfo
from trave_cache.shared.config.settings import DEFAULT_KEY_PREFIX, DEFAULT_TTL_MS
from trave_cache.shared.exceptions import SerializationError, ensure_non_negative
from trave_cache.shared.utils.clock import Clock, SystemClock

T = TypeVar("T")


class TtlCache:
    """有効期限付きキャッシュエンジン

    Args:
        store: fail-open な永続ストア
        clock: 時刻ソース（テストでは ManualClock を注入）
        key_prefix: このエンジンが管理するキーの予約プレフィックス
        default_ttl_ms: ttl 未指定時の有効期間（ミリ秒）
    """

    def __init__(
        self,
        store: DurableCacheStore,
        clock: Clock | None = None,
        key_prefix: str = DEFAULT_KEY_PREFIX,
        default_ttl_ms: int = DEFAULT_TTL_MS,
    ) -> None:
        if not key_prefix:
            raise ValueError("key_prefix must not be empty")
        self._store = store
        self._clock = clock or SystemClock()
        self._prefix = key_prefix
        self._default_ttl_ms = ensure_non_negative("default_ttl_ms", default_ttl_ms)

    @property
    def key_prefix(self) -> str:
        return self._prefix

    @property
    def default_ttl_ms(self) -> int:
        return self._default_ttl_ms

    def _storage_key(self, key: str) -> str:
        return f"{self._prefix}{key}"

    def _resolve_ttl(self, ttl: int | None) -> int:
        if ttl is None:
            return self._default_ttl_ms
        return ensure_non_negative("ttl", ttl)

    def _decode(self, key: str, raw: str) -> CacheEntry:
        try:
            return CacheEntry.model_validate_json(raw)
        except ValidationError as e:
            raise SerializationError(f"破損したキャッシュエントリ: {e.error_count()} errors", key=key) from e

    async def _read_entry(self, key: str) -> CacheEntry | None:
        """エントリを鮮度に関係なく読み出す。破損エントリは削除してミス扱い。"""
        storage_key = self._storage_key(key)
        raw = await self._store.get(storage_key)
        if raw is None:
            return None
        try:
            return self._decode(key, raw)
        except SerializationError as e:
            logger.warning(
                f"{e} ({key})",
                event="cache_corrupted",
                cacheKey=key,
            )
            await self._store.remove(storage_key)
            return None

    async def cache_data(self, key: str, value: Any, ttl: int | None = None) -> bool:
        """値を {value, writtenAt, ttl} として保存する。

        Returns:
            保存できた場合 True（シリアライズ不可・ストア障害時は False）

        Raises:
            InvalidTtlError: ttl が負の場合
        """
        ttl_ms = self._resolve_ttl(ttl)
        entry = CacheEntry(value=value, written_at=self._clock.now_ms(), ttl=ttl_ms)
        try:
            payload = entry.to_json()
        except (TypeError, ValueError) as e:
            logger.warning(
                f"キャッシュ値をシリアライズできません ({key}): {e}",
                event="cache_serialize_error",
                cacheKey=key,
            )
            return False
        return await self._store.set(self._storage_key(key), payload)

    async def get_cached_data(self, key: str, default: Any = None) -> Any:
        """有効なキャッシュ値を返す。ミス・期限切れなら default（期限切れは削除する）。

        値として None を保存できるため、ミスと区別したい呼び出し側は
        番兵オブジェクトを default に渡す。
        """
        entry = await self._read_entry(key)
        if entry is None:
            return default
        if entry.is_expired(self._clock.now_ms()):
            logger.debug(f"キャッシュ期限切れ: {key}", event="cache_expired", cacheKey=key)
            await self._store.remove(self._storage_key(key))
            return default
        return entry.value

    async def clear_cache(self, key: str) -> None:
        await self._store.remove(self._storage_key(key))

    async def clear_all_cache(self) -> int:
        """予約プレフィックス配下のエントリを全削除し、削除件数を返す"""
        keys = await self._store.list_keys(self._prefix)
        await self._store.remove_many(keys)
        if keys:
            logger.info(f"キャッシュを全削除: {len(keys)}件", event="cache_clear_all")
        return len(keys)

    async def get_cache_info(self) -> CacheInfo:
        keys = await self._store.list_keys(self._prefix)
        logical = [key[len(self._prefix):] for key in keys]
        return CacheInfo(count=len(logical), keys=logical)

    async def purge_expired(self) -> int:
        """期限切れ・破損エントリを一括削除する（読み取り結果は変わらない）"""
        now = self._clock.now_ms()
        doomed: list[str] = []
        for storage_key in await self._store.list_keys(self._prefix):
            raw = await self._store.get(storage_key)
            if raw is None:
                continue
            try:
                entry = self._decode(storage_key[len(self._prefix):], raw)
            except SerializationError:
                doomed.append(storage_key)
                continue
            if entry.is_expired(now):
                doomed.append(storage_key)
        await self._store.remove_many(doomed)
        if doomed:
            logger.info(f"期限切れキャッシュを削除: {len(doomed)}件", event="cache_purge")
        return len(doomed)

    async def fetch_with_cache(
        self,
        key: str,
        producer: Callable[[], Awaitable[T]],
        ttl: int | None = None,
        force_refresh: bool = False,
    ) -> T:
        """キャッシュアサイド取得

        - 有効なキャッシュがあれば producer を呼ばずに返す（ttl=0 / force_refresh 時を除く）
        - producer 成功時は ttl で保存して返す
        - producer 失敗時は期限切れでも直近のキャッシュ値を返し、無ければ producer の例外を送出
        """
        ttl_ms = self._resolve_ttl(ttl)
        entry = await self._read_entry(key)
        revalidate = force_refresh or ttl_ms == 0

        if entry is not None and not revalidate and not entry.is_expired(self._clock.now_ms()):
            logger.debug(f"キャッシュヒット: {key}", event="ttl_cache", cacheState="hit", cacheKey=key)
            return entry.value

        try:
            value = await producer()
        except Exception as e:
            # producer 実行中に他の呼び出しが書き込んだ値を優先
            fallback = await self._read_entry(key) or entry
            if fallback is None:
                raise
            logger.warning(
                f"取得に失敗したためキャッシュ値を返します ({key}): {e}",
                event="ttl_cache",
                cacheState="stale",
                cacheKey=key,
            )
            return fallback.value

        await self.cache_data(key, value, ttl_ms)
        logger.debug(f"キャッシュ更新: {key}", event="ttl_cache", cacheState="miss", cacheKey=key)
        return value
