"""
接続状態モデル
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field

T = TypeVar("T")


class ConnectivitySnapshot(BaseModel):
    """ネットワーク到達性のスナップショット（None は不明）"""

    model_config = ConfigDict(frozen=True)

    is_connected: bool | None = Field(default=None, description="ネットワーク接続の有無")
    is_internet_reachable: bool | None = Field(default=None, description="インターネット到達性")
    connection_type: str = Field(default="unknown", description="接続種別（wifi, cellular 等）")

    @property
    def is_online(self) -> bool | None:
        """どちらかが False なら False、どちらかが不明なら None"""
        if self.is_connected is False or self.is_internet_reachable is False:
            return False
        if self.is_connected is None or self.is_internet_reachable is None:
            return None
        return True

    @classmethod
    def online(cls, connection_type: str = "unknown") -> ConnectivitySnapshot:
        return cls(is_connected=True, is_internet_reachable=True, connection_type=connection_type)

    @classmethod
    def offline(cls) -> ConnectivitySnapshot:
        return cls(is_connected=False, is_internet_reachable=False, connection_type="none")


class BannerState(str, Enum):
    """オフラインバナーの表示状態"""

    HIDDEN = "hidden"
    SHOWING_OFFLINE = "showing_offline"
    SHOWING_RECONNECTED = "showing_reconnected"


BANNER_MESSAGES: dict[BannerState, str | None] = {
    BannerState.HIDDEN: None,
    BannerState.SHOWING_OFFLINE: "No internet connection",
    BannerState.SHOWING_RECONNECTED: "Back online",
}


@dataclass(slots=True)
class FetchResult(Generic[T]):
    """オフラインファースト取得の結果"""

    data: T | None = None
    loading: bool = False
    error: BaseException | None = None
    is_online: bool | None = None

    def unwrap(self) -> T | None:
        if self.error is not None:
            raise self.error
        return self.data
