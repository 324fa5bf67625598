"""キャッシュの共通型定義。"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING, Any, Optional, Union

if TYPE_CHECKING:
    from cachepool.cache_pool import CacheItemPool


def utcnow() -> datetime:
    """現在時刻をUTCのaware datetimeで返す。"""
    return datetime.now(timezone.utc)


def to_utc(moment: datetime) -> datetime:
    """datetimeをUTCのaware datetimeに変換する。naiveな値はローカル時刻とみなす。"""
    return moment.astimezone(timezone.utc)


def is_past(expires: Optional[datetime]) -> bool:
    """有効期限が設定されていて、すでに到達しているかどうかを判定する。"""
    return expires is not None and expires <= utcnow()


@dataclass(frozen=True)
class CacheEntry:
    """プールに保存される1件分のデータ。"""

    value: Any
    expires: Optional[datetime] = None

    @property
    def is_expired(self) -> bool:
        """有効期限切れかどうかを判定する。"""
        return is_past(self.expires)


class CacheItem:
    """キャッシュアイテムを表すクラス。

    プールの ``get_item`` が返す読み取り用のハンドルであり、
    値を書き換えて ``save`` / ``save_deferred`` に渡すための書き込み用の
    ハンドルでもある。アイテムを変更してもプールに保存するまでは
    永続化された状態に影響しない。
    """

    def __init__(
        self,
        key: str,
        value: Any = None,
        expiration: Optional[datetime] = None,
        hit: bool = False,
        pool: Optional["CacheItemPool"] = None,
    ):
        """初期化。

        Args:
            key: キー
            value: 値
            expiration: 有効期限（Noneの場合は期限なし）
            hit: キャッシュヒットした場合はTrue
            pool: このアイテムを所有するプール
        """
        self._key = key
        self._value = value
        self._expiration = to_utc(expiration) if expiration is not None else None
        self._hit = hit
        self._pool = pool

    def __repr__(self) -> str:
        return (
            f"CacheItem(key={self._key!r}, value={self._value!r}, "
            f"expiration={self._expiration!r}, hit={self._hit!r})"
        )

    @property
    def pool(self) -> Optional["CacheItemPool"]:
        """所有するプールを取得する。"""
        return self._pool

    def get_key(self) -> str:
        return self._key

    def get(self) -> Any:
        """値を取得する。有効期限を過ぎている場合はNoneを返す。"""
        if self._is_expired():
            return None
        return self._value

    def is_hit(self) -> bool:
        """キャッシュヒットかどうかを判定する。

        有効期限は呼び出しのたびに評価されるため、生成時にヒットしていた
        アイテムも時間の経過でヒットではなくなる。
        """
        return self._hit and not self._is_expired()

    def set(self, value: Any) -> "CacheItem":
        """値を設定する。"""
        self._value = value
        return self

    def expires_at(self, expiration: Optional[datetime]) -> "CacheItem":
        """有効期限を絶対時刻で設定する。

        Args:
            expiration: 有効期限（Noneの場合はプールのデフォルト）

        Returns:
            このアイテム

        Raises:
            TypeError: datetime以外が渡された場合
        """
        if expiration is None:
            self._expiration = self._default_expiration()
        elif isinstance(expiration, datetime):
            self._expiration = to_utc(expiration)
        else:
            raise TypeError(f"expiration must be a datetime or None, got {type(expiration).__name__}")
        return self

    def expires_after(self, time: Union[timedelta, int, float, None]) -> "CacheItem":
        """有効期限を現在時刻からの相対時間で設定する。

        Args:
            time: 期間または秒数（Noneの場合はプールのデフォルト）

        Returns:
            このアイテム

        Raises:
            TypeError: 期間・数値以外が渡された場合
        """
        if time is None:
            self._expiration = self._default_expiration()
        elif isinstance(time, timedelta):
            self._expiration = utcnow() + time
        elif isinstance(time, (int, float)) and not isinstance(time, bool):
            self._expiration = utcnow() + timedelta(seconds=time)
        else:
            raise TypeError(f"time must be a timedelta, a number of seconds or None, got {type(time).__name__}")
        return self

    def get_expiration(self) -> Optional[datetime]:
        return self._expiration

    def _default_expiration(self) -> Optional[datetime]:
        if self._pool is None:
            return None
        return self._pool.get_default_expiration()

    def _is_expired(self) -> bool:
        return is_past(self._expiration)
