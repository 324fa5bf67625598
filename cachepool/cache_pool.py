"""キャッシュアイテムプールの基底クラス。"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any, Dict, Iterable, Iterator, Optional, Tuple

from cachepool.cache_types import CacheEntry, CacheItem, is_past, utcnow
from cachepool.exceptions import InvalidKey

if TYPE_CHECKING:
    from cachepool.config import Configuration

logger = logging.getLogger(__name__)


def validate_key(key: Any) -> str:
    """キーを検証して文字列に変換する。

    文字列・数値・真偽値と、独自の ``__str__`` を持つオブジェクトを受け付ける。

    Args:
        key: 検証するキー

    Returns:
        文字列に変換したキー

    Raises:
        InvalidKey: 文字列に変換できないキーの場合
    """
    if isinstance(key, (bytes, bytearray)) or key is None:
        raise InvalidKey(key)
    if not isinstance(key, (str, int, float, bool)) and type(key).__str__ is object.__str__:
        raise InvalidKey(key)

    key = str(key)
    if not key:
        raise InvalidKey(key)
    return key


def entry_from_item(item: CacheItem) -> CacheEntry:
    return CacheEntry(value=item.get(), expires=item.get_expiration())


class ItemIterator:
    """複数のキーに対応するアイテムを遅延評価で返すイテラブル。

    イテレーションのたびにプールへ問い合わせ直すため、
    前回のイテレーション以降の変更や有効期限切れが反映される。
    """

    def __init__(self, pool: "CacheItemPool", keys: Iterable[Any]):
        self._pool = pool
        self._keys = list(keys)

    def __iter__(self) -> Iterator[Tuple[str, CacheItem]]:
        for key in self._keys:
            item = self._pool.get_item(key)
            yield item.get_key(), item

    def __len__(self) -> int:
        return len(self._keys)


class CacheItemPool(ABC):
    """キャッシュアイテムプールの基底クラス。

    エントリはメモリ上の辞書で管理し、永続化はバックエンドごとの
    ``_persist`` に任せる。
    """

    def __init__(self, name: str, entries: Dict[str, CacheEntry], configuration: "Configuration"):
        """初期化。

        Args:
            name: プール名
            entries: 初期エントリ
            configuration: 設定
        """
        self.name = name
        self._entries: Dict[str, CacheEntry] = dict(entries)
        self._deferred: Dict[str, CacheItem] = {}
        self._configuration = configuration
        self.closed = False

    def __iter__(self) -> Iterator[Tuple[str, Any]]:
        """有効期限内のエントリのキーと値を順に返す。"""
        for key in list(self._entries):
            entry = self._entries.get(key)
            if entry is not None and not entry.is_expired:
                yield key, entry.value

    def __enter__(self) -> "CacheItemPool":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def get_item(self, key: Any) -> CacheItem:
        """キーに対応するアイテムを取得する。

        遅延保存中のアイテムを優先し、見つからないか有効期限切れの場合は
        ミスを表すアイテムを返す。

        Raises:
            InvalidKey: キーが不正な場合
        """
        key = validate_key(key)

        deferred = self._deferred.get(key)
        if deferred is not None:
            # 保留中のアイテムは元のヒット状態に関係なく、期限内であればヒットとして扱う
            if is_past(deferred.get_expiration()):
                return self._miss(key)
            return CacheItem(key, deferred.get(), deferred.get_expiration(), True, self)

        entry = self._lookup(key)
        if entry is not None:
            return CacheItem(key, entry.value, entry.expires, True, self)

        return self._miss(key)

    def get_items(self, keys: Iterable[Any] = ()) -> ItemIterator:
        """複数のキーに対応するアイテムを取得する。"""
        return ItemIterator(self, keys)

    def has_item(self, key: Any) -> bool:
        """有効期限内のエントリが存在するかどうかを確認する。

        Raises:
            InvalidKey: キーが不正な場合
        """
        return self._lookup(validate_key(key)) is not None

    def clear(self) -> bool:
        """すべてのエントリを削除して永続化する。"""
        self._entries = {}
        self._deferred = {}
        return self._persist()

    def delete_item(self, key: Any) -> bool:
        """エントリを削除して永続化する。存在しないキーの場合は何もしない。"""
        key = validate_key(key)
        self._deferred.pop(key, None)
        if key not in self._entries:
            return True
        del self._entries[key]
        return self._persist()

    def delete_items(self, keys: Iterable[Any]) -> bool:
        """複数のエントリを削除して、まとめて1回だけ永続化する。"""
        for key in [validate_key(key) for key in keys]:
            self._deferred.pop(key, None)
            self._entries.pop(key, None)
        return self._persist()

    def save(self, item: CacheItem) -> bool:
        """アイテムを保存して永続化する。

        永続化に失敗してもメモリ上の変更は元に戻さない（``commit`` とは異なる）。

        Returns:
            永続化に成功した場合はTrue
        """
        if not self._owns(item):
            return False
        self._entries[item.get_key()] = entry_from_item(item)
        return self._persist()

    def save_deferred(self, item: CacheItem) -> bool:
        """アイテムを永続化せずに保留する。"""
        if not self._owns(item):
            return False
        self._deferred[item.get_key()] = item
        return True

    def commit(self) -> bool:
        """保留中のアイテムをまとめて永続化する。

        永続化に失敗した場合はエントリをコミット前の状態に戻し、
        保留中のアイテムもそのまま残す。

        Returns:
            永続化に成功した場合はTrue
        """
        snapshot = dict(self._entries)
        for key, item in self._deferred.items():
            self._entries[key] = entry_from_item(item)

        if not self._persist():
            self._entries = snapshot
            logger.warning(f"プール '{self.name}' のコミットに失敗したため変更を破棄しました")
            return False

        self._deferred = {}
        return True

    def get_configuration(self) -> "Configuration":
        return self._configuration

    def get_default_expiration(self) -> Optional[datetime]:
        """新しいアイテムのデフォルトの有効期限を取得する。"""
        seconds = self._configuration.get_default_expiration()
        if seconds == 0:
            return None
        return utcnow() + timedelta(seconds=seconds)

    def get_stats(self) -> Dict[str, Any]:
        """プールの統計情報を取得する。"""
        valid_items = sum(1 for entry in self._entries.values() if not entry.is_expired)
        return {
            "name": self.name,
            "total_items": len(self._entries),
            "valid_items": valid_items,
            "deferred_items": len(self._deferred),
        }

    def close(self) -> None:
        """プールを閉じる。閉じたプールはマネージャーから再度取得すると開き直される。"""
        self.closed = True

    @abstractmethod
    def _persist(self) -> bool:
        """エントリを永続化する。

        Returns:
            永続化に成功した場合はTrue
        """
        pass

    def _lookup(self, key: str) -> Optional[CacheEntry]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.is_expired:
            # 期限切れのエントリはメモリ上からのみ削除する
            del self._entries[key]
            return None
        return entry

    def _miss(self, key: str) -> CacheItem:
        return CacheItem(key, None, self.get_default_expiration(), False, self)

    def _owns(self, item: Any) -> bool:
        return isinstance(item, CacheItem) and item.pool in (None, self)
