"""キャッシュファイルのシリアライザ。"""
import pickle
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Type

import msgpack

from cachepool.cache_types import CacheEntry, to_utc


class Codec(ABC):
    """エントリの辞書とバイト列を相互に変換する基底クラス。"""

    @abstractmethod
    def encode(self, entries: Dict[str, CacheEntry]) -> bytes:
        """エントリをバイト列に変換する。"""
        pass

    @abstractmethod
    def decode(self, data: bytes) -> Dict[str, CacheEntry]:
        """バイト列をエントリに変換する。

        Raises:
            ValueError: データが壊れている場合
        """
        pass

    @staticmethod
    def _to_records(entries: Dict[str, CacheEntry]) -> Dict[str, Dict[str, Any]]:
        return {
            key: {"value": entry.value, "expires": entry.expires}
            for key, entry in entries.items()
        }

    @staticmethod
    def _from_records(records: Any) -> Dict[str, CacheEntry]:
        if not isinstance(records, dict):
            raise ValueError(f"cache data must be a mapping, got {type(records).__name__}")

        entries: Dict[str, CacheEntry] = {}
        for key, record in records.items():
            if not isinstance(key, str) or not isinstance(record, dict) or "value" not in record:
                raise ValueError(f"malformed cache record for key {key!r}")
            expires = record.get("expires")
            if expires is not None and not isinstance(expires, datetime):
                raise ValueError(f"malformed expiration for key {key!r}")
            entries[key] = CacheEntry(
                value=record["value"],
                expires=to_utc(expires) if expires is not None else None,
            )
        return entries


class MsgpackCodec(Codec):
    """msgpackを使ったシリアライザ。有効期限はTimestamp拡張型で保存する。"""

    def encode(self, entries: Dict[str, CacheEntry]) -> bytes:
        return msgpack.packb(self._to_records(entries), use_bin_type=True, datetime=True)

    def decode(self, data: bytes) -> Dict[str, CacheEntry]:
        try:
            records = msgpack.unpackb(data, raw=False, timestamp=3, strict_map_key=False)
        except (msgpack.UnpackException, ValueError, TypeError) as e:
            raise ValueError(f"cannot unpack cache data: {e}") from e
        return self._from_records(records)


class PickleCodec(Codec):
    """pickleを使ったシリアライザ。任意のPythonオブジェクトを保存できる。"""

    def encode(self, entries: Dict[str, CacheEntry]) -> bytes:
        try:
            return pickle.dumps(self._to_records(entries), protocol=pickle.HIGHEST_PROTOCOL)
        except (pickle.PicklingError, AttributeError) as e:
            raise TypeError(f"cannot pickle cache data: {e}") from e

    def decode(self, data: bytes) -> Dict[str, CacheEntry]:
        try:
            records = pickle.loads(data)
        except (pickle.UnpicklingError, EOFError, AttributeError, ImportError, IndexError, KeyError) as e:
            raise ValueError(f"cannot unpickle cache data: {e}") from e
        return self._from_records(records)


_CODECS: Dict[str, Type[Codec]] = {
    "msgpack": MsgpackCodec,
    "pickle": PickleCodec,
}


def has_codec(name: str) -> bool:
    return name in _CODECS


def get_codec(name: str) -> Codec:
    """名前に対応するシリアライザを生成する。

    Raises:
        KeyError: 未登録の名前の場合
    """
    return _CODECS[name]()
