"""ファイルシステムまたはメモリに保存するキー・バリュー型キャッシュ。"""
from cachepool.cache_backends import (
    DebugCacheItemPool,
    DebugCacheManager,
    FileSystemCacheItemPool,
    FileSystemCacheManager,
)
from cachepool.cache_manager import CacheManager, get_implementation, register_implementation
from cachepool.cache_pool import CacheItemPool
from cachepool.cache_types import CacheEntry, CacheItem
from cachepool.codec import Codec, MsgpackCodec, PickleCodec
from cachepool.config import Configuration
from cachepool.exceptions import (
    BadFileName,
    CacheError,
    ErrorCode,
    FileUnreadable,
    InvalidImplementation,
    InvalidKey,
)

__all__ = [
    "BadFileName",
    "CacheEntry",
    "CacheError",
    "CacheItem",
    "CacheItemPool",
    "CacheManager",
    "Codec",
    "Configuration",
    "DebugCacheItemPool",
    "DebugCacheManager",
    "ErrorCode",
    "FileSystemCacheItemPool",
    "FileSystemCacheManager",
    "FileUnreadable",
    "InvalidImplementation",
    "InvalidKey",
    "MsgpackCodec",
    "PickleCodec",
    "get_implementation",
    "register_implementation",
]
