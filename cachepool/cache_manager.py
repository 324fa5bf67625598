"""キャッシュマネージャーの基底クラスとバックエンドの登録。"""
import logging
from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any, Callable, Dict, Iterable, Optional, Tuple, Type, Union

from cachepool.cache_pool import CacheItemPool, validate_key
from cachepool.cache_types import CacheEntry
from cachepool.exceptions import BadFileName, InvalidImplementation

if TYPE_CHECKING:
    from cachepool.config import Configuration

logger = logging.getLogger(__name__)

CreatorResult = Union[Mapping, Iterable[Tuple[Any, Any]]]
Creator = Callable[[], CreatorResult]

_IMPLEMENTATIONS: Dict[str, Type["CacheManager"]] = {}


def register_implementation(name: str) -> Callable[[Type["CacheManager"]], Type["CacheManager"]]:
    """マネージャークラスを識別子で登録するデコレーター。

    Args:
        name: バックエンドの識別子

    Raises:
        InvalidImplementation: CacheManagerのサブクラスでない場合
    """

    def decorator(manager_class: Type["CacheManager"]) -> Type["CacheManager"]:
        if not isinstance(manager_class, type) or not issubclass(manager_class, CacheManager):
            raise InvalidImplementation(manager_class)
        _IMPLEMENTATIONS[name] = manager_class
        logger.debug(f"キャッシュマネージャー '{name}' を登録しました: {manager_class.__name__}")
        return manager_class

    return decorator


def has_implementation(name: str) -> bool:
    return name in _IMPLEMENTATIONS


def get_implementation(name: str) -> Type["CacheManager"]:
    """識別子に対応するマネージャークラスを取得する。

    Raises:
        InvalidImplementation: 未登録の識別子の場合
    """
    try:
        return _IMPLEMENTATIONS[name]
    except (KeyError, TypeError) as e:
        raise InvalidImplementation(name) from e


def validate_pool_name(name: str) -> str:
    """プール名を検証する。

    Raises:
        BadFileName: ``..`` または ``/`` を含む場合
    """
    if not isinstance(name, str) or not name or ".." in name or "/" in name:
        raise BadFileName(str(name))
    return name


def normalize_creator_output(creator: Creator) -> Dict[str, CacheEntry]:
    """生成関数の結果を無期限のエントリに変換する。

    Args:
        creator: 辞書またはキーと値の組を返す引数なしの関数

    Returns:
        エントリの辞書
    """
    result = creator()
    if result is None:
        return {}

    pairs = result.items() if isinstance(result, Mapping) else result
    return {validate_key(key): CacheEntry(value=value, expires=None) for key, value in pairs}


class CacheManager(ABC):
    """キャッシュアイテムプールを管理する基底クラス。

    同じマネージャーから同じ名前で取得したプールは常に同一のインスタンスになる。
    """

    def __init__(self, configuration: "Configuration"):
        """初期化。

        Args:
            configuration: 設定
        """
        self._configuration = configuration
        self._pools: Dict[str, CacheItemPool] = {}

    @classmethod
    def get_instance(cls, configuration: "Configuration") -> "CacheManager":
        """設定で指定されたマネージャーを生成する。

        Raises:
            InvalidImplementation: マネージャーを生成できない場合
        """
        implementation = configuration.get_implementation()
        manager_class = get_implementation(implementation)
        try:
            manager = manager_class(configuration)
        except TypeError as e:
            raise InvalidImplementation(implementation) from e

        if not isinstance(manager, CacheManager):
            raise InvalidImplementation(implementation)

        logger.info(f"キャッシュマネージャーを初期化: {implementation}")
        return manager

    def __enter__(self) -> "CacheManager":
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        self.close()

    def get_configuration(self) -> "Configuration":
        return self._configuration

    def get_item_pool(self, name: str, creator: Optional[Creator] = None) -> CacheItemPool:
        """名前に対応するプールを取得する。存在しない場合は新しく作成する。

        Args:
            name: プール名
            creator: プールが存在しない場合に初期データを生成する関数

        Returns:
            プール

        Raises:
            BadFileName: プール名が不正な場合
            FileUnreadable: ファイルを読み込めず、生成関数もない場合
        """
        pool = self._pools.get(name)
        if pool is not None and not pool.closed:
            return pool

        validate_pool_name(name)
        pool = self._open_pool(name, creator)
        self._pools[name] = pool
        logger.debug(f"プール '{name}' を開きました")
        return pool

    def is_opened(self, name: str) -> bool:
        """プールがこのセッションで開かれているかどうかを確認する。"""
        pool = self._pools.get(name)
        return pool is not None and not pool.closed

    def close(self) -> None:
        """開いているすべてのプールを閉じる。"""
        for pool in self._pools.values():
            pool.close()
        self._pools.clear()

    @abstractmethod
    def _open_pool(self, name: str, creator: Optional[Creator]) -> CacheItemPool:
        """プールを読み込むか新しく作成する。"""
        pass
