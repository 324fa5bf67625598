"""キャッシュバックエンドの実装。"""
import logging
import os
import tempfile
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Optional

from cachepool.cache_manager import CacheManager, Creator, normalize_creator_output, register_implementation
from cachepool.cache_pool import CacheItemPool
from cachepool.cache_types import CacheEntry
from cachepool.codec import Codec, get_codec
from cachepool.exceptions import FileUnreadable

if TYPE_CHECKING:
    from cachepool.config import Configuration

logger = logging.getLogger(__name__)


class FileSystemCacheItemPool(CacheItemPool):
    """ファイルシステムに保存されるプール。

    読み込み時（または最後の書き込み時）のファイルの更新時刻とiノード番号を記録しておき、
    それより新しい更新があった場合は書き込みを拒否する。書き込みは常にファイルを置き換えるため、
    更新時刻が同じでもiノード番号の違いで他のセッションの書き込みを検出できる。
    """

    def __init__(
        self,
        name: str,
        path: Path,
        last_update: int,
        entries: Dict[str, CacheEntry],
        configuration: "Configuration",
        codec: Codec,
        inode: Optional[int] = None,
    ):
        """初期化。

        Args:
            name: プール名
            path: キャッシュファイルのパス
            last_update: ファイルの最終更新時刻（ナノ秒、ファイルがない場合は0）
            entries: 初期エントリ
            configuration: 設定
            codec: シリアライザ
            inode: ファイルのiノード番号（ファイルがない場合はNone）
        """
        super().__init__(name, entries, configuration)
        self.path = path
        self.last_update = last_update
        self._codec = codec
        self._inode = inode

    def _persist(self) -> bool:
        """エントリをファイルに書き込む。"""
        if self._is_modified():
            logger.warning(
                f"キャッシュファイル '{self.path}' は他のセッションで更新されているため書き込みません",
                extra={"file": str(self.path)},
            )
            return False

        try:
            contents = self._codec.encode(self._entries)
        except (TypeError, ValueError, OverflowError) as e:
            logger.error(f"プール '{self.name}' のシリアライズに失敗: {e}", extra={"file": str(self.path)})
            return False

        temp_path = None
        try:
            fd, temp_path = tempfile.mkstemp(dir=self.path.parent, prefix=f".{self.name}.", suffix=".tmp")
            with os.fdopen(fd, "wb") as f:
                f.write(contents)
            os.replace(temp_path, self.path)
            stat = self.path.stat()
            self.last_update = stat.st_mtime_ns
            self._inode = stat.st_ino
        except OSError as e:
            logger.error(f"キャッシュファイル '{self.path}' の書き込みに失敗: {e}", extra={"file": str(self.path)})
            if temp_path is not None and os.path.exists(temp_path):
                os.unlink(temp_path)
            return False

        logger.debug(f"キャッシュファイル '{self.path}' を書き込みました ({len(self._entries)}件)")
        return True

    def close(self) -> None:
        """空のプールのファイルを削除する。他のセッションで更新されている場合は削除しない。"""
        super().close()
        if self._entries or not self.path.exists() or self._is_modified():
            return

        try:
            self.path.unlink()
            logger.debug(f"空のキャッシュファイル '{self.path}' を削除しました")
        except FileNotFoundError:
            pass

    def get_stats(self) -> Dict[str, Any]:
        stats = super().get_stats()
        stats["path"] = str(self.path)
        stats["size_bytes"] = self.path.stat().st_size if self.path.exists() else 0
        return stats

    def _is_modified(self) -> bool:
        try:
            stat = self.path.stat()
        except FileNotFoundError:
            return False
        if stat.st_mtime_ns > self.last_update:
            return True
        return self._inode is not None and stat.st_ino != self._inode


class DebugCacheItemPool(CacheItemPool):
    """メモリ上のみに保存されるプール。テスト用。"""

    def _persist(self) -> bool:
        return True


@register_implementation("filesystem")
class FileSystemCacheManager(CacheManager):
    """ファイルシステムにプールを保存するマネージャー。"""

    def __init__(self, configuration: "Configuration"):
        super().__init__(configuration)
        self._codec = get_codec(configuration.serializer)

    @property
    def directory(self) -> Path:
        directory = self._configuration.get_directory()
        if directory is None:
            directory = Path.home() / ".cachepool"
        return Path(directory)

    def _open_pool(self, name: str, creator: Optional[Creator]) -> CacheItemPool:
        directory = self.directory
        directory.mkdir(parents=True, exist_ok=True)
        path = directory / name

        if path.exists():
            stat = path.stat()
            try:
                entries = self._codec.decode(path.read_bytes())
            except (OSError, ValueError) as e:
                if creator is None:
                    raise FileUnreadable(path) from e
                entries = normalize_creator_output(creator)
                logger.warning(
                    f"キャッシュファイル '{path}' を読み込めません: {e}",
                    extra={"file": str(path)},
                )
            return FileSystemCacheItemPool(
                name, path, stat.st_mtime_ns, entries, self._configuration, self._codec, stat.st_ino
            )

        entries = normalize_creator_output(creator) if creator is not None else {}
        pool = FileSystemCacheItemPool(name, path, 0, entries, self._configuration, self._codec)
        if entries and not pool.commit():
            logger.warning(f"新しいキャッシュファイル '{path}' を書き込めません", extra={"file": str(path)})
        return pool


@register_implementation("debug")
class DebugCacheManager(CacheManager):
    """メモリ上にプールを保持するマネージャー。

    保存したデータは次のセッションでは失われるため、テスト用途に限る。
    """

    def _open_pool(self, name: str, creator: Optional[Creator]) -> CacheItemPool:
        entries = normalize_creator_output(creator) if creator is not None else {}
        return DebugCacheItemPool(name, entries, self._configuration)
