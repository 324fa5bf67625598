"""共通のテストフィクスチャ。"""
from pathlib import Path
from typing import Generator, Iterator, Tuple

import pytest

from cachepool import CacheManager, Configuration


def ten_items() -> Iterator[Tuple[str, int]]:
    """test0〜test9の初期データを生成する。"""
    for i in range(10):
        yield f"test{i}", i


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    """一時的なキャッシュディレクトリのパスを返す（ディレクトリは作成しない）。"""
    return tmp_path / "cache"


@pytest.fixture
def configuration(cache_dir: Path) -> Configuration:
    """ファイルシステムバックエンドの設定を作成する。"""
    return Configuration(implementation="filesystem", directory=cache_dir)


@pytest.fixture(params=["filesystem", "debug"])
def manager(request, configuration: Configuration) -> Generator[CacheManager, None, None]:
    """各バックエンドのマネージャーを作成する。"""
    configuration.set_implementation(request.param)
    manager = CacheManager.get_instance(configuration)
    yield manager
    manager.close()
