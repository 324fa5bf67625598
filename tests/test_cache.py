"""Test cases for cache item pools."""
import time
from datetime import timedelta

import pytest

from cachepool import CacheItem, CacheManager, InvalidKey
from cachepool.cache_pool import validate_key
from cachepool.cache_types import utcnow

from conftest import ten_items


@pytest.fixture
def pool(manager: CacheManager):
    """test0〜test9を含むプールを作成する。"""
    return manager.get_item_pool("test", ten_items)


class TestCacheItemPool:
    """プールの基本操作のテスト。"""

    def test_get_item(self, pool) -> None:
        """単一アイテム取得のテスト。"""
        item = pool.get_item("test1")
        assert item.is_hit()
        assert item.get() == 1

    def test_get_missing_item(self, pool) -> None:
        """存在しないキーのテスト。"""
        item = pool.get_item("foo")
        assert not item.is_hit()
        assert item.get() is None
        assert item.get_key() == "foo"
        assert not pool.has_item("foo")

    def test_get_items(self, pool) -> None:
        """複数アイテム取得のテスト。"""
        keys = ["test1", "test2", "foo"]
        items = list(pool.get_items(keys))

        assert [key for key, _ in items] == keys
        assert [item.is_hit() for _, item in items] == [True, True, False]

    def test_get_items_is_restartable(self, pool) -> None:
        """複数アイテム取得の再イテレーションで変更が反映されるかのテスト。"""
        items = pool.get_items(["test1", "test2", "foo"])
        assert sum(item.is_hit() for _, item in items) == 2

        assert pool.delete_item("test1")
        result = dict(items)
        assert len(result) == 3
        assert not result["test1"].is_hit()
        assert result["test2"].is_hit()
        assert not result["foo"].is_hit()

    def test_has_item(self, pool) -> None:
        """存在確認のテスト。"""
        assert pool.has_item("test1")
        assert not pool.has_item("foo")

    def test_clear(self, pool) -> None:
        """全削除のテスト。"""
        assert pool.clear()
        for i in range(10):
            assert not pool.has_item(f"test{i}")

        # 2回目も同じ結果になる
        assert pool.clear()
        assert pool.get_stats()["total_items"] == 0
        assert not pool.has_item("test1")

    def test_delete_item(self, pool) -> None:
        """単一アイテム削除のテスト。"""
        assert pool.has_item("test1")
        assert pool.delete_item("test1")
        assert not pool.has_item("test1")
        assert pool.has_item("test2")

        # 存在しないキーの削除も成功する
        assert pool.delete_item("foo")

    def test_delete_items(self, pool) -> None:
        """複数アイテム削除のテスト。"""
        keys = ["test1", "test2", "foo"]
        assert pool.delete_items(keys)
        for key in keys:
            assert not pool.has_item(key)
        assert pool.has_item("test3")

    def test_save(self, pool) -> None:
        """アイテム保存のテスト。"""
        item = pool.get_item("foo")
        assert not item.is_hit()

        item.set("bar")
        assert item.get() == "bar"
        assert pool.save(item)

        saved = pool.get_item("foo")
        assert saved.is_hit()
        assert saved.get() == "bar"

    def test_save_rejects_foreign_items(self, manager: CacheManager, pool) -> None:
        """他のプールのアイテムや不正なオブジェクトを保存できないことのテスト。"""
        other = manager.get_item_pool("other")
        foreign = other.get_item("foo").set("bar")

        assert not pool.save(foreign)
        assert not pool.save_deferred(foreign)
        assert not pool.save("foo")
        assert not pool.has_item("foo")

    def test_save_standalone_item(self, pool) -> None:
        """アプリケーションが直接生成したアイテムの保存のテスト。"""
        assert pool.save(CacheItem("foo", "bar"))
        assert pool.get_item("foo").get() == "bar"

    def test_save_deferred(self, pool) -> None:
        """遅延保存とコミットのテスト。"""
        item = pool.get_item("foo")
        assert not item.is_hit()
        item.set("bar")
        assert pool.save_deferred(item)

        assert pool.get_item("foo").is_hit()
        assert not pool.has_item("foo")

        assert pool.commit()
        assert pool.get_item("foo").is_hit()
        assert pool.has_item("foo")
        assert pool.get_stats()["deferred_items"] == 0

    @pytest.mark.parametrize(
        "make_item, key, hit, value",
        [
            (lambda pool: pool.get_item("foo").set("bar"), "foo", True, "bar"),
            (lambda pool: CacheItem("baz", "qux"), "baz", True, "qux"),
            (lambda pool: pool.get_item("test1").set(5).expires_after(-1), "test1", False, None),
        ],
        ids=["miss-item", "standalone-item", "expired-over-saved"],
    )
    def test_read_deferred_item(self, pool, make_item, key: str, hit: bool, value) -> None:
        """保留中のアイテムがコミット前に読み出せることのテスト。"""
        assert pool.save_deferred(make_item(pool))

        item = pool.get_item(key)
        assert item.is_hit() == hit
        assert item.get() == value

    def test_commit_rollback(self, pool, monkeypatch: pytest.MonkeyPatch) -> None:
        """永続化に失敗したコミットが元に戻されることのテスト。"""
        pool.save_deferred(pool.get_item("foo").set("bar"))
        pool.save_deferred(pool.get_item("test1").set(100))
        before = dict(pool._entries)

        monkeypatch.setattr(pool, "_persist", lambda: False)
        assert not pool.commit()

        assert pool._entries == before
        assert set(pool._deferred) == {"foo", "test1"}
        assert pool.get_item("test1").get() == 100  # 保留中のアイテムが優先される

        monkeypatch.undo()
        assert pool.commit()
        assert pool.has_item("foo")
        assert pool._entries["test1"].value == 100

    def test_save_keeps_changes_on_failure(self, pool, monkeypatch: pytest.MonkeyPatch) -> None:
        """saveは永続化に失敗してもメモリ上の変更を残すことのテスト。"""
        monkeypatch.setattr(pool, "_persist", lambda: False)
        assert not pool.save(pool.get_item("foo").set("bar"))
        assert pool.has_item("foo")

    def test_expires_at(self, pool) -> None:
        """expires_atによる有効期限のテスト。"""
        item = pool.get_item("test1")
        assert item.is_hit()
        item.expires_at(utcnow() + timedelta(seconds=1))
        assert pool.save(item)
        assert pool.has_item("test1")

        # 有効期限経過後
        time.sleep(1.1)
        assert not item.is_hit()
        assert not pool.has_item("test1")
        assert "test1" not in pool._entries

    def test_expires_after_elapsed(self, pool) -> None:
        """経過済みの期間を指定したアイテムはすぐに期限切れになることのテスト。"""
        for duration in (0, -5, timedelta(seconds=-1)):
            item = pool.get_item("test2").set("value").expires_after(duration)
            assert not item.is_hit()
            pool.save(item)
            assert not pool.has_item("test2")
            assert not pool.get_item("test2").is_hit()

    def test_iteration(self, pool) -> None:
        """有効なエントリのイテレーションのテスト。"""
        expired = pool.get_item("test0").expires_after(-1)
        pool.save(expired)

        values = dict(pool)
        assert "test0" not in values
        assert values["test9"] == 9
        assert len(list(pool)) == 9

    def test_default_expiration(self, manager: CacheManager) -> None:
        """デフォルトの有効期限のテスト。"""
        manager.get_configuration().set_default_expiration(60)
        pool = manager.get_item_pool("expiring")

        item = pool.get_item("foo")
        expiration = item.get_expiration()
        assert expiration is not None
        assert utcnow() < expiration <= utcnow() + timedelta(seconds=60)

        manager.get_configuration().set_default_expiration(0)
        assert pool.get_default_expiration() is None

    def test_negative_default_expiration(self, manager: CacheManager) -> None:
        """負のデフォルト有効期限では新しいアイテムが即座に期限切れになることのテスト。"""
        manager.get_configuration().set_default_expiration(-10)
        pool = manager.get_item_pool("expired")

        item = pool.get_item("foo").set("bar")
        pool.save(item)
        assert not pool.has_item("foo")


class TestKeyValidation:
    """キー検証のテスト。"""

    @pytest.mark.parametrize("key", [None, b"bytes", ["list"], {"a": 1}, object(), ""])
    def test_invalid_keys(self, pool, key) -> None:
        """不正なキーの拒否のテスト。"""
        with pytest.raises(InvalidKey):
            pool.get_item(key)
        with pytest.raises(InvalidKey):
            pool.has_item(key)

    def test_scalar_keys(self, pool) -> None:
        """スカラー値のキーが文字列に変換されることのテスト。"""
        assert validate_key(1) == "1"
        assert validate_key(1.5) == "1.5"
        assert validate_key(True) == "True"

        pool.save(pool.get_item(42).set("answer"))
        assert pool.get_item("42").get() == "answer"

    def test_object_with_str(self, pool) -> None:
        """__str__を持つオブジェクトのキーのテスト。"""

        class Key:
            def __str__(self) -> str:
                return "test3"

        assert pool.get_item(Key()).get() == 3

    def test_invalid_key_is_type_error(self) -> None:
        """InvalidKeyがTypeErrorとしても扱えることのテスト。"""
        with pytest.raises(TypeError) as excinfo:
            validate_key(None)
        assert excinfo.value.code.value == "invalid_key"
