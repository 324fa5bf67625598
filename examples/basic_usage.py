"""ファイルシステムキャッシュを使ったサンプルスクリプト。"""
import logging
import time
from pathlib import Path

from cachepool import CacheManager, Configuration

# ログの設定
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


def load_exchange_rates():
    """時間のかかるデータ取得の代わり。"""
    logger.info("為替レートを取得しています...")
    time.sleep(1)
    return {"USD": 1.0, "EUR": 0.92, "JPY": 151.3}


def main():
    configuration = Configuration.from_env()
    if configuration.get_directory() is None:
        configuration.set_directory(Path.cwd() / ".cache")
    configuration.set_default_expiration(3600)

    with CacheManager.get_instance(configuration) as manager:
        # 初回のみload_exchange_ratesが呼ばれる
        rates = manager.get_item_pool("exchange_rates", load_exchange_rates)
        logger.info(f"EUR: {rates.get_item('EUR').get()}")

        item = rates.get_item("GBP")
        if not item.is_hit():
            item.set(0.79).expires_after(600)
            if not rates.save(item):
                logger.warning("他のプロセスがキャッシュを更新したため保存できませんでした")

        # 遅延保存をまとめてコミット
        for currency, rate in {"CHF": 0.88, "CAD": 1.36}.items():
            rates.save_deferred(rates.get_item(currency).set(rate))
        if not rates.commit():
            logger.warning("コミットに失敗しました")

        logger.info(f"キャッシュ統計: {rates.get_stats()}")


if __name__ == "__main__":
    main()
