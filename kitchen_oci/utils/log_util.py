"""ログ設定ユーティリティ."""
import logging
import sys

# ログ設定
LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s:%(lineno)d | %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(level: int = logging.INFO) -> logging.Logger:
    """kitchen_oci パッケージのロガーを設定する.

    Args:
        level: ログレベル

    Returns:
        logging.Logger: 設定済みのパッケージロガー
    """
    root = logging.getLogger("kitchen_oci")
    root.setLevel(level)

    # 既存ハンドラーを削除（多重出力防止）
    root.handlers.clear()

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATE_FORMAT))
    root.addHandler(handler)
    return root
