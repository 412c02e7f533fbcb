"""
トランスポート連携インターフェース

プロビジョニング済みマシンへの到達性確認と接続クローズは外部のトランスポート
（SSH 等）が担当します。本パッケージはこのプロトコルを通じて呼び出すだけです。
"""
from typing import Any, Dict, Protocol, runtime_checkable


@runtime_checkable
class Connection(Protocol):
    """State Record に紐づくマシンへの接続"""

    def wait_until_ready(self) -> None:
        """マシンに到達可能になるまでブロックする"""
        ...

    def close(self) -> None:
        """開いている接続をすべて閉じる"""
        ...


@runtime_checkable
class Transport(Protocol):
    """State Record から接続を生成するトランスポート"""

    def connection(self, state: Dict[str, Any]) -> Connection:
        ...
