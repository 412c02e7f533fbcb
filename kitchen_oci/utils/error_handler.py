"""
共通エラーハンドリングユーティリティ

このモジュールは、プロビジョニング/破棄処理全体で一貫したエラー処理を提供します。
例外は握りつぶさず、ログ出力後にそのまま呼び出し元へ伝播させます。
"""
import functools
import logging
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)


class DriverError(Exception):
    """ドライバー共通の基底エラークラス"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)

    def __str__(self) -> str:
        if not self.details:
            return self.message
        detail_str = ", ".join(f"{k}={v}" for k, v in self.details.items())
        return f"{self.message} ({detail_str})"


class ConfigurationError(DriverError):
    """設定不備エラー（プロバイダー呼び出し前に検出）"""


class ProvisionTimeoutError(DriverError):
    """
    ライフサイクル状態の待機がタイムアウトした場合のエラー

    自動リトライは行いません。部分的に作成されたリソースの破棄を行うかどうかは
    呼び出し元が判断します。
    """
    def __init__(self, kind: str, resource_id: str, target_state: str, waited_seconds: float):
        self.kind = kind
        self.resource_id = resource_id
        self.target_state = target_state
        self.waited_seconds = waited_seconds
        super().__init__(
            f"{kind} が {target_state} 状態に到達しませんでした",
            {
                "kind": kind,
                "resource_id": resource_id,
                "target_state": target_state,
                "waited_seconds": round(waited_seconds, 1),
            },
        )


class ResourceFailedError(DriverError):
    """待機中のリソースが目標状態に到達し得ない状態へ遷移した場合のエラー"""
    def __init__(self, kind: str, resource_id: str, target_state: str, actual_state: str):
        self.kind = kind
        self.resource_id = resource_id
        self.target_state = target_state
        self.actual_state = actual_state
        super().__init__(
            f"{kind} が {actual_state} 状態になったため {target_state} を待機できません",
            {"kind": kind, "resource_id": resource_id},
        )


class StateCorruptionError(DriverError):
    """State Record が不完全で破棄処理を続行できない場合のエラー"""


class UnknownPhaseError(DriverError):
    """リソース種別に定義されていないライフサイクルフェーズを要求された場合のエラー"""
    def __init__(self, kind: str, phase: str):
        self.kind = kind
        self.phase = phase
        super().__init__(
            f"リソース種別 '{kind}' にフェーズ '{phase}' は定義されていません",
            {"kind": kind, "phase": phase},
        )


def log_driver_errors(func: Callable) -> Callable:
    """
    ドライバー操作用の共通エラーログデコレータ

    例外を記録した上で、型を変えずに再送出します。

    使用例:
        @log_driver_errors
        def create(self, state):
            # 処理
            ...

    Args:
        func: デコレートする関数

    Returns:
        ラップされた関数
    """
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ConfigurationError as e:
            logger.error(f"設定エラー in {func.__name__}: {e}")
            raise
        except (ProvisionTimeoutError, ResourceFailedError) as e:
            logger.error(f"リソース待機エラー in {func.__name__}: {e}")
            raise
        except StateCorruptionError as e:
            logger.error(f"State Record 不整合 in {func.__name__}: {e}")
            raise
        except Exception as e:
            logger.error(f"予期しないエラー in {func.__name__}: {e}", exc_info=True)
            raise

    return wrapper
