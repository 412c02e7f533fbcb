"""
ライフサイクル状態のポーリング

リソースが目標状態に到達するまで取得を繰り返す純粋なリトライループです。
sleep と clock を注入できるため、テストでは実時間を消費せずに
経過時間をシミュレートできます。
"""
import logging
import time
from typing import Any, Callable, Iterable

from kitchen_oci.utils.error_handler import ProvisionTimeoutError, ResourceFailedError

logger = logging.getLogger(__name__)

INITIAL_INTERVAL_SECONDS = 1.0


def poll_until(
    fetch: Callable[[], Any],
    target_state: str,
    *,
    kind: str,
    resource_id: str,
    max_interval_seconds: float,
    max_wait_seconds: float,
    failure_states: Iterable[str] = (),
    sleep: Callable[[float], None] = time.sleep,
    clock: Callable[[], float] = time.monotonic,
) -> Any:
    """
    リソースが目標のライフサイクル状態に到達するまで待機

    待機間隔は1秒から倍々に伸び、max_interval_seconds で頭打ちになります。
    期限を越えて sleep することはありません。

    Args:
        fetch: リソースを取得する関数（lifecycle_state 属性を持つオブジェクトを返す）
        target_state: 目標のライフサイクル状態
        kind: リソース種別（エラー情報用）
        resource_id: リソースの OCID（エラー情報用）
        max_interval_seconds: ポーリング間隔の上限（秒）
        max_wait_seconds: 待機時間の上限（秒）
        failure_states: 到達した時点で失敗とみなす状態
        sleep: 待機関数
        clock: 単調増加する時計関数

    Returns:
        目標状態に到達したリソース

    Raises:
        ProvisionTimeoutError: 待機時間の上限を超えた場合
        ResourceFailedError: failure_states のいずれかに遷移した場合
    """
    failures = frozenset(failure_states)
    started = clock()
    deadline = started + max_wait_seconds
    interval = min(INITIAL_INTERVAL_SECONDS, max_interval_seconds)

    while True:
        resource = fetch()
        state = getattr(resource, "lifecycle_state", None)
        if state == target_state:
            logger.info(f"{kind} {resource_id} が {target_state} になりました（{clock() - started:.0f}秒）")
            return resource
        if state in failures:
            raise ResourceFailedError(kind, resource_id, target_state, state)

        remaining = deadline - clock()
        if remaining <= 0:
            raise ProvisionTimeoutError(kind, resource_id, target_state, clock() - started)

        logger.debug(f"{kind} {resource_id}: 現在 {state}, {target_state} を待機中")
        sleep(min(interval, remaining))
        interval = min(interval * 2, max_interval_seconds)
