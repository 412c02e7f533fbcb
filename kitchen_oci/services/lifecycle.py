"""
ライフサイクルフェーズ解決

論理フェーズ名（available, attached など）を、リソース種別ごとの
OCI SDK ライフサイクル状態定数へ変換します。
ポーリング処理をプロバイダー固有の状態語彙から切り離すためのものです。
"""
from typing import Dict, FrozenSet, Tuple

from oci.core.models import Instance, Volume, VolumeAttachment
from oci.database.models import DbSystem

from kitchen_oci.utils.error_handler import UnknownPhaseError

KIND_INSTANCE = "instance"
KIND_DB_SYSTEM = "db_system"
KIND_VOLUME = "volume"
KIND_VOLUME_ATTACHMENT = "volume_attachment"

_PHASES: Dict[str, Dict[str, str]] = {
    KIND_INSTANCE: {
        "running": Instance.LIFECYCLE_STATE_RUNNING,
        "terminated": Instance.LIFECYCLE_STATE_TERMINATED,
    },
    KIND_DB_SYSTEM: {
        "available": DbSystem.LIFECYCLE_STATE_AVAILABLE,
        "terminated": DbSystem.LIFECYCLE_STATE_TERMINATED,
    },
    KIND_VOLUME: {
        "available": Volume.LIFECYCLE_STATE_AVAILABLE,
        "terminated": Volume.LIFECYCLE_STATE_TERMINATED,
    },
    KIND_VOLUME_ATTACHMENT: {
        "attached": VolumeAttachment.LIFECYCLE_STATE_ATTACHED,
        "detached": VolumeAttachment.LIFECYCLE_STATE_DETACHED,
    },
}

# 作成方向の目標状態ごとの、到達し得ない状態
_FAILURE_STATES: Dict[Tuple[str, str], FrozenSet[str]] = {
    (KIND_INSTANCE, Instance.LIFECYCLE_STATE_RUNNING): frozenset({
        Instance.LIFECYCLE_STATE_TERMINATING,
        Instance.LIFECYCLE_STATE_TERMINATED,
    }),
    (KIND_DB_SYSTEM, DbSystem.LIFECYCLE_STATE_AVAILABLE): frozenset({
        DbSystem.LIFECYCLE_STATE_FAILED,
        DbSystem.LIFECYCLE_STATE_TERMINATING,
        DbSystem.LIFECYCLE_STATE_TERMINATED,
    }),
    (KIND_VOLUME, Volume.LIFECYCLE_STATE_AVAILABLE): frozenset({
        Volume.LIFECYCLE_STATE_FAULTY,
        Volume.LIFECYCLE_STATE_TERMINATING,
        Volume.LIFECYCLE_STATE_TERMINATED,
    }),
    (KIND_VOLUME_ATTACHMENT, VolumeAttachment.LIFECYCLE_STATE_ATTACHED): frozenset({
        VolumeAttachment.LIFECYCLE_STATE_DETACHING,
        VolumeAttachment.LIFECYCLE_STATE_DETACHED,
    }),
}


def resolve_phase(kind: str, phase: str) -> str:
    """
    論理フェーズ名を OCI のライフサイクル状態定数に変換

    Args:
        kind: リソース種別（instance, db_system, volume, volume_attachment）
        phase: 論理フェーズ名

    Returns:
        str: OCI SDK のライフサイクル状態定数

    Raises:
        UnknownPhaseError: 種別またはフェーズが定義されていない場合
    """
    try:
        return _PHASES[kind][phase.lower()]
    except KeyError:
        raise UnknownPhaseError(kind, phase) from None


def failure_states(kind: str, target_state: str) -> FrozenSet[str]:
    """目標状態への到達を諦めるべき状態の集合を返す（破棄方向の待機では空）"""
    return _FAILURE_STATES.get((kind, target_state), frozenset())
