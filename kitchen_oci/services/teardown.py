"""
破棄オーケストレーター

State Record のみを入力として、作成時と逆の依存順序でリソースを破棄します。
  1. ボリュームのデタッチ（記録順）
  2. ボリュームの削除（記録順）
  3. プライマリリソース（インスタンス/DBシステム）の削除
  4. トランスポート接続のクローズ

各手順が完了するたびに state 辞書から該当エントリを取り除くため、
途中で失敗した場合は残作業だけが state に残り、再実行で続きから処理できます。
"""
import functools
import logging
from typing import Any, Callable, Dict, List, Tuple

import oci

from kitchen_oci.models.state import OCID_TYPE_DB_SYSTEM, OCID_TYPE_INSTANCE, StateRecord
from kitchen_oci.services import lifecycle
from kitchen_oci.services.provisioning import VOLUME_MAX_INTERVAL, VOLUME_MAX_WAIT
from kitchen_oci.services.resource_client import OCIResourceClient
from kitchen_oci.services.transport import Transport
from kitchen_oci.utils.error_handler import StateCorruptionError

logger = logging.getLogger(__name__)

Step = Tuple[str, Callable[[], None]]


class TeardownOrchestrator:
    """破棄処理のオーケストレーター"""

    def __init__(self, client: OCIResourceClient, transport: Transport, wait_for_completion: bool = False):
        self.client = client
        self.transport = transport
        # Trueの場合のみデタッチ/削除の完了をポーリングで確認する
        self.wait_for_completion = wait_for_completion

    def teardown(self, state: Dict[str, Any]) -> None:
        """
        State Record に記録されたリソースを破棄

        Args:
            state: プロビジョニング時に記録された状態辞書（完了した手順は取り除かれる）

        Raises:
            StateCorruptionError: server_id がない、または OCID の種別を判別できない場合
        """
        if _primary_already_removed(state):
            logger.info("プライマリリソースは破棄済みです。接続のクローズのみ行います")
            self.transport.connection(state).close()
            return

        record = StateRecord.from_state(state)
        steps = self._plan(record, state)
        state.setdefault("volume_attachments", [])
        state.setdefault("volumes", [])

        for index, (description, step) in enumerate(steps):
            try:
                step()
            except Exception:
                logger.error(
                    f"破棄処理を中断しました: 失敗={description}, "
                    f"完了={[d for d, _ in steps[:index]]}, "
                    f"未実行={[d for d, _ in steps[index + 1:]]}"
                )
                raise

        logger.info(f"破棄処理完了: server_id={record.server_id}")

    def _plan(self, record: StateRecord, state: Dict[str, Any]) -> List[Step]:
        terminate = self._terminate_step(record)
        # プライマリ削除時に state から server_id を外すため、接続は先に取得しておく
        connection = self.transport.connection(state)
        steps: List[Step] = []
        for attachment in record.volume_attachments:
            steps.append((
                f"detach {attachment.id}",
                functools.partial(self._detach, attachment.id, state),
            ))
        for volume in record.volumes:
            steps.append((
                f"delete {volume.id}",
                functools.partial(self._delete_volume, volume.id, state),
            ))
        steps.append((
            f"terminate {record.server_id}",
            functools.partial(self._terminate_primary, terminate, state),
        ))
        steps.append(("close connection", connection.close))
        return steps

    def _terminate_step(self, record: StateRecord) -> Callable[[], None]:
        server_id = record.server_id
        resource_type = record.primary_resource_type
        if resource_type == OCID_TYPE_INSTANCE:
            return functools.partial(self.client.terminate_instance, server_id)
        if resource_type == OCID_TYPE_DB_SYSTEM:
            return functools.partial(self.client.terminate_db_system, server_id)
        raise StateCorruptionError(
            "server_id からプライマリリソースの種別を判別できません", {"server_id": server_id}
        )

    def _terminate_primary(self, terminate: Callable[[], None], state: Dict[str, Any]) -> None:
        terminate()
        state.pop("server_id", None)
        state.pop("hostname", None)

    def _detach(self, attachment_id: str, state: Dict[str, Any]) -> None:
        self.client.detach_volume(attachment_id)
        if self.wait_for_completion:
            self._wait_gone(lifecycle.KIND_VOLUME_ATTACHMENT, attachment_id, "detached")
        _remove_entry(state, "volume_attachments", attachment_id)

    def _delete_volume(self, volume_id: str, state: Dict[str, Any]) -> None:
        self.client.delete_volume(volume_id)
        if self.wait_for_completion:
            self._wait_gone(lifecycle.KIND_VOLUME, volume_id, "terminated")
        _remove_entry(state, "volumes", volume_id)

    def _wait_gone(self, kind: str, resource_id: str, phase: str) -> None:
        try:
            self.client.poll_until(
                kind, resource_id, phase,
                max_interval_seconds=VOLUME_MAX_INTERVAL,
                max_wait_seconds=VOLUME_MAX_WAIT,
            )
        except oci.exceptions.ServiceError as e:
            # 既に削除済みで取得できない場合は完了とみなす
            if e.status != 404:
                raise
            logger.info(f"{kind} {resource_id} は既に存在しません")


def _remove_entry(state: Dict[str, Any], key: str, resource_id: str) -> None:
    state[key] = [entry for entry in state.get(key) or [] if entry.get("id") != resource_id]


def _primary_already_removed(state: Dict[str, Any]) -> bool:
    """プライマリ削除まで完了し、接続クローズだけが残っている state か"""
    if state.get("server_id") or "volumes" not in state:
        return False
    return not state.get("volumes") and not state.get("volume_attachments")
