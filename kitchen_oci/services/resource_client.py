"""
Resource Client Facade

OCI SDK クライアント（Compute / Blockstorage / VirtualNetwork / Database）を
リソース種別ごとの型付き操作にまとめた薄いファサードです。

- 作成・アタッチ・削除系の呼び出しはリトライしません（重複リソース作成の防止）
- 取得系（get_* / list_*）のみ一時的なエラーに対して指数バックオフでリトライします
- poll_until は任意のリソースを目標フェーズまで待機させる共通プリミティブです
"""
import logging
import os
import random
import time
from typing import Any, Callable, Dict, List, Optional

import oci

from kitchen_oci.services import lifecycle
from kitchen_oci.services.polling import poll_until

logger = logging.getLogger(__name__)

# 一時エラー対応のリトライ設定（取得系のみ）
OCI_API_MAX_RETRIES = int(os.environ.get("OCI_API_MAX_RETRIES", "5"))
OCI_API_BASE_DELAY = float(os.environ.get("OCI_API_BASE_DELAY", "1.0"))  # 秒
OCI_API_MAX_DELAY = float(os.environ.get("OCI_API_MAX_DELAY", "60.0"))   # 秒
OCI_API_JITTER = float(os.environ.get("OCI_API_JITTER", "0.1"))          # ランダム遅延の範囲


class OCIResourceClient:
    def __init__(
        self,
        compute_client,
        blockstorage_client,
        network_client,
        database_client,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.compute = compute_client
        self.blockstorage = blockstorage_client
        self.network = network_client
        self.database = database_client
        self._sleep = sleep
        self._clock = clock
        self._getters: Dict[str, Callable[[str], Any]] = {
            lifecycle.KIND_INSTANCE: self.get_instance,
            lifecycle.KIND_DB_SYSTEM: self.get_db_system,
            lifecycle.KIND_VOLUME: self.get_volume,
            lifecycle.KIND_VOLUME_ATTACHMENT: self.get_volume_attachment,
        }

    # ------------------------------------------------------------------
    # リトライ
    # ------------------------------------------------------------------

    def _is_transient_error(self, error: Exception) -> bool:
        """
        エラーが一時的なもの（リトライ可能）かどうかを判定

        Args:
            error: 発生した例外

        Returns:
            bool: 429 / 5xx / 通信エラーの場合はTrue
        """
        if isinstance(error, oci.exceptions.ServiceError):
            return error.status == 429 or error.status >= 500
        return isinstance(error, oci.exceptions.RequestException)

    def _calculate_backoff_delay(self, attempt: int, is_rate_limit: bool = False) -> float:
        """
        指数バックオフ遅延時間を計算

        Args:
            attempt: 試行回数 (0から開始)
            is_rate_limit: レート制限エラーかどうか

        Returns:
            float: 待機時間（秒）
        """
        # レート制限の場合はより長い待機時間
        base_multiplier = 3.0 if is_rate_limit else 2.0
        delay = min(OCI_API_BASE_DELAY * (base_multiplier ** attempt), OCI_API_MAX_DELAY)

        # ランダムなジッターを追加（スロットリング回避）
        jitter = random.uniform(-OCI_API_JITTER, OCI_API_JITTER) * delay
        return max(0.1, delay + jitter)

    def _retry_read(self, func, *args, deadline: Optional[float] = None, **kwargs) -> Any:
        """
        取得系 API 呼び出しにリトライを適用し、レスポンスの data を返す

        deadline（clock 基準の時刻）を指定した場合、待機はその時刻を越えず、
        期限を過ぎた時点でリトライを打ち切ります。

        Raises:
            oci.exceptions.ServiceError: リトライ不可能なエラー、または最大リトライ回数に達した場合
        """
        for attempt in range(OCI_API_MAX_RETRIES):
            try:
                result = func(*args, **kwargs)
                if attempt > 0:
                    logger.info(f"OCI API呼び出し成功（リトライ {attempt}回目後）")
                return result.data
            except Exception as e:
                if not self._is_transient_error(e) or attempt == OCI_API_MAX_RETRIES - 1:
                    raise

                is_rate_limit = getattr(e, "status", None) == 429
                delay = self._calculate_backoff_delay(attempt, is_rate_limit)
                if deadline is not None:
                    remaining = deadline - self._clock()
                    if remaining <= 0:
                        raise
                    delay = min(delay, remaining)
                error_type = "レート制限" if is_rate_limit else "一時エラー"
                logger.warning(
                    f"OCI API {error_type}（リトライ {attempt + 1}/{OCI_API_MAX_RETRIES}）: "
                    f"{delay:.1f}秒後に再試行 - {str(e)[:100]}"
                )
                self._sleep(delay)

    # ------------------------------------------------------------------
    # Compute
    # ------------------------------------------------------------------

    def create_instance(self, details: oci.core.models.LaunchInstanceDetails) -> str:
        instance = self.compute.launch_instance(details).data
        logger.info(f"インスタンス作成リクエスト受付: {instance.id}")
        return instance.id

    def get_instance(self, instance_id: str, deadline: Optional[float] = None) -> oci.core.models.Instance:
        return self._retry_read(self.compute.get_instance, instance_id, deadline=deadline)

    def list_vnic_attachments(self, compartment_id: str, instance_id: str) -> List[oci.core.models.VnicAttachment]:
        return self._retry_read(
            self.compute.list_vnic_attachments, compartment_id, instance_id=instance_id
        )

    def terminate_instance(self, instance_id: str) -> None:
        self.compute.terminate_instance(instance_id)
        logger.info(f"インスタンス削除リクエスト送信: {instance_id}")

    # ------------------------------------------------------------------
    # Volume attachment
    # ------------------------------------------------------------------

    def attach_volume(self, details: oci.core.models.AttachVolumeDetails) -> str:
        attachment = self.compute.attach_volume(details).data
        logger.info(f"ボリュームアタッチリクエスト受付: {attachment.id} (volume={details.volume_id})")
        return attachment.id

    def get_volume_attachment(self, attachment_id: str, deadline: Optional[float] = None) -> oci.core.models.VolumeAttachment:
        return self._retry_read(self.compute.get_volume_attachment, attachment_id, deadline=deadline)

    def detach_volume(self, attachment_id: str) -> None:
        self.compute.detach_volume(attachment_id)
        logger.info(f"ボリュームデタッチリクエスト送信: {attachment_id}")

    # ------------------------------------------------------------------
    # Network
    # ------------------------------------------------------------------

    def get_vnic(self, vnic_id: str) -> oci.core.models.Vnic:
        return self._retry_read(self.network.get_vnic, vnic_id)

    # ------------------------------------------------------------------
    # Blockstorage
    # ------------------------------------------------------------------

    def create_volume(self, details: oci.core.models.CreateVolumeDetails) -> str:
        volume = self.blockstorage.create_volume(details).data
        logger.info(f"ボリューム作成リクエスト受付: {volume.id} ({details.display_name})")
        return volume.id

    def get_volume(self, volume_id: str, deadline: Optional[float] = None) -> oci.core.models.Volume:
        return self._retry_read(self.blockstorage.get_volume, volume_id, deadline=deadline)

    def delete_volume(self, volume_id: str) -> None:
        self.blockstorage.delete_volume(volume_id)
        logger.info(f"ボリューム削除リクエスト送信: {volume_id}")

    # ------------------------------------------------------------------
    # Database
    # ------------------------------------------------------------------

    def launch_db_system(self, details: oci.database.models.LaunchDbSystemDetails) -> str:
        db_system = self.database.launch_db_system(details).data
        logger.info(f"DBシステム作成リクエスト受付: {db_system.id}")
        return db_system.id

    def get_db_system(self, db_system_id: str, deadline: Optional[float] = None) -> oci.database.models.DbSystem:
        return self._retry_read(self.database.get_db_system, db_system_id, deadline=deadline)

    def list_db_nodes(self, compartment_id: str, db_system_id: str) -> List[oci.database.models.DbNodeSummary]:
        return self._retry_read(
            self.database.list_db_nodes, compartment_id, db_system_id=db_system_id
        )

    def terminate_db_system(self, db_system_id: str) -> None:
        self.database.terminate_db_system(db_system_id)
        logger.info(f"DBシステム削除リクエスト送信: {db_system_id}")

    # ------------------------------------------------------------------
    # ポーリング
    # ------------------------------------------------------------------

    def poll_until(
        self,
        kind: str,
        resource_id: str,
        phase: str,
        max_interval_seconds: float,
        max_wait_seconds: float,
    ) -> Any:
        """
        リソースが論理フェーズに到達するまで待機

        Args:
            kind: リソース種別（lifecycle.KIND_*）
            resource_id: 対象リソースの OCID
            phase: 論理フェーズ名（running, available, attached など）
            max_interval_seconds: ポーリング間隔の上限（秒）
            max_wait_seconds: 待機時間の上限（秒）

        Returns:
            目標フェーズに到達したリソース

        Raises:
            UnknownPhaseError: 種別に定義されていないフェーズの場合
            ProvisionTimeoutError: 待機時間の上限を超えた場合
        """
        target_state = lifecycle.resolve_phase(kind, phase)
        getter = self._getters[kind]
        logger.info(f"{kind} {resource_id} の {target_state} 到達を待機（最大{max_wait_seconds:.0f}秒）")
        # 取得時のリトライ待機もポーリングの期限内に収める
        deadline = self._clock() + max_wait_seconds
        return poll_until(
            lambda: getter(resource_id, deadline=deadline),
            target_state,
            kind=kind,
            resource_id=resource_id,
            max_interval_seconds=max_interval_seconds,
            max_wait_seconds=max_wait_seconds,
            failure_states=lifecycle.failure_states(kind, target_state),
            sleep=self._sleep,
            clock=self._clock,
        )
