"""
プロビジョニングオーケストレーター

プライマリリソース（コンピュートインスタンスまたはDBシステム）を作成し、
稼働状態になるまで待機、アドレスを解決した上で、要求されたボリュームを
設定順に作成・アタッチします。

呼び出し元の state 辞書へは処理の進行に合わせて逐次書き込みます。
途中で失敗した場合でも、その時点までに作成されたリソースは
すべて state に記録されており、破棄処理で後始末できます。
自動ロールバックは行いません。
"""
import logging
import os
from typing import Any, Dict

from kitchen_oci.models.config import ATTACHMENT_TYPE_ISCSI, DriverConfig, VolumeSpec
from kitchen_oci.models.state import (
    AttachmentSummary,
    IscsiAttachment,
    ParavirtualAttachment,
    StateRecord,
    VolumeSummary,
)
from kitchen_oci.services import lifecycle
from kitchen_oci.services.request_builders import RequestBuilder
from kitchen_oci.services.resource_client import OCIResourceClient
from kitchen_oci.services.transport import Transport
from kitchen_oci.utils.error_handler import DriverError

logger = logging.getLogger(__name__)

# ポーリング設定（秒）。DBシステムはプロビジョニングに時間がかかるため長めに取る
COMPUTE_MAX_INTERVAL = float(os.environ.get("KITCHEN_OCI_COMPUTE_MAX_INTERVAL", "30"))
COMPUTE_MAX_WAIT = float(os.environ.get("KITCHEN_OCI_COMPUTE_MAX_WAIT", "1200"))
DBAAS_MAX_INTERVAL = float(os.environ.get("KITCHEN_OCI_DBAAS_MAX_INTERVAL", "900"))
DBAAS_MAX_WAIT = float(os.environ.get("KITCHEN_OCI_DBAAS_MAX_WAIT", "21600"))
VOLUME_MAX_INTERVAL = float(os.environ.get("KITCHEN_OCI_VOLUME_MAX_INTERVAL", "30"))
VOLUME_MAX_WAIT = float(os.environ.get("KITCHEN_OCI_VOLUME_MAX_WAIT", "1200"))


class ProvisioningOrchestrator:
    """作成処理のオーケストレーター"""

    def __init__(self, client: OCIResourceClient, builder: RequestBuilder, transport: Transport):
        self.client = client
        self.builder = builder
        self.transport = transport

    def provision(self, config: DriverConfig, state: Dict[str, Any]) -> StateRecord:
        """
        設定に従ってリソースを作成

        Args:
            config: ドライバー設定
            state: 呼び出し元が永続化する状態辞書（逐次更新される）

        Returns:
            StateRecord: 作成結果

        Raises:
            ConfigurationError: 設定不備（プロバイダー呼び出し前に検出）
            ProvisionTimeoutError: ライフサイクル待機がタイムアウトした場合
        """
        if config.is_dbaas:
            self._provision_db_system(config, state)
        else:
            self._provision_compute(config, state)

        logger.info(f"接続待機: {state['hostname']}")
        self.transport.connection(state).wait_until_ready()

        record = StateRecord.from_state(state)
        logger.info(
            f"プロビジョニング完了: server_id={record.server_id}, "
            f"volumes={len(record.volumes)}, attachments={len(record.volume_attachments)}"
        )
        return record

    def _begin_record(self, state: Dict[str, Any], server_id: str) -> None:
        state["server_id"] = server_id
        state["volume_attachments"] = []
        state["volumes"] = []

    # ------------------------------------------------------------------
    # Compute
    # ------------------------------------------------------------------

    def _provision_compute(self, config: DriverConfig, state: Dict[str, Any]) -> None:
        hostname = self.builder.generate_hostname(config)
        details = self.builder.build_launch_instance_details(config, hostname)

        instance_id = self.client.create_instance(details)
        self._begin_record(state, instance_id)

        self.client.poll_until(
            lifecycle.KIND_INSTANCE, instance_id, "running",
            max_interval_seconds=COMPUTE_MAX_INTERVAL,
            max_wait_seconds=COMPUTE_MAX_WAIT,
        )
        state["hostname"] = self._instance_address(config, instance_id)

        # 出力順序を保証するため、ボリュームは設定順に1つずつ処理する
        for spec in config.volumes:
            self._create_and_attach_volume(config, spec, instance_id, state)

    def _instance_address(self, config: DriverConfig, instance_id: str) -> str:
        attachments = self.client.list_vnic_attachments(config.compartment_id, instance_id)
        if not attachments:
            raise DriverError("インスタンスに VNIC がアタッチされていません", {"server_id": instance_id})

        vnics = [self.client.get_vnic(a.vnic_id) for a in attachments]
        primary = next((v for v in vnics if v.is_primary), vnics[0])
        return self._select_address(config, primary)

    def _select_address(self, config: DriverConfig, vnic) -> str:
        if not config.use_private_ip and vnic.public_ip:
            return vnic.public_ip
        return vnic.private_ip

    # ------------------------------------------------------------------
    # ボリューム
    # ------------------------------------------------------------------

    def _create_and_attach_volume(
        self, config: DriverConfig, spec: VolumeSpec, instance_id: str, state: Dict[str, Any]
    ) -> None:
        volume_id = self.client.create_volume(self.builder.build_create_volume_details(config, spec))
        state["volumes"].append(
            VolumeSummary(
                id=volume_id, display_name=spec.name, attachment_type=spec.attachment_type
            ).to_state()
        )
        self.client.poll_until(
            lifecycle.KIND_VOLUME, volume_id, "available",
            max_interval_seconds=VOLUME_MAX_INTERVAL,
            max_wait_seconds=VOLUME_MAX_WAIT,
        )

        attach_details = self.builder.build_attach_volume_details(
            spec.attachment_type, volume_id, instance_id
        )
        attachment_id = self.client.attach_volume(attach_details)
        # 待機中に失敗しても破棄できるよう、識別子だけ先に記録する
        state["volume_attachments"].append({"id": attachment_id})

        attachment = self.client.poll_until(
            lifecycle.KIND_VOLUME_ATTACHMENT, attachment_id, "attached",
            max_interval_seconds=VOLUME_MAX_INTERVAL,
            max_wait_seconds=VOLUME_MAX_WAIT,
        )
        summary = self._attachment_summary(spec.attachment_type, attachment_id, attachment)
        state["volume_attachments"][-1] = summary.to_state()
        logger.info(f"ボリューム {spec.name} ({volume_id}) を {spec.attachment_type} でアタッチしました")

    def _attachment_summary(self, attachment_type: str, attachment_id: str, attachment) -> AttachmentSummary:
        if attachment_type == ATTACHMENT_TYPE_ISCSI:
            return IscsiAttachment(
                id=attachment_id,
                iqn=attachment.iqn,
                iqn_ipv4=attachment.ipv4,
                port=attachment.port,
            )
        return ParavirtualAttachment(id=attachment_id)

    # ------------------------------------------------------------------
    # DBシステム
    # ------------------------------------------------------------------

    def _provision_db_system(self, config: DriverConfig, state: Dict[str, Any]) -> None:
        hostname = self.builder.generate_hostname(config)
        details = self.builder.build_launch_db_system_details(config, hostname)

        db_system_id = self.client.launch_db_system(details)
        self._begin_record(state, db_system_id)

        self.client.poll_until(
            lifecycle.KIND_DB_SYSTEM, db_system_id, "available",
            max_interval_seconds=DBAAS_MAX_INTERVAL,
            max_wait_seconds=DBAAS_MAX_WAIT,
        )

        nodes = self.client.list_db_nodes(config.compartment_id, db_system_id)
        if not nodes:
            raise DriverError("DBシステムに DB ノードがありません", {"server_id": db_system_id})
        vnic = self.client.get_vnic(nodes[0].vnic_id)
        state["hostname"] = self._select_address(config, vnic)
