"""
Request Builder

宣言的なドライバー設定から OCI SDK のリクエストモデルを構築します。
ランダム値はすべて注入された RandomSource から取得するため、
同じ入力と乱数源からは常に同じリクエストが得られます。
"""
import logging
import os
import re
from typing import Dict, Optional

from oci.core.models import (
    AttachIScsiVolumeDetails,
    AttachParavirtualizedVolumeDetails,
    CreateVnicDetails,
    CreateVolumeDetails,
    InstanceSourceViaImageDetails,
    LaunchInstanceDetails,
)
from oci.database.models import (
    CreateDatabaseDetails,
    CreateDbHomeDetails,
    DbBackupConfig,
    DbSystem,
    LaunchDbSystemDetails,
)

from kitchen_oci.models.config import ATTACHMENT_TYPE_ISCSI, DriverConfig, VolumeSpec
from kitchen_oci.utils.error_handler import ConfigurationError
from kitchen_oci.utils.random_source import RandomSource

logger = logging.getLogger(__name__)

KITCHEN_TAG = {"kitchen": "true"}

ISCSI_ATTACHMENT_NAME = "iSCSIAttachment"
PARAVIRTUAL_ATTACHMENT_NAME = "paravirtAttachment"

# DBシステムの固定パラメータ
DB_CHARACTER_SET = "AL32UTF8"
DB_NCHARACTER_SET = "AL16UTF16"
DB_INITIAL_STORAGE_GB = 256
DB_NODE_COUNT = 1

PLACEMENT_FIELDS = ("compartment_id", "availability_domain", "subnet_id", "shape")
DBAAS_FIELDS = ("cpu_core_count", "db_name", "db_version")

HOSTNAME_SUFFIX_LENGTH = 6
HOSTNAME_MAX_LENGTH = 63
DEFAULT_HOSTNAME_PREFIX = "kitchen"
_INVALID_HOSTNAME_CHARS = re.compile(r"[^a-z0-9-]")


class RequestBuilder:
    """ドライバー設定から OCI リクエストを構築するビルダー"""

    def __init__(self, random_source: Optional[RandomSource] = None):
        self.random = random_source or RandomSource()

    # ------------------------------------------------------------------
    # 共通
    # ------------------------------------------------------------------

    def _require(self, config: DriverConfig, fields) -> None:
        missing = [f for f in fields if not getattr(config, f)]
        if missing:
            raise ConfigurationError(
                "必須の設定項目がありません", {"missing": ", ".join(missing)}
            )

    def _prefix(self, config: DriverConfig) -> str:
        return config.hostname_prefix or config.instance_name

    def read_public_key(self, config: DriverConfig) -> str:
        """
        公開鍵ファイルの先頭行を読み込む

        Raises:
            ConfigurationError: ファイルを読み込めない、または空の場合
        """
        path = os.path.expanduser(config.ssh_keypath)
        try:
            with open(path, "r", encoding="utf-8") as f:
                lines = f.readlines()
        except OSError as e:
            raise ConfigurationError("公開鍵ファイルを読み込めません", {"ssh_keypath": path}) from e
        if not lines or not lines[0].strip():
            raise ConfigurationError("公開鍵ファイルが空です", {"ssh_keypath": path})
        return lines[0].strip()

    def _freeform_tags(self, config: DriverConfig) -> Dict[str, str]:
        return {**config.freeform_tags, **KITCHEN_TAG}

    def generate_hostname(self, config: DriverConfig) -> str:
        """
        ホスト名を生成（<prefix>-<ランダム6文字>）

        OCI のホスト名ラベルとして使える文字（英小文字・数字・ハイフン）に正規化し、
        DNS ラベルの上限（63文字）に収まるよう接頭辞を切り詰めます。
        """
        max_prefix = HOSTNAME_MAX_LENGTH - HOSTNAME_SUFFIX_LENGTH - 1
        prefix = _INVALID_HOSTNAME_CHARS.sub("-", self._prefix(config).lower()).strip("-")
        prefix = prefix[:max_prefix].rstrip("-") or DEFAULT_HOSTNAME_PREFIX
        return f"{prefix}-{self.random.random_string(HOSTNAME_SUFFIX_LENGTH)}"

    # ------------------------------------------------------------------
    # Compute
    # ------------------------------------------------------------------

    def build_launch_instance_details(self, config: DriverConfig, hostname: str) -> LaunchInstanceDetails:
        """
        コンピュートインスタンス作成リクエストを構築

        Args:
            config: ドライバー設定
            hostname: 生成済みのホスト名（表示名とホスト名ラベルに使用）

        Returns:
            LaunchInstanceDetails: インスタンス作成リクエスト

        Raises:
            ConfigurationError: 配置情報または image_id が欠落している場合
        """
        self._require(config, PLACEMENT_FIELDS + ("image_id",))

        metadata = dict(config.custom_metadata)
        metadata["ssh_authorized_keys"] = self.read_public_key(config)

        return LaunchInstanceDetails(
            availability_domain=config.availability_domain,
            compartment_id=config.compartment_id,
            display_name=hostname,
            source_details=InstanceSourceViaImageDetails(
                image_id=config.image_id,
                boot_volume_size_in_gbs=config.boot_volume_size_in_gbs,
            ),
            shape=config.shape,
            create_vnic_details=CreateVnicDetails(
                assign_public_ip=False,
                display_name=hostname,
                hostname_label=hostname,
                nsg_ids=list(config.nsg_ids),
                subnet_id=config.subnet_id,
            ),
            freeform_tags=self._freeform_tags(config),
            defined_tags=dict(config.defined_tags),
            metadata=metadata,
        )

    # ------------------------------------------------------------------
    # DBシステム
    # ------------------------------------------------------------------

    def build_launch_db_system_details(self, config: DriverConfig, hostname: str) -> LaunchDbSystemDetails:
        """
        DBシステム作成リクエストを構築

        管理者パスワード、DBホーム表示名、クラスタ名、表示名は乱数源から生成します。

        Raises:
            ConfigurationError: 配置情報または dbaas パラメータが欠落している場合
        """
        self._require(config, PLACEMENT_FIELDS)
        if config.dbaas is None:
            raise ConfigurationError("dbaas インスタンスには dbaas 設定が必要です")
        missing = [f for f in DBAAS_FIELDS if not getattr(config.dbaas, f)]
        if missing:
            raise ConfigurationError(
                "dbaas の必須設定項目がありません", {"missing": ", ".join(missing)}
            )

        dbaas = config.dbaas
        prefix = self._prefix(config)

        database = CreateDatabaseDetails(
            admin_password=self.random.random_password(),
            character_set=DB_CHARACTER_SET,
            db_name=dbaas.db_name,
            db_workload=CreateDatabaseDetails.DB_WORKLOAD_OLTP,
            ncharacter_set=DB_NCHARACTER_SET,
            pdb_name=dbaas.pdb_name,
            db_backup_config=DbBackupConfig(auto_backup_enabled=False),
        )
        db_home = CreateDbHomeDetails(
            database=database,
            db_version=dbaas.db_version,
            display_name=f"dbhome{self.random.random_number(10)}",
        )

        details = LaunchDbSystemDetails(
            availability_domain=config.availability_domain,
            compartment_id=config.compartment_id,
            cpu_core_count=dbaas.cpu_core_count,
            database_edition=DbSystem.DATABASE_EDITION_ENTERPRISE_EDITION,
            db_home=db_home,
            display_name=f"{prefix}-{self.random.random_string(4)}-{self.random.random_number(2)}",
            hostname=hostname,
            shape=config.shape,
            ssh_public_keys=[self.read_public_key(config)],
            cluster_name=f"{prefix}-{self.random.random_string(5)}",
            initial_data_storage_size_in_gb=DB_INITIAL_STORAGE_GB,
            node_count=DB_NODE_COUNT,
            license_model=DbSystem.LICENSE_MODEL_BRING_YOUR_OWN_LICENSE,
            subnet_id=config.subnet_id,
            freeform_tags=self._freeform_tags(config),
            defined_tags=dict(config.defined_tags),
        )
        if config.nsg_ids:
            details.nsg_ids = list(config.nsg_ids)
        return details

    # ------------------------------------------------------------------
    # ボリューム
    # ------------------------------------------------------------------

    def build_create_volume_details(self, config: DriverConfig, spec: VolumeSpec) -> CreateVolumeDetails:
        self._require(config, ("compartment_id", "availability_domain"))
        return CreateVolumeDetails(
            compartment_id=config.compartment_id,
            availability_domain=config.availability_domain,
            display_name=spec.name,
            size_in_gbs=spec.size_in_gbs,
            vpus_per_gb=spec.vpus_per_gb,
        )

    def build_attach_volume_details(self, attachment_type: str, volume_id: str, instance_id: str):
        """アタッチ種別に応じたアタッチリクエストを構築"""
        if attachment_type == ATTACHMENT_TYPE_ISCSI:
            return AttachIScsiVolumeDetails(
                display_name=ISCSI_ATTACHMENT_NAME,
                volume_id=volume_id,
                instance_id=instance_id,
            )
        return AttachParavirtualizedVolumeDetails(
            display_name=PARAVIRTUAL_ATTACHMENT_NAME,
            volume_id=volume_id,
            instance_id=instance_id,
        )
