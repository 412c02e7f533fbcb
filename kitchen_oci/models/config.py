"""
ドライバー設定のデータモデル定義

kitchen.yml の driver セクションに相当する宣言的な設定を表現する
Pydantic モデルを定義します。

主な機能:
- 配置情報（コンパートメント、可用性ドメイン、サブネット、シェイプ）の保持
- ブロックボリューム定義（名前、サイズ、アタッチ種別）の表現
- DBシステム固有パラメータの管理
- 辞書からの読み込みと ConfigurationError への変換
"""
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from kitchen_oci.utils.error_handler import ConfigurationError

INSTANCE_TYPE_COMPUTE = "compute"
INSTANCE_TYPE_DBAAS = "dbaas"

ATTACHMENT_TYPE_ISCSI = "iscsi"
ATTACHMENT_TYPE_PARAVIRTUAL = "paravirtual"

AttachmentType = Literal["iscsi", "paravirtual"]


class VolumeSpec(BaseModel):
    """
    ブロックボリューム定義

    Attributes:
        name (str): ボリュームの表示名
        size_in_gbs (int): ボリュームサイズ (GB)
        attachment_type (str): アタッチ種別。設定キーは ``type``
        vpus_per_gb (int): GBあたりのパフォーマンスユニット
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    name: str
    size_in_gbs: int = Field(gt=0)
    attachment_type: AttachmentType = Field(default=ATTACHMENT_TYPE_PARAVIRTUAL, alias="type")
    vpus_per_gb: int = 10


class DbaasSpec(BaseModel):
    """
    DBシステム固有パラメータ

    Attributes:
        cpu_core_count (int): CPU コア数
        db_name (str): データベース名
        pdb_name (Optional[str]): プラガブルデータベース名
        db_version (str): データベースバージョン
    """
    model_config = ConfigDict(frozen=True)

    cpu_core_count: Optional[int] = None
    db_name: Optional[str] = None
    pdb_name: Optional[str] = None
    db_version: Optional[str] = None


class DriverConfig(BaseModel):
    """
    ドライバー設定

    必須項目の欠落は Pydantic では検出せず、Request Builder が
    リクエスト構築時に ConfigurationError として報告します。
    """
    model_config = ConfigDict(frozen=True, extra="ignore")

    instance_type: Literal["compute", "dbaas"] = INSTANCE_TYPE_COMPUTE
    instance_name: str = "kitchen"
    hostname_prefix: Optional[str] = None

    # 配置情報
    compartment_id: Optional[str] = None
    availability_domain: Optional[str] = None
    subnet_id: Optional[str] = None
    shape: Optional[str] = None
    image_id: Optional[str] = None
    nsg_ids: List[str] = []

    boot_volume_size_in_gbs: Optional[int] = None
    ssh_keypath: str = "~/.ssh/id_rsa.pub"
    custom_metadata: Dict[str, str] = {}
    freeform_tags: Dict[str, str] = {}
    defined_tags: Dict[str, Dict[str, Any]] = {}

    volumes: List[VolumeSpec] = []
    dbaas: Optional[DbaasSpec] = None

    use_private_ip: bool = True
    wait_for_teardown: bool = False

    @model_validator(mode="after")
    def _check_primary_resource(self) -> "DriverConfig":
        if self.instance_type == INSTANCE_TYPE_DBAAS and self.volumes:
            raise ValueError("dbaas インスタンスにはボリュームを指定できません")
        return self

    @property
    def is_dbaas(self) -> bool:
        return self.instance_type == INSTANCE_TYPE_DBAAS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DriverConfig":
        """
        辞書から設定を生成

        Args:
            data: driver セクションの内容

        Returns:
            DriverConfig: 検証済みの設定

        Raises:
            ConfigurationError: 値の型や組み合わせが不正な場合
        """
        try:
            return cls.model_validate(data)
        except ValidationError as e:
            raise ConfigurationError(
                "ドライバー設定が不正です",
                {"errors": "; ".join(_format_error(err) for err in e.errors())},
            ) from e


def _format_error(err: Dict[str, Any]) -> str:
    location = ".".join(str(part) for part in err.get("loc", ()))
    return f"{location}: {err.get('msg')}" if location else str(err.get("msg"))
