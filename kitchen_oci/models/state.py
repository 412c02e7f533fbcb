"""
State Record のデータモデル定義

プロビジョニング結果として永続化され、破棄処理で読み込まれる
唯一の状態情報を表現します。破棄処理は元の設定を参照せず、
このレコードだけで完結する必要があります。

レイアウト:
    {
        "hostname": str,
        "server_id": str,
        "volume_attachments": [{"id", "iqn"?, "iqn_ipv4"?, "port"?}],
        "volumes": [{"id", "display_name", "attachment_type"}]
    }
"""
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ValidationError

from kitchen_oci.models.config import ATTACHMENT_TYPE_PARAVIRTUAL, AttachmentType
from kitchen_oci.utils.error_handler import StateCorruptionError

# OCID のリソース種別セグメント
OCID_TYPE_INSTANCE = "instance"
OCID_TYPE_DB_SYSTEM = "dbsystem"


class VolumeSummary(BaseModel):
    """作成済みボリュームの要約"""
    id: str
    display_name: Optional[str] = None
    attachment_type: AttachmentType = ATTACHMENT_TYPE_PARAVIRTUAL

    def to_state(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "display_name": self.display_name,
            "attachment_type": self.attachment_type,
        }


class IscsiAttachment(BaseModel):
    """iSCSI アタッチメントの要約（接続情報付き）"""
    id: str
    iqn: Optional[str] = None
    iqn_ipv4: Optional[str] = None
    port: Optional[int] = None

    def to_state(self) -> Dict[str, Any]:
        return {"id": self.id, "iqn": self.iqn, "iqn_ipv4": self.iqn_ipv4, "port": self.port}


class ParavirtualAttachment(BaseModel):
    """準仮想化アタッチメントの要約（識別子のみ）"""
    id: str

    def to_state(self) -> Dict[str, Any]:
        return {"id": self.id}


AttachmentSummary = Union[IscsiAttachment, ParavirtualAttachment]


def parse_attachment(data: Dict[str, Any]) -> AttachmentSummary:
    """永続化されたアタッチメント辞書を種別ごとのモデルに変換"""
    if not isinstance(data, dict):
        raise StateCorruptionError("volume_attachments の要素が辞書ではありません", {"entry": data})
    if "iqn" in data:
        return IscsiAttachment.model_validate(data)
    return ParavirtualAttachment.model_validate(data)


def parse_volume(data: Dict[str, Any]) -> VolumeSummary:
    if not isinstance(data, dict):
        raise StateCorruptionError("volumes の要素が辞書ではありません", {"entry": data})
    return VolumeSummary.model_validate(data)


def ocid_resource_type(ocid: str) -> Optional[str]:
    """OCID からリソース種別セグメントを取り出す（ocid1.<type>.<realm>...）"""
    parts = ocid.split(".")
    if len(parts) < 3 or parts[0] != "ocid1":
        return None
    return parts[1]


class StateRecord(BaseModel):
    """
    永続化される State Record

    Attributes:
        hostname (Optional[str]): 到達可能なホスト名またはアドレス
        server_id (str): プライマリリソース（インスタンス/DBシステム）の OCID
        volume_attachments (List[AttachmentSummary]): アタッチメント要約（作成順）
        volumes (List[VolumeSummary]): ボリューム要約（作成順）
    """
    hostname: Optional[str] = None
    server_id: str
    volume_attachments: List[AttachmentSummary] = []
    volumes: List[VolumeSummary] = []

    @property
    def primary_resource_type(self) -> Optional[str]:
        return ocid_resource_type(self.server_id)

    def to_state(self) -> Dict[str, Any]:
        """呼び出し元が永続化する辞書形式に変換"""
        return {
            "hostname": self.hostname,
            "server_id": self.server_id,
            "volume_attachments": [a.to_state() for a in self.volume_attachments],
            "volumes": [v.to_state() for v in self.volumes],
        }

    @classmethod
    def from_state(cls, state: Dict[str, Any]) -> "StateRecord":
        """
        永続化された辞書から State Record を復元

        Args:
            state: 呼び出し元が保持している状態辞書

        Returns:
            StateRecord: 復元したレコード

        Raises:
            StateCorruptionError: server_id が欠落している、または形式が不正な場合
        """
        server_id = state.get("server_id")
        if not server_id:
            raise StateCorruptionError("State Record に server_id がありません")

        try:
            return cls(
                hostname=state.get("hostname"),
                server_id=server_id,
                volume_attachments=[
                    parse_attachment(a) for a in (state.get("volume_attachments") or [])
                ],
                volumes=[parse_volume(v) for v in (state.get("volumes") or [])],
            )
        except ValidationError as e:
            raise StateCorruptionError(
                "State Record の形式が不正です", {"server_id": server_id, "errors": e.error_count()}
            ) from e
