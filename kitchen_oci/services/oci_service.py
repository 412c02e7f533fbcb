"""
OCI SDK 設定読み込みとクライアント生成

.env と OCI 設定ファイル（~/.oci/config）から SDK 設定を読み込み、
Resource Client Facade が使用する各種 SDK クライアントを生成します。
"""
import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import find_dotenv, load_dotenv
import oci

from kitchen_oci.services.resource_client import OCIResourceClient
from kitchen_oci.utils.error_handler import ConfigurationError

logger = logging.getLogger(__name__)

# .envファイルを読み込む
project_root = Path(__file__).parent.parent.parent
env_path = project_root / ".env"
if env_path.exists():
    load_dotenv(env_path)
elif find_dotenv(usecwd=True):
    load_dotenv(find_dotenv(usecwd=True))


def _env_flag(name: str, default: str = "false") -> bool:
    return os.environ.get(name, default).lower() in ("true", "1", "yes")


class OCIService:
    """OCI 認証設定の読み込みと SDK クライアント生成を担うサービス"""

    def __init__(
        self,
        config_file: Optional[str] = None,
        profile: Optional[str] = None,
        region: Optional[str] = None,
        use_instance_principals: Optional[bool] = None,
    ):
        # 環境変数から設定ファイルのパスを取得、デフォルトは ~/.oci/config
        self.config_file = config_file or os.environ.get(
            "OCI_CONFIG_FILE", os.path.expanduser("~/.oci/config")
        )
        self.profile = profile or os.environ.get("OCI_PROFILE", "DEFAULT")
        self.region = region or os.environ.get("OCI_REGION")
        if use_instance_principals is None:
            use_instance_principals = _env_flag("OCI_USE_INSTANCE_PRINCIPALS")
        self.use_instance_principals = use_instance_principals
        self._oci_config: Optional[Dict[str, Any]] = None
        self._signer = None

    def get_oci_config(self) -> Dict[str, Any]:
        """
        OCI SDK 設定を取得

        Returns:
            Dict[str, Any]: SDK クライアントに渡す設定辞書

        Raises:
            ConfigurationError: 設定ファイルが存在しない、またはプロファイルが不正な場合
        """
        if self._oci_config is not None:
            return self._oci_config

        if self.use_instance_principals:
            # インスタンスプリンシパル認証ではリージョンのみを設定に持つ
            self._signer = oci.auth.signers.InstancePrincipalsSecurityTokenSigner()
            self._oci_config = {"region": self.region or self._signer.region}
            logger.info(f"インスタンスプリンシパル認証を使用: region={self._oci_config['region']}")
            return self._oci_config

        try:
            config = oci.config.from_file(
                file_location=self.config_file, profile_name=self.profile
            )
        except (
            oci.exceptions.ConfigFileNotFound,
            oci.exceptions.ProfileNotFound,
            oci.exceptions.InvalidConfig,
        ) as e:
            raise ConfigurationError(
                "OCI設定を読み込めません",
                {"config_file": self.config_file, "profile": self.profile, "error": str(e)},
            ) from e

        # Regionは環境変数を優先
        if self.region:
            config["region"] = self.region
        try:
            oci.config.validate_config(config)
        except oci.exceptions.InvalidConfig as e:
            raise ConfigurationError(
                "OCI設定が不正です", {"config_file": self.config_file, "profile": self.profile, "error": str(e)}
            ) from e
        self._oci_config = config
        logger.info(f"OCI設定を読み込みました: config={self.config_file}, profile={self.profile}, region={config.get('region')}")
        return self._oci_config

    def _client_kwargs(self) -> Dict[str, Any]:
        kwargs: Dict[str, Any] = {
            "config": self.get_oci_config(),
            # 作成系 API は重複課金を避けるため SDK 側でもリトライしない
            "retry_strategy": oci.retry.NoneRetryStrategy(),
        }
        if self._signer is not None:
            kwargs["signer"] = self._signer
        return kwargs

    def create_resource_client(self) -> OCIResourceClient:
        """
        Resource Client Facade を生成

        Returns:
            OCIResourceClient: Compute / Blockstorage / VirtualNetwork / Database クライアントをまとめたファサード
        """
        kwargs = self._client_kwargs()
        return OCIResourceClient(
            compute_client=oci.core.ComputeClient(**kwargs),
            blockstorage_client=oci.core.BlockstorageClient(**kwargs),
            network_client=oci.core.VirtualNetworkClient(**kwargs),
            database_client=oci.database.DatabaseClient(**kwargs),
        )
