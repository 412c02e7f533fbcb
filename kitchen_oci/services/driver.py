"""
OCI ドライバー

テストハーネスから呼び出されるエントリポイントです。
設定・SDK クライアント・トランスポートを組み合わせ、
create / destroy をそれぞれのオーケストレーターへ委譲します。
"""
import logging
from typing import Any, Dict, Optional, Union

from kitchen_oci.models.config import DriverConfig
from kitchen_oci.models.state import StateRecord
from kitchen_oci.services.oci_service import OCIService
from kitchen_oci.services.provisioning import ProvisioningOrchestrator
from kitchen_oci.services.request_builders import RequestBuilder
from kitchen_oci.services.resource_client import OCIResourceClient
from kitchen_oci.services.teardown import TeardownOrchestrator
from kitchen_oci.services.transport import Transport
from kitchen_oci.utils.error_handler import log_driver_errors
from kitchen_oci.utils.random_source import RandomSource

logger = logging.getLogger(__name__)


class OCIDriver:
    """OCI 上のコンピュートインスタンス/DBシステムを作成・破棄するドライバー"""

    def __init__(
        self,
        config: Union[DriverConfig, Dict[str, Any]],
        transport: Transport,
        client: Optional[OCIResourceClient] = None,
        random_source: Optional[RandomSource] = None,
        oci_service: Optional[OCIService] = None,
    ):
        self.config = config if isinstance(config, DriverConfig) else DriverConfig.from_dict(config)
        self.transport = transport
        self.builder = RequestBuilder(random_source)
        self._client = client
        self._oci_service = oci_service

    @property
    def client(self) -> OCIResourceClient:
        """SDK クライアント（初回アクセス時に生成）"""
        if self._client is None:
            service = self._oci_service or OCIService()
            self._client = service.create_resource_client()
        return self._client

    @log_driver_errors
    def create(self, state: Dict[str, Any]) -> StateRecord:
        """
        リソースを作成し state に記録

        Args:
            state: 呼び出し元が永続化する状態辞書

        Returns:
            StateRecord: 作成結果
        """
        logger.info(f"{self.config.instance_type} インスタンスを作成します: {self.config.instance_name}")
        orchestrator = ProvisioningOrchestrator(self.client, self.builder, self.transport)
        return orchestrator.provision(self.config, state)

    @log_driver_errors
    def destroy(self, state: Dict[str, Any]) -> None:
        """state に記録されたリソースを破棄"""
        logger.info(f"インスタンスを破棄します: {state.get('server_id')}")
        orchestrator = TeardownOrchestrator(
            self.client, self.transport, wait_for_completion=self.config.wait_for_teardown
        )
        orchestrator.teardown(state)
