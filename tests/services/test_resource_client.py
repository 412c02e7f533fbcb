"""Tests for OCIResourceClient."""

from unittest.mock import MagicMock

import oci
import pytest
from oci.core.models import CreateVolumeDetails, Instance, LaunchInstanceDetails

from conftest import (
    COMPARTMENT_OCID,
    DB_SYSTEM_OCID,
    INSTANCE_OCID,
    ISCSI_VOLUME_OCID,
    VNIC_OCID,
    _resp,
)
from kitchen_oci.services import resource_client as resource_client_module
from kitchen_oci.services.resource_client import OCIResourceClient
from kitchen_oci.utils.error_handler import ProvisionTimeoutError, UnknownPhaseError


def _service_error(status):
    return oci.exceptions.ServiceError(status, "Error", {}, "error")


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def client(compute_client, blockstorage_client, network_client, database_client, sleeps):
    return OCIResourceClient(
        compute_client, blockstorage_client, network_client, database_client, sleep=sleeps.append
    )


class TestReads:
    def test_get_instance_returns_data(self, client, compute_client):
        instance = client.get_instance(INSTANCE_OCID)

        assert instance.id == INSTANCE_OCID
        compute_client.get_instance.assert_called_once_with(INSTANCE_OCID)

    def test_list_vnic_attachments(self, client, compute_client):
        attachments = client.list_vnic_attachments(COMPARTMENT_OCID, INSTANCE_OCID)

        assert [a.vnic_id for a in attachments] == [VNIC_OCID]
        compute_client.list_vnic_attachments.assert_called_once_with(COMPARTMENT_OCID, instance_id=INSTANCE_OCID)

    def test_list_db_nodes(self, client, database_client):
        client.list_db_nodes(COMPARTMENT_OCID, DB_SYSTEM_OCID)

        database_client.list_db_nodes.assert_called_once_with(COMPARTMENT_OCID, db_system_id=DB_SYSTEM_OCID)

    @pytest.mark.parametrize("status", [429, 500, 503])
    def test_transient_errors_are_retried(self, client, compute_client, sleeps, status):
        instance = Instance(id=INSTANCE_OCID, lifecycle_state=Instance.LIFECYCLE_STATE_RUNNING)
        compute_client.get_instance.side_effect = [_service_error(status), _service_error(status), _resp(instance)]

        assert client.get_instance(INSTANCE_OCID) is instance
        assert compute_client.get_instance.call_count == 3
        assert len(sleeps) == 2

    def test_request_exception_is_retried(self, client, network_client, sleeps):
        vnic = MagicMock(id=VNIC_OCID)
        network_client.get_vnic.side_effect = [oci.exceptions.RequestException("reset"), _resp(vnic)]

        assert client.get_vnic(VNIC_OCID) is vnic
        assert len(sleeps) == 1

    def test_client_errors_are_not_retried(self, client, blockstorage_client, sleeps):
        blockstorage_client.get_volume.side_effect = _service_error(404)

        with pytest.raises(oci.exceptions.ServiceError):
            client.get_volume(ISCSI_VOLUME_OCID)

        assert blockstorage_client.get_volume.call_count == 1
        assert sleeps == []

    def test_retries_give_up(self, client, compute_client, sleeps, monkeypatch):
        monkeypatch.setattr(resource_client_module, "OCI_API_MAX_RETRIES", 3)
        compute_client.get_instance.side_effect = _service_error(500)

        with pytest.raises(oci.exceptions.ServiceError):
            client.get_instance(INSTANCE_OCID)

        assert compute_client.get_instance.call_count == 3
        assert len(sleeps) == 2

    def test_rate_limit_backs_off_longer(self, client, monkeypatch):
        monkeypatch.setattr(resource_client_module, "OCI_API_JITTER", 0.0)

        assert client._calculate_backoff_delay(2) == 4.0
        assert client._calculate_backoff_delay(2, is_rate_limit=True) == 9.0


class TestMutations:
    def test_create_instance_returns_id(self, client, compute_client):
        details = LaunchInstanceDetails(display_name="kitchen-foo-abc123")

        assert client.create_instance(details) == INSTANCE_OCID
        compute_client.launch_instance.assert_called_once_with(details)

    def test_create_is_not_retried(self, client, compute_client, sleeps):
        compute_client.launch_instance.side_effect = _service_error(500)

        with pytest.raises(oci.exceptions.ServiceError):
            client.create_instance(LaunchInstanceDetails())

        assert compute_client.launch_instance.call_count == 1
        assert sleeps == []

    def test_create_volume_returns_id(self, client):
        assert client.create_volume(CreateVolumeDetails(display_name="vol1")) == ISCSI_VOLUME_OCID

    def test_delete_is_not_retried(self, client, blockstorage_client):
        blockstorage_client.delete_volume.side_effect = _service_error(503)

        with pytest.raises(oci.exceptions.ServiceError):
            client.delete_volume(ISCSI_VOLUME_OCID)

        assert blockstorage_client.delete_volume.call_count == 1

    def test_terminate_db_system(self, client, database_client):
        client.terminate_db_system(DB_SYSTEM_OCID)

        database_client.terminate_db_system.assert_called_once_with(DB_SYSTEM_OCID)


class TestPollUntil:
    def test_resolves_phase_and_polls_getter(self, client, compute_client, sleeps):
        provisioning = Instance(id=INSTANCE_OCID, lifecycle_state=Instance.LIFECYCLE_STATE_PROVISIONING)
        running = Instance(id=INSTANCE_OCID, lifecycle_state=Instance.LIFECYCLE_STATE_RUNNING)
        compute_client.get_instance.side_effect = [_resp(provisioning), _resp(running)]

        result = client.poll_until("instance", INSTANCE_OCID, "running", max_interval_seconds=30, max_wait_seconds=1200)

        assert result is running
        assert sleeps == [1.0]

    def test_unknown_phase(self, client, compute_client):
        with pytest.raises(UnknownPhaseError):
            client.poll_until("instance", INSTANCE_OCID, "attached", max_interval_seconds=30, max_wait_seconds=1200)

        compute_client.get_instance.assert_not_called()

    def test_timeout_uses_injected_clock(self, compute_client, blockstorage_client, network_client, database_client):
        now = [0.0]

        def sleep(seconds):
            now[0] += seconds

        client = OCIResourceClient(
            compute_client, blockstorage_client, network_client, database_client,
            sleep=sleep, clock=lambda: now[0],
        )
        compute_client.get_instance.return_value = _resp(
            Instance(id=INSTANCE_OCID, lifecycle_state=Instance.LIFECYCLE_STATE_PROVISIONING)
        )

        with pytest.raises(ProvisionTimeoutError):
            client.poll_until("instance", INSTANCE_OCID, "running", max_interval_seconds=30, max_wait_seconds=60)

        assert now[0] == 60

    def test_read_retries_stay_within_poll_deadline(
        self, compute_client, blockstorage_client, network_client, database_client
    ):
        now = [0.0]

        def sleep(seconds):
            now[0] += seconds

        client = OCIResourceClient(
            compute_client, blockstorage_client, network_client, database_client,
            sleep=sleep, clock=lambda: now[0],
        )
        compute_client.get_instance.side_effect = _service_error(429)

        with pytest.raises(oci.exceptions.ServiceError):
            client.poll_until("instance", INSTANCE_OCID, "running", max_interval_seconds=30, max_wait_seconds=5)

        assert now[0] == pytest.approx(5)

    def test_read_without_deadline_uses_full_backoff(self, client, compute_client, sleeps, monkeypatch):
        monkeypatch.setattr(resource_client_module, "OCI_API_JITTER", 0.0)
        instance = Instance(id=INSTANCE_OCID, lifecycle_state=Instance.LIFECYCLE_STATE_RUNNING)
        compute_client.get_instance.side_effect = [_service_error(429), _service_error(429), _resp(instance)]

        client.get_instance(INSTANCE_OCID)

        assert sleeps == [1.0, 3.0]
