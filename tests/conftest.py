"""Shared fixtures: OCIDs, fake SDK clients and a deterministic random source."""

from unittest.mock import MagicMock

import pytest
from oci.core.models import (
    Instance,
    IScsiVolumeAttachment,
    ParavirtualizedVolumeAttachment,
    Vnic,
    VnicAttachment,
    Volume,
    VolumeAttachment,
)
from oci.database.models import DbNodeSummary, DbSystem

from kitchen_oci.services.resource_client import OCIResourceClient
from kitchen_oci.utils.random_source import RandomSource

COMPARTMENT_OCID = "ocid1.compartment.oc1..aaaaaaaaaabcdefghijklmnopqrstuvwxyz12345"
AVAILABILITY_DOMAIN = "abCD:FAKE-AD-1"
SUBNET_OCID = "ocid1.subnet.oc1..aaaaaaaaaabcdefghijklmnopqrstuvwxyz12345"
SHAPE = "VM.Standard2.1"
IMAGE_OCID = "ocid1.image.oc1.fake.aaaaaaaaaabcdefghijklmnopqrstuvwxyz12345"
SSH_PUB_KEY = "ssh-rsa AAABBBCCCabcdefg1234"

INSTANCE_OCID = "ocid1.instance.oc1.fake.aaaaaaaaaabcdefghijklmnopqrstuvwxyz12345"
DB_SYSTEM_OCID = "ocid1.dbsystem.oc1.fake.aaaaaaaaaabcdefghijklmnopqrstuvwxyz12345"
DB_NODE_OCID = "ocid1.dbnode.oc1.fake.aaaaaaaaaabcdefghijklmnopqrstuvwxyz12345"
VNIC_OCID = "ocid1.vnic.oc1.fake.aaaaaaaaaabcdefghijklmnopqrstuvwxyz12345"
ATTACHMENT_OCID = "ocid1.volumeattachment.oc1.fake.aaaaaaaaaabcdefghijklmnopqrstuvwxyz12345"
ISCSI_VOLUME_OCID = "ocid1.volume.oc1.fake.aaaaaaaaaabcdefghijklmnopqrstuvwxyz12345"
PV_VOLUME_OCID = "ocid1.volume.oc1.fake.aaaaaaaaaabcdefghijklmnopqrstuvwxyz67890"

PRIVATE_IP = "192.168.1.2"
PUBLIC_IP = "123.45.65.32"
IQN = "iqn.2099-13.com.fake"
IPV4 = "1.1.2.2"
PORT = 3260


class FixedRandomSource(RandomSource):
    """Returns the same values for every call of a given length."""

    STRINGS = {4: "abcd", 5: "abc12", 6: "abc123"}
    NUMBERS = {2: "12", 10: "1029384576"}
    PASSWORD = "5up3r53cur3!"

    def random_string(self, length):
        return self.STRINGS[length]

    def random_number(self, digits):
        return self.NUMBERS[digits]

    def random_password(self):
        return self.PASSWORD


def _resp(data):
    """Mimic an oci.response.Response carrying ``data``."""
    return MagicMock(data=data)


@pytest.fixture
def ssh_key_file(tmp_path):
    path = tmp_path / "id_rsa.pub"
    path.write_text(SSH_PUB_KEY + "\n")
    return str(path)


@pytest.fixture
def compute_config(ssh_key_file):
    return {
        "instance_name": "kitchen-foo",
        "compartment_id": COMPARTMENT_OCID,
        "availability_domain": AVAILABILITY_DOMAIN,
        "subnet_id": SUBNET_OCID,
        "shape": SHAPE,
        "image_id": IMAGE_OCID,
        "ssh_keypath": ssh_key_file,
    }


@pytest.fixture
def dbaas_config(ssh_key_file):
    return {
        "instance_type": "dbaas",
        "hostname_prefix": "dbaas",
        "compartment_id": COMPARTMENT_OCID,
        "availability_domain": AVAILABILITY_DOMAIN,
        "subnet_id": SUBNET_OCID,
        "shape": SHAPE,
        "ssh_keypath": ssh_key_file,
        "custom_metadata": {"hostclass": "foo"},
        "dbaas": {
            "cpu_core_count": 16,
            "db_name": "dbaas1",
            "pdb_name": "foo001",
            "db_version": "19.0.0.0",
        },
    }


@pytest.fixture
def random_source():
    return FixedRandomSource()


@pytest.fixture
def iscsi_attachment():
    return IScsiVolumeAttachment(
        id=ATTACHMENT_OCID,
        instance_id=INSTANCE_OCID,
        volume_id=ISCSI_VOLUME_OCID,
        display_name="iSCSIAttachment",
        lifecycle_state=VolumeAttachment.LIFECYCLE_STATE_ATTACHED,
        ipv4=IPV4,
        iqn=IQN,
        port=PORT,
    )


@pytest.fixture
def pv_attachment():
    return ParavirtualizedVolumeAttachment(
        id=ATTACHMENT_OCID,
        instance_id=INSTANCE_OCID,
        volume_id=PV_VOLUME_OCID,
        display_name="paravirtAttachment",
        lifecycle_state=VolumeAttachment.LIFECYCLE_STATE_ATTACHED,
    )


@pytest.fixture
def compute_client():
    client = MagicMock(name="ComputeClient")
    instance = Instance(id=INSTANCE_OCID, lifecycle_state=Instance.LIFECYCLE_STATE_RUNNING)
    client.launch_instance.return_value = _resp(instance)
    client.get_instance.return_value = _resp(instance)
    client.list_vnic_attachments.return_value = _resp(
        [VnicAttachment(vnic_id=VNIC_OCID, subnet_id=SUBNET_OCID)]
    )
    client.detach_volume.return_value = _resp(None)
    client.terminate_instance.return_value = _resp(None)
    return client


@pytest.fixture
def blockstorage_client():
    client = MagicMock(name="BlockstorageClient")
    volumes = {
        ISCSI_VOLUME_OCID: Volume(
            id=ISCSI_VOLUME_OCID, display_name="vol1",
            lifecycle_state=Volume.LIFECYCLE_STATE_AVAILABLE,
        ),
        PV_VOLUME_OCID: Volume(
            id=PV_VOLUME_OCID, display_name="vol2",
            lifecycle_state=Volume.LIFECYCLE_STATE_AVAILABLE,
        ),
    }
    names = {"vol1": ISCSI_VOLUME_OCID, "vol2": PV_VOLUME_OCID}
    client.create_volume.side_effect = lambda details: _resp(volumes[names[details.display_name]])
    client.get_volume.side_effect = lambda volume_id: _resp(volumes[volume_id])
    client.delete_volume.return_value = _resp(None)
    return client


@pytest.fixture
def network_client():
    client = MagicMock(name="VirtualNetworkClient")
    client.get_vnic.return_value = _resp(
        Vnic(id=VNIC_OCID, private_ip=PRIVATE_IP, public_ip=PUBLIC_IP, is_primary=True)
    )
    return client


@pytest.fixture
def database_client():
    client = MagicMock(name="DatabaseClient")
    db_system = DbSystem(id=DB_SYSTEM_OCID, lifecycle_state=DbSystem.LIFECYCLE_STATE_AVAILABLE)
    client.launch_db_system.return_value = _resp(db_system)
    client.get_db_system.return_value = _resp(db_system)
    client.list_db_nodes.return_value = _resp(
        [DbNodeSummary(db_system_id=DB_SYSTEM_OCID, id=DB_NODE_OCID, vnic_id=VNIC_OCID)]
    )
    client.terminate_db_system.return_value = _resp(None)
    return client


@pytest.fixture
def resource_client(compute_client, blockstorage_client, network_client, database_client):
    return OCIResourceClient(
        compute_client=compute_client,
        blockstorage_client=blockstorage_client,
        network_client=network_client,
        database_client=database_client,
        sleep=lambda seconds: None,
    )


@pytest.fixture
def transport():
    return MagicMock(name="Transport")
