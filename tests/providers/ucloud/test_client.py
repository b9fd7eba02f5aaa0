from __future__ import annotations

import hashlib
import json
from urllib.parse import parse_qsl

import httpx
import pytest

from uhost_builder.config import UCloudConfig
from uhost_builder.constants import BootDiskState, InstanceState
from uhost_builder.core.exceptions import NotFoundError, UCloudAPIError
from uhost_builder.providers.ucloud.client import UCloudClient, sign
from uhost_builder.providers.ucloud.types import BootDisk, CreateRequest

pytestmark = [pytest.mark.unit, pytest.mark.xdist_group("unit")]


class _Api:
    """Answers UCloud actions from a table and records the decoded forms."""

    def __init__(self, responses: dict[str, dict | httpx.Response]) -> None:
        self.responses = responses
        self.forms: list[dict[str, str]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        form = dict(parse_qsl(request.read().decode()))
        self.forms.append(form)
        answer = self.responses[form["Action"]]
        if isinstance(answer, httpx.Response):
            return answer
        return httpx.Response(200, content=json.dumps(answer).encode())


def _client(api: _Api, **kwargs) -> UCloudClient:
    return UCloudClient("pub-key", "priv-key", "cn-bj2", transport=httpx.MockTransport(api), **kwargs)


def _uhost(state: str = "Running", disk: str = "Normal") -> dict:
    return {
        "UHostId": "uhost-1",
        "Name": "packer-test",
        "Zone": "cn-bj2-02",
        "State": state,
        "BootDiskState": disk,
        "IPSet": [
            {"Type": "Private", "IP": "10.9.1.2"},
            {"Type": "International", "IP": "152.32.1.2"},
        ],
    }


class TestSign:
    def test_sorted_concatenation_then_private_key(self):
        params = {"Region": "cn-bj2", "Action": "DescribeUHostInstance", "Limit": 10}
        expected = hashlib.sha1(
            b"ActionDescribeUHostInstanceLimit10Regioncn-bj2" + b"priv-key"
        ).hexdigest()
        assert sign(params, "priv-key") == expected

    def test_booleans_are_lowercase(self):
        assert sign({"ReleaseEIP": True}, "k") == hashlib.sha1(b"ReleaseEIPtruek").hexdigest()


class TestInvoke:
    def test_request_is_signed(self):
        api = _Api({"StopUHostInstance": {"RetCode": 0}})
        with _client(api, project_id="org-1") as client:
            client.stop("uhost-1")

        form = api.forms[0]
        assert form["PublicKey"] == "pub-key"
        assert form["ProjectId"] == "org-1"
        assert form["Region"] == "cn-bj2"
        unsigned = {k: v for k, v in form.items() if k != "Signature"}
        assert form["Signature"] == sign(unsigned, "priv-key")

    def test_non_zero_ret_code(self):
        api = _Api({"StopUHostInstance": {"RetCode": 8039, "Message": "uhost busy"}})
        with _client(api) as client, pytest.raises(UCloudAPIError) as exc_info:
            client.stop("uhost-1")
        assert exc_info.value.code == 8039
        assert exc_info.value.action == "StopUHostInstance"
        assert "uhost busy" in str(exc_info.value)

    def test_http_error(self):
        api = _Api({"StopUHostInstance": httpx.Response(502, content=b"bad gateway")})
        with _client(api) as client, pytest.raises(UCloudAPIError) as exc_info:
            client.stop("uhost-1")
        assert exc_info.value.code == -1

    def test_invalid_json(self):
        api = _Api({"StopUHostInstance": httpx.Response(200, content=b"<html>")})
        with _client(api) as client, pytest.raises(UCloudAPIError):
            client.stop("uhost-1")


class TestOperations:
    def test_create_returns_first_id(self):
        api = _Api({"CreateUHostInstance": {"RetCode": 0, "UHostIds": ["uhost-1"]}})
        request = CreateRequest(
            region="cn-bj2",
            zone="cn-bj2-02",
            name="packer-test",
            image_id="uimage-1",
            cpu=2,
            memory_mb=4096,
            boot_disk=BootDisk(type="CLOUD_SSD", size_gb=20),
            password="Abcde-12345",
        )
        with _client(api) as client:
            assert client.create(request) == "uhost-1"
        assert api.forms[0]["CPU"] == "2"
        assert api.forms[0]["Disks.0.Type"] == "CLOUD_SSD"

    def test_create_without_ids(self):
        api = _Api({"CreateUHostInstance": {"RetCode": 0, "UHostIds": []}})
        request = CreateRequest(
            region="cn-bj2", zone="cn-bj2-02", name="n", image_id="i", cpu=1,
            memory_mb=1024, boot_disk=BootDisk(type="CLOUD_SSD", size_gb=20), password="",
        )
        with _client(api) as client, pytest.raises(UCloudAPIError, match="UHostIds"):
            client.create(request)

    def test_describe(self):
        api = _Api({"DescribeUHostInstance": {"RetCode": 0, "UHostSet": [_uhost("Stopped", "Initialization")]}})
        with _client(api) as client:
            instance = client.describe("uhost-1")
        assert api.forms[0]["UHostIds.0"] == "uhost-1"
        assert instance.id == "uhost-1"
        assert instance.state is InstanceState.STOPPED
        assert instance.boot_disk_state is BootDiskState.INITIALIZING
        assert instance.private_ip == "10.9.1.2"
        assert instance.public_ip == "152.32.1.2"
        assert instance.ssh_host(use_private_ip=True) == "10.9.1.2"

    def test_describe_unknown_state(self):
        api = _Api({"DescribeUHostInstance": {"RetCode": 0, "UHostSet": [_uhost("Migrating")]}})
        with _client(api) as client:
            assert client.describe("uhost-1").state is InstanceState.UNKNOWN

    def test_describe_missing_raises_not_found(self):
        api = _Api({"DescribeUHostInstance": {"RetCode": 0, "UHostSet": []}})
        with _client(api) as client, pytest.raises(NotFoundError) as exc_info:
            client.describe("uhost-1")
        assert exc_info.value.resource_id == "uhost-1"

    def test_terminate_releases_disk_and_eip(self):
        api = _Api({"TerminateUHostInstance": {"RetCode": 0}})
        with _client(api) as client:
            client.terminate("uhost-1")
        form = api.forms[0]
        assert form["UHostId"] == "uhost-1"
        assert form["ReleaseUDisk"] == "true"
        assert form["ReleaseEIP"] == "true"


class TestFromConfig:
    def test_reads_keys_and_region(self, config: UCloudConfig):
        api = _Api({"StopUHostInstance": {"RetCode": 0}})
        with UCloudClient.from_config(config, transport=httpx.MockTransport(api)) as client:
            client.stop("uhost-1")
        assert client.region == "cn-bj2"
        assert api.forms[0]["PublicKey"] == "pub"
