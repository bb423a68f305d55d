"""
Gough Rescue Agent - Global Test Configuration
Shared fixtures for unit and integration tests
"""

import json
from pathlib import Path
from typing import Callable, Dict, List
from unittest.mock import Mock

import httpx
import psutil
import pytest

from rescue_agent.config import AgentConfig

IRONIC_URL = "http://ironic.example.com:6385"

LOOKUP_RESPONSE = {
    "node": {
        "uuid": "1be26c0b-03f2-4d2e-ae87-c02d7f33c123",
        "instance_info": {
            "rescue_password_hash": "$6$rounds=656000$saltsalt$hashedpassword",
            "configdrive": "H4sICDw1TWYC/2NvbmZpZ2RyaXZlAAMAAAAAAAAAAAA=",
        },
    }
}


@pytest.fixture(autouse=True)
def clean_agent_env(monkeypatch):
    """Keep the developer's environment out of configuration tests."""
    for name in (
        "RESCUE_AGENT_API_URL",
        "RESCUE_AGENT_DRIVER_NAME",
        "RESCUE_AGENT_FINALIZE_SCRIPT",
        "RESCUE_AGENT_RESCUE_USERNAME",
        "RESCUE_AGENT_KERNEL_ARGS_FILE",
        "RESCUE_AGENT_DEBUG",
        "RESCUE_AGENT_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(scope='function')
def kernel_args_file(tmp_path) -> Path:
    """Kernel command line file carrying the Ironic API URL."""
    path = tmp_path / "cmdline"
    path.write_text(
        "BOOT_IMAGE=/vmlinuz root=/dev/ram0 ro=1 "
        f"ipa-api-url={IRONIC_URL} ipa-debug=1\n"
    )
    return path


@pytest.fixture(scope='function')
def agent_config(kernel_args_file, tmp_path) -> AgentConfig:
    """Agent configuration pointing at temporary files."""
    return AgentConfig(
        kernel_args_file=str(kernel_args_file),
        finalize_script=str(tmp_path / "finalize_rescue.bash"),
    )


@pytest.fixture(scope='function')
def sys_class_net(tmp_path) -> Path:
    """Fake /sys/class/net where eth0 and eth1 are physical devices."""
    root = tmp_path / "sys" / "class" / "net"
    for name in ("eth0", "eth1"):
        (root / name / "device").mkdir(parents=True)
    for name in ("lo", "br0"):
        (root / name).mkdir(parents=True)
    return root


def make_if_addrs(mac: str = "", ipv4: str = "") -> List[Mock]:
    """Build psutil.net_if_addrs() style address entries."""
    addrs = []
    if ipv4:
        addrs.append(Mock(family=2, address=ipv4))
    if mac is not None:
        addrs.append(Mock(family=psutil.AF_LINK, address=mac))
    return addrs


@pytest.fixture(scope='function')
def mock_net_if_addrs() -> Dict[str, List[Mock]]:
    """Interfaces as reported by psutil, physical and virtual mixed."""
    return {
        "lo": make_if_addrs(mac="00:00:00:00:00:00", ipv4="127.0.0.1"),
        "eth0": make_if_addrs(mac="52:54:00:12:34:56", ipv4="10.0.0.15"),
        "br0": make_if_addrs(mac="52:54:00:ab:cd:ef"),
        "eth1": make_if_addrs(mac=""),
    }


class IronicRecorder:
    """Fake Ironic API behind httpx.MockTransport."""

    def __init__(
        self,
        lookup_status: int = 200,
        lookup_body=None,
        heartbeat_status: int = 202,
    ):
        self.lookup_status = lookup_status
        self.lookup_body = LOOKUP_RESPONSE if lookup_body is None else lookup_body
        self.heartbeat_status = heartbeat_status
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path

        if path.endswith("/vendor_passthru/lookup"):
            if isinstance(self.lookup_body, (bytes, str)):
                return httpx.Response(self.lookup_status, content=self.lookup_body)
            return httpx.Response(self.lookup_status, json=self.lookup_body)

        if path.endswith("/vendor_passthru/heartbeat"):
            return httpx.Response(self.heartbeat_status)

        return httpx.Response(404, json={"error": "not found"})

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))

    def body(self, index: int) -> dict:
        return json.loads(self.requests[index].content)


@pytest.fixture(scope='function')
def ironic() -> IronicRecorder:
    """Fake Ironic API answering lookup with 200 and heartbeat with 202."""
    return IronicRecorder()


@pytest.fixture(scope='function')
def make_ironic() -> Callable[..., IronicRecorder]:
    """Factory for fake Ironic APIs with custom responses."""
    return IronicRecorder


@pytest.fixture(scope='function')
def finalize_script(tmp_path) -> Path:
    """Finalize script that records its arguments and stdin."""
    script = tmp_path / "finalize_rescue.bash"
    script.write_text(
        "#!/bin/sh\n"
        'out="$(dirname "$0")"\n'
        'printf "%s\\n" "$1" "$2" > "$out/args.txt"\n'
        'cat > "$out/stdin.txt"\n'
        "exit 0\n"
    )
    script.chmod(0o755)
    return script
