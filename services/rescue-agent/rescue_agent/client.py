"""Ironic API client.

Minimal wrapper around the two vendor passthru calls used by the rescue
ramdisk: lookup and heartbeat.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import httpx
import structlog

from .inventory import LookupPayload

logger = structlog.get_logger()

IRONIC_API_VERSION = "v1"


class IronicAPIError(Exception):
    """Raised when an Ironic API call fails."""
    pass


def _string_field(data: Dict[str, Any], key: str) -> str:
    """Return a string field, treating missing or null as empty."""
    value = data.get(key)
    if value is None:
        return ""
    if not isinstance(value, str):
        raise IronicAPIError(
            f"Malformed Ironic lookup response: {key} must be a string, "
            f"got {type(value).__name__}"
        )
    return value


@dataclass(slots=True)
class InstanceInfo:
    """Rescue-related fields of a node's instance_info."""

    rescue_password_hash: str = ""
    configdrive: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InstanceInfo":
        return cls(
            rescue_password_hash=_string_field(data, "rescue_password_hash"),
            configdrive=_string_field(data, "configdrive"),
        )


@dataclass(slots=True)
class IronicNode:
    """Node returned by the lookup call."""

    uuid: str = ""
    instance_info: InstanceInfo = field(default_factory=InstanceInfo)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IronicNode":
        instance_info = data.get("instance_info")
        if instance_info is None:
            instance_info = {}
        if not isinstance(instance_info, dict):
            raise IronicAPIError("Malformed instance_info in Ironic lookup response")
        return cls(
            uuid=_string_field(data, "uuid"),
            instance_info=InstanceInfo.from_dict(instance_info),
        )


class IronicAPIClient:
    """Client for the Ironic vendor passthru API."""

    def __init__(
        self,
        url: str,
        driver_name: str,
        http_client: Optional[httpx.Client] = None,
    ):
        """Initialize API client.

        Args:
            url: Ironic API base URL
            driver_name: Driver whose lookup endpoint is used
            http_client: Optional preconfigured HTTP client
        """
        if not url.endswith("/"):
            url = url + "/"

        self.url = url
        self.driver_name = driver_name
        # One client for every call, no timeout
        self._http_client = http_client or httpx.Client(timeout=None)

    def __enter__(self) -> "IronicAPIClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Close HTTP client."""
        self._http_client.close()

    def _request(
        self,
        method: str,
        path: str,
        body: Optional[Dict[str, Any]] = None,
    ) -> httpx.Response:
        headers = {"Accept": "application/json"}
        kwargs: Dict[str, Any] = {}
        if body is not None:
            headers["Content-Type"] = "application/json"
            kwargs["json"] = body

        url = f"{self.url}{IRONIC_API_VERSION}{path}"
        logger.debug("ironic_request", method=method, url=url)

        try:
            return self._http_client.request(method, url, headers=headers, **kwargs)
        except httpx.RequestError as e:
            raise IronicAPIError(f"Network error calling {url}: {e}") from e

    @staticmethod
    def _status(response: httpx.Response) -> str:
        return f"{response.status_code} {response.reason_phrase}".strip()

    def lookup(self, payload: LookupPayload) -> IronicNode:
        """
        Look up the node matching this machine's inventory.

        Returns:
            The node, including its rescue password hash and config drive.

        Raises:
            IronicAPIError: On a non-200 response, transport error or
                malformed body.
        """
        response = self._request(
            "POST",
            f"/drivers/{self.driver_name}/vendor_passthru/lookup",
            payload.to_dict(),
        )

        if response.status_code != httpx.codes.OK:
            raise IronicAPIError(
                f"Unexpected response from Ironic lookup call: {self._status(response)}"
            )

        try:
            data = response.json()
        except ValueError as e:
            raise IronicAPIError(f"Malformed Ironic lookup response: {e}") from e

        node = data.get("node") if isinstance(data, dict) else None
        if not isinstance(node, dict):
            raise IronicAPIError("Ironic lookup response has no node")

        return IronicNode.from_dict(node)

    def heartbeat(self, uuid: str) -> None:
        """
        Send a heartbeat for the given node.

        Raises:
            IronicAPIError: On a non-202 response or transport error.
        """
        response = self._request(
            "POST",
            f"/nodes/{uuid}/vendor_passthru/heartbeat",
            {"agent_url": ""},
        )

        if response.status_code != httpx.codes.ACCEPTED:
            raise IronicAPIError(
                f"Unexpected response from Ironic heartbeat call: {self._status(response)}"
            )
