"""Detection of containerized execution.

When the worker runs inside a Docker container and the SQS daemon runs on the
host, daemon requests arrive from the host side of the bridge network instead
of the loopback interface. The probe runs once at startup; its result is
passed to the consumer middleware as plain data.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from sqsd_gate.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContainerInfo:
    """Result of the container probe.

    Attributes:
        inside_container: Whether the init process belongs to a container cgroup.
        host_bridge_address: Address of the container host on the bridge network.
    """

    inside_container: bool = False
    host_bridge_address: str | None = None

    def trusts(self, address: str | None) -> bool:
        """Check whether requests from ``address`` come from the container host."""
        if not self.inside_container or not self.host_bridge_address:
            return False
        return address == self.host_bridge_address

    @classmethod
    def from_settings(cls, settings: Settings) -> ContainerInfo:
        """Probe using the paths and addresses configured in ``settings``."""
        return detect_container(
            cgroup_path=settings.consumer.cgroup_path,
            marker=settings.consumer.container_marker,
            host_bridge_address=settings.consumer.docker_host_ip,
        )


def detect_container(
    cgroup_path: str | Path = "/proc/1/cgroup",
    marker: str = "docker",
    host_bridge_address: str | None = "172.17.0.1",
) -> ContainerInfo:
    """Probe the init process control group for a container marker.

    A missing or unreadable descriptor means the process is not containerized.

    Args:
        cgroup_path: Control-group descriptor to read.
        marker: Substring identifying a container runtime.
        host_bridge_address: Address to trust when the marker is found.

    Returns:
        ContainerInfo describing the probe result.
    """
    try:
        content = Path(cgroup_path).read_text(encoding="utf-8", errors="replace")
    except OSError:
        logger.debug("Container probe: %s not readable", cgroup_path)
        return ContainerInfo()

    if marker not in content:
        return ContainerInfo()

    logger.info(
        "Container detected: marker=%s, trusted_host_address=%s",
        marker,
        host_bridge_address,
    )
    return ContainerInfo(inside_container=True, host_bridge_address=host_bridge_address)
