# tests/integration/conftest.py - v1
"""Shared fixtures for integration tests.

Backends that need a server (Redis) run in a testcontainers-managed
Docker container, started once per session and reached through the
container's bridge IP. Those tests are skipped when Docker is not
reachable; everything else runs against local SQLite and JSON files.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator

import pytest

logger = logging.getLogger(__name__)

REDIS_IMAGE = "redis:7-alpine"


def pytest_configure(config):
    config.addinivalue_line("markers", "redis: marks tests requiring Redis container")


def _get_container_bridge_ip(container, max_attempts: int = 10) -> str:
    """Bridge network IP of a running container, with retries."""
    for attempt in range(max_attempts):
        try:
            wrapped = container.get_wrapped_container()
            wrapped.reload()
            networks = wrapped.attrs.get("NetworkSettings", {}).get("Networks", {})
            for net_name, net_info in networks.items():
                ip = net_info.get("IPAddress", "")
                if ip:
                    logger.info("Container %s IP: %s (network: %s)", wrapped.short_id, ip, net_name)
                    return ip
        except Exception as e:
            logger.debug("Error getting IP (attempt %d): %s", attempt + 1, e)
        time.sleep(0.5)

    raise RuntimeError(f"Could not obtain container bridge IP after {max_attempts} attempts")


def _docker_available() -> bool:
    """Check if Docker daemon is reachable."""
    try:
        import docker

        docker.from_env().ping()
        return True
    except Exception:
        return False


@pytest.fixture(scope="session")
def redis_url() -> Iterator[str]:
    """URL of a throwaway Redis server."""
    if not _docker_available():
        pytest.skip("Docker not available")

    from testcontainers.core.container import DockerContainer
    from testcontainers.core.waiting_utils import wait_for_logs

    container = DockerContainer(REDIS_IMAGE).with_exposed_ports(6379)
    container.start()
    try:
        wait_for_logs(container, "Ready to accept connections", timeout=30)
        yield f"redis://{_get_container_bridge_ip(container)}:6379/0"
    finally:
        container.stop()
