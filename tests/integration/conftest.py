# tests/integration/conftest.py — v1
"""Shared fixtures for integration tests using testcontainers.

Container lifecycle:
- session scope: the Neo4j container starts once per pytest session
- function scope: the graph is cleared before each test for isolation

Custom container wrapper:
- Uses DockerContainer directly with bridge network IP + internal port
- Required for devcontainer with docker-outside-of-docker (socket mount)
- Built-in testcontainers library returns localhost:mapped_port which is
  unreachable from inside a devcontainer

Changelog:
    v1: Neo4j container with bridge IP, async mapping-store fixture.
"""

from __future__ import annotations

import logging
import time

import pytest
import pytest_asyncio

logger = logging.getLogger(__name__)


# ── Pytest markers ──────────────────────────────────────────────

def pytest_configure(config):
    config.addinivalue_line("markers", "neo4j: marks tests requiring Neo4j container")


# =====================================================================
#  DEVCONTAINER NETWORKING HELPERS
# =====================================================================

def _get_container_bridge_ip(container, max_attempts: int = 10) -> str:
    """Get container bridge network IP with retries.

    In docker-outside-of-docker setups, containers are on the host Docker
    daemon. The devcontainer must access them via bridge IP, not localhost.
    """
    for attempt in range(max_attempts):
        try:
            wrapped = container.get_wrapped_container()
            wrapped.reload()
            networks = wrapped.attrs.get("NetworkSettings", {}).get("Networks", {})
            for net_name, net_info in networks.items():
                ip = net_info.get("IPAddress", "")
                if ip:
                    logger.info(
                        "Container %s IP: %s (network: %s, attempt %d)",
                        wrapped.short_id, ip, net_name, attempt + 1,
                    )
                    return ip
            logger.debug("Container IP empty, attempt %d/%d", attempt + 1, max_attempts)
        except Exception as e:
            logger.debug("Error getting IP (attempt %d): %s", attempt + 1, e)
        time.sleep(0.5)

    raise RuntimeError(
        f"Could not obtain container bridge IP after {max_attempts} attempts"
    )


def _docker_available() -> bool:
    """Check if Docker daemon is reachable."""
    try:
        import docker
        client = docker.from_env()
        client.ping()
        return True
    except Exception:
        return False


# =====================================================================
#  NEO4J CONTAINER — session scope (bridge IP)
#
#  Neo4j 5 logs "Started." once Bolt accepts connections.
# =====================================================================

NEO4J_IMAGE = "neo4j:5"
NEO4J_BOLT_PORT = 7687
NEO4J_USER = "neo4j"
NEO4J_PASSWORD = "testpassword"


@pytest.fixture(scope="session")
def neo4j_container():
    if not _docker_available():
        pytest.skip("Docker not available")

    from testcontainers.core.container import DockerContainer
    from testcontainers.core.waiting_utils import wait_for_logs

    container = (
        DockerContainer(NEO4J_IMAGE)
        .with_exposed_ports(NEO4J_BOLT_PORT)
        .with_env("NEO4J_AUTH", f"{NEO4J_USER}/{NEO4J_PASSWORD}")
    )
    container.start()
    wait_for_logs(container, predicate=r"Started\.", timeout=120)
    time.sleep(2)

    ip = _get_container_bridge_ip(container)
    logger.info("Neo4j ready at %s:%d", ip, NEO4J_BOLT_PORT)
    yield {"uri": f"bolt://{ip}:{NEO4J_BOLT_PORT}", "user": NEO4J_USER, "password": NEO4J_PASSWORD}
    container.stop()


@pytest_asyncio.fixture
async def neo4j_store(neo4j_container):
    from datamingle.graph_store.neo4j_store import Neo4jMappingStore

    store = Neo4jMappingStore(
        uri=neo4j_container["uri"],
        user=neo4j_container["user"],
        password=neo4j_container["password"],
    )
    await store.verify_connectivity()
    await store.reset()
    yield store
    await store.close()
