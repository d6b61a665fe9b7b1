from __future__ import annotations

import contextlib
import logging
import time
from dataclasses import dataclass, field
from typing import Dict, Iterator

import docker
from docker.models.containers import Container

LOGGER = logging.getLogger("dbbench.docker")

DEFAULT_BACKEND_IMAGES: Dict[str, str] = {
    "rethinkdb": "rethinkdb:2.4",
}
DEFAULT_BACKEND_PORTS: Dict[str, int] = {
    "rethinkdb": 28015,
}


@dataclass
class BackendConfig:
    adapter: str
    image: str
    port: int
    environment: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def for_adapter(cls, adapter: str, image: str | None = None) -> BackendConfig:
        if adapter not in DEFAULT_BACKEND_PORTS:
            raise ValueError(f"No container backend is known for adapter '{adapter}'")
        return cls(
            adapter=adapter,
            image=image or DEFAULT_BACKEND_IMAGES[adapter],
            port=DEFAULT_BACKEND_PORTS[adapter],
        )


class BackendContainerManager:
    """Provision storage backend containers for a benchmark using the Docker API."""

    def __init__(
        self,
        client: docker.DockerClient | None = None,
        ready_wait_seconds: float = 2.0,
        startup_grace_seconds: float = 30.0,
    ) -> None:
        self._client = client or docker.from_env()
        self._containers: list[Container] = []
        self._ready_wait_seconds = ready_wait_seconds
        self._startup_grace_seconds = startup_grace_seconds

    @contextlib.contextmanager
    def run(self, config: BackendConfig) -> Iterator[Container]:
        container = self._start(config)
        try:
            yield container
        finally:
            self._stop()

    def _start(self, config: BackendConfig) -> Container:
        LOGGER.info(
            "Starting %s backend container from %s on port %d",
            config.adapter,
            config.image,
            config.port,
        )
        name = f"dbbench-{config.adapter}-{int(time.time())}"
        container = self._client.containers.run(
            config.image,
            name=name,
            detach=True,
            environment=dict(config.environment),
            ports={f"{config.port}/tcp": config.port},
        )
        self._containers.append(container)
        self._wait_for_startup()
        return container

    def _stop(self) -> None:
        LOGGER.info("Stopping %d backend container(s)", len(self._containers))
        for container in self._containers:
            with contextlib.suppress(Exception):
                container.stop(timeout=10)
            with contextlib.suppress(Exception):
                container.remove(force=True)
        self._containers.clear()

    def _wait_for_startup(self) -> None:
        deadline = time.time() + self._startup_grace_seconds
        while time.time() < deadline:
            if all(self._is_container_healthy(container) for container in self._containers):
                time.sleep(self._ready_wait_seconds)
                return
            time.sleep(1.0)
        LOGGER.warning("Backend containers may not be fully ready before load starts")

    def _is_container_healthy(self, container: Container) -> bool:
        with contextlib.suppress(Exception):
            container.reload()
            status = container.attrs.get("State", {})
            if status.get("Health"):
                return status["Health"]["Status"] == "healthy"
            return status.get("Running", False)
        return False
