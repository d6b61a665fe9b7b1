"""Tests for backend container provisioning."""

from unittest.mock import MagicMock, patch

import pytest

from dbbench.docker_control import BackendConfig, BackendContainerManager


@pytest.fixture
def client():
    client = MagicMock()
    container = MagicMock()
    container.attrs = {"State": {"Running": True}}
    client.containers.run.return_value = container
    return client


class TestBackendConfig:
    def test_for_adapter(self):
        config = BackendConfig.for_adapter("rethinkdb")
        assert config.image == "rethinkdb:2.4"
        assert config.port == 28015

    def test_image_override(self):
        assert BackendConfig.for_adapter("rethinkdb", "rethinkdb:latest").image == "rethinkdb:latest"

    def test_memory_has_no_container(self):
        with pytest.raises(ValueError, match="No container backend"):
            BackendConfig.for_adapter("memory")


class TestBackendContainerManager:
    @patch("dbbench.docker_control.time.sleep")
    def test_run_starts_and_stops_container(self, _sleep, client):
        manager = BackendContainerManager(client=client, ready_wait_seconds=0)

        with manager.run(BackendConfig.for_adapter("rethinkdb")) as container:
            kwargs = client.containers.run.call_args.kwargs
            assert client.containers.run.call_args.args == ("rethinkdb:2.4",)
            assert kwargs["detach"] is True
            assert kwargs["ports"] == {"28015/tcp": 28015}
            container.stop.assert_not_called()

        container.stop.assert_called_once_with(timeout=10)
        container.remove.assert_called_once_with(force=True)

    @patch("dbbench.docker_control.time.sleep")
    def test_container_is_removed_when_body_raises(self, _sleep, client):
        manager = BackendContainerManager(client=client, ready_wait_seconds=0)

        with pytest.raises(RuntimeError):
            with manager.run(BackendConfig.for_adapter("rethinkdb")):
                raise RuntimeError("benchmark crashed")

        client.containers.run.return_value.remove.assert_called_once_with(force=True)

    def test_health_status_takes_precedence(self, client):
        manager = BackendContainerManager(client=client)
        container = MagicMock()
        container.attrs = {"State": {"Running": True, "Health": {"Status": "starting"}}}
        assert manager._is_container_healthy(container) is False

        container.attrs = {"State": {"Running": True, "Health": {"Status": "healthy"}}}
        assert manager._is_container_healthy(container) is True

    def test_reload_errors_mean_unhealthy(self, client):
        manager = BackendContainerManager(client=client)
        container = MagicMock()
        container.reload.side_effect = RuntimeError("gone")
        assert manager._is_container_healthy(container) is False
