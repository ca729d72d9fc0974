import subprocess
from types import SimpleNamespace

import docker
from docker.errors import DockerException
from pytest import fixture, raises

from mutagen_compose import *


class FakeDockerClient:
    """
    Stands in for `docker.DockerClient`, recording container queries.
    """

    instances: list["FakeDockerClient"] = []

    def __init__(self, base_url: str):
        self.base_url = base_url
        self.filters = []
        self.error = None
        self.container_ids = []
        self.containers = SimpleNamespace(list=self._list_containers)

        FakeDockerClient.instances.append(self)

    def info(self):
        if self.error:
            raise DockerException(self.error)
        return {"OSType": "linux"}

    def _list_containers(self, all: bool, filters: dict):
        if self.error:
            raise DockerException(self.error)

        assert all
        self.filters.append(filters)
        return [SimpleNamespace(id=i) for i in self.container_ids]


@fixture
def docker_client(monkeypatch):
    FakeDockerClient.instances = []
    monkeypatch.setattr(docker, "DockerClient", FakeDockerClient)


def test_engine(docker_client):
    engine = DockerEngine("tcp://engine:2375")

    assert engine.host == "tcp://engine:2375"
    assert engine.os_type() == "linux"

    (client,) = FakeDockerClient.instances
    assert client.base_url == "tcp://engine:2375"

    assert engine.find_sidecar("demo") is None
    assert client.filters[-1] == {
        "label": [
            "com.docker.compose.project=demo",
            "io.mutagen.compose.sidecar.role=sidecar",
        ]
    }

    client.container_ids = ["abc"]
    assert engine.find_sidecar("demo") == "abc"

    client.container_ids = ["abc", "def"]
    with raises(CollaboratorError):
        engine.find_sidecar("demo")

    # client is created once
    assert len(FakeDockerClient.instances) == 1


def test_engine_errors(docker_client):
    engine = DockerEngine()
    engine.client.error = "connection refused"

    with raises(MetadataUnavailable):
        engine.os_type()

    with raises(CollaboratorError) as e:
        engine.sidecar_ids("demo")

    assert e.value.operation == "list containers"


def test_engine_host(docker_client, monkeypatch):
    monkeypatch.delenv("DOCKER_HOST", raising=False)
    assert DockerEngine().host == DEFAULT_DOCKER_HOST

    monkeypatch.setenv("DOCKER_HOST", "ssh://user@remote")
    assert DockerEngine().host == "ssh://user@remote"


def test_compose_cli(monkeypatch, project: Project):
    calls = []

    def run(command, **kwargs):
        calls.append((command, kwargs))
        return subprocess.CompletedProcess(command, 0)

    monkeypatch.setattr(subprocess, "run", run)

    orchestrator = ComposeCLI(["docker-compose"])
    orchestrator.up(project, ["mutagen"], ignore_orphans=True)
    orchestrator.down(project, args=["--volumes"])

    (up_command, up_kwargs), (down_command, down_kwargs) = calls

    prefix = [
        "docker-compose",
        "--project-name",
        "demo",
        "--project-directory",
        str(project.working_dir),
        "--file",
        "-",
    ]

    assert up_command == prefix + ["up", "--detach", "mutagen"]
    assert up_kwargs["env"]["COMPOSE_IGNORE_ORPHANS"] == "true"
    assert up_kwargs["input"] == project.dump_compose()

    assert down_command == prefix + ["down", "--volumes"]
    assert down_kwargs["env"] is None


def test_compose_cli_errors(monkeypatch, project: Project):
    def fail(command, **kwargs):
        raise subprocess.CalledProcessError(17, command)

    monkeypatch.setattr(subprocess, "run", fail)

    with raises(CollaboratorError) as e:
        ComposeCLI().stop(project)

    assert e.value.operation == "compose stop"
    assert "exited with code 17" in str(e.value)

    def missing(command, **kwargs):
        raise FileNotFoundError(command[0])

    monkeypatch.setattr(subprocess, "run", missing)

    with raises(CollaboratorError) as e:
        ComposeCLI().pull(project)

    assert "command not found: docker" in str(e.value)
