from pathlib import Path

from pytest import mark, raises

from mutagen_compose import *


@mark.parametrize(
    "raw,kind,expected",
    [
        ("./data", SessionKind.FORWARDING, AddressKind.LOCAL),
        ("tcp:localhost:8080", SessionKind.FORWARDING, AddressKind.LOCAL),
        ("network://backend:tcp:web:80", SessionKind.FORWARDING, AddressKind.NETWORK),
        ("user@host:tcp:localhost:80", SessionKind.FORWARDING, AddressKind.REMOTE),
        ("docker://container:tcp:localhost:80", SessionKind.FORWARDING, AddressKind.REMOTE),
        ("./app", SessionKind.SYNCHRONIZATION, AddressKind.LOCAL),
        ("/srv/app", SessionKind.SYNCHRONIZATION, AddressKind.LOCAL),
        ("~/app", SessionKind.SYNCHRONIZATION, AddressKind.LOCAL),
        ("app/sub:dir", SessionKind.SYNCHRONIZATION, AddressKind.LOCAL),
        ("volume://cache", SessionKind.SYNCHRONIZATION, AddressKind.VOLUME),
        ("host:/srv/app", SessionKind.SYNCHRONIZATION, AddressKind.REMOTE),
        ("user@host:app", SessionKind.SYNCHRONIZATION, AddressKind.REMOTE),
    ],
)
def test_classify(raw: str, kind: SessionKind, expected: AddressKind):
    assert classify_address(raw, kind) is expected


def test_forwarding_source():
    endpoint = parse_forwarding_source("tcp:localhost:8080")
    assert endpoint == LocalEndpoint(path="tcp:localhost:8080")
    assert endpoint.url == "tcp:localhost:8080"

    # any TCP-based protocol allowed
    assert parse_forwarding_source("tcp6:[::1]:8080").path == "tcp6:[::1]:8080"

    with raises(UnsupportedTransport):
        parse_forwarding_source("unix:/tmp/app.sock")

    with raises(UnsupportedTransport):
        parse_forwarding_source("npipe:\\\\.\\pipe\\app")

    # directionality is fixed
    with raises(InvalidEndpoint):
        parse_forwarding_source("network://backend:tcp:web:80")

    with raises(UnsupportedProtocol):
        parse_forwarding_source("user@host:tcp:localhost:80")

    with raises(InvalidEndpoint):
        parse_forwarding_source("tcp:localhost:http")

    with raises(InvalidEndpoint):
        parse_forwarding_source("tcp:localhost:70000")


def test_forwarding_source_path():
    """
    A local path such as `./data` classifies as a local forwarding address,
    but is rejected as a source since forwarding only listens on `tcp:`,
    `tcp4:` or `tcp6:` addresses.
    """
    address_kind = classify_address("./data", SessionKind.FORWARDING)
    assert address_kind is AddressKind.LOCAL

    with raises(InvalidEndpoint):
        parse_forwarding_source("./data")

    with raises(InvalidEndpoint):
        parse_forwarding_source("udp:localhost:53")


def test_forwarding_destination():
    endpoint = parse_forwarding_destination("network://backend:tcp:web:80")
    assert endpoint.network == "backend"
    assert endpoint.address == "tcp:web:80"

    sidecar = endpoint.to_sidecar()
    assert sidecar.is_placeholder
    assert sidecar.address == "tcp:web:80"

    with raises(ExpectedNetworkEndpoint):
        parse_forwarding_destination("tcp:localhost:80")

    with raises(ExpectedNetworkEndpoint):
        parse_forwarding_destination("volume://cache")

    with raises(UnsupportedTransport):
        parse_forwarding_destination("network://backend:unix:/tmp/app.sock")

    with raises(InvalidEndpoint):
        parse_forwarding_destination("network://:tcp:web:80")

    with raises(InvalidEndpoint):
        parse_forwarding_destination("network://backend")


def test_synchronization(tmp_path: Path):
    alpha, beta = parse_synchronization_endpoints(
        "./app",
        "volume://cache/sub/dir",
        working_dir=tmp_path,
        os_type="linux",
    )

    assert alpha == LocalEndpoint(path=str(tmp_path / "app"))
    assert beta == VolumeEndpoint(volume="cache", path="/volumes/cache/sub/dir")

    # roles may be swapped, absolute paths kept as-is
    alpha, beta = parse_synchronization_endpoints(
        "volume://cache",
        "/srv/app",
        working_dir=tmp_path,
        os_type="linux",
    )

    assert alpha == VolumeEndpoint(volume="cache", path="/volumes/cache")
    assert beta == LocalEndpoint(path="/srv/app")


def test_synchronization_windows(tmp_path: Path):
    _, beta = parse_synchronization_endpoints(
        "./app", "volume://cache", working_dir=tmp_path, os_type="windows"
    )

    assert isinstance(beta, VolumeEndpoint)
    assert beta.path == "c:\\volumes\\cache"


def test_synchronization_errors(tmp_path: Path):
    def parse(alpha: str, beta: str):
        return parse_synchronization_endpoints(
            alpha, beta, working_dir=tmp_path, os_type="linux"
        )

    with raises(AmbiguousVolumeRole):
        parse("./app", "./other")

    with raises(AmbiguousVolumeRole):
        parse("volume://cache", "volume://other")

    with raises(UnsupportedProtocol):
        parse("host:/srv/app", "volume://cache")

    with raises(InvalidEndpoint):
        parse("./app", "volume://")

    with raises(InvalidEndpoint):
        parse("./app", "volume://cache/../escape")

    with raises(InvalidEndpoint):
        parse("./app", "volume://-cache")

    with raises(InvalidEndpoint):
        parse_synchronization_endpoints(
            "./app", "volume://cache", working_dir=tmp_path, os_type="plan9"
        )


def test_sidecar_endpoint():
    volume = SidecarEndpoint(address="/volumes/cache")
    network = SidecarEndpoint(address="tcp:web:80")

    assert volume.is_placeholder
    assert volume.environment == {}

    with raises(ValueError):
        volume.url

    volume.reify("0123456789ab", "unix:///var/run/docker.sock")
    network.reify("0123456789ab", "unix:///var/run/docker.sock")

    assert not volume.is_placeholder
    assert volume.url == "docker://0123456789ab/volumes/cache"
    assert network.url == "docker://0123456789ab:tcp:web:80"
    assert volume.environment == {"DOCKER_HOST": "unix:///var/run/docker.sock"}

    # can only be bound once
    with raises(ValueError):
        volume.reify("ba9876543210", "unix:///var/run/docker.sock")


def test_windows_sidecar_url():
    endpoint = SidecarEndpoint(address="c:\\volumes\\cache")
    endpoint.reify("0123456789ab", "npipe:////./pipe/docker_engine")

    assert endpoint.url == "docker://0123456789ab/c:\\volumes\\cache"
