from mutagen_compose import *


def test_ownership(sidecar_id: str):
    assert chop_identifier(sidecar_id) == "0123456789ab"
    assert chop_identifier("abc") == "abc"

    assert ownership_labels(sidecar_id) == {OWNER_LABEL_KEY: "0123456789ab"}

    selection = ownership_selection(sidecar_id)
    assert selection.label_selector == "sidecar-session-owner==0123456789ab"
    assert selection.identifiers == ()
    assert str(selection) == "sidecar-session-owner==0123456789ab"


def test_reify(project: Project, builder: SpecificationBuilder, sidecar_id: str):
    result = builder.build(project)

    reify_specifications(
        result.specifications, sidecar_id, "unix:///var/run/docker.sock"
    )

    web = result.forwarding["web"]
    data = result.synchronization["data"]

    assert web.urls == (
        "tcp:localhost:8080",
        f"docker://{sidecar_id}:tcp:web:80",
    )
    assert data.urls == (
        str(project.working_dir / "app"),
        f"docker://{sidecar_id}/volumes/cache",
    )

    for specification in result.specifications:
        assert specification.labels == {OWNER_LABEL_KEY: "0123456789ab"}
        assert specification.environment == {
            "DOCKER_HOST": "unix:///var/run/docker.sock"
        }
        assert all(not e.is_placeholder for e in specification.placeholders)


def test_selection():
    selection = Selection.of(["sync_1", "sync_2"])

    assert selection.identifiers == ("sync_1", "sync_2")
    assert selection.label_selector is None
    assert str(selection) == "sync_1, sync_2"
