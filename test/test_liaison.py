from pytest import raises

from mutagen_compose import *

OTHER_SIDECAR_ID = "fedcba9876543210fedcba9876543210"


def test_up(
    project: Project, liaison: Liaison, orchestrator, daemon, engine, sidecar_id
):
    before = project.to_compose()

    liaison.up(project, args=["--build"])

    # sidecar comes up by itself before user services
    assert orchestrator.calls == [
        ("up", ("mutagen",), ("mutagen",)),
        ("up", ("web", "db", "mutagen"), ("web", "db")),
    ]

    assert daemon.operations == ["resume", "resume", "create", "create", "flush"]

    (web,) = daemon.sessions[SessionKind.FORWARDING]
    (data,) = daemon.sessions[SessionKind.SYNCHRONIZATION]
    assert web.urls[1] == f"docker://{sidecar_id}:tcp:web:80"
    assert data.urls[1] == f"docker://{sidecar_id}/volumes/cache"
    assert web.labels == {OWNER_LABEL_KEY: sidecar_id[:12]}

    assert engine.sidecar_ids("demo") == [sidecar_id]

    # caller's project untouched
    assert project.to_compose() == before


def test_up_again(project: Project, liaison: Liaison, orchestrator, daemon):
    liaison.up(project)
    orchestrator.calls.clear()
    daemon.calls.clear()

    liaison.up(project)

    assert orchestrator.calls == [
        ("stop", ("mutagen",), ("mutagen",)),
        ("up", ("mutagen",), ("mutagen",)),
        ("up", ("web", "db", "mutagen"), ("web", "db")),
    ]

    # sessions already current
    assert daemon.operations == ["resume", "resume"]


def test_up_replaced_sidecar(
    project: Project, liaison: Liaison, orchestrator, daemon, sidecar_id
):
    liaison.up(project)
    daemon.calls.clear()

    orchestrator.sidecar_id = OTHER_SIDECAR_ID
    liaison.up(project)

    # sessions of the previous sidecar terminated before reconciling
    assert daemon.operations[0] == "terminate"
    assert daemon.calls[0] == (
        "terminate",
        SessionKind.FORWARDING,
        f"{OWNER_LABEL_KEY}=={sidecar_id[:12]}",
    )

    for states in daemon.sessions.values():
        (state,) = states
        assert state.labels == {OWNER_LABEL_KEY: OTHER_SIDECAR_ID[:12]}


def test_up_invalid(make_project, liaison: Liaison, orchestrator, daemon):
    project = make_project(
        {
            "services": {"web": {"image": "nginx"}},
            "x-mutagen": {
                "sync": {"data": {"alpha": "./app", "beta": "./other"}}
            },
        }
    )

    with raises(AmbiguousVolumeRole):
        liaison.up(project)

    # nothing happens before the project is validated
    assert orchestrator.calls == []
    assert daemon.calls == []


def test_up_no_sessions(make_project, liaison: Liaison, orchestrator, daemon):
    project = make_project({"services": {"web": {"image": "nginx"}}})

    liaison.up(project)

    assert orchestrator.calls[-1] == ("up", ("web", "mutagen"), ("web",))
    assert "create" not in daemon.operations
    assert "flush" not in daemon.operations


def test_up_daemon_error(project: Project, liaison: Liaison, orchestrator, daemon):
    daemon.fail["create"] = "connection refused"

    with raises(DaemonError):
        liaison.up(project)

    # user services aren't brought up
    assert orchestrator.calls == [("up", ("mutagen",), ("mutagen",))]


def test_create(project: Project, liaison: Liaison, orchestrator, daemon):
    liaison.create(project)

    assert orchestrator.calls == [
        ("create", ("mutagen",), ("mutagen",)),
        ("create", ("web", "db", "mutagen"), ("web", "db")),
    ]
    assert daemon.calls == []


def test_start(project: Project, liaison: Liaison, orchestrator, daemon):
    # no sidecar container yet
    with raises(CollaboratorError):
        liaison.start(project)

    liaison.create(project)
    orchestrator.calls.clear()

    liaison.start(project)

    assert orchestrator.calls == [
        ("start", ("web", "db", "mutagen"), ("mutagen",)),
        ("start", ("web", "db", "mutagen"), ("web", "db")),
    ]
    assert "create" in daemon.operations


def test_stop(project: Project, liaison: Liaison, orchestrator, daemon):
    liaison.up(project)
    orchestrator.calls.clear()
    daemon.calls.clear()

    # stopping only user services leaves sessions running
    liaison.stop(project, ["web"])
    assert daemon.calls == []
    assert orchestrator.calls == [("stop", ("web", "db", "mutagen"), ("web",))]

    liaison.stop(project)
    assert daemon.operations == ["pause", "pause"]
    assert orchestrator.calls[-1] == ("stop", ("web", "db", "mutagen"), ())

    assert all(s.paused for states in daemon.sessions.values() for s in states)


def test_down(project: Project, liaison: Liaison, orchestrator, daemon, engine):
    liaison.up(project)
    orchestrator.calls.clear()
    daemon.calls.clear()

    liaison.down(project, args=["--volumes"])

    assert daemon.operations == ["terminate", "terminate"]
    assert daemon.sessions == {kind: [] for kind in SessionKind}
    assert orchestrator.calls == [("down", ("web", "db", "mutagen"), ())]
    assert engine.sidecar_ids("demo") == []

    # nothing to terminate once the sidecar is gone
    daemon.calls.clear()
    liaison.down(project)
    assert daemon.calls == []


def test_pull(project: Project, liaison: Liaison, orchestrator):
    liaison.pull(project)
    liaison.pull(project, ["web"])

    assert orchestrator.calls == [
        ("pull", ("web", "db", "mutagen"), ()),
        ("pull", ("web", "db", "mutagen"), ("web",)),
    ]


def test_ps(project: Project, liaison: Liaison, orchestrator):
    assert liaison.ps(project) == {kind: [] for kind in SessionKind}

    liaison.up(project)
    sessions = liaison.ps(project)

    assert [s.name for s in sessions[SessionKind.FORWARDING]] == ["web"]
    assert [s.name for s in sessions[SessionKind.SYNCHRONIZATION]] == ["data"]
    assert orchestrator.calls[-1] == ("ps", ("web", "db", "mutagen"), ())


def test_sessions(project: Project, liaison: Liaison, daemon):
    with raises(CollaboratorError):
        liaison.pause_sessions(project)

    liaison.up(project)

    liaison.pause_sessions(project)
    assert all(s.paused for states in daemon.sessions.values() for s in states)

    liaison.resume_sessions(project)
    assert not any(
        s.paused for states in daemon.sessions.values() for s in states
    )

    liaison.terminate_sessions(project)
    assert liaison.list_sessions(project) == {kind: [] for kind in SessionKind}


def test_multiple_sidecars(
    project: Project, liaison: Liaison, engine, sidecar_id
):
    engine.sidecars["demo"] = [sidecar_id, OTHER_SIDECAR_ID]

    with raises(CollaboratorError):
        liaison.list_sessions(project)
