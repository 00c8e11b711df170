from __future__ import annotations

import pytest

from vmanager_cli.frontend import wizard
from vmanager_cli.frontend.effects import ERROR, EndSession, Reply, Send
from vmanager_cli.frontend.wizard import (
    MSG_BAD_DATA,
    MSG_CANCELLED,
    WizardFlow,
    WizardSession,
    WizardSessions,
    WizardStep,
)
from vmanager_cli.protocol import BuildList, CreateServer, GetBuilds, GetVersions, SoftwareType, VersionList

VERSIONS = ("1.20.2", "1.20.4", "1.21")
BUILDS = (494, 495, 496)


def _sends(transition: wizard.Transition) -> list:
    return [e.message for e in transition.effects if isinstance(e, Send)]


def _texts(transition: wizard.Transition) -> list[str]:
    return [e.text for e in transition.effects if isinstance(e, Reply)]


def _at(step: WizardStep, flow: WizardFlow = WizardFlow.FULL) -> WizardSession:
    session = wizard.start(flow).session
    inputs = [
        (WizardStep.PORT, "lobby"),
        (WizardStep.TYPE, "25566"),
        (WizardStep.VERSION, "PaperMC"),
    ]
    for target, text in inputs:
        if session.step is step:
            return session
        session = wizard.advance(session, text).session
        assert session.step is target
    if step is WizardStep.VERSION:
        return session
    session = wizard.receive_versions(session, VersionList(SoftwareType.PAPERMC, VERSIONS)).session
    session = wizard.advance(session, "1.20.4").session
    if step is WizardStep.BUILD or session.step is step:
        return session
    session = wizard.receive_builds(session, BuildList(SoftwareType.PAPERMC, BUILDS)).session
    return wizard.advance(session, "495").session


def test_start_asks_for_name() -> None:
    t = wizard.start()
    assert t.session.step is WizardStep.NAME
    assert _texts(t) == ["Enter a name for the new server:"]


def test_name_needs_three_characters() -> None:
    session = wizard.start().session
    t = wizard.advance(session, "ab")
    assert t.session.step is WizardStep.NAME
    assert "Name must be at least 3 characters." in _texts(t)

    t = wizard.advance(session, "  abc  ")
    assert t.session.step is WizardStep.PORT
    assert t.session.name == "abc"


@pytest.mark.parametrize("value", ["1024", "65536", "0", "-5", "port", "", "1_025", "１０２５", "+1025", "25 565"])
def test_port_out_of_range_is_rejected(value: str) -> None:
    session = _at(WizardStep.PORT)
    t = wizard.advance(session, value)
    assert t.session.step is WizardStep.PORT
    assert "Invalid port. Must be a number between 1025-65535." in _texts(t)


@pytest.mark.parametrize("value", ["1025", "65535"])
def test_port_bounds_are_inclusive(value: str) -> None:
    t = wizard.advance(_at(WizardStep.PORT), value)
    assert t.session.step is WizardStep.TYPE
    assert t.session.port == int(value)


def test_type_is_case_insensitive_and_requests_versions() -> None:
    t = wizard.advance(_at(WizardStep.TYPE), "velocity")
    assert t.session.step is WizardStep.VERSION
    assert t.session.software is SoftwareType.VELOCITY
    assert _sends(t) == [GetVersions(SoftwareType.VELOCITY)]


def test_unknown_type_is_rejected() -> None:
    t = wizard.advance(_at(WizardStep.TYPE), "forge")
    assert t.session.step is WizardStep.TYPE
    assert "Invalid type. Please enter 'PaperMC' or 'Velocity'." in _texts(t)


def test_versions_are_offered_newest_first() -> None:
    session = _at(WizardStep.VERSION)
    assert wizard.waiting_for_catalog(session)
    t = wizard.receive_versions(session, VersionList(SoftwareType.PAPERMC, VERSIONS))
    assert t.session.available_versions == ("1.21", "1.20.4", "1.20.2")
    listing = [e for e in t.effects if isinstance(e, Reply) and e.suggestion]
    assert listing[0].suggestion == "1.21"
    assert not wizard.waiting_for_catalog(t.session)


def test_versions_for_other_software_are_ignored() -> None:
    session = _at(WizardStep.VERSION)
    t = wizard.receive_versions(session, VersionList(SoftwareType.VELOCITY, ("3.3.0",)))
    assert t.session == session
    assert t.effects == ()


def test_empty_version_list_aborts() -> None:
    t = wizard.receive_versions(_at(WizardStep.VERSION), VersionList(SoftwareType.PAPERMC, ()))
    assert t.ends_session
    assert t.session.finished


def test_version_must_come_from_list() -> None:
    session = wizard.receive_versions(
        _at(WizardStep.VERSION), VersionList(SoftwareType.PAPERMC, VERSIONS)
    ).session
    t = wizard.advance(session, "1.8.8")
    assert t.session.step is WizardStep.VERSION
    assert "Invalid version. Please select one from the list." in _texts(t)

    t = wizard.advance(session, "1.20.4")
    assert t.session.step is WizardStep.BUILD
    assert _sends(t) == [GetBuilds(SoftwareType.PAPERMC, "1.20.4")]


def test_latest_build_is_the_highest() -> None:
    t = wizard.receive_builds(_at(WizardStep.BUILD), BuildList(SoftwareType.PAPERMC, BUILDS))
    assert t.session.available_builds == (496, 495, 494)
    assert t.session.available_builds[0] == max(BUILDS)
    assert "Please choose a build (latest is 496):" in _texts(t)


def test_build_must_come_from_list() -> None:
    session = wizard.receive_builds(
        _at(WizardStep.BUILD), BuildList(SoftwareType.PAPERMC, BUILDS)
    ).session
    for value in ("497", "latest", "4_96", "４９６"):
        t = wizard.advance(session, value)
        assert t.session.step is WizardStep.BUILD
        assert "Invalid build number. Please select one from the list." in _texts(t)


def test_empty_build_list_aborts() -> None:
    t = wizard.receive_builds(_at(WizardStep.BUILD), BuildList(SoftwareType.PAPERMC, ()))
    assert t.ends_session
    assert Reply(MSG_BAD_DATA, ERROR) in t.effects


def test_confirmation_shows_summary() -> None:
    session = _at(WizardStep.BUILD)
    session = wizard.receive_builds(session, BuildList(SoftwareType.PAPERMC, BUILDS)).session
    t = wizard.advance(session, "495")
    assert t.session.step is WizardStep.CONFIRMATION
    texts = _texts(t)
    assert "Name: lobby" in texts
    assert "Port: 25566" in texts
    assert "Type: PaperMC" in texts
    assert "Version: 1.20.4" in texts
    assert "Build: 495" in texts


def test_yes_sends_creation_request() -> None:
    t = wizard.advance(_at(WizardStep.CONFIRMATION), "YES")
    assert t.ends_session
    assert _sends(t) == [
        CreateServer(
            {
                "serverName": "lobby",
                "port": "25566",
                "serverType": "PaperMC",
                "serverVersion": "1.20.4",
                "paperBuild": "495",
            }
        )
    ]


def test_no_cancels() -> None:
    t = wizard.advance(_at(WizardStep.CONFIRMATION), "no")
    assert t.ends_session
    assert _sends(t) == []
    assert MSG_CANCELLED in _texts(t)


def test_other_confirmation_answer_reprompts() -> None:
    t = wizard.advance(_at(WizardStep.CONFIRMATION), "maybe")
    assert t.session.step is WizardStep.CONFIRMATION
    assert not t.ends_session


@pytest.mark.parametrize(
    "step",
    [
        WizardStep.NAME,
        WizardStep.PORT,
        WizardStep.TYPE,
        WizardStep.VERSION,
        WizardStep.BUILD,
        WizardStep.CONFIRMATION,
    ],
)
def test_cancel_works_at_every_step(step: WizardStep) -> None:
    session = _at(step)
    assert session.step is step
    t = wizard.advance(session, " Cancel ")
    assert t.ends_session
    assert t.session.finished
    assert Reply(MSG_CANCELLED, ERROR) in t.effects
    assert _sends(t) == []


def test_reduced_flow_skips_build() -> None:
    session = _at(WizardStep.CONFIRMATION, WizardFlow.REDUCED)
    assert session.step is WizardStep.CONFIRMATION
    assert session.build is None
    t = wizard.advance(session, "yes")
    payload = _sends(t)[0].payload
    assert payload["paperBuild"] == "latest"


def test_velocity_payload_uses_velocity_build_key() -> None:
    session = WizardSession(
        step=WizardStep.CONFIRMATION,
        name="proxy",
        port=25577,
        software=SoftwareType.VELOCITY,
        version="3.3.0",
        build="400",
    )
    assert session.create_payload() == {
        "serverName": "proxy",
        "port": "25577",
        "serverType": "Velocity",
        "serverVersion": "3.3.0",
        "velocityBuild": "400",
    }


def test_abort_ends_with_error() -> None:
    t = wizard.abort(_at(WizardStep.TYPE))
    assert isinstance(t.effects[-1], EndSession)
    assert Reply(MSG_BAD_DATA, ERROR) in t.effects


def test_flow_parse() -> None:
    assert WizardFlow.parse(" Reduced ") is WizardFlow.REDUCED
    assert WizardFlow.parse(None) is WizardFlow.FULL
    with pytest.raises(ValueError):
        WizardFlow.parse("fast")


def test_sessions_start_replaces_existing() -> None:
    sessions = WizardSessions()
    sessions.start("alice")
    sessions.apply("alice", wizard.advance(sessions.get("alice"), "lobby"))
    assert sessions.get("alice").step is WizardStep.PORT
    sessions.start("alice")
    assert sessions.get("alice").step is WizardStep.NAME
    assert len(sessions) == 1


def test_sessions_drop_finished_session() -> None:
    sessions = WizardSessions()
    sessions.start("alice")
    sessions.apply("alice", wizard.advance(sessions.get("alice"), "cancel"))
    assert "alice" not in sessions
    assert not sessions.end("alice")


def test_sessions_expire_after_idle_ttl() -> None:
    now = [0.0]
    sessions = WizardSessions(ttl_s=600, clock=lambda: now[0])
    sessions.start("alice")
    now[0] = 500
    sessions.apply("alice", wizard.advance(sessions.get("alice"), "lobby"))
    now[0] = 1000
    assert sessions.get("alice") is not None
    now[0] = 1100
    assert sessions.sweep() == ["alice"]
    assert sessions.get("alice") is None
