"""End-to-end tests for the avatar session pipeline."""

import asyncio

import pytest

from pngtuber.errors import ErrorKind, PermissionDenied, RemoteUnavailable
from pngtuber.remote import OpCode, RemoteLevelClient
from pngtuber.session import AvatarSession, RemoteSource, SourceSelection
from pngtuber.utils.config_loader import AvatarConfig

from conftest import SourceFactory, wait_until


def volume_response(mul: float) -> dict:
    return {
        "requestType": "GetInputVolume",
        "requestId": "volume-1",
        "requestStatus": {"result": True, "code": 100},
        "responseData": {"inputVolumeMul": mul},
    }


class TestObsScenario:
    @pytest.mark.asyncio
    async def test_multiplier_sequence_drives_mouth(self, connection, connector, presenter):
        config = AvatarConfig(threshold=30, obs_mode=True)
        session = AvatarSession(
            config,
            presenter,
            local_factory=SourceFactory(SourceSelection.LOCAL),
            remote_factory=lambda: RemoteSource(
                RemoteLevelClient(connector=connector, poll_interval=0.001)
            ),
        )
        await session.start()

        connection.feed(OpCode.HELLO, {"rpcVersion": 1})
        connection.feed(OpCode.IDENTIFIED, {"negotiatedRpcVersion": 1})
        await wait_until(lambda: session.selection == SourceSelection.REMOTE)

        transitions_at = {}
        for index, mul in enumerate([0.1, 0.1, 0.9, 0.9, 0.1, 0.1, 0.1], start=1):
            before = len(presenter.talk_states)
            connection.feed(OpCode.REQUEST_RESPONSE, volume_response(mul))
            await wait_until(lambda: len(presenter.volumes) == index)
            if len(presenter.talk_states) > before:
                transitions_at[index] = presenter.talk_states[-1]

        assert transitions_at == {3: True, 6: False}
        assert presenter.volumes[2] == pytest.approx(30.57)
        assert presenter.errors == []

        await session.stop()
        assert connection.closed is True


class TestStartModes:
    @pytest.mark.asyncio
    async def test_idle_until_microphone_enabled(self, presenter):
        local = SourceFactory(SourceSelection.LOCAL)
        session = AvatarSession(AvatarConfig(), presenter, local_factory=local)

        await session.start()
        assert session.selection == SourceSelection.UNDETERMINED
        assert local.created == []

        assert await session.enable_microphone() is True
        assert session.selection == SourceSelection.LOCAL
        assert await session.enable_microphone() is False
        assert len(local.created) == 1
        await session.stop()

    @pytest.mark.asyncio
    async def test_auto_capture(self, presenter):
        local = SourceFactory(SourceSelection.LOCAL)
        session = AvatarSession(AvatarConfig(), presenter, local_factory=local)

        await session.start(auto_capture=True)
        assert session.selection == SourceSelection.LOCAL
        await session.stop()

    @pytest.mark.asyncio
    async def test_obs_mode_tries_remote_first(self, presenter):
        local = SourceFactory(SourceSelection.LOCAL)
        remote = SourceFactory(SourceSelection.REMOTE)
        session = AvatarSession(
            AvatarConfig(obs_mode=True), presenter, local_factory=local, remote_factory=remote
        )

        await session.start()
        assert len(remote.created) == 1
        assert local.created == []
        assert session.arbiter.deadline_armed is True
        await session.stop()

    def test_deadline_follows_handshake_timeout(self):
        config = AvatarConfig()
        config.remote.handshake_timeout = 1.5
        session = AvatarSession(config, local_factory=SourceFactory(SourceSelection.LOCAL))
        assert session.arbiter.deadline == 1.5


class TestPresentation:
    @pytest.mark.asyncio
    async def test_reports_smoothed_volume(self, presenter):
        local = SourceFactory(SourceSelection.LOCAL)
        session = AvatarSession(AvatarConfig(threshold=30), presenter, local_factory=local)
        await session.start(auto_capture=True)

        local.last.emit(100.0)
        local.last.emit(100.0)

        assert presenter.volumes == [pytest.approx(30.0), pytest.approx(51.0)]
        assert presenter.talk_states == [True]
        assert session.is_talking is True
        assert session.smoothed_volume == pytest.approx(51.0)
        await session.stop()

    @pytest.mark.asyncio
    async def test_threshold_change(self, presenter):
        local = SourceFactory(SourceSelection.LOCAL)
        session = AvatarSession(AvatarConfig(threshold=30), presenter, local_factory=local)
        await session.start(auto_capture=True)

        for _ in range(10):
            local.last.emit(20.0)
        assert presenter.talk_states == []

        assert session.set_threshold(10) == 10
        local.last.emit(20.0)
        assert presenter.talk_states == [True]

        assert session.set_threshold(250) == 100
        assert session.threshold == 100
        assert session.config.threshold == 100
        assert session.set_threshold(-5) == 0
        await session.stop()

    @pytest.mark.asyncio
    async def test_stop_closes_mouth(self, presenter):
        local = SourceFactory(SourceSelection.LOCAL)
        session = AvatarSession(AvatarConfig(), presenter, local_factory=local)
        await session.start(auto_capture=True)
        for _ in range(5):
            local.last.emit(90.0)

        await session.stop()

        assert presenter.talk_states == [True, False]
        assert session.is_talking is False
        assert local.last.stopped is True

    @pytest.mark.asyncio
    async def test_presenter_errors_are_contained(self):
        local = SourceFactory(SourceSelection.LOCAL)
        session = AvatarSession(AvatarConfig(), local_factory=local)

        def explode(*args):
            raise RuntimeError("canvas gone")

        session.presenter.on_volume_level = explode
        session.presenter.on_talk_state_changed = explode
        await session.start(auto_capture=True)

        for _ in range(5):
            local.last.emit(90.0)
        assert session.is_talking is True
        await session.stop()


class TestErrors:
    @pytest.mark.asyncio
    async def test_permission_denied(self, presenter):
        local = SourceFactory(SourceSelection.LOCAL, PermissionDenied("Microphone access denied"))
        session = AvatarSession(AvatarConfig(), presenter, local_factory=local)

        assert await session.enable_microphone() is True

        assert presenter.errors == [(ErrorKind.PERMISSION_DENIED, "Microphone access denied")]
        assert isinstance(session.last_error, PermissionDenied)
        assert session.is_talking is False
        await session.stop()

    @pytest.mark.asyncio
    async def test_total_failure_leaves_avatar_idle(self, presenter):
        local = SourceFactory(SourceSelection.LOCAL, PermissionDenied("Microphone access denied"))
        remote = SourceFactory(SourceSelection.REMOTE)
        session = AvatarSession(
            AvatarConfig(obs_mode=True), presenter, local_factory=local, remote_factory=remote
        )
        await session.start()

        remote.last.ready()
        for _ in range(5):
            remote.last.emit(90.0)
        assert presenter.talk_states == [True]

        remote.last.fail(RemoteUnavailable("Connection closed by OBS"))
        await wait_until(lambda: presenter.errors)

        assert presenter.talk_states == [True, False]
        assert presenter.errors[0][0] == ErrorKind.TOTAL_FAILURE
        assert session.selection == SourceSelection.LOCAL
        assert session.is_talking is False
        await session.stop()

    @pytest.mark.asyncio
    async def test_remote_failure_alone_is_not_surfaced(self, presenter):
        local = SourceFactory(SourceSelection.LOCAL)
        remote = SourceFactory(SourceSelection.REMOTE)
        session = AvatarSession(
            AvatarConfig(obs_mode=True), presenter, local_factory=local, remote_factory=remote
        )
        await session.start()

        remote.last.fail(RemoteUnavailable("Connection refused"))
        await wait_until(lambda: session.selection == SourceSelection.LOCAL)
        await asyncio.sleep(0)

        assert presenter.errors == []
        assert session.last_error is None
        await session.stop()
