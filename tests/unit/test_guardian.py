import asyncio
from datetime import timedelta

from skysocial.domain import AuthRecovery, GuardianState, RemoteCallError, SessionEndReason
from skysocial.services import SessionGuardian


def _auth_error() -> RemoteCallError:
    return RemoteCallError("Unauthorized", operation="get_timeline", status=401)


class Hooks:
    def __init__(self, *, refresh_result=True, valid=True, authenticated=True) -> None:
        self.refresh_result = refresh_result
        self.valid = valid
        self.authenticated = authenticated
        self.refresh_gate = None
        self.end_gate = None
        self.refreshes = 0
        self.ends = 0
        self.validations = 0

    async def refresh(self) -> bool:
        self.refreshes += 1
        if self.refresh_gate is not None:
            await self.refresh_gate.wait()
        if isinstance(self.refresh_result, BaseException):
            raise self.refresh_result
        return self.refresh_result

    async def end_session(self) -> None:
        self.ends += 1
        self.authenticated = False
        if self.end_gate is not None:
            await self.end_gate.wait()

    async def validate(self) -> bool:
        self.validations += 1
        if isinstance(self.valid, BaseException):
            raise self.valid
        return self.valid

    def guardian(self, **kwargs) -> SessionGuardian:
        return SessionGuardian(
            refresh=self.refresh,
            end_session=self.end_session,
            validate=self.validate,
            is_authenticated=lambda: self.authenticated,
            **kwargs,
        )


def test_concurrent_auth_failures_trigger_a_single_refresh() -> None:
    async def scenario() -> None:
        hooks = Hooks()
        hooks.refresh_gate = asyncio.Event()
        guardian = hooks.guardian()

        first = asyncio.ensure_future(guardian.report_auth_error(_auth_error()))
        await asyncio.sleep(0)
        assert guardian.state is GuardianState.REFRESHING
        second = await guardian.report_auth_error(_auth_error())
        hooks.refresh_gate.set()

        assert second is AuthRecovery.IGNORED
        assert await first is AuthRecovery.RETRY_NOW
        assert hooks.refreshes == 1
        assert guardian.state is GuardianState.IDLE

    asyncio.run(scenario())


def test_failed_refresh_logs_out_exactly_once() -> None:
    async def scenario() -> None:
        hooks = Hooks(refresh_result=False)
        hooks.end_gate = asyncio.Event()
        guardian = hooks.guardian()
        events = []
        guardian.subscribe(events.append)

        first = asyncio.ensure_future(guardian.report_auth_error(_auth_error()))
        await asyncio.sleep(0)
        assert guardian.state is GuardianState.LOGGING_OUT
        late = await guardian.report_auth_error(_auth_error())
        hooks.end_gate.set()

        assert await first is AuthRecovery.LOGGED_OUT
        assert late is AuthRecovery.IGNORED
        assert hooks.ends == 1
        assert [event.reason for event in events] == [SessionEndReason.EXPIRED]
        assert guardian.state is GuardianState.IDLE

    asyncio.run(scenario())


def test_refresh_raising_remote_error_is_treated_as_failure() -> None:
    async def scenario() -> None:
        hooks = Hooks(refresh_result=RemoteCallError("revoked", operation="refresh_session", status=400))
        guardian = hooks.guardian()

        assert await guardian.report_auth_error(_auth_error()) is AuthRecovery.LOGGED_OUT
        assert hooks.ends == 1

    asyncio.run(scenario())


def test_non_auth_errors_and_missing_sessions_are_ignored() -> None:
    async def scenario() -> None:
        hooks = Hooks()
        guardian = hooks.guardian()
        not_auth = await guardian.report_auth_error(RemoteCallError("boom", operation="x", status=500))

        hooks.authenticated = False
        without_session = await guardian.report_auth_error(_auth_error())

        assert not_auth is AuthRecovery.NOT_AUTH
        assert without_session is AuthRecovery.IGNORED
        assert hooks.refreshes == 0

    asyncio.run(scenario())


def test_sign_out_notifies_listeners_unless_recovery_is_running() -> None:
    async def scenario() -> None:
        hooks = Hooks()
        guardian = hooks.guardian()
        events = []
        unsubscribe = guardian.subscribe(events.append)

        assert await guardian.sign_out()
        assert [event.reason for event in events] == [SessionEndReason.SIGNED_OUT]

        hooks.authenticated = True
        hooks.refresh_gate = asyncio.Event()
        pending = asyncio.ensure_future(guardian.report_auth_error(_auth_error()))
        await asyncio.sleep(0)
        assert not await guardian.sign_out()
        hooks.refresh_gate.set()
        await pending

        unsubscribe()
        await guardian.sign_out()
        assert len(events) == 1

    asyncio.run(scenario())


def test_periodic_validation_never_logs_out() -> None:
    async def scenario() -> None:
        hooks = Hooks(valid=False)
        guardian = hooks.guardian()

        assert await guardian.periodic_validate() is False
        hooks.valid = RemoteCallError("network down", operation="validate_session")
        assert await guardian.periodic_validate() is False
        hooks.valid = True
        assert await guardian.periodic_validate() is True
        hooks.authenticated = False
        assert await guardian.periodic_validate() is None

        assert hooks.validations == 3
        assert hooks.ends == 0

    asyncio.run(scenario())


def test_start_runs_periodic_validation_until_stopped() -> None:
    async def scenario() -> None:
        hooks = Hooks()
        guardian = hooks.guardian(validate_interval=timedelta(milliseconds=1))

        guardian.start()
        assert guardian.running
        await asyncio.sleep(0.05)
        await guardian.stop()

        assert not guardian.running
        assert hooks.validations >= 1

    asyncio.run(scenario())


def test_raising_listener_does_not_wedge_the_guardian() -> None:
    async def scenario() -> None:
        hooks = Hooks(refresh_result=False)
        guardian = hooks.guardian()
        events = []

        def broken(event) -> None:
            raise RuntimeError("listener crashed")

        guardian.subscribe(broken)
        guardian.subscribe(events.append)

        assert await guardian.report_auth_error(_auth_error()) is AuthRecovery.LOGGED_OUT
        assert guardian.state is GuardianState.IDLE
        assert [event.reason for event in events] == [SessionEndReason.EXPIRED]

        hooks.authenticated = True
        assert await guardian.report_auth_error(_auth_error()) is AuthRecovery.LOGGED_OUT
        assert hooks.refreshes == 2
        assert await guardian.sign_out()

    asyncio.run(scenario())


def test_app_becoming_active_validates_without_logging_out() -> None:
    async def scenario() -> None:
        hooks = Hooks(valid=False)
        guardian = hooks.guardian()

        assert await guardian.on_app_active() is False
        hooks.authenticated = False
        assert await guardian.on_app_active() is None

        assert hooks.validations == 1
        assert hooks.ends == 0

    asyncio.run(scenario())


def test_periodic_task_survives_unexpected_validation_errors() -> None:
    async def scenario() -> None:
        hooks = Hooks(valid=TypeError("bad client response"))
        guardian = hooks.guardian(validate_interval=timedelta(milliseconds=1))

        guardian.start()
        await asyncio.sleep(0.05)
        assert guardian.running
        await guardian.stop()

        assert hooks.validations >= 2
        assert hooks.ends == 0

    asyncio.run(scenario())
