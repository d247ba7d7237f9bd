import pytest

from catalog_smoke.stack.bootstrap import StackBootstrapper
from catalog_smoke.util.errors import BootstrapError, ConnectivityError
from catalog_smoke.util.polling import PollPolicy
from tests.conftest import FakeExecutor


def _is_check(command):
    return command.startswith("test -x")


def _bootstrapper(executor, sleep, max_attempts=10):
    return StackBootstrapper(
        executor, PollPolicy(30, max_attempts=max_attempts, wait_first=True), sleep=sleep
    )


def test_does_nothing_when_already_installed(sleep):
    executor = FakeExecutor().on(_is_check, exit_status=0)

    _bootstrapper(executor, sleep).setup("192.0.2.10")

    assert executor.commands == [("192.0.2.10", "test -x /opt/csw/bin/pkgutil")]


def test_installs_in_a_single_short_circuiting_command(sleep):
    executor = FakeExecutor().on(_is_check, exit_status=1)
    bootstrapper = _bootstrapper(executor, sleep)

    bootstrapper.setup("192.0.2.10")

    assert len(executor.commands) == 2
    command = executor.commands[1][1]
    assert command == " && ".join(bootstrapper.steps())


def test_steps_order():
    steps = StackBootstrapper(FakeExecutor(), PollPolicy(1), aliases=("pkgadd",)).steps()

    assert steps[0] == "pkgin -y install perl"
    assert steps[1] == "mkdir -p /opt/csw/bin"
    assert steps[2].startswith("curl ") and steps[2].endswith("https://get.opencsw.org/pkgutil")
    assert steps[3] == "chmod 755 /opt/csw/bin/pkgutil"
    assert steps[4] == "ln -sf /opt/csw/bin/pkgutil /opt/csw/bin/pkgadd"
    assert steps[5] == "/opt/csw/bin/pkgutil -U"
    assert "mirror=" in steps[6]
    assert steps[7] == "/opt/csw/bin/pkgutil -y -u pkgutil"


def test_failure_carries_output(sleep):
    executor = FakeExecutor() \
        .on(_is_check, exit_status=1) \
        .on(lambda c: True, output="curl: (6) Could not resolve host\n", exit_status=6)

    with pytest.raises(BootstrapError) as excinfo:
        _bootstrapper(executor, sleep).setup("192.0.2.10")

    assert "Could not resolve host" in excinfo.value.output


def test_retries_whole_setup_until_ssh_is_up(sleep):
    attempts = []

    class FlakyExecutor(FakeExecutor):
        def execute(self, host, command):
            attempts.append(command)
            if len(attempts) < 3:
                raise ConnectivityError("Connection refused")
            return super().execute(host, command)

    executor = FlakyExecutor().on(_is_check, exit_status=0)

    _bootstrapper(executor, sleep).setup_with_retries("192.0.2.10")

    assert len(attempts) == 3
    assert sleep.calls == [30, 30, 30]


def test_gives_up_after_max_attempts(sleep):
    executor = FakeExecutor().on(lambda c: True, output="boom", exit_status=1)

    with pytest.raises(BootstrapError) as excinfo:
        _bootstrapper(executor, sleep, max_attempts=3).setup_with_retries("192.0.2.10")

    assert excinfo.value.output == "boom"
    # One check and one setup command per attempt.
    assert len(executor.commands) == 6


def test_unreachable_host_reported_as_bootstrap_error(sleep):
    executor = FakeExecutor().on(lambda c: True, output=ConnectivityError("refused"))

    with pytest.raises(BootstrapError):
        _bootstrapper(executor, sleep, max_attempts=2).setup_with_retries("192.0.2.10")
