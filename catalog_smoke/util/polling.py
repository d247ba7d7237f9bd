import logging
import time

from catalog_smoke.util.errors import PollTimeoutError

logger = logging.getLogger(__name__)


class PollPolicy:
    def __init__(self, interval: float, max_attempts: int = None, wait_first=False):
        """How often, and how many times, to probe a remote resource.

        Args:
            interval (float): Seconds to sleep between two attempts.
            max_attempts (int): Maximum number of attempts. None means no limit.
            wait_first (bool): Whether to sleep before the first attempt too.
        """
        self.interval = interval
        self.max_attempts = max_attempts
        self.wait_first = wait_first

    @classmethod
    def from_config(cls, section, defaults):
        """Build a policy from a (possibly missing or partial) configuration section.

        Args:
            section (dict): The configuration section, or None.
            defaults (dict): Values to use for the keys missing from the section.
        """
        values = dict(defaults)
        values.update(section or {})
        return cls(
            interval=values["interval"],
            max_attempts=values.get("max_attempts"),
            wait_first=values.get("wait_first", False),
        )

    def exhausted(self, attempts):
        return self.max_attempts is not None and attempts >= self.max_attempts


class PeriodicAction:
    def __init__(self, every: int, action, name="action"):
        """Loop state for an action that must run on the first iteration of a loop and
        then every `every` iterations.

        Failures of the action are logged and ignored: whatever it was supposed to do
        is checked by the probe that follows it.
        """
        self.every = every
        self.action = action
        self.name = name
        self.iteration = 0

    def tick(self):
        if self.iteration % self.every == 0:
            try:
                self.action()
            except Exception as e:
                logger.debug("Ignoring failed %s: %s", self.name, e)
        self.iteration += 1


def poll_until(probe, done, policy: PollPolicy, sleep=time.sleep, before_probe=None,
               what="condition"):
    """Call probe until its result satisfies done.

    Args:
        probe (callable): Returns the observed value.
        done (callable): Takes the observed value, returns True to stop polling.
        policy (PollPolicy): Interval and attempt cap.
        sleep (callable): Used for every wait, so tests can skip them.
        before_probe (callable): Optionally called before every probe.
        what (str): Description of what is waited for, for logs and errors.

    Returns:
        The first observed value that satisfied done.

    Raises:
        PollTimeoutError: The policy's attempt cap was reached.
    """
    attempts = 0
    while True:
        if attempts or policy.wait_first:
            sleep(policy.interval)

        if before_probe is not None:
            before_probe()

        result = probe()
        attempts += 1

        if done(result):
            return result

        logger.debug("Still waiting for %s (attempt %d): %r", what, attempts, result)

        if policy.exhausted(attempts):
            raise PollTimeoutError(what, attempts)


def retry(action, policy: PollPolicy, retry_on, sleep=time.sleep, what="action"):
    """Run action until it doesn't raise one of the retry_on exceptions.

    Returns:
        Whatever the action returned.

    Raises:
        The last exception raised by the action once the attempt cap is reached.
    """
    attempts = 0
    while True:
        if attempts or policy.wait_first:
            sleep(policy.interval)

        attempts += 1
        try:
            return action()
        except retry_on as e:
            if policy.exhausted(attempts):
                logger.error("Giving up on %s after %d attempts", what, attempts)
                raise
            logger.warning("%s failed (attempt %d), retrying: %s", what, attempts, e)
