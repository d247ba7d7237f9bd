import contextlib
import logging
import os
import socket
import time

from catalog_smoke.instances.instances_provider_client import (
    Instance,
    InstancesProviderClient,
    InstanceState,
)
from catalog_smoke.util.errors import (
    InstanceCreationError,
    PollTimeoutError,
    ProvisioningFailedError,
    TeardownError,
    TransientNetworkError,
)
from catalog_smoke.util.polling import PeriodicAction, PollPolicy, poll_until

logger = logging.getLogger(__name__)


def make_creation_tag():
    """Generate a tag that's unique to this run: the host's name, the process's ID and
    the current time."""
    return "%s-%d-%d" % (socket.gethostname(), os.getpid(), int(time.time()))


class InstanceLifecycleManager:
    def __init__(self, client: InstancesProviderClient, policies, sleep=time.sleep,
                 stop_every=10):
        """Create, wait for and tear down a single instance.

        Args:
            client (InstancesProviderClient): The client for the instances provider.
            policies (dict): The PollPolicy to use for each of the "reconcile",
                "provisioning", "stop" and "delete" loops.
            sleep (callable): The function to wait with.
            stop_every (int): While waiting for the instance to stop, how many polls to
                do between two stop requests.
        """
        self.client = client
        self.policies = policies
        self.sleep = sleep
        self.stop_every = stop_every

    def _policy(self, name) -> PollPolicy:
        return self.policies[name]

    def _observe(self, instance: Instance):
        """Poll the state of the instance and record it if it's one we know of.

        Returns:
            str: The state reported by the provider, None if the query failed.
        """
        try:
            remote_state = self.client.get_state(instance.instance_id)
        except TransientNetworkError as e:
            logger.debug("Could not get the state of %s: %s", instance.instance_id, e)
            return None

        state = InstanceState.from_remote(remote_state)
        if state is not None and state != instance.state:
            logger.debug(
                "Instance %s: %s -> %s",
                instance.instance_id, instance.state.value, state.value,
            )
            instance.state = state

        return remote_state

    def _reconcile(self, package, creation_tag):
        """Look for an instance carrying the creation tag, for when the creation call
        didn't tell us whether the instance was created.

        Returns:
            str: The ID of the instance, or None if none could be found.
        """
        def probe():
            try:
                return self.client.find_instances(package, creation_tag)
            except TransientNetworkError as e:
                logger.debug("Tag lookup failed: %s", e)
                return []

        try:
            instance_ids = poll_until(
                probe,
                lambda ids: bool(ids),
                self._policy("reconcile"),
                sleep=self.sleep,
                what="an instance tagged %s" % creation_tag,
            )
        except PollTimeoutError:
            return None

        if len(instance_ids) > 1:
            logger.error(
                "Found several instances tagged %s, using %s. The others (%s) need to be"
                " deleted manually.",
                creation_tag, instance_ids[0], ", ".join(instance_ids[1:]),
            )

        return instance_ids[0]

    def request_instance(self, image_name, package) -> Instance:
        """Ask the provider for a new instance, and make sure we know its ID.

        If the creation call doesn't give an answer, look the instance up by its creation
        tag instead of assuming it was, or wasn't, created.

        Args:
            image_name (str): The name of the image to create the instance from. The most
                recently published image with that name is used.
            package (str): The instance type.

        Returns:
            Instance: The instance, in the PROVISIONING state.

        Raises:
            InstanceCreationError: The instance couldn't be created, or its ID couldn't
                be found out.
        """
        instance = Instance(creation_tag=make_creation_tag(), package=package)

        image_id = self.client.find_latest_image(image_name)

        logger.info("Creating instance (tag %s)...", instance.creation_tag)

        try:
            instance_id = self.client.create_instance(
                image_id, package, instance.creation_tag
            )
        except TransientNetworkError as e:
            logger.warning("Creation call failed: %s", e)
            instance_id = None

        if not instance_id:
            logger.warning(
                "No usable answer from the creation call, looking the instance up by its"
                " tag..."
            )
            instance_id = self._reconcile(package, instance.creation_tag)

        if not instance_id:
            raise InstanceCreationError(
                "Could not find any instance tagged %s" % instance.creation_tag
            )

        instance.instance_id = instance_id
        instance.state = InstanceState.PROVISIONING

        logger.info("Instance %s requested", instance_id)

        return instance

    def wait_until_running(self, instance: Instance):
        """Poll the instance until it's running.

        Raises:
            ProvisioningFailedError: The instance ended up in the failed state, or
                didn't become running in time.
        """
        logger.info("Waiting for instance %s to become running...", instance.instance_id)

        try:
            remote_state = poll_until(
                lambda: self._observe(instance),
                lambda s: s in (InstanceState.RUNNING.value, InstanceState.FAILED.value),
                self._policy("provisioning"),
                sleep=self.sleep,
                what="instance %s to be running" % instance.instance_id,
            )
        except PollTimeoutError as e:
            raise ProvisioningFailedError(str(e))

        if remote_state == InstanceState.FAILED.value:
            raise ProvisioningFailedError(
                "Instance %s failed to provision" % instance.instance_id
            )

    def create(self, image_name, package) -> Instance:
        """Request an instance and wait for it to be running."""
        instance = self.request_instance(image_name, package)
        self.wait_until_running(instance)
        return instance

    def get_ip(self, instance: Instance):
        """Retrieve the instance's address. Returns None if it couldn't be retrieved."""
        try:
            instance.ip_address = self.client.get_ip(instance.instance_id)
        except TransientNetworkError as e:
            logger.warning("Could not get the instance's address: %s", e)
            return None

        return instance.ip_address

    def teardown(self, instance: Instance):
        """Stop then delete the instance.

        Stop and delete requests are sent again and again, and their own results are
        ignored: only the state reported by the provider tells when to move on.

        Raises:
            TeardownError: The instance didn't reach the stopped or deleted state within
                the configured number of attempts.
        """
        instance_id = instance.instance_id
        logger.info("Tearing down instance %s...", instance_id)

        stop = PeriodicAction(
            self.stop_every, lambda: self.client.stop_instance(instance_id), "stop"
        )
        delete = PeriodicAction(
            1, lambda: self.client.delete_instance(instance_id), "delete"
        )

        # A failed instance never stops, but it can be deleted.
        stopped = (
            InstanceState.STOPPED.value,
            InstanceState.FAILED.value,
            InstanceState.DELETED.value,
        )

        try:
            poll_until(
                lambda: self._observe(instance),
                lambda s: s in stopped,
                self._policy("stop"),
                sleep=self.sleep,
                before_probe=stop.tick,
                what="instance %s to stop" % instance_id,
            )

            if instance.state != InstanceState.DELETED:
                poll_until(
                    lambda: self._observe(instance),
                    lambda s: s == InstanceState.DELETED.value,
                    self._policy("delete"),
                    sleep=self.sleep,
                    before_probe=delete.tick,
                    what="instance %s to be deleted" % instance_id,
                )
        except PollTimeoutError as e:
            raise TeardownError(
                "%s. The instance may need to be deleted manually." % e
            )

        logger.info("Instance %s deleted", instance_id)

    @contextlib.contextmanager
    def provisioned(self, image_name, package, keep=False):
        """Provide a running instance, and tear it down when leaving the block, however
        it is left.

        The teardown is guaranteed as soon as the instance's ID is known, i.e. also if
        waiting for the instance to become running fails.

        Args:
            image_name (str): The name of the image to create the instance from.
            package (str): The instance type.
            keep (bool): Don't tear down the instance when leaving the block.
        """
        instance = self.request_instance(image_name, package)

        try:
            self.wait_until_running(instance)
            yield instance
        except BaseException:
            if not keep:
                # Don't let a failed teardown hide the error that got us here.
                try:
                    self.teardown(instance)
                except TeardownError as e:
                    logger.error("%s", e)
            raise

        if keep:
            logger.info("Keeping instance %s", instance.instance_id)
        else:
            self.teardown(instance)
