import argparse
import logging

from catalog_smoke.instances.instances_provider_client import Instance
from catalog_smoke.runner.run import build_lifecycle_manager
from catalog_smoke.util import errors

logger = logging.getLogger(__name__)


def delete_instances(lifecycle, instance_ids):
    """Tear down the given instances one after the other. If an instance can't be torn
    down, log the error and carry on with the next one.

    Args:
        lifecycle (InstanceLifecycleManager): Manages the instances.
        instance_ids (list): The IDs of the instances to tear down.

    Returns:
        int: The number of instances that couldn't be torn down.
    """
    failures = 0

    for instance_id in instance_ids:
        try:
            lifecycle.teardown(Instance(instance_id=instance_id))
        except errors.SmokeTestError as e:
            logger.error("Could not delete instance %s: %s", instance_id, e)
            failures += 1

    return failures


def delete(config):
    """Tear down instances left behind by smoke test runs.

    Args:
        config (dict): The parsed configuration.

    Raises:
        TeardownError: At least one of the instances couldn't be torn down.
    """
    args = parse_args()

    failures = delete_instances(build_lifecycle_manager(config), args.instance_ids)

    if failures:
        raise errors.TeardownError(
            "%d instances over %d couldn't be deleted"
            % (failures, len(args.instance_ids))
        )


def parse_args():
    parser = argparse.ArgumentParser(
        prog="catalog_smoke delete",
        description="Stop and delete instances created by smoke test runs.",
    )
    parser.add_argument(
        "instance_ids",
        nargs="+",
        metavar="ID",
        help="ID of an instance to delete, as shown by the list mode.",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Increases the verbosity."
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger("catalog_smoke").setLevel(logging.DEBUG)

    return args
