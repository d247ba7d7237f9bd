import argparse
import logging

from tabulate import tabulate

from catalog_smoke.instances import instances_provider

logger = logging.getLogger(__name__)


def get_rows(config):
    """Retrieve every instance created by a smoke test run and turn them into rows for
    the call to tabulate in get_and_print_list.

    Args:
        config (dict): The parsed configuration.

    Returns:
        list: One [ID, name, package, state, IPv4, creation tag] list per instance.
    """
    logger.debug("Gathering instances...")

    client = instances_provider.get_instances_provider_client(config)

    return [
        [
            instance.instance_id,
            instance.name,
            instance.package,
            instance.state.value,
            instance.ip_address,
            instance.creation_tag,
        ]
        for instance in client.list_instances()
    ]


def get_and_print_list(config):
    """Print a table listing the instances created by smoke test runs.

    Since every run deletes its instance, any instance listed here is either in use by
    a run in progress or was left behind by a run that couldn't delete it.

    Args:
        config (dict): The parsed configuration.
    """
    parse_args()

    rows = get_rows(config)

    if not rows:
        print("No instances.")
        return

    print(tabulate(
        rows,
        headers=["ID", "Name", "Package", "State", "IPv4", "Creation tag"],
        tablefmt="psql",
    ))


def parse_args():
    parser = argparse.ArgumentParser(
        prog="catalog_smoke list",
        description="List the instances created by smoke test runs.",
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
