import argparse
import logging
import os
import time

from catalog_smoke.instances import instances_provider
from catalog_smoke.instances.lifecycle import InstanceLifecycleManager
from catalog_smoke.remote.executor import RemoteExecutor
from catalog_smoke.stack import bootstrap
from catalog_smoke.tester.package_tester import PackageTester
from catalog_smoke.util import config as config_util
from catalog_smoke.util import errors
from catalog_smoke.util.signed_api import load_private_key

logger = logging.getLogger(__name__)

LIFECYCLE_POLICIES = ("reconcile", "provisioning", "stop", "delete")


def check_tooling(config):
    """Check that the keys needed to talk to the cloud API and to the instance are
    there and usable.

    Raises:
        ToolingMissingError: One of the keys is missing or can't be loaded.
    """
    instances_args = config["instances"]["args"]
    load_private_key(
        config_util.expand_path(instances_args["key_path"]),
        instances_args.get("passphrase"),
    )

    ssh_key_path = config_util.expand_path(config.get("remote", {}).get("key_path"))
    if ssh_key_path is not None and not os.path.isfile(ssh_key_path):
        raise errors.ToolingMissingError("SSH key %s doesn't exist" % ssh_key_path)


def build_lifecycle_manager(config, sleep=time.sleep) -> InstanceLifecycleManager:
    client = instances_provider.get_instances_provider_client(config)
    policies = {name: config_util.get_policy(config, name) for name in LIFECYCLE_POLICIES}

    return InstanceLifecycleManager(
        client, policies, sleep=sleep, stop_every=config_util.get_stop_every(config),
    )


def build_executor(config) -> RemoteExecutor:
    remote_config = config.get("remote", {})
    return RemoteExecutor(
        user=remote_config.get("user", "root"),
        key_path=config_util.expand_path(remote_config.get("key_path")),
        port=remote_config.get("port", 22),
        connect_timeout=remote_config.get("connect_timeout", 30),
    )


def build_bootstrapper(config, executor, sleep=time.sleep):
    stack_config = config.get("stack", {})
    return bootstrap.StackBootstrapper(
        executor,
        config_util.get_policy(config, "bootstrap"),
        sleep=sleep,
        install_dir=stack_config.get("install_dir", bootstrap.DEFAULT_INSTALL_DIR),
        bootstrap_url=stack_config.get("bootstrap_url", bootstrap.DEFAULT_BOOTSTRAP_URL),
        mirror=stack_config.get("mirror", bootstrap.DEFAULT_MIRROR),
        aliases=stack_config.get("aliases", bootstrap.DEFAULT_ALIASES),
        runtime_package=stack_config.get(
            "runtime_package", bootstrap.DEFAULT_RUNTIME_PACKAGE
        ),
    )


def run_smoke_test(lifecycle: InstanceLifecycleManager, bootstrapper, tester,
                   image_name, instance_type, package=None, create_only=False,
                   keep=False):
    """Create an instance, set up the package stack on it and try to install a package
    on it, then tear it down.

    Args:
        lifecycle (InstanceLifecycleManager): Manages the instance.
        bootstrapper (StackBootstrapper): Sets up the package stack.
        tester (PackageTester): Picks and installs the package.
        image_name (str): The name of the image to create the instance from.
        instance_type (str): The instance type.
        package (str): The package to install. A random one is picked if None.
        create_only (bool): Stop once the instance is up.
        keep (bool): Don't tear the instance down.

    Returns:
        InstallationOutcome: The outcome of the installation, None in create-only mode.

    Raises:
        SmokeTestError: A step failed. The instance has been torn down already, unless
            it couldn't be created at all.
    """
    with lifecycle.provisioned(image_name, instance_type, keep=keep) as instance:
        ip_address = lifecycle.get_ip(instance)
        if not ip_address:
            raise errors.IPAcquisitionError(
                "Could not get an address for instance %s" % instance.instance_id
            )

        logger.info("Instance %s is running at %s", instance.instance_id, ip_address)

        if create_only:
            return None

        bootstrapper.setup_with_retries(ip_address)

        if package is None:
            package = tester.select_random(ip_address)

        outcome = tester.install(package, ip_address)
        if not outcome.success:
            raise errors.InstallationError(
                "Installing %s failed (exit status %d)" % (package, outcome.exit_status),
                outcome.filtered_output or outcome.raw_output,
            )

        return outcome


def run(config):
    """Run a smoke test with the parameters from the configuration and the command line.

    Args:
        config (dict): The parsed configuration.

    Raises:
        SmokeTestError: The smoke test failed.
    """
    args = parse_args()

    check_tooling(config)

    executor = build_executor(config)
    tester_config = config.get("tester", {})
    tester = PackageTester(
        executor,
        pkgutil="%s/bin/pkgutil" % config.get("stack", {}).get(
            "install_dir", bootstrap.DEFAULT_INSTALL_DIR
        ),
        extra_noise_patterns=tester_config.get("extra_noise_patterns", ()),
    )

    outcome = run_smoke_test(
        build_lifecycle_manager(config),
        build_bootstrapper(config, executor),
        tester,
        image_name=config["general"]["image"],
        instance_type=config["general"]["package"],
        package=args.package,
        create_only=args.create_only,
        keep=args.create_only and args.keep,
    )

    if outcome is None:
        logger.info("Instance created successfully")
    else:
        logger.info("Package %s installed cleanly", outcome.package)


def parse_args():
    parser = argparse.ArgumentParser(
        prog="catalog_smoke run",
        description="Create an instance, install a package from the catalog on it, then"
                    " delete the instance.",
    )
    verbosity = parser.add_mutually_exclusive_group()
    verbosity.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Increases the verbosity."
    )
    verbosity.add_argument(
        "-q", "--quiet",
        action="store_true",
        help="Only print warnings and errors."
    )
    parser.add_argument(
        "-c", "--create-only",
        action="store_true",
        help="Only create the instance, don't install anything on it. The instance is"
             " still deleted afterwards, unless -k/--keep is used.",
    )
    parser.add_argument(
        "-k", "--keep",
        action="store_true",
        help="Don't delete the instance. Only has an effect with -c/--create-only.",
    )
    parser.add_argument(
        "-p", "--package",
        help="Name of the package to install. Defaults to a random package from the"
             " catalog.",
    )

    args = parser.parse_args()

    if args.verbose:
        logging.getLogger("catalog_smoke").setLevel(logging.DEBUG)
    elif args.quiet:
        logging.getLogger("catalog_smoke").setLevel(logging.WARNING)

    return args
