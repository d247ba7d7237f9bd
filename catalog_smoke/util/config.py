import os

import yaml

from catalog_smoke.util.errors import ConfigurationError
from catalog_smoke.util.polling import PollPolicy

CONFIG_ENV_VAR = "CATALOG_SMOKE_CONFIG"

# Defaults for the polling loops, in seconds. A max_attempts of None means the loop
# never gives up.
DEFAULT_POLICIES = {
    # Looking for an instance by its creation tag after an ambiguous creation call.
    "reconcile": {"interval": 30, "max_attempts": 10, "wait_first": True},
    # Waiting for a new instance to become running.
    "provisioning": {"interval": 5, "max_attempts": 720},
    # Waiting for an instance to stop, then to be deleted.
    "stop": {"interval": 5, "max_attempts": 720},
    "delete": {"interval": 5, "max_attempts": 720},
    # Setting up the package stack, which can fail until SSH is up.
    "bootstrap": {"interval": 30, "max_attempts": 10, "wait_first": True},
}

DEFAULT_STOP_EVERY = 10


def load_config(path=None):
    """Read and parse the configuration file.

    Args:
        path (str): Location of the file. Defaults to the value of the
            CATALOG_SMOKE_CONFIG environment variable, or "config.yaml".

    Returns:
        dict: The parsed configuration.

    Raises:
        ConfigurationError: The polling settings are invalid.
    """
    if path is None:
        path = os.getenv(CONFIG_ENV_VAR, "config.yaml")

    with open(path) as f:
        config = yaml.safe_load(f) or {}

    get_stop_every(config)

    return config


def get_policy(config, name) -> PollPolicy:
    """Build the polling policy for the given loop from the "polling" section of the
    configuration, falling back to the defaults for anything missing."""
    section = polling_section(config).get(name)
    return PollPolicy.from_config(section, DEFAULT_POLICIES[name])


def polling_section(config):
    # An empty "polling:" key is parsed as None.
    return config.get("polling") or {}


def get_stop_every(config):
    stop_every = polling_section(config).get("stop_every", DEFAULT_STOP_EVERY)
    if not isinstance(stop_every, int) or stop_every < 1:
        raise ConfigurationError(
            "polling.stop_every must be a positive integer, got %r" % (stop_every,)
        )
    return stop_every


def expand_path(path):
    if path is None:
        return None
    return os.path.expanduser(path)
