import importlib

from catalog_smoke.instances.instances_provider_client import InstancesProviderClient
from catalog_smoke.util.errors import UnknownProviderError


def get_instances_provider_client(config) -> InstancesProviderClient:
    """Instantiate an API client for the configured instances provider.

    Args:
        config (dict): The parsed configuration.

    Returns:
        The instantiated client.

    Raises:
        UnknownProviderError: The configured instances provider isn't supported.
    """

    provider = config["instances"]["provider"]
    args = config["instances"]["args"]

    try:
        provider_import_path = "catalog_smoke.instances.providers.%s" % provider
        provider_module = importlib.import_module(provider_import_path)
    except ModuleNotFoundError:
        raise UnknownProviderError("Unsupported instances provider %s" % provider)

    return provider_module.provider_client_class(args)
