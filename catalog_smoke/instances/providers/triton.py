import logging
from typing import List, Optional

from catalog_smoke.instances.instances_provider_client import (
    Instance,
    InstancesProviderClient,
    InstanceState,
)
from catalog_smoke.util.config import expand_path
from catalog_smoke.util.errors import InstanceCreationError
from catalog_smoke.util.signed_api import SignedAPIClient

logger = logging.getLogger(__name__)

# Name of the tag holding the creation tag on the instances we create.
TAG_NAME = "catalog_smoke"

# Error codes the API answers with when it rejects a request, i.e. when we know for sure
# no instance was created.
REFUSAL_CODES = {
    "BadRequest",
    "InvalidArgument",
    "InvalidCredentials",
    "InvalidHeader",
    "InvalidVersion",
    "MissingParameter",
    "NotAuthorized",
    "RequestThrottled",
    "RequestTooLarge",
    "ResourceNotFound",
}


class TritonInstancesProviderClient(InstancesProviderClient):
    def __init__(self, args, api_client: SignedAPIClient = None):
        self.login = args["login"]
        self.api = api_client or SignedAPIClient(
            url=args["url"],
            login=self.login,
            key_path=expand_path(args["key_path"]),
            key_id=args.get("key_id"),
            passphrase=args.get("passphrase"),
            api_version=args.get("api_version", "~8"),
            timeout=args.get("timeout", 60),
        )

    def _path(self, *segments):
        return "/" + "/".join((self.login,) + segments)

    def find_latest_image(self, image_name):
        images = self.api.call("GET", self._path("images"), [("name", image_name)])

        if not isinstance(images, list) or not images:
            raise InstanceCreationError("No image named %s" % image_name)

        # Dates are ISO 8601 strings, which sort chronologically.
        image = max(images, key=lambda i: i.get("published_at", ""))
        logger.debug(
            "Using image %s (published at %s)", image["id"], image.get("published_at")
        )

        return image["id"]

    def create_instance(self, image_id, package, creation_tag):
        machine = self.api.call("POST", self._path("machines"), [
            ("image", image_id),
            ("package", package),
            ("name", "smoke-%s" % creation_tag),
            ("tag.%s" % TAG_NAME, creation_tag),
        ])

        if not machine:
            return None

        if isinstance(machine, dict) and machine.get("id"):
            return machine["id"]

        if isinstance(machine, dict) and machine.get("code") in REFUSAL_CODES:
            raise InstanceCreationError(
                "The API refused to create the instance: %s" % describe_error(machine)
            )

        # Anything else (a gateway's error page, a server-side error) doesn't tell
        # whether the instance was created.
        logger.warning(
            "Unexpected answer to the creation call: %s", describe_error(machine)
        )
        return None

    def find_instances(self, package, creation_tag):
        machines = self.api.call("GET", self._path("machines"), [
            ("package", package),
            ("tag.%s" % TAG_NAME, creation_tag),
        ])

        if not isinstance(machines, list):
            return []

        return [machine["id"] for machine in machines]

    def _get_machine(self, instance_id):
        machine = self.api.call("GET", self._path("machines", instance_id))
        if not isinstance(machine, dict):
            return None
        return machine

    def get_state(self, instance_id) -> Optional[str]:
        machine = self._get_machine(instance_id)
        if machine is None:
            return None

        # Once an instance has been deleted for long enough, the API stops knowing
        # about it altogether.
        if machine.get("code") == "ResourceNotFound":
            return InstanceState.DELETED.value

        return machine.get("state")

    def get_ip(self, instance_id) -> Optional[str]:
        machine = self._get_machine(instance_id)
        if machine is None:
            return None

        ips = machine.get("ips") or []
        return ips[0] if ips else None

    def stop_instance(self, instance_id):
        self.api.call("POST", self._path("machines", instance_id), [("action", "stop")])

    def delete_instance(self, instance_id):
        self.api.call("DELETE", self._path("machines", instance_id))

    def list_instances(self) -> List[Instance]:
        machines = self.api.call("GET", self._path("machines"))
        if not isinstance(machines, list):
            return []

        instances = []

        for machine in machines:
            creation_tag = (machine.get("tags") or {}).get(TAG_NAME)
            if creation_tag is None:
                continue

            ips = machine.get("ips") or []
            instances.append(Instance(
                instance_id=machine["id"],
                creation_tag=creation_tag,
                name=machine.get("name"),
                package=machine.get("package"),
                ip_address=ips[0] if ips else None,
                state=(InstanceState.from_remote(machine.get("state"))
                       or InstanceState.REQUESTED),
            ))

        return instances


def describe_error(document):
    if isinstance(document, dict):
        return "%s: %s" % (document.get("code"), document.get("message"))
    return str(document)


provider_client_class = TritonInstancesProviderClient
