"""Shared fakes for the catalog_smoke tests."""
import pytest

from catalog_smoke.instances.instances_provider_client import InstancesProviderClient
from catalog_smoke.util.polling import PollPolicy


class FakeProviderClient(InstancesProviderClient):
    """An instances provider answering from scripted responses.

    `states` and `tag_lookups` are consumed one item per call; once exhausted the last
    item is repeated. An item that is an exception instance is raised instead.
    """

    def __init__(self, create_result="abc123", tag_lookups=None, states=None,
                 ip="192.0.2.10", image_id="img-1"):
        self.create_result = create_result
        self.tag_lookups = list(tag_lookups or [[]])
        self.states = list(states or ["running"])
        self.ip = ip
        self.image_id = image_id
        self.calls = []

    @staticmethod
    def _next(items):
        item = items.pop(0) if len(items) > 1 else items[0]
        if isinstance(item, Exception):
            raise item
        return item

    def find_latest_image(self, image_name):
        self.calls.append(("find_latest_image", image_name))
        return self.image_id

    def create_instance(self, image_id, package, creation_tag):
        self.calls.append(("create_instance", image_id, package, creation_tag))
        if isinstance(self.create_result, Exception):
            raise self.create_result
        return self.create_result

    def find_instances(self, package, creation_tag):
        self.calls.append(("find_instances", package, creation_tag))
        return self._next(self.tag_lookups)

    def get_state(self, instance_id):
        self.calls.append(("get_state", instance_id))
        return self._next(self.states)

    def get_ip(self, instance_id):
        self.calls.append(("get_ip", instance_id))
        return self.ip

    def stop_instance(self, instance_id):
        self.calls.append(("stop_instance", instance_id))

    def delete_instance(self, instance_id):
        self.calls.append(("delete_instance", instance_id))

    def list_instances(self):
        return []

    def count(self, name):
        return len([call for call in self.calls if call[0] == name])


class FakeExecutor:
    """A remote executor answering from a list of (predicate, output, exit status)
    handlers. Commands no handler matches succeed with no output."""

    def __init__(self, handlers=None):
        self.handlers = list(handlers or [])
        self.commands = []

    def on(self, predicate, output="", exit_status=0):
        self.handlers.append((predicate, output, exit_status))
        return self

    def execute(self, host, command):
        self.commands.append((host, command))
        for predicate, output, exit_status in self.handlers:
            if predicate(command):
                if isinstance(output, Exception):
                    raise output
                return output, exit_status
        return "", 0


class RecordingSleep:
    def __init__(self):
        self.calls = []

    def __call__(self, seconds):
        self.calls.append(seconds)


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def policies():
    return {
        "reconcile": PollPolicy(30, max_attempts=10, wait_first=True),
        "provisioning": PollPolicy(5, max_attempts=100),
        "stop": PollPolicy(5, max_attempts=100),
        "delete": PollPolicy(5, max_attempts=100),
    }
