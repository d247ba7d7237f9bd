import abc
import enum
from typing import List, Optional


class InstanceState(enum.Enum):
    REQUESTED = "requested"
    PROVISIONING = "provisioning"
    RUNNING = "running"
    FAILED = "failed"
    STOPPING = "stopping"
    STOPPED = "stopped"
    DELETING = "deleting"
    DELETED = "deleted"

    @classmethod
    def from_remote(cls, value):
        """Map a state string reported by the provider to an InstanceState, or None if
        the string isn't a state we know of."""
        try:
            return cls(value)
        except ValueError:
            return None


class Instance:
    def __init__(self, instance_id: str = None, creation_tag: str = None,
                 name: str = None, package: str = None, ip_address: str = None,
                 state: InstanceState = InstanceState.REQUESTED):
        """The representation of an instance created or retrieved by the API client for
        the configured instances provider.

        Args:
            instance_id (str): The provider's identifier for the instance, None until
                the creation has been confirmed.
            creation_tag (str): The unique tag attached to the creation request, used to
                find the instance again if the response to that request is lost.
            name (str): The name of the instance.
            package (str): The instance type (size) of the instance.
            ip_address (str): The instance's address, once it's running.
            state (InstanceState): The last state observed for the instance.
        """
        self.instance_id = instance_id
        self.creation_tag = creation_tag
        self.name = name
        self.package = package
        self.ip_address = ip_address
        self.state = state

    def __repr__(self):
        return "<Instance %s (%s)>" % (self.instance_id, self.state.value)


class InstancesProviderClient(abc.ABC):
    @abc.abstractmethod
    def find_latest_image(self, image_name: str) -> str:
        """Look up the image catalog for images with the given name.

        Args:
            image_name (str): The name of the image.

        Returns:
            The identifier of the most recently published match.

        Raises:
            InstanceCreationError: No image matches.
        """
        pass

    @abc.abstractmethod
    def create_instance(self, image_id: str, package: str,
                        creation_tag: str) -> Optional[str]:
        """Ask the provider to create an instance.

        Args:
            image_id (str): The image to create the instance from.
            package (str): The instance type.
            creation_tag (str): The tag to attach to the instance.

        Returns:
            The identifier of the new instance, or None if the response was empty or
            didn't say whether the instance was created.

        Raises:
            InstanceCreationError: The provider refused to create the instance.
            TransientNetworkError: The request couldn't be completed.
        """
        pass

    @abc.abstractmethod
    def find_instances(self, package: str, creation_tag: str) -> List[str]:
        """Retrieve the identifiers of the instances of the given type carrying the given
        creation tag."""
        pass

    @abc.abstractmethod
    def get_state(self, instance_id: str) -> Optional[str]:
        """Retrieve the state of the instance as reported by the provider, or None if it
        couldn't be determined."""
        pass

    @abc.abstractmethod
    def get_ip(self, instance_id: str) -> Optional[str]:
        """Retrieve the first address assigned to the instance, or None."""
        pass

    @abc.abstractmethod
    def stop_instance(self, instance_id: str):
        pass

    @abc.abstractmethod
    def delete_instance(self, instance_id: str):
        pass

    @abc.abstractmethod
    def list_instances(self) -> List[Instance]:
        """Retrieve every instance carrying a creation tag, i.e. every instance created
        by a smoke test run, whether or not it has been torn down properly."""
        pass
