class SmokeTestError(Exception):
    """Base class for every error that ends a run. The exit code is what the process
    exits with when the error reaches the top level."""

    exit_code = 1

    def __init__(self, message, output=None):
        super().__init__(message)
        self.output = output


class UnknownProviderError(SmokeTestError):
    pass


class ToolingMissingError(SmokeTestError):
    exit_code = 3


class TransientNetworkError(SmokeTestError):
    pass


class InstanceCreationError(SmokeTestError):
    exit_code = 2


class ProvisioningFailedError(InstanceCreationError):
    exit_code = 8


class ConnectivityError(SmokeTestError):
    exit_code = 4


class IPAcquisitionError(ConnectivityError):
    pass


class BootstrapError(SmokeTestError):
    exit_code = 5


class PackageSelectionError(SmokeTestError):
    exit_code = 6


class InstallationError(SmokeTestError):
    exit_code = 7


class TeardownError(SmokeTestError):
    exit_code = 9


class PollTimeoutError(SmokeTestError):
    def __init__(self, what, attempts):
        super().__init__("Gave up waiting for %s after %d attempts" % (what, attempts))
        self.what = what
        self.attempts = attempts


class ConfigurationError(SmokeTestError):
    pass
