import logging
import time

from catalog_smoke.remote.executor import RemoteExecutor
from catalog_smoke.util.errors import BootstrapError, ConnectivityError
from catalog_smoke.util.polling import PollPolicy, retry

logger = logging.getLogger(__name__)

DEFAULT_INSTALL_DIR = "/opt/csw"
DEFAULT_BOOTSTRAP_URL = "https://get.opencsw.org/pkgutil"
DEFAULT_MIRROR = "https://mirror.opencsw.org/opencsw/testing"
# The package management commands pkgutil expects to find, all served by the
# bootstrap executable.
DEFAULT_ALIASES = ("pkgadd", "pkginfo", "pkgrm", "pkgparam", "pkgtrans")
DEFAULT_RUNTIME_PACKAGE = "perl"
PKGUTIL_CONF = "/etc/opt/csw/pkgutil.conf"


class StackBootstrapper:
    def __init__(self, executor: RemoteExecutor, policy: PollPolicy, sleep=time.sleep,
                 install_dir=DEFAULT_INSTALL_DIR, bootstrap_url=DEFAULT_BOOTSTRAP_URL,
                 mirror=DEFAULT_MIRROR, aliases=DEFAULT_ALIASES,
                 runtime_package=DEFAULT_RUNTIME_PACKAGE):
        self.executor = executor
        self.policy = policy
        self.sleep = sleep
        self.install_dir = install_dir
        self.bootstrap_url = bootstrap_url
        self.mirror = mirror
        self.aliases = aliases
        self.runtime_package = runtime_package

    @property
    def pkgutil(self):
        return "%s/bin/pkgutil" % self.install_dir

    def steps(self):
        """The commands that install the stack, in order."""
        bin_dir = "%s/bin" % self.install_dir

        steps = [
            "pkgin -y install %s" % self.runtime_package,
            "mkdir -p %s" % bin_dir,
            "curl -sSfL -o %s %s" % (self.pkgutil, self.bootstrap_url),
            "chmod 755 %s" % self.pkgutil,
        ]
        steps += ["ln -sf %s %s/%s" % (self.pkgutil, bin_dir, a) for a in self.aliases]
        steps += [
            "%s -U" % self.pkgutil,
            "sed -i -e 's|^#* *mirror=.*|mirror=%s|' %s" % (self.mirror, PKGUTIL_CONF),
            "%s -y -u pkgutil" % self.pkgutil,
        ]

        return steps

    def is_installed(self, ip):
        _, exit_status = self.executor.execute(ip, "test -x %s" % self.pkgutil)
        return exit_status == 0

    def setup(self, ip):
        """Install the package stack on the host, unless it's already there.

        All of the steps run as a single command, which stops at the first failing step.

        Raises:
            BootstrapError: One of the steps failed.
            ConnectivityError: The host couldn't be reached.
        """
        if self.is_installed(ip):
            logger.info("pkgutil is already installed on %s", ip)
            return

        logger.info("Installing pkgutil on %s...", ip)

        output, exit_status = self.executor.execute(ip, " && ".join(self.steps()))
        if exit_status != 0:
            raise BootstrapError(
                "Setting up pkgutil failed with exit status %d" % exit_status, output
            )

    def setup_with_retries(self, ip):
        """Run setup until it succeeds. Early attempts are expected to fail because the
        host's SSH server isn't up yet.

        Raises:
            BootstrapError: Every attempt failed.
        """
        try:
            retry(
                lambda: self.setup(ip),
                self.policy,
                (BootstrapError, ConnectivityError),
                sleep=self.sleep,
                what="setting up pkgutil",
            )
        except ConnectivityError as e:
            raise BootstrapError(str(e))
