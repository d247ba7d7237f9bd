import logging
import random
import re
import shlex

from catalog_smoke.remote.executor import RemoteExecutor
from catalog_smoke.util.errors import PackageSelectionError

logger = logging.getLogger(__name__)

DEFAULT_PKGUTIL = "/opt/csw/bin/pkgutil"


class NoiseRule:
    def __init__(self, name, pattern):
        """A kind of output line that pkgutil prints on a successful installation.

        Args:
            name (str): A short description of the lines the rule matches.
            pattern (str): A regular expression matching those lines.
        """
        self.name = name
        self.regex = re.compile(pattern)

    def matches(self, line):
        return self.regex.search(line) is not None


# Applied in order, to every line following the installation banner. Whatever line
# none of them matches is considered an error report.
NOISE_RULES = [
    NoiseRule("blank line", r"^\s*$"),
    NoiseRule("comment", r"^\s*#"),
    NoiseRule("class banner", r"^\s*Installing class <[^>]*>"),
    NoiseRule("installed file", r"^/\S*$"),
    NoiseRule("modifying or registering", r"^\s*(Modifying|Registering)\b"),
    NoiseRule("future registration", r"(?i)future.*regist|regist.*future"),
    NoiseRule("bytecode compilation", r"(?i)byte-?(code|compil)|compiling .*\.py"),
]


class InstallationOutcome:
    def __init__(self, package, exit_status, raw_output, filtered_output):
        """The result of an attempt at installing a package.

        Args:
            package (str): The name of the package.
            exit_status (int): The exit status of the installation command.
            raw_output (str): Everything the installation command printed.
            filtered_output (str): What's left of the output once the lines known to be
                harmless have been removed.
        """
        self.package = package
        self.exit_status = exit_status
        self.raw_output = raw_output
        self.filtered_output = filtered_output

    @property
    def success(self):
        return self.exit_status == 0 and self.filtered_output == ""


def strip_until_banner(lines, package):
    """Remove every line up to and including the one announcing that the last step of
    the package's installation is starting, e.g. "=> Installing foo-1.0,REV=2020 (2/2)".

    If there's no such line, all lines are kept.
    """
    banner = re.compile(r"Installing %s-\S+ \((\d+)/(\d+)\)" % re.escape(package))

    cut = 0
    for i, line in enumerate(lines):
        match = banner.search(line)
        if match and match.group(1) == match.group(2):
            cut = i + 1

    return lines[cut:]


def filter_output(raw_output, package, rules=NOISE_RULES):
    """Remove the lines known to be harmless from the output of an installation.

    Args:
        raw_output (str): The output of the installation command.
        package (str): The name of the package that was installed.
        rules (list): The NoiseRule objects matching harmless lines.

    Returns:
        str: The remaining lines.
    """
    lines = strip_until_banner(raw_output.splitlines(), package)
    kept = [line for line in lines if not any(rule.matches(line) for rule in rules)]
    return "\n".join(kept)


class PackageTester:
    def __init__(self, executor: RemoteExecutor, pkgutil=DEFAULT_PKGUTIL, rng=None,
                 extra_noise_patterns=()):
        self.executor = executor
        self.pkgutil = pkgutil
        self.rng = rng or random.Random()
        self.rules = NOISE_RULES + [
            NoiseRule("configured", pattern) for pattern in extra_noise_patterns
        ]

    def select_random(self, ip):
        """Pick a random package from the catalog.

        The first line of the catalog listing is a header, the package's name is the
        first column of the other lines.

        Returns:
            str: The name of the package.

        Raises:
            PackageSelectionError: The catalog couldn't be read.
        """
        output, exit_status = self.executor.execute(ip, "%s -a | wc -l" % self.pkgutil)
        if exit_status != 0:
            raise PackageSelectionError("Could not list the catalog", output)

        try:
            count = int(output.strip())
        except ValueError:
            raise PackageSelectionError("Unexpected catalog size", output)

        if count < 2:
            raise PackageSelectionError("The catalog is empty", output)

        index = self.rng.randint(1, count - 1)

        # sed counts lines from 1, so the header is line 1.
        output, exit_status = self.executor.execute(
            ip, "%s -a | sed -n '%dp'" % (self.pkgutil, index + 1)
        )

        tokens = output.split()
        if exit_status != 0 or not tokens:
            raise PackageSelectionError(
                "Could not read line %d of the catalog" % index, output
            )

        logger.info("Picked package %s (%d/%d)", tokens[0], index, count - 1)

        return tokens[0]

    def install(self, package, ip) -> InstallationOutcome:
        """Try to install the package. The output is kept whether or not the installation
        succeeded."""
        logger.info("Installing %s...", package)

        raw_output, exit_status = self.executor.execute(
            ip, "%s -y -i %s" % (self.pkgutil, shlex.quote(package))
        )

        outcome = InstallationOutcome(
            package=package,
            exit_status=exit_status,
            raw_output=raw_output,
            filtered_output=filter_output(raw_output, package, self.rules),
        )

        if outcome.success:
            logger.info("%s installed successfully", package)
        else:
            logger.debug("Raw output of the installation:\n%s", raw_output)

        return outcome
