import sys
import logging

from catalog_smoke.eraser.delete import delete
from catalog_smoke.lister.list import get_and_print_list
from catalog_smoke.runner.run import run
from catalog_smoke.util import errors
from catalog_smoke.util.config import load_config

MODES = {
    "run": run,
    "list": get_and_print_list,
    "delete": delete,
}


def main():
    if len(sys.argv) < 2:
        sys.stderr.write("Usage: catalog_smoke [mode] [args]\n")
        sys.exit(1)

    # Configure logging.
    rootLogger = logging.getLogger("catalog_smoke")
    formatter = logging.Formatter(
        fmt="{asctime} | {name} - {levelname} - {message}",
        style="{",
    )
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    rootLogger.addHandler(handler)
    rootLogger.setLevel(logging.INFO)

    mode = sys.argv[1]

    if mode not in MODES:
        sys.stderr.write(
            "Unknown mode %s. Available modes: %s\n" % (mode, ", ".join(MODES))
        )
        sys.exit(1)

    # Remove the mode from argv so that it doesn't interfere with the parsing of
    # arguments in the mode's code.
    sys.argv = [sys.argv[0]] + sys.argv[2:]

    try:
        # Read and parse the configuration file.
        config = load_config()

        MODES[mode](config)
    except errors.SmokeTestError as e:
        sys.stderr.write("%s. Aborting.\n" % e)
        if e.output:
            sys.stderr.write("%s\n" % e.output.rstrip())
        sys.exit(e.exit_code)


if __name__ == '__main__':
    main()
