"""Argument parsing functionality for renvcheck."""

import argparse


def _common_options():
    """Options shared by every subcommand."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--project",
                        dest="PROJECT_DIR",
                        help="R project directory (default: $RENVCHECK_PROJECT_DIR or the current directory)",
                        action="store",
                        type=str)
    common.add_argument("-c", "--config",
                        dest="CONFIG",
                        help="Path to configuration file (YAML, YML, or JSON)",
                        action="store",
                        type=str)
    common.add_argument("--loglevel",
                        dest="LOG_LEVEL",
                        help="Set the logging level",
                        action="store",
                        type=str.upper,
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'],
                        default='INFO')
    common.add_argument("--logfile",
                        dest="LOG_FILE",
                        help="Log output file",
                        action="store",
                        type=str)
    common.add_argument("-q", "--quiet",
                        dest="QUIET",
                        help="Only print errors to the console.",
                        action="store_true")
    return common


def build_parser():
    """Build the top-level parser with its subcommands."""
    common = _common_options()
    parser = argparse.ArgumentParser(
        prog="renvcheck",
        description=(
            "renvcheck - keep R code, DESCRIPTION and renv.lock consistent"
        ),
        add_help=True,
    )
    subparsers = parser.add_subparsers(dest="COMMAND", metavar="COMMAND")
    subparsers.required = True

    validate = subparsers.add_parser("validate",
                                     parents=[common],
                                     help="Check that used packages are declared and locked")
    validate.add_argument("--strict",
                          dest="STRICT",
                          help="Also scan tests, vignettes, inst and examples and report unused imports",
                          action="store_true")
    validate.add_argument("--fix",
                          dest="FIX",
                          help="Add missing packages to DESCRIPTION and renv.lock from the registry",
                          action="store_true")
    validate.add_argument("--fail-on-unused",
                          dest="FAIL_ON_UNUSED",
                          help="Exit with a non-zero status when unused imports are found (strict mode)",
                          action="store_true")
    validate.add_argument("-o", "--output",
                          dest="OUTPUT",
                          help="Path to a JSON report file",
                          action="store",
                          type=str)
    validate.add_argument("--description",
                          dest="MANIFEST",
                          help="Path to the DESCRIPTION file (default: <project>/DESCRIPTION)",
                          action="store",
                          type=str)
    validate.add_argument("--lockfile",
                          dest="LOCKFILE",
                          help="Path to renv.lock (default: <project>/renv.lock)",
                          action="store",
                          type=str)
    validate.add_argument("--registry-url",
                          dest="REGISTRY_URL",
                          help="Base URL of the package metadata registry",
                          action="store",
                          type=str)
    validate.add_argument("--workers",
                          dest="WORKERS",
                          help="Parallel registry lookups during --fix",
                          action="store",
                          type=int)
    validate.add_argument("--check-registry",
                          dest="CHECK_REGISTRY",
                          help="Warn about declared packages the registry does not know",
                          action="store_true")

    snapshot = subparsers.add_parser("snapshot",
                                     parents=[common],
                                     help="Run renv::snapshot() once and back-date renv.lock")
    hook = subparsers.add_parser("hook",
                                 parents=[common],
                                 help="Run a command and snapshot when it exits")
    for sub in (snapshot, hook):
        sub.add_argument("--no-timestamp-adjust",
                         dest="NO_TIMESTAMP_ADJUST",
                         help="Keep the snapshot's real renv.lock modification time",
                         action="store_true")
    hook.add_argument("HOOK_COMMAND",
                      help="Command to run, after --",
                      nargs=argparse.REMAINDER)

    subparsers.add_parser("restore-timestamp",
                          parents=[common],
                          help="Restore the real renv.lock modification time after a snapshot")
    return parser


def parse_args(argv=None):
    """Parses the arguments passed to the program."""
    return build_parser().parse_args(argv)
