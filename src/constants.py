"""Constants used in the project."""

from enum import Enum


class ExitCodes(Enum):
    """Exit codes for the program.

    Args:
        Enum (int): Exit codes for the program.
    """

    SUCCESS = 0
    VALIDATION_FAILED = 1
    CONFIG_ERROR = 2
    RESTORE_FAILURE = 3


class Constants:  # pylint: disable=too-few-public-methods
    """General constants used in the project.
    Data holder for configuration constants; not intended to provide behavior.
    """

    DESCRIPTION_FILE = "DESCRIPTION"
    RENV_LOCK_FILE = "renv.lock"
    RENV_ACTIVATE_FILE = "renv/activate.R"
    CONFIG_FILES = (".renvcheck.yml", ".renvcheck.yaml", ".renvcheck.json")
    STATE_DIR = ".renvcheck"
    TIMESTAMP_RECORD_FILE = "timestamp.json"
    BACKUP_TIMESTAMP_FORMAT = "%Y%m%d_%H%M%S"

    LOG_FORMAT = "[%(levelname)s] %(message)s"

    # Code scanning
    STANDARD_DIRS = ("R", "scripts", "analysis")
    STRICT_DIRS = ("R", "scripts", "analysis", "tests", "vignettes", "inst", "examples")
    FILE_EXTENSIONS = ("R", "r", "Rmd", "rmd", "qmd", "Rnw", "Rmarkdown")
    EXCLUDE_GLOBS = (
        "docs/*",
        "man/*",
        "inst/doc/*",
        "renv/*",
        "packrat/*",
        "scratch/*",
        "*/scratch/*",
        "*.scratch.R",
        "*_cache/*",
        "*_files/*",
    )
    MIN_PACKAGE_LENGTH = 3

    # Manifest
    DECLARATION_FIELDS = ("Depends", "Imports")
    STRICT_DECLARATION_FIELDS = ("Depends", "Imports", "Suggests")
    IMPORTS_FIELD = "Imports"
    DEFAULT_IMPORT_INDENT = "    "
    PROTECTED_PACKAGES = ("renv",)

    BASE_PACKAGES = (
        "R", "base", "compiler", "datasets", "graphics", "grDevices", "grid",
        "methods", "parallel", "splines", "stats", "stats4", "tcltk", "tools",
        "utils",
    )
    RESERVED_WORDS = (
        "if", "else", "repeat", "while", "function", "for", "next", "break",
        "TRUE", "FALSE", "NULL", "Inf", "NaN", "NA_integer_", "NA_real_",
        "NA_character_", "NA_complex_", "return", "invisible",
    )
    PLACEHOLDER_WORDS = (
        "package", "packages", "pkg", "pkgs", "pkgname", "packagename",
        "mypackage", "mypkg", "yourpackage", "yourpkg", "my_package",
        "your_package", "somepackage", "somepkg", "foo", "bar", "baz", "qux",
        "example", "examples", "test", "tests", "testing", "dummy", "fake",
        "template", "name", "something", "xxx", "yyy", "zzz", "abc", "todo",
        "fixme", "this", "that", "these", "those", "self", "other",
        "another", "your", "mine", "ours", "theirs", "none", "null",
    )
    FOREIGN_NAMESPACES = (
        "std", "boost", "arma", "Eigen", "tbb", "detail", "internal",
        "traits", "cpp11", "Rcpp_", "RcppParallel_",
    )

    # Registry
    REGISTRY_URL = "https://crandb.r-pkg.org"
    REGISTRY_NAME = "CRAN"
    REQUEST_TIMEOUT = 30  # Timeout in seconds for all HTTP requests
    HTTP_RETRY_MAX = 3
    HTTP_RETRY_BASE_DELAY_SEC = 0.5
    HASH_FIELDS = (
        "Package", "Version", "Title", "Author", "Maintainer", "Description",
        "Depends", "Imports", "Suggests", "LinkingTo",
    )

    # Snapshot hook
    SNAPSHOT_COMMAND = (
        "Rscript",
        "-e",
        "renv::snapshot(type = 'explicit', prompt = FALSE)",
    )
    SNAPSHOT_TIMEOUT_SEC = 600
    SNAPSHOT_BACKDATE_DAYS = 7
    ENV_AUTO_SNAPSHOT = "RENVCHECK_AUTO_SNAPSHOT"
    ENV_TIMESTAMP_ADJUST = "RENVCHECK_SNAPSHOT_TIMESTAMP_ADJUST"
    ENV_PROJECT_DIR = "RENVCHECK_PROJECT_DIR"
    ENV_REGISTRY_URL = "RENVCHECK_REGISTRY_URL"
