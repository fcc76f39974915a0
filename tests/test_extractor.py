"""Tests for lexical package extraction from R sources."""

from scan.extractor import Extractor, extract_from_text, strip_trailing_comment
from constants import Constants


def _names(refs):
    return sorted({r.name for r in refs})


class TestExtractFromText:
    """Pattern coverage for a single file."""

    def test_library_and_require_calls(self):
        text = (
            "library(dplyr)\n"
            'require("tidyr")\n'
            "suppressPackageStartupMessages(library(purrr))\n"
            "requireNamespace('jsonlite', quietly = TRUE)\n"
            "library(package = readr)\n"
        )
        refs = extract_from_text(text, "R/load.R")
        assert _names(refs) == ["dplyr", "jsonlite", "purrr", "readr", "tidyr"]
        assert all(r.pattern == "call" for r in refs)
        assert all(r.path == "R/load.R" for r in refs)

    def test_namespace_operators(self):
        text = "x <- stringr::str_detect(y, 'a')\nz <- data.table:::internal_fn(x)\n"
        refs = extract_from_text(text, "R/ns.R")
        assert _names(refs) == ["data.table", "stringr"]
        assert {r.pattern for r in refs} == {"namespace"}
        assert [r.line for r in refs] == [1, 2]

    def test_roxygen_import_directives(self):
        text = (
            "#' @import rlang\n"
            "#' @importFrom magrittr %>%\n"
            "#' @importClassesFrom Matrix dgCMatrix\n"
            "NULL\n"
        )
        refs = extract_from_text(text, "R/pkg.R")
        assert _names(refs) == ["Matrix", "magrittr", "rlang"]
        assert all(r.pattern == "roxygen" and not r.in_comment for r in refs)

    def test_roxygen_examples_are_marked_as_comment(self):
        text = "#' @examples\n#' library(fakeviz)\n#' fakeviz::plot_it()\n"
        refs = extract_from_text(text, "R/doc.R")
        assert _names(refs) == ["fakeviz"]
        assert all(r.in_comment for r in refs)

    def test_comments_are_ignored(self):
        text = "# library(commented)\nx <- 1  # readr::read_csv\nlibrary(real) # trailing\n"
        refs = extract_from_text(text, "R/c.R")
        assert _names(refs) == ["real"]

    def test_duplicates_are_kept(self):
        refs = extract_from_text("library(dplyr)\ndplyr::filter(x)\n", "R/a.R")
        assert [r.name for r in refs] == ["dplyr", "dplyr"]

    def test_dollar_and_slot_access_not_namespaces(self):
        refs = extract_from_text("x$a::b\n", "R/a.R")
        assert refs == []

    def test_dynamic_names_stay_unresolved(self):
        refs = extract_from_text("pkg_name <- 'tibble'\nlibrary(pkg_name, character.only = TRUE)\n", "R/a.R")
        assert _names(refs) == ["pkg_name"]


class TestStripTrailingComment:
    """Quote-aware trailing comment removal."""

    def test_hash_inside_string_is_kept(self):
        assert strip_trailing_comment('x <- "a # b" # note') == 'x <- "a # b" '

    def test_no_comment(self):
        assert strip_trailing_comment("library(dplyr)") == "library(dplyr)"


class TestExtractor:
    """File discovery and scan roots."""

    def test_standard_roots_skip_tests(self, r_project):
        r_project.write("R/main.R", "library(dplyr)\n")
        r_project.write("tests/testthat/test-a.R", "library(mockery)\n")
        r_project.write("analysis/run.Rmd", "```{r}\nggplot2::ggplot()\n```\n")
        extractor = Extractor(r_project.path, Constants.STANDARD_DIRS, Constants.FILE_EXTENSIONS)
        refs = extractor.scan()
        assert _names(refs) == ["dplyr", "ggplot2"]

    def test_strict_roots_include_tests(self, r_project):
        r_project.write("R/main.R", "library(dplyr)\n")
        r_project.write("tests/testthat/test-a.R", "library(mockery)\n")
        extractor = Extractor(r_project.path, Constants.STRICT_DIRS, Constants.FILE_EXTENSIONS)
        assert _names(extractor.scan()) == ["dplyr", "mockery"]

    def test_top_level_scripts_and_extensions(self, r_project):
        r_project.write("run_all.R", "library(here)\n")
        r_project.write("notes.txt", "library(ignored)\n")
        extractor = Extractor(r_project.path, Constants.STANDARD_DIRS, Constants.FILE_EXTENSIONS)
        files = [rel for _, rel in extractor.discover_files()]
        assert files == ["run_all.R"]

    def test_top_level_can_be_disabled(self, r_project):
        r_project.write("run_all.R", "library(here)\n")
        extractor = Extractor(
            r_project.path, Constants.STANDARD_DIRS, Constants.FILE_EXTENSIONS, include_top_level=False
        )
        assert extractor.scan() == []

    def test_relative_posix_paths_sorted(self, r_project):
        r_project.write("R/b.R", "library(dplyr)\n")
        r_project.write("R/a.R", "library(dplyr)\n")
        r_project.write("scripts/sub/c.R", "library(dplyr)\n")
        extractor = Extractor(r_project.path, Constants.STANDARD_DIRS, Constants.FILE_EXTENSIONS)
        assert [rel for _, rel in extractor.discover_files()] == ["R/a.R", "R/b.R", "scripts/sub/c.R"]
