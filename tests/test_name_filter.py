"""Tests for the ordered false-positive filter."""

import pytest

from analysis.models import CodeReference
from scan.name_filter import FilterConfig, NameFilter, rejection_reason


def _ref(name, path="R/a.R", in_comment=False):
    return CodeReference(name, path, "call", 1, in_comment)


@pytest.fixture
def config():
    return FilterConfig().with_self_package("myanalysis")


class TestRejectionReason:
    """First matching rule wins."""

    @pytest.mark.parametrize(
        "token,reason",
        [
            ("", "empty"),
            ("R6", "too_short"),
            ("R", "too_short"),
            ("stats", "base_package"),
            ("utils", "base_package"),
            ("function", "reserved_word"),
            ("myanalysis", "self_reference"),
            ("foo", "placeholder_word"),
            ("MyPackage", "placeholder_word"),
            ("std", "foreign_namespace"),
            ("_private", "leading_separator"),
            (".hidden", "leading_separator"),
            ("3dplot", "leading_digit"),
            ("trailing.", "trailing_separator"),
            ("bad-name", "invalid_character"),
        ],
    )
    def test_rejections(self, config, token, reason):
        assert rejection_reason(token, config) == reason

    @pytest.mark.parametrize("token", ["dplyr", "data.table", "ggplot2", "Rcpp", "tidyr"])
    def test_accepted(self, config, token):
        assert rejection_reason(token, config) is None

    def test_ignored_from_config(self):
        cfg = FilterConfig().with_extra(ignored=["internalpkg"])
        assert rejection_reason("internalpkg", cfg) == "ignored"

    def test_extra_placeholder_is_case_insensitive(self):
        cfg = FilterConfig().with_extra(placeholder_words=["WidgetPkg"])
        assert rejection_reason("widgetpkg", cfg) == "placeholder_word"

    def test_config_is_immutable(self):
        cfg = FilterConfig()
        extended = cfg.with_extra(ignored=["x1y"])
        assert "x1y" not in cfg.ignored
        assert "x1y" in extended.ignored


class TestNameFilter:
    """Reference-level rules and aggregation."""

    def test_comment_origin_rejected(self, config):
        result = NameFilter(config).apply([_ref("fakeviz", in_comment=True)])
        assert result.names == frozenset()
        assert result.rejected == {"fakeviz": "comment_origin"}

    def test_excluded_paths_rejected(self, config):
        refs = [
            _ref("pkgdown", "docs/reference/a.R"),
            _ref("scratchy", "R/scratch/try.R"),
            _ref("cached", "analysis/report_cache/chunk.R"),
            _ref("trial", "R/idea.scratch.R"),
        ]
        result = NameFilter(config).apply(refs)
        assert result.names == frozenset()
        assert set(result.rejected.values()) == {"excluded_path"}

    def test_one_clean_reference_is_enough(self, config):
        refs = [_ref("dplyr", "docs/a.R"), _ref("dplyr", "R/a.R")]
        result = NameFilter(config).apply(refs)
        assert result.names == {"dplyr"}
        assert "dplyr" not in result.rejected
        assert [r.path for r in result.references["dplyr"]] == ["R/a.R"]

    def test_output_is_deduplicated(self, config):
        refs = [_ref("dplyr"), _ref("dplyr"), _ref("tidyr")]
        assert NameFilter(config).apply(refs).names == {"dplyr", "tidyr"}

    def test_short_and_base_names_never_pass(self, config):
        tokens = ["ab", "R", "base", "methods", "grid", "dplyr"]
        assert NameFilter(config).filter_names(tokens) == {"dplyr"}

    def test_lowered_min_length_still_needs_valid_name(self):
        result = NameFilter(FilterConfig(min_length=2)).apply([_ref("ab"), _ref("dplyr")])
        assert result.names == {"dplyr"}
        assert result.rejected["ab"] == "malformed"
