"""Tests for DESCRIPTION parsing and in-place editing."""

import pytest

from common.errors import ManifestNotFoundError, ManifestWriteError
from parsers.description import (
    DescriptionFile,
    parse_declarations,
    parse_description,
    split_entries,
    write_description,
)


class TestSplitEntries:
    def test_commas_inside_constraints(self):
        assert split_entries("a (>= 1.0), b,\n    c (== 2.0)") == ["a (>= 1.0)", "b", "c (== 2.0)"]

    def test_trailing_comma_and_blank(self):
        assert split_entries("a,\n  b,\n") == ["a", "b"]


class TestParseDeclarations:
    def test_constraints_are_captured(self):
        decls = parse_declarations("dplyr (>= 1.0.0), ggplot2", "Imports")
        assert [(d.name, d.constraint, d.field) for d in decls] == [
            ("dplyr", ">= 1.0.0", "Imports"),
            ("ggplot2", None, "Imports"),
        ]

    def test_r_and_duplicates_dropped(self):
        decls = parse_declarations("R (>= 4.0), dplyr, dplyr (>= 1.1)", "Depends")
        assert [d.name for d in decls] == ["dplyr"]

    def test_two_letter_packages_are_declarations(self):
        assert [d.name for d in parse_declarations("R6, fs", "Imports")] == ["R6", "fs"]


class TestDescriptionFile:
    def test_fields_and_declarations(self, r_project):
        doc = parse_description(r_project.description_path)
        assert doc.package_name == "myanalysis"
        assert doc.declared_names() == ["dplyr", "ggplot2"]
        assert doc.declared_names(("Imports", "Suggests")) == ["dplyr", "ggplot2", "testthat"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ManifestNotFoundError):
            parse_description(str(tmp_path / "DESCRIPTION"))

    def test_add_import_multiline_keeps_layout(self, r_project):
        doc = parse_description(r_project.description_path)
        assert doc.add_import("tidyr") is True
        assert doc.dumps() == (
            "Package: myanalysis\n"
            "Title: Example Analysis\n"
            "Version: 0.1.0\n"
            "Imports:\n"
            "    dplyr (>= 1.0.0),\n"
            "    ggplot2,\n"
            "    tidyr\n"
            "Suggests:\n"
            "    testthat\n"
        )
        assert doc.declared_names() == ["dplyr", "ggplot2", "tidyr"]

    def test_add_import_with_trailing_comma_style(self):
        doc = DescriptionFile("DESCRIPTION", "Package: p1x\nImports:\n  dplyr,\n  ggplot2,\n")
        doc.add_import("tidyr")
        assert doc.dumps() == "Package: p1x\nImports:\n  dplyr,\n  ggplot2,\n  tidyr,\n"

    def test_add_import_single_line(self):
        doc = DescriptionFile("DESCRIPTION", "Package: p1x\nImports: dplyr, ggplot2\nLicense: MIT\n")
        doc.add_import("tidyr")
        assert doc.dumps() == "Package: p1x\nImports: dplyr, ggplot2, tidyr\nLicense: MIT\n"

    def test_add_import_creates_field(self):
        doc = DescriptionFile("DESCRIPTION", "Package: p1x\nLicense: MIT\n\n")
        doc.add_import("tidyr")
        assert doc.dumps() == "Package: p1x\nLicense: MIT\nImports:\n    tidyr\n\n"

    def test_add_import_existing_is_noop(self, r_project):
        doc = parse_description(r_project.description_path)
        before = doc.dumps()
        assert doc.add_import("dplyr") is False
        assert doc.dumps() == before

    def test_write_round_trip(self, r_project):
        doc = parse_description(r_project.description_path)
        doc.add_import("tidyr")
        write_description(doc)
        assert parse_description(r_project.description_path).declared_names() == ["dplyr", "ggplot2", "tidyr"]

    def test_write_error_is_wrapped(self, r_project):
        def failing_writer(path, text):
            raise OSError("disk full")

        doc = parse_description(r_project.description_path)
        with pytest.raises(ManifestWriteError):
            write_description(doc, writer=failing_writer)


class TestEncodingAndFields:
    LATIN1 = b"Package: demo1\nAuthor: Jos\xe9 Garc\xeda\nImports:\n    alpha\n"

    def test_latin1_file_is_read(self, r_project):
        (r_project.root / "DESCRIPTION").write_bytes(self.LATIN1)
        doc = parse_description(r_project.description_path)
        assert doc.encoding == "latin-1"
        assert doc.raw_field("Author") == "José García"
        assert doc.declared_names() == ["alpha"]

    def test_latin1_file_is_written_back_as_latin1(self, r_project):
        (r_project.root / "DESCRIPTION").write_bytes(self.LATIN1)
        doc = parse_description(r_project.description_path)
        doc.add_import("beta")
        write_description(doc)
        assert (r_project.root / "DESCRIPTION").read_bytes() == (
            b"Package: demo1\nAuthor: Jos\xe9 Garc\xeda\nImports:\n    alpha,\n    beta\n"
        )

    def test_depends_counts_as_declared(self):
        doc = DescriptionFile("DESCRIPTION", "Package: p1x\nDepends: R (>= 4.0), ggplot2\nImports: dplyr\n")
        assert doc.declared_names() == ["ggplot2", "dplyr"]

    def test_add_import_skips_other_dependency_fields(self):
        text = "Package: p1x\nDepends: ggplot2\nImports: dplyr\nSuggests: testthat\n"
        doc = DescriptionFile("DESCRIPTION", text)
        assert doc.add_import("ggplot2") is False
        assert doc.add_import("testthat") is False
        assert doc.dumps() == text

    def test_add_import_limited_to_given_fields(self):
        doc = DescriptionFile("DESCRIPTION", "Package: p1x\nImports: dplyr\nSuggests: testthat\n")
        assert doc.add_import("testthat", declared_in=("Depends", "Imports")) is True
        assert doc.raw_field("Imports") == "dplyr, testthat"
