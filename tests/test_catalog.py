# tests/test_catalog.py
from __future__ import annotations

import string
from pathlib import Path

from download_gateway.services.catalog import (
    FILE_ID_LENGTH,
    DirectoryCatalog,
    generate_file_id,
)

from tests.conftest import ALLOWED_EXTENSIONS


def test_file_ids_are_short_and_stable() -> None:
    file_id = generate_file_id("reports/2024.pdf")

    assert len(file_id) == FILE_ID_LENGTH
    assert set(file_id) <= set(string.ascii_lowercase + string.digits)
    assert generate_file_id("reports/2024.pdf") == file_id
    assert generate_file_id("reports/2025.pdf") != file_id


def test_rescan_indexes_allowed_visible_files(catalog: DirectoryCatalog) -> None:
    paths = [record.path for record in catalog.get_all()]

    assert paths == ["archive/Übersicht résumé.pdf", "notes.txt", "report.pdf"]


def test_records_carry_file_metadata(catalog: DirectoryCatalog, files_dir: Path) -> None:
    record = catalog.get_by_id(generate_file_id("report.pdf"))

    assert record is not None
    assert record.name == "report.pdf"
    assert record.absolute_path == (files_dir / "report.pdf").resolve()
    assert record.size == len(b"%PDF-1.4 quarterly report")
    assert record.mime_type == "application/pdf"
    assert record.mtime > 0


def test_unknown_id_is_none(catalog: DirectoryCatalog) -> None:
    assert catalog.get_by_id("zzzzzzzz") is None


def test_rescan_picks_up_changes(catalog: DirectoryCatalog, files_dir: Path) -> None:
    (files_dir / "new.txt").write_text("fresh", encoding="utf-8")
    (files_dir / "notes.txt").unlink()

    catalog.rescan()

    names = {record.name for record in catalog.get_all()}
    assert names == {"new.txt", "report.pdf", "Übersicht résumé.pdf"}


def test_missing_directory_yields_empty_index(tmp_path: Path) -> None:
    catalog = DirectoryCatalog(tmp_path / "absent", ALLOWED_EXTENSIONS)

    catalog.rescan()

    assert catalog.get_all() == []


def test_extension_match_is_case_insensitive(tmp_path: Path) -> None:
    (tmp_path / "SHOUT.PDF").write_bytes(b"x")
    catalog = DirectoryCatalog(tmp_path, [".pdf"])

    catalog.rescan()

    assert [record.name for record in catalog.get_all()] == ["SHOUT.PDF"]


def test_search_ranks_substring_matches_first(catalog: DirectoryCatalog) -> None:
    results = catalog.search("report")

    assert results[0].file.name == "report.pdf"
    assert results[0].score == 1.0


def test_search_tolerates_typos(catalog: DirectoryCatalog) -> None:
    results = catalog.search("reprot")

    assert results
    assert results[0].file.name == "report.pdf"


def test_search_blank_query_returns_nothing(catalog: DirectoryCatalog) -> None:
    assert catalog.search("   ") == []


def test_search_respects_limit(catalog: DirectoryCatalog) -> None:
    assert len(catalog.search("e", limit=1)) == 1
