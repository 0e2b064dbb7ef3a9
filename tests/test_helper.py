import json
import logging
import re

from hypothesis import given, strategies as st

from bc_helper import (
    clean_text,
    create_output_path,
    is_placeholder,
    normalize_label,
    safe_filename,
    setup_logger,
    strip_colon,
    write_json,
)


def test_clean_text_collapses_whitespace_and_newlines():
    assert clean_text("  Plot \n\n  1\t\xa0 High   Street ") == "Plot 1 High Street"
    assert clean_text("   \n\t ") == ""
    assert clean_text(None) == ""


@given(st.text())
def test_clean_text_has_no_runs_or_newlines_and_is_idempotent(raw):
    cleaned = clean_text(raw)
    assert "\n" not in cleaned
    assert not re.search(r"\s\s", cleaned)
    assert clean_text(cleaned) == cleaned


def test_normalize_label_known_labels():
    assert normalize_label("Reference Number") == "referenceNumber"
    assert normalize_label("Case Officer:") == "caseOfficer"
    assert normalize_label("  Date (Received) ") == "dateReceived"
    assert normalize_label("Status") == "status"
    assert normalize_label("UPRN") == "uprn"
    assert normalize_label("Plot\nNumber") == "plotNumber"
    assert normalize_label("") == ""
    assert normalize_label("---") == ""


def test_normalize_label_keys_start_with_a_letter():
    assert normalize_label("1st Inspection") == "stInspection"
    assert normalize_label("2 Plot Status") == "plotStatus"


def test_normalize_label_keeps_canonical_keys():
    assert normalize_label("applicationType") == "applicationType"


@given(st.text())
def test_normalize_label_shape_and_idempotence(raw):
    key = normalize_label(raw)
    assert key == "" or re.fullmatch(r"[a-z][a-zA-Z0-9]*", key)
    assert normalize_label(key) == key


def test_strip_colon_and_placeholders():
    assert strip_colon(" Case Officer: ") == "Case Officer"
    assert strip_colon("Time: 10:00") == "Time: 10:00"
    assert is_placeholder("-")
    assert is_placeholder("  ")
    assert not is_placeholder("Euan Crombie")


def test_safe_filename():
    assert safe_filename("FP/2025/0159") == "FP-2025-0159"
    assert safe_filename("T1A67ZEWK0T00") == "T1A67ZEWK0T00"


def test_write_json_is_indented_utf8(tmp_path):
    path = create_output_path(tmp_path, "wnc", "FP/2025/0159")
    assert path.name == "wnc-FP-2025-0159.json"
    doc = {"metadata": {"identifier": "FP/2025/0159"}, "main_details": {"address": "Façade Lane"}}
    written = write_json(path, doc)
    text = written.read_text(encoding="utf-8")
    assert "Façade Lane" in text
    assert '\n  "metadata"' in text
    assert json.loads(text) == doc


def test_setup_logger_is_idempotent(monkeypatch, tmp_path):
    monkeypatch.delenv("BC_LOG_LEVEL", raising=False)
    monkeypatch.delenv("BC_LOG_POLICY", raising=False)
    log_file = tmp_path / "log" / "run.log"
    first = setup_logger("bc.test_idempotent", "DEBUG", log_file)
    second = setup_logger("bc.test_idempotent", "DEBUG", log_file)
    assert first is second
    assert len(second.handlers) == 2
    assert second.level == logging.DEBUG
    assert log_file.parent.exists()


def test_setup_logger_env_overrides(monkeypatch, tmp_path):
    monkeypatch.setenv("BC_LOG_LEVEL", "WARNING")
    monkeypatch.setenv("BC_LOG_POLICY", "never")
    logger = setup_logger("bc.test_env", "DEBUG", tmp_path / "never.log")
    assert logger.level == logging.WARNING
    assert not any(isinstance(h, logging.FileHandler) for h in logger.handlers)
    assert not (tmp_path / "never.log").exists()
