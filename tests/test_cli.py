"""Tests for the mark-essay command line."""

import json
import sys

import pytest
import yaml

from econmarker.errors import GatewayError
from econmarker.tools.essay_marking import cli
from econmarker.tools.essay_marking.marker import EssayMarker


@pytest.fixture
def run_cli(monkeypatch, stub_gateway):
    """Run cli.main() with the given arguments against canned completions."""
    def _run(args, responses):
        gateway = stub_gateway(responses)
        monkeypatch.setattr(cli, "load_default_configs", lambda: {})
        monkeypatch.setattr(cli, "create_essay_marker", lambda config, model=None: EssayMarker(gateway))
        monkeypatch.setattr(sys, "argv", ["mark-essay"] + args)
        cli.main()
        return gateway
    return _run


@pytest.fixture
def essay_file(tmp_path, sample_essay):
    path = tmp_path / "essay.txt"
    path.write_text(sample_essay, encoding="utf-8")
    return path


def test_marks_essay_to_yaml_stdout(run_cli, essay_file, payload_text, sample_question, capsys):
    gateway = run_cli(["-q", sample_question, "-e", str(essay_file)], [payload_text])

    out = capsys.readouterr()
    result = yaml.safe_load(out.out)
    assert result["overallMark"] == 18
    assert result["totalMarks"] == 25
    assert "Mark: 18/25 (72.0%)" in out.err
    assert len(gateway.calls) == 1


def test_marks_essay_to_json_file(run_cli, essay_file, tmp_path, payload_text, sample_question):
    output = tmp_path / "result.json"
    run_cli(["-q", sample_question, "-k", "25", "-e", str(essay_file), "-o", str(output)], [payload_text])

    result = json.loads(output.read_text(encoding="utf-8"))
    assert result["percentage"] == 72.0


def test_extract_file_is_used(run_cli, essay_file, tmp_path, payload_text, sample_question):
    extract = tmp_path / "extract.txt"
    extract.write_text("Figure 1: CPI inflation 2021-2024", encoding="utf-8")

    gateway = run_cli(["-q", sample_question, "-e", str(essay_file), "-x", str(extract)], [payload_text])

    assert "EXTRACT:\nFigure 1: CPI inflation" in gateway.calls[0]["user_message"]


def test_rewrite_mode(run_cli, tmp_path):
    output = tmp_path / "rewrite.yaml"
    gateway = run_cli(["-q", "Explain demand.", "-r", "Demand falls.", "--role", "knowledge", "-o", str(output)],
                      ['{"rewrittenText": "As price rises, quantity demanded falls.", "improvementType": "clarity"}'])

    rewrite = yaml.safe_load(output.read_text(encoding="utf-8"))
    assert rewrite["originalText"] == "Demand falls."
    assert rewrite["rewrittenText"] == "As price rises, quantity demanded falls."
    assert "SENTENCE ROLE: knowledge" in gateway.calls[0]["user_message"]


def test_marking_failure_exits_1(run_cli, essay_file, sample_question):
    with pytest.raises(SystemExit) as excinfo:
        run_cli(["-q", sample_question, "-e", str(essay_file)], [GatewayError("boom")])
    assert excinfo.value.code == 1


def test_missing_essay_file_exits_1(run_cli, tmp_path, sample_question):
    with pytest.raises(SystemExit) as excinfo:
        run_cli(["-q", sample_question, "-e", str(tmp_path / "missing.txt")], [])
    assert excinfo.value.code == 1


def test_essay_required_without_rewrite(run_cli, sample_question):
    with pytest.raises(SystemExit) as excinfo:
        run_cli(["-q", sample_question], [])
    assert excinfo.value.code == 2
