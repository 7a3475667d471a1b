"""Tests for the command-line interface."""

import json

import pytest
import yaml

from schemagraph import cli
from schemagraph.models import Edge, GraphNode, NodeKind, SchemaGraph


def _run(capsys, *argv):
    with pytest.raises(SystemExit) as exc:
        cli.main(list(argv))
    return exc.value.code, json.loads(capsys.readouterr().out)


@pytest.fixture
def person_file(tmp_path, person_schema):
    path = tmp_path / "person.json"
    path.write_text(json.dumps(person_schema))
    return str(path)


class TestCompile:
    def test_compile_json(self, capsys, person_file):
        code, out = _run(capsys, "compile", person_file, "--expand", "root")
        assert code == 0
        assert out["status"] == "ok"
        assert [n["id"] for n in out["nodes"]][0] == "root"
        assert len(out["nodes"]) == 3

    def test_compile_yaml(self, capsys, tmp_path, person_schema):
        path = tmp_path / "person.yaml"
        path.write_text(yaml.safe_dump(person_schema))
        code, out = _run(capsys, "compile", str(path), "--visibility", '{"root": "collapsed"}')
        assert code == 0
        assert [n["id"] for n in out["nodes"]] == ["root"]

    def test_collapse_overrides_visibility(self, capsys, person_file):
        _, out = _run(capsys, "compile", person_file, "--visibility", '{"root": "expanded"}', "--collapse", "root")
        assert len(out["nodes"]) == 1

    def test_missing_file(self, capsys, tmp_path):
        code, out = _run(capsys, "compile", str(tmp_path / "nope.json"))
        assert code == 1
        assert out["status"] == "error"

    def test_unparseable_file(self, capsys, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        code, out = _run(capsys, "compile", str(path))
        assert code == 1
        assert "Cannot parse" in out["error"]

    def test_bad_visibility(self, capsys, person_file):
        code, out = _run(capsys, "compile", person_file, "--visibility", "[1, 2]")
        assert code == 1
        assert "JSON object" in out["error"]

    def test_invalid_settings(self, capsys, person_file):
        code, out = _run(capsys, "compile", person_file, "--max-depth", "0")
        assert code == 1
        assert "Invalid settings" in out["error"]


class TestSummaryAndCheck:
    def test_summary(self, capsys, person_file):
        code, out = _run(capsys, "summary", person_file, "--expand", "root", "--top", "2")
        assert code == 0
        assert out["summary"]["total_nodes"] == 3

    def test_check_valid(self, capsys, person_file):
        code, out = _run(capsys, "check", person_file, "--expand", "root")
        assert code == 0
        assert out["summary"]["valid"]

    def test_check_invalid_exits_2(self, capsys, monkeypatch, person_file):
        broken = SchemaGraph(
            nodes=[GraphNode(id="root", kind=NodeKind.ROOT)],
            edges=[Edge(source="root", target="ghost")],
        )
        monkeypatch.setattr(cli, "generate_diagram", lambda *args, **kwargs: broken)

        code, out = _run(capsys, "check", person_file)
        assert code == 2
        assert not out["summary"]["valid"]
