"""CLI exit codes and output."""

import json

import pytest

from secgate import cli
from secgate.cli import EXIT_CONFIG_ERROR, EXIT_GATE_FAILED, EXIT_OK, run


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda *args, **kwargs: None)


@pytest.fixture
def database_url(tmp_path):
    return f"sqlite+aiosqlite:///{tmp_path / 'cli.db'}"


def _write_payload(tmp_path, findings=(), **counts) -> str:
    severity = {"critical": 0, "high": 0, "medium": 0, "low": 0, "info": 0, **counts}
    payload = {
        "metadata": {
            "timestamp": "2026-10-19T12:00:00Z",
            "repository": "acme/webapp",
            "branch": "main",
            "commit": "abc123",
            "triggeredBy": "ci",
        },
        "summary": {"total": sum(severity.values()), "bySeverity": severity, "byTool": {}},
        "findings": list(findings),
    }
    path = tmp_path / "payload.json"
    path.write_text(json.dumps(payload))
    return str(path)


class TestGate:
    def test_passed(self, tmp_path, capsys):
        assert run(["gate", _write_payload(tmp_path)]) == EXIT_OK
        assert "[PASSED] All security gate checks passed" in capsys.readouterr().out

    def test_failed(self, tmp_path, capsys):
        assert run(["gate", _write_payload(tmp_path, critical=2)]) == EXIT_GATE_FAILED
        err = capsys.readouterr().err
        assert "[FAILED] Gate failed: 2 critical finding(s) detected (blocking enabled)" in err

    def test_warning_does_not_fail_the_build(self, tmp_path, capsys):
        assert run(["gate", _write_payload(tmp_path, medium=60)]) == EXIT_OK
        assert "[WARNING]" in capsys.readouterr().err

    def test_policy_file(self, tmp_path):
        policy = tmp_path / "policy.json"
        policy.write_text(json.dumps({"blockOnHigh": False, "maxHigh": 5}))
        assert run(["gate", _write_payload(tmp_path, high=3), "--policy", str(policy)]) == EXIT_OK

    def test_json_output(self, tmp_path, capsys):
        assert run(["gate", _write_payload(tmp_path, high=1), "--json"]) == EXIT_GATE_FAILED
        decision = json.loads(capsys.readouterr().out)
        assert decision["status"] == "failed"

    def test_summary_is_recomputed_from_findings(self, tmp_path, capsys):
        leak = {"tool": "gitleaks", "severity": "critical", "title": "aws-access-key"}
        assert run(["gate", _write_payload(tmp_path, findings=[leak])]) == EXIT_GATE_FAILED
        assert "1 critical finding(s)" in capsys.readouterr().err

    def test_invalid_payload(self, tmp_path):
        path = tmp_path / "payload.json"
        path.write_text(json.dumps({"findings": []}))
        assert run(["gate", str(path)]) == EXIT_CONFIG_ERROR

    def test_missing_payload(self, tmp_path):
        assert run(["gate", str(tmp_path / "absent.json")]) == EXIT_CONFIG_ERROR

    def test_invalid_policy(self, tmp_path):
        policy = tmp_path / "policy.json"
        policy.write_text("{nope")
        assert run(["gate", _write_payload(tmp_path), "--policy", str(policy)]) == EXIT_CONFIG_ERROR


class TestScan:
    def test_invalid_source(self):
        assert run(["scan", "definitely not a repository", "--tools", "bandit"]) == EXIT_CONFIG_ERROR

    def test_unknown_tool(self, tmp_path):
        assert run(["scan", str(tmp_path), "--tools", "semgrep,zap"]) == EXIT_CONFIG_ERROR

    def test_local_directory_without_findings(self, tmp_path, capsys):
        # no Python files, so bandit has nothing to do whether or not it is installed
        project = tmp_path / "project"
        project.mkdir()
        (project / "README.md").write_text("hello\n")

        assert run(["scan", str(project), "--tools", "bandit", "--json"]) == EXIT_OK
        output = json.loads(capsys.readouterr().out)
        assert output["payload"]["summary"]["total"] == 0
        assert output["payload"]["metadata"]["repository"] == "project"
        assert output["gate"]["status"] == "passed"


class TestSchedule:
    def test_add_list_remove(self, database_url, capsys):
        assert run([
            "schedule", "add", "--repository", "acme/webapp", "--type", "weekly",
            "--day-of-week", "5", "--hour", "4", "--database-url", database_url,
        ]) == EXIT_OK
        created = json.loads(capsys.readouterr().out)
        assert created["scheduleType"] == "weekly"
        assert created["config"]["dayOfWeek"] == 5
        assert created["isEnabled"] is True

        assert run(["schedule", "list", "--database-url", database_url]) == EXIT_OK
        listed = [json.loads(line) for line in capsys.readouterr().out.splitlines()]
        assert [s["id"] for s in listed] == [created["id"]]

        assert run(["schedule", "remove", created["id"], "--database-url", database_url]) == EXIT_OK
        assert run(["schedule", "run", created["id"], "--database-url", database_url]) == EXIT_CONFIG_ERROR

    def test_add_requires_repository(self, database_url):
        assert run(["schedule", "add", "--database-url", database_url]) == EXIT_CONFIG_ERROR

    def test_remove_requires_id(self, database_url):
        assert run(["schedule", "remove", "--database-url", database_url]) == EXIT_CONFIG_ERROR


class TestTrendsAndScorecard:
    def test_aggregate_empty_day(self, database_url, capsys):
        assert run([
            "trends", "aggregate", "repo_0000000000000001", "--date", "2026-10-19",
            "--database-url", database_url,
        ]) == EXIT_OK
        point = json.loads(capsys.readouterr().out)
        assert point["date"] == "2026-10-19"
        assert point["scans_count"] == 0

    def test_compare_needs_four_dates(self, database_url):
        assert run([
            "trends", "compare", "repo_0000000000000001", "2026-10-01", "2026-10-07",
            "--database-url", database_url,
        ]) == EXIT_CONFIG_ERROR

    def test_scorecard_needs_scope(self):
        assert run(["scorecard"]) == EXIT_CONFIG_ERROR


def test_no_command_prints_help(capsys):
    assert run([]) == EXIT_CONFIG_ERROR
    assert "usage" in capsys.readouterr().out
