import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from leadsight.domain.models.errors import UpstreamError
from leadsight.infrastructure.config import settings
from leadsight.main import app

from conftest import ScriptedGenerator, echo_insights, make_leads


@pytest.fixture
def leads_file(tmp_path) -> Path:
    path = tmp_path / "prospects.json"
    path.write_text(json.dumps(make_leads(7)), encoding="utf-8")
    return path


@pytest.fixture
def configured(mocker):
    """Two configured keys, no pauses, and logging left to pytest."""
    settings.set_config_for_testing({
        'credentials': ['secret-a', 'secret-b'],
        'batch.inter_batch_delay': 0,
        'retry.jitter': False,
    })
    mocker.patch('leadsight.main.setup_logging')


def use_generator(mocker, outcomes) -> ScriptedGenerator:
    generator = ScriptedGenerator(outcomes)
    mocker.patch('leadsight.main.create_text_generator', return_value=generator)
    return generator


def ndjson(output: str) -> list:
    return [json.loads(line) for line in output.splitlines() if line.startswith("{")]


def test_analyze_streams_json_events(runner: CliRunner, leads_file, configured, mocker):
    generator = use_generator(mocker, [echo_insights, echo_insights])

    result = runner.invoke(app, ["analyze", str(leads_file), "--json"])

    assert result.exit_code == 0, f"CLI command failed: {result.stdout}"
    events = ndjson(result.stdout)
    assert [e["type"] for e in events] == ["status", "batch", "batch", "complete"]
    assert events[0]["total_batches"] == 2
    assert events[-1]["total_processed"] == 7
    assert generator.keys_used == ["secret-a", "secret-b"]


def test_analyze_rotates_past_rejected_key(runner: CliRunner, leads_file, configured, mocker):
    rejected = UpstreamError("API key not valid", status_code=401)
    generator = use_generator(mocker, [rejected, echo_insights])

    result = runner.invoke(app, ["analyze", str(leads_file), "--json", "--batch-size", "10"])

    assert result.exit_code == 0, f"CLI command failed: {result.stdout}"
    assert generator.keys_used == ["secret-a", "secret-b"]
    assert ndjson(result.stdout)[-1]["failed_batches"] == []


def test_analyze_item_limit_option(runner: CliRunner, leads_file, configured, mocker):
    use_generator(mocker, [echo_insights])

    result = runner.invoke(app, ["analyze", str(leads_file), "--json", "-n", "3"])

    status = ndjson(result.stdout)[0]
    assert status["truncated"] is True
    assert status["dropped_items"] == 4
    assert status["total_batches"] == 1


def test_analyze_human_output(runner: CliRunner, leads_file, configured, mocker):
    use_generator(mocker, [echo_insights, UpstreamError("invalid request", status_code=400)])

    result = runner.invoke(app, ["analyze", str(leads_file)])

    assert result.exit_code == 0
    assert "Batch 1/2" in result.stdout
    assert "Failed batches: 2" in result.stdout


def test_analyze_without_credentials_fails(runner: CliRunner, leads_file, mocker):
    mocker.patch('leadsight.main.setup_logging')
    use_generator(mocker, [])

    result = runner.invoke(app, ["analyze", str(leads_file)])

    assert result.exit_code == 1
    assert "No API credentials configured" in result.stdout


def test_analyze_missing_file_is_usage_error(runner: CliRunner, tmp_path, configured):
    result = runner.invoke(app, ["analyze", str(tmp_path / "missing.json")])
    assert result.exit_code == 2


def test_keys_command_hides_secrets(runner: CliRunner, configured, mocker):
    use_generator(mocker, [])

    result = runner.invoke(app, ["keys"])

    assert result.exit_code == 0
    assert "config_1" in result.stdout
    assert "config_2" in result.stdout
    assert "secret-a" not in result.stdout
    assert "State at startup" in result.stdout


def test_regenerate_command(runner: CliRunner, configured, mocker):
    reply = json.dumps({
        "name": "Ada", "role": "CTO", "company": "Acme", "profileNotes": "Notes",
        "pitchSuggestions": [{"pitch": "One"}, {"pitch": "Two"}, {"pitch": "Three"}],
        "conversationStarter": "Hi Ada",
    })
    generator = use_generator(mocker, [reply])

    result = runner.invoke(app, [
        "regenerate", "--name", "Ada", "--role", "CTO", "--company", "Acme",
        "--location", "London", "--json",
    ])

    assert result.exit_code == 0, f"CLI command failed: {result.stdout}"
    payload = ndjson(result.stdout)[0]
    assert payload["location"] == "London"
    assert len(payload["pitch_suggestions"]) == 3
    assert "Location: London" in generator.calls[0][0].user_prompt


def test_regenerate_requires_company(runner: CliRunner, configured):
    result = runner.invoke(app, ["regenerate", "--name", "Ada", "--role", "CTO"])
    assert result.exit_code == 2


def test_expand_command(runner: CliRunner, configured, mocker):
    use_generator(mocker, [json.dumps({"expandedPitch": "Hello Ada."})])

    result = runner.invoke(app, [
        "expand", "Faster releases", "--name", "Ada", "--role", "CTO", "--company", "Acme", "--json",
    ])

    assert result.exit_code == 0, f"CLI command failed: {result.stdout}"
    assert ndjson(result.stdout) == [{"expandedPitch": "Hello Ada."}]


def test_expand_command_reports_bad_reply(runner: CliRunner, configured, mocker):
    use_generator(mocker, ["not json"])

    result = runner.invoke(app, ["expand", "Faster releases", "--name", "Ada", "--role", "CTO", "--company", "Acme"])

    assert result.exit_code == 1
    assert "Failed to generate expanded pitch" in result.stdout
