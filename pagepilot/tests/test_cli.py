import textwrap

import pytest
from click.testing import CliRunner

from pagepilot import cli as cli_module
from pagepilot.cli import cli, load_scenario
from pagepilot.config import env
from pagepilot.tests.fixtures.fake_surface import FakeSurface


@pytest.fixture
def fake_surfaces(monkeypatch):
    """Replace real browsers with in-memory surfaces, recording factory calls."""
    created = []

    def create_surface(**kwargs):
        surface = FakeSurface(responder=lambda expression, params: "Example Domain")
        created.append((kwargs, surface))
        return surface

    monkeypatch.setattr(cli_module.SurfaceFactory, "create_surface", create_surface)
    monkeypatch.setenv("PAGEPILOT_STEP_POLL_INTERVAL_MS", "5")
    monkeypatch.setenv("PAGEPILOT_WAIT_POLL_INTERVAL_MS", "5")
    yield created
    env.reset_setting("step_poll_interval_ms")
    env.reset_setting("wait_poll_interval_ms")


def write_scenario(tmp_path, body):
    script = tmp_path / "scenario.py"
    script.write_text(textwrap.dedent(body))
    return str(script)


def test_run_succeeds(tmp_path, fake_surfaces):
    script = write_scenario(
        tmp_path,
        """
        async def scenario(session):
            async def show_title(s):
                s.echo(await s.get_title())
            session.then(show_title)
        """,
    )
    result = CliRunner().invoke(cli, ["run", script, "--url", "http://example.test/", "--surface", "selenium"])

    assert result.exit_code == 0, result.output
    assert "Example Domain" in result.output
    kwargs, surface = fake_surfaces[0]
    assert kwargs["surface_type"] == "selenium"
    assert surface.opened == ["http://example.test/"]
    assert surface.closed


def test_run_exits_with_die_status(tmp_path, fake_surfaces):
    script = write_scenario(
        tmp_path,
        """
        def scenario(session):
            session.then(lambda s: s.die("element missing", 4))
        """,
    )
    result = CliRunner().invoke(cli, ["run", script])

    assert result.exit_code == 4
    assert "Run failed" in result.output


def test_run_strict_mode_reports_step_errors(tmp_path, fake_surfaces):
    script = write_scenario(
        tmp_path,
        """
        def scenario(session):
            session.then(lambda s: 1 / 0)
        """,
    )
    result = CliRunner().invoke(cli, ["run", script, "--strict"])

    assert result.exit_code == 1
    assert "Step 1 failed" in result.output


def test_run_verbose_echoes_log(tmp_path, fake_surfaces):
    script = write_scenario(
        tmp_path,
        """
        def scenario(session):
            session.then(lambda s: s.log("hello from step", "info"))
        """,
    )
    result = CliRunner().invoke(cli, ["run", script, "--verbose", "--log-level", "info"])

    assert result.exit_code == 0
    assert "[pilot] hello from step" in result.output


def test_run_rejects_script_without_scenario(tmp_path, fake_surfaces):
    script = write_scenario(tmp_path, "value = 1\n")
    result = CliRunner().invoke(cli, ["run", script])

    assert result.exit_code == 1
    assert "does not define a scenario(session) function" in result.output
    assert fake_surfaces == []


def test_load_scenario(tmp_path):
    script = write_scenario(tmp_path, "def scenario(session):\n    return 'ok'\n")
    assert load_scenario(script)(None) == "ok"


def test_settings_lists_configuration():
    result = CliRunner().invoke(cli, ["settings"])

    assert result.exit_code == 0
    assert "surface_type = " in result.output
    assert "wait_timeout_ms = " in result.output
