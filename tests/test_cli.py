"""命令行入口测试。"""

from unittest.mock import patch

import pytest

from skillfund import cli


@pytest.fixture
def configured(monkeypatch, installed_backend):
    monkeypatch.setattr(cli, "SUPABASE_URL", "https://proj.supabase.co")
    return installed_backend


class TestParseArgs:
    def test_serve_defaults(self):
        args = cli.parse_args(["serve"])

        assert args.command == "serve"
        assert args.host == "0.0.0.0"
        assert args.debug is False

    def test_jobs_category_choices(self):
        """测试非法分类被 argparse 拒绝。"""
        with pytest.raises(SystemExit):
            cli.parse_args(["jobs", "--category", "Cooking"])

    def test_command_required(self):
        with pytest.raises(SystemExit):
            cli.parse_args([])


class TestCommands:
    """测试 jobs / campaigns / serve 子命令。"""

    def test_jobs_listing(self, configured, open_job, capsys):
        exit_code = cli.main(["jobs", "--search", "bakery"])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "Build a React Native App" in out
        assert "Cleo Client" in out
        assert "$500 - $2000" in out

    def test_jobs_no_match(self, configured, open_job, capsys):
        cli.main(["jobs", "--category", "Writing"])

        assert "No jobs found matching your criteria." in capsys.readouterr().out

    def test_jobs_backend_failure(self, configured, capsys):
        configured.fail_on.add(("select", "jobs"))

        assert cli.main(["jobs"]) == 1
        assert "Failed to load jobs" in capsys.readouterr().out

    def test_campaigns_listing(self, configured, active_campaign, capsys):
        exit_code = cli.main(["campaigns"])

        out = capsys.readouterr().out
        assert exit_code == 0
        assert "Smart Home Garden" in out
        assert "$2,500 of $10,000 (25%)" in out

    def test_requires_backend_url(self, monkeypatch):
        monkeypatch.setattr(cli, "SUPABASE_URL", "")

        with pytest.raises(SystemExit):
            cli.main(["jobs"])

    def test_serve_runs_app(self, configured):
        with patch("app.app.run") as run:
            cli.main(["serve", "--port", "8080", "--debug"])

        run.assert_called_once_with(debug=True, host="0.0.0.0", port=8080)
