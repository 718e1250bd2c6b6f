"""Unit tests for the echoes CLI."""

import json
import tempfile
from pathlib import Path
from unittest.mock import patch

from typer.testing import CliRunner

from echoes import __version__
from echoes.cli import app


class TestCLI:
    """Test CLI commands."""

    def setup_method(self):
        self.runner = CliRunner()

    def write_config(self, temp_path: Path, data: dict) -> Path:
        config_file = temp_path / ".echoes.json"
        config_file.write_text(json.dumps(data))
        return config_file

    def test_version(self):
        result = self.runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert f"errors-and-echoes version {__version__}" in result.stdout

    def test_config_tables(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            config_file = self.write_config(Path(temp_dir), {
                "endpoints": [{"name": "Demo", "url": "https://r.example.com/report/demo",
                               "extensions": ["demo-ext"]}],
            })

            result = self.runner.invoke(app, ["config", "--config", str(config_file)])

            assert result.exit_code == 0
            assert "Reporting" in result.stdout
            assert "Endpoints" in result.stdout
            assert "Demo" in result.stdout

    def test_config_without_endpoints(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            config_file = self.write_config(Path(temp_dir), {})
            result = self.runner.invoke(app, ["config", "-c", str(config_file)])

            assert result.exit_code == 0
            assert "No endpoints configured" in result.stdout

    def test_config_json(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            config_file = self.write_config(Path(temp_dir), {"reporting": {"maxReportsPerHour": 12}})
            result = self.runner.invoke(app, ["config", "-c", str(config_file), "--json"])

            assert result.exit_code == 0
            assert '"maxReportsPerHour": 12' in result.stdout

    def test_config_invalid(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            config_file = Path(temp_dir) / ".echoes.json"
            config_file.write_text("{broken")
            result = self.runner.invoke(app, ["config", "-c", str(config_file)])

            assert result.exit_code == 1
            assert "Error:" in result.stdout

    def test_endpoint_ok(self):
        with patch("echoes.cli.probe_endpoint", return_value=True) as probe:
            result = self.runner.invoke(app, ["test-endpoint", "https://r.example.com/report/demo"])

        assert result.exit_code == 0
        assert "Endpoint OK" in result.stdout
        assert probe.call_args.args[1] == "https://r.example.com/report/demo"

    def test_endpoint_failed(self):
        with patch("echoes.cli.probe_endpoint", return_value=False):
            result = self.runner.invoke(app, ["test-endpoint", "https://r.example.com/report/demo"])

        assert result.exit_code == 1
        assert "Endpoint test failed" in result.stdout

    def test_payload_schema_stdout(self):
        result = self.runner.invoke(app, ["payload-schema"])
        assert result.exit_code == 0
        schema = json.loads(result.stdout)
        assert "error" in schema["properties"]

    def test_payload_schema_output(self):
        with tempfile.TemporaryDirectory() as temp_dir:
            result = self.runner.invoke(app, ["payload-schema", "--output", temp_dir])

            assert result.exit_code == 0
            assert (Path(temp_dir) / "report-payload.schema.json").exists()
