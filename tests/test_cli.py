import json
from pathlib import Path
from unittest.mock import patch

import yaml
from click.testing import CliRunner

from api_contract_infer.cli import main

FIXTURES = Path(__file__).parent / "fixtures"
APP_ROOT = FIXTURES / "express_app"

PROJECT_ARGS = ["--project-root", str(APP_ROOT), "--schemas-dir", "src/types"]


class TestCliGenerate:
    def test_generate_json(self, tmp_path):
        output_file = tmp_path / "swagger.json"
        runner = CliRunner()
        result = runner.invoke(main, ["generate", *PROJECT_ARGS, "-o", str(output_file)])

        assert result.exit_code == 0, result.output
        assert "Found 11 endpoints." in result.output
        spec = json.loads(output_file.read_text())
        assert spec["openapi"] == "3.0.0"
        assert "/api/v1/auth/login" in spec["paths"]
        assert "User" in spec["components"]["schemas"]

    def test_generate_yaml_with_metadata(self, tmp_path):
        output_file = tmp_path / "swagger.yaml"
        runner = CliRunner()
        result = runner.invoke(main, [
            "generate", *PROJECT_ARGS,
            "-o", str(output_file),
            "--title", "Shop API",
            "--api-version", "2.1.0",
            "--base-path", "/v2",
        ])

        assert result.exit_code == 0, result.output
        spec = yaml.safe_load(output_file.read_text())
        assert spec["info"] == {"title": "Shop API", "version": "2.1.0", "description": "Auto-generated API documentation"}
        assert "/v2/auth/login" in spec["paths"]

    def test_generate_typescript_module(self, tmp_path):
        output_file = tmp_path / "swagger-docs.ts"
        runner = CliRunner()
        result = runner.invoke(main, ["generate", *PROJECT_ARGS, "-o", str(output_file)])

        assert result.exit_code == 0, result.output
        content = output_file.read_text()
        assert content.startswith("// Auto-generated")
        assert "export const swaggerSpec" in content

    def test_generate_reports_warnings(self, tmp_path):
        runner = CliRunner()
        result = runner.invoke(main, ["generate", *PROJECT_ARGS, "-o", str(tmp_path / "out.json")])
        assert "Warning: Validator authSchemas.forgotPassword not resolved" in result.output

    def test_generate_from_config_file(self, tmp_path):
        config_file = tmp_path / "contract.yaml"
        config_file.write_text(
            f"projectRoot: {APP_ROOT}\n"
            "schemasDir: src/types\n"
            "title: From file\n"
            "smartDefaults: false\n"
        )
        output_file = tmp_path / "out.json"
        runner = CliRunner()
        result = runner.invoke(main, [
            "generate", "--config", str(config_file), "-o", str(output_file), "--title", "From CLI",
        ])

        assert result.exit_code == 0, result.output
        spec = json.loads(output_file.read_text())
        assert spec["info"]["title"] == "From CLI"
        logout = spec["paths"]["/api/v1/auth/logout"]["post"]
        assert logout["requestBody"]["content"]["application/json"]["schema"] == {"type": "object", "properties": {}}

    def test_invalid_config_file(self, tmp_path):
        config_file = tmp_path / "contract.yaml"
        config_file.write_text("- not\n- a mapping\n")
        runner = CliRunner()
        result = runner.invoke(main, ["generate", "--config", str(config_file)])
        assert result.exit_code != 0
        assert "mapping" in result.output


class TestCliValidate:
    def test_validate_lists_endpoints(self):
        runner = CliRunner()
        result = runner.invoke(main, ["validate", *PROJECT_ARGS])

        assert result.exit_code == 0, result.output
        assert "POST    /api/v1/auth/login  [public] Login" in result.output
        assert "GET     /api/v1/users/{id}  [auth] Get user by id" in result.output
        assert "11 endpoints, no problems found." in result.output

    @patch("api_contract_infer.cli.validate_document")
    def test_validate_reports_problems(self, mock_validate):
        mock_validate.return_value = {"GET /x": "Undeclared path parameter(s): id"}
        runner = CliRunner()
        result = runner.invoke(main, ["validate", *PROJECT_ARGS])

        assert result.exit_code == 1
        assert "GET /x: Undeclared path parameter(s): id" in result.output
        assert "1 problem(s) found" in result.output
