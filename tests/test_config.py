"""Tests for settings, the local config record and credential resolution."""

import json
import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from nano_banana_mcp.config import (
    CONFIG_FILENAME,
    DEFAULT_MODEL,
    PRO_MODEL,
    Credentials,
    Provenance,
    Settings,
    load_config_record,
    load_env_file,
    load_settings,
    resolve_credentials,
    save_config_record,
)


class TestCredentials:
    def test_accepts_alias_and_field_name(self):
        assert Credentials.model_validate({"geminiApiKey": "abc"}).api_key == "abc"
        assert Credentials(api_key="abc").api_key == "abc"

    @pytest.mark.parametrize("value", ["", "   ", "\t\n"])
    def test_rejects_blank_key(self, value):
        with pytest.raises(ValidationError):
            Credentials(api_key=value)


class TestSettings:
    def test_defaults(self, tmp_path: Path):
        settings = load_settings(environ={}, cwd=tmp_path)
        assert settings.model == DEFAULT_MODEL
        assert settings.model_name == "Gemini 2.5 Flash Image"
        assert settings.supports_image_size is False
        assert settings.log_level == "WARNING"
        assert settings.config_path == tmp_path / CONFIG_FILENAME

    def test_pro_model_supports_image_size(self, tmp_path: Path):
        settings = load_settings(environ={"GEMINI_IMAGE_MODEL": PRO_MODEL}, cwd=tmp_path)
        assert settings.supports_image_size is True
        assert settings.model_name == "Gemini 3 Pro Image"

    def test_unknown_model_shown_verbatim(self, tmp_path: Path):
        settings = load_settings(environ={"GEMINI_IMAGE_MODEL": "custom-model"}, cwd=tmp_path)
        assert settings.model_name == "custom-model"
        assert settings.supports_image_size is False

    def test_output_dir_override(self, tmp_path: Path):
        settings = load_settings(environ={"NANO_BANANA_OUTPUT_DIR": "/data/out"}, cwd=tmp_path)
        assert settings.output_dir == Path("/data/out")

    def test_output_dir_under_project_cwd(self):
        settings = Settings(cwd=Path("/home/me/project"), platform="linux")
        assert settings.output_dir == Path("/home/me/project/generated_imgs")

    @pytest.mark.parametrize("cwd", ["/", "/usr/local/bin", "/opt/app", "/var/lib/x",
                                     "/home/me/tmp/work", "/home/me/.npm/_npx/1"])
    def test_output_dir_falls_back_to_home(self, cwd):
        settings = Settings(cwd=Path(cwd), platform="linux")
        assert settings.output_dir == Path.home() / "nano-banana-images"

    def test_output_dir_on_windows(self):
        settings = Settings(cwd=Path("/anything"), platform="win32")
        assert settings.output_dir == Path.home() / "Documents" / "nano-banana-images"

    def test_env_file_is_loaded_without_overriding(self, monkeypatch, tmp_path: Path):
        monkeypatch.setattr(os, "environ", dict(os.environ))
        (tmp_path / ".env").write_text(
            "GEMINI_IMAGE_MODEL=gemini-3-pro-image-preview\nNANO_BANANA_LOG_LEVEL=debug\n"
        )
        monkeypatch.setenv("NANO_BANANA_LOG_LEVEL", "INFO")
        assert load_env_file(tmp_path) is True
        settings = load_settings(cwd=tmp_path)
        assert settings.model == PRO_MODEL
        assert settings.log_level == "INFO"

    def test_missing_env_file(self, tmp_path: Path):
        assert load_env_file(tmp_path) is False


class TestConfigRecord:
    def test_round_trip(self, tmp_path: Path):
        path = tmp_path / CONFIG_FILENAME
        save_config_record(Credentials(api_key="K"), path)
        assert json.loads(path.read_text()) == {"geminiApiKey": "K"}
        assert load_config_record(path) == Credentials(api_key="K")

    def test_missing_record(self, tmp_path: Path):
        assert load_config_record(tmp_path / CONFIG_FILENAME) is None

    @pytest.mark.parametrize("content", ["not json", "{}", '{"geminiApiKey": ""}'])
    def test_invalid_record_is_ignored(self, tmp_path: Path, content):
        path = tmp_path / CONFIG_FILENAME
        path.write_text(content)
        assert load_config_record(path) is None


class TestResolveCredentials:
    def test_environment_wins(self, tmp_path: Path):
        save_config_record(Credentials(api_key="from-file"), tmp_path / CONFIG_FILENAME)
        settings = Settings(cwd=tmp_path)
        credentials, provenance = resolve_credentials(settings, {"GEMINI_API_KEY": "from-env"})
        assert credentials.api_key == "from-env"
        assert provenance is Provenance.ENVIRONMENT

    def test_falls_back_to_record(self, tmp_path: Path):
        save_config_record(Credentials(api_key="K"), tmp_path / CONFIG_FILENAME)
        credentials, provenance = resolve_credentials(Settings(cwd=tmp_path), {})
        assert credentials == Credentials(api_key="K")
        assert provenance is Provenance.LOCAL_FILE

    def test_blank_env_value_falls_through(self, tmp_path: Path):
        save_config_record(Credentials(api_key="K"), tmp_path / CONFIG_FILENAME)
        credentials, provenance = resolve_credentials(
            Settings(cwd=tmp_path), {"GEMINI_API_KEY": "  "}
        )
        assert credentials.api_key == "K"
        assert provenance is Provenance.LOCAL_FILE

    def test_nothing_configured(self, tmp_path: Path):
        credentials, provenance = resolve_credentials(Settings(cwd=tmp_path), {})
        assert credentials is None
        assert provenance is Provenance.NOT_CONFIGURED

    def test_reads_process_environment_by_default(self, monkeypatch, tmp_path: Path):
        monkeypatch.setenv("GEMINI_API_KEY", "process-key")
        credentials, provenance = resolve_credentials(Settings(cwd=tmp_path))
        assert credentials.api_key == "process-key"
        assert provenance is Provenance.ENVIRONMENT
