"""Tests for YAML settings loading and env substitution."""
import pytest

from config.settings import load_settings, _substitute_env_vars


@pytest.fixture(autouse=True)
def keep_cached_settings(monkeypatch):
    # load_settings replaces the process-wide cache; restore it afterwards
    monkeypatch.setattr("config.settings._settings", None)


class TestEnvSubstitution:
    def test_set_variable(self, monkeypatch):
        monkeypatch.setenv("NILES_TEST_VAR", "value")
        assert _substitute_env_vars("x-${NILES_TEST_VAR}-y") == "x-value-y"

    def test_default_used_when_unset(self, monkeypatch):
        monkeypatch.delenv("NILES_TEST_VAR", raising=False)
        assert _substitute_env_vars("${NILES_TEST_VAR:-fallback}") == "fallback"
        assert _substitute_env_vars("${NILES_TEST_VAR:-}") == ""

    def test_unset_without_default_is_left(self, monkeypatch):
        monkeypatch.delenv("NILES_TEST_VAR", raising=False)
        assert _substitute_env_vars("${NILES_TEST_VAR}") == "${NILES_TEST_VAR}"


class TestLoadSettings:
    def test_missing_file_gives_defaults(self, tmp_path):
        settings = load_settings(str(tmp_path / "none.yaml"))
        assert settings.bot.name == "Niles"
        assert settings.bot.trusted_senders == ["probot"]
        assert settings.recognizer.type == "keyword"
        assert settings.database.store_backend == "memory"
        assert settings.issue_service.webhook_url == ""

    def test_yaml_with_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("HOOK_URL", "https://hooks.example.com/issues")
        path = tmp_path / "settings.yaml"
        path.write_text(
            "bot:\n"
            "  name: Jeeves\n"
            "  trusted_senders: [probot, ci-bot]\n"
            "recognizer:\n"
            "  type: llm\n"
            "  provider: openai\n"
            "  api_key: abc\n"
            "  min_score: 0.4\n"
            "database:\n"
            "  store_backend: file\n"
            "  store_file_dir: /tmp/niles\n"
            "issue_service:\n"
            "  webhook_url: ${HOOK_URL}\n"
            "  timeout_seconds: 3\n"
        )
        settings = load_settings(str(path))

        assert settings.bot.name == "Jeeves"
        assert settings.bot.trusted_senders == ["probot", "ci-bot"]
        assert settings.recognizer.provider == "openai"
        assert settings.recognizer.min_score == 0.4
        assert settings.database.store_backend == "file"
        assert settings.issue_service.webhook_url == "https://hooks.example.com/issues"
        assert settings.issue_service.timeout_seconds == 3.0

    def test_bundled_settings_load(self, monkeypatch):
        monkeypatch.delenv("NILES_CONFIG", raising=False)
        monkeypatch.delenv("NILES_RECOGNIZER", raising=False)
        monkeypatch.delenv("NILES_ISSUE_WEBHOOK_URL", raising=False)
        settings = load_settings()
        assert settings.recognizer.type == "keyword"
        assert settings.issue_service.webhook_url == ""
