import pytest
from pydantic import ValidationError

from party.server.settings import PartyServerSettings


@pytest.fixture(autouse=True)
def _default_env(monkeypatch):
    monkeypatch.delenv("PARTY_PUBLIC_BASE_URL", raising=False)


class TestPartyServerSettings:
    def test_defaults(self):
        settings = PartyServerSettings()

        assert settings.cors_origins == ["http://localhost:8712"]
        assert settings.public_base_url == "http://localhost:8712"
        assert settings.database_path == ""
        assert settings.guess_timer_seconds == 10.0
        assert settings.max_sessions == 1000
        assert settings.session_ttl_seconds == 86400
        assert settings.content_path is None

    def test_reads_prefixed_env(self, monkeypatch):
        monkeypatch.setenv("PARTY_DATABASE_PATH", "/tmp/party.db")
        monkeypatch.setenv("PARTY_GUESS_TIMER_SECONDS", "7.5")
        monkeypatch.setenv("PARTY_MAX_SESSIONS", "12")

        settings = PartyServerSettings()

        assert settings.database_path == "/tmp/party.db"
        assert settings.guess_timer_seconds == 7.5
        assert settings.max_sessions == 12

    def test_cors_origins_from_csv(self, monkeypatch):
        monkeypatch.setenv("PARTY_CORS_ORIGINS", "https://a.example, https://b.example")

        assert PartyServerSettings().cors_origins == ["https://a.example", "https://b.example"]

    def test_cors_origins_from_json(self, monkeypatch):
        monkeypatch.setenv("PARTY_CORS_ORIGINS", '["https://a.example"]')

        assert PartyServerSettings().cors_origins == ["https://a.example"]

    @pytest.mark.parametrize(
        ("var", "value"),
        [
            ("PARTY_CORS_ORIGINS", ""),
            ("PARTY_GUESS_TIMER_SECONDS", "0"),
            ("PARTY_MAX_SESSIONS", "0"),
            ("PARTY_SESSION_TTL_SECONDS", "-1"),
            ("PARTY_PUBLIC_BASE_URL", ""),
        ],
    )
    def test_rejects_invalid_values(self, monkeypatch, var, value):
        monkeypatch.setenv(var, value)

        with pytest.raises(ValidationError):
            PartyServerSettings()

    def test_init_arguments_win(self, monkeypatch):
        monkeypatch.setenv("PARTY_MAX_SESSIONS", "12")

        assert PartyServerSettings(max_sessions=3).max_sessions == 3
