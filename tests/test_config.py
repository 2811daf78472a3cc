import logging
import pytest
from unittest.mock import patch

from gigamux.client import create_client
from gigamux.config import GigaChatSettings, collect_client_settings
from gigamux.exceptions import ConfigurationError


class TestGigaChatSettings:

    def test_reads_prefixed_environment(self, clean_env, monkeypatch):
        monkeypatch.setenv("GIGACHAT_CREDENTIALS", "env-key")
        monkeypatch.setenv("GIGACHAT_SCOPE", "GIGACHAT_API_CORP")
        monkeypatch.setenv("GIGACHAT_VERIFY_SSL_CERTS", "false")

        settings = GigaChatSettings()

        assert settings.credentials.get_secret_value() == "env-key"
        assert settings.scope == "GIGACHAT_API_CORP"
        assert settings.verify_ssl_certs is False

    def test_arguments_override_environment(self, clean_env, monkeypatch):
        monkeypatch.setenv("GIGACHAT_SCOPE", "GIGACHAT_API_CORP")
        assert GigaChatSettings(scope="GIGACHAT_API_PERS").scope == "GIGACHAT_API_PERS"

    def test_client_kwargs_reveal_secrets_and_skip_unset(self, clean_env):
        settings = GigaChatSettings(credentials="key", password="pw", user="admin", timeout=30)
        assert settings.client_kwargs() == {
            "credentials": "key",
            "password": "pw",
            "user": "admin",
            "timeout": 30.0,
        }

    def test_secrets_hidden_in_repr(self, clean_env):
        settings = GigaChatSettings(credentials="key-123", access_token="token-456")
        assert "key-123" not in repr(settings)
        assert "token-456" not in repr(settings)


class TestCollectClientSettings:

    def test_moves_connection_keywords(self, clean_env):
        values = collect_client_settings({"model": "GigaChat", "credentials": "key", "scope": "s"})

        assert set(values) == {"model", "client_settings"}
        assert values["client_settings"].scope == "s"

    def test_leaves_other_values(self):
        values = {"model": "GigaChat"}
        assert collect_client_settings(values) is values

    def test_conflict(self, clean_env):
        with pytest.raises(ConfigurationError):
            collect_client_settings({"credentials": "key", "client_settings": GigaChatSettings()})


class TestCreateClient:

    def test_credentials_are_not_logged(self, clean_env, caplog):
        settings = GigaChatSettings(credentials="very-secret", scope="GIGACHAT_API_PERS")

        with patch("gigamux.client.GigaChatClient") as client_cls:
            with caplog.at_level(logging.DEBUG, logger="gigamux.client"):
                create_client(settings, model="GigaChat", timeout=None)

        client_cls.assert_called_once_with(credentials="very-secret", scope="GIGACHAT_API_PERS", model="GigaChat")
        assert "credentials" in caplog.text
        assert "very-secret" not in caplog.text
