"""Tests for the persisted config store."""
import json

from nzbmega.models import Credentials, ServiceConfig
from nzbmega.services.config_store import ConfigStore, default_config_dir


class TestConfigStore:
    def test_empty_store_has_defaults(self, tmp_path):
        store = ConfigStore(tmp_path)
        assert store.accounts() == []
        assert store.service_config() == ServiceConfig()

    def test_round_trip_accounts_and_service(self, tmp_path):
        store = ConfigStore(tmp_path)
        store.add_account(Credentials("me@example.com", "secret"))
        store.set_service_config(ServiceConfig(host="nas", port=9090, api_key="k"))
        store.save()

        reloaded = ConfigStore(tmp_path)
        assert reloaded.accounts() == [Credentials("me@example.com", "secret")]
        assert reloaded.service_config() == ServiceConfig(host="nas", port=9090, api_key="k")

    def test_add_account_replaces_same_email(self, tmp_path):
        store = ConfigStore(tmp_path)
        store.add_account(Credentials("me@example.com", "old"))
        store.add_account(Credentials("ME@example.com", "new"))

        assert [a.password for a in store.accounts()] == ["new"]
        assert store.find_account("me@EXAMPLE.com").password == "new"
        assert store.find_account("other@example.com") is None

    def test_corrupt_file_is_ignored(self, tmp_path):
        (tmp_path / "config.json").write_text("{not json", encoding="utf-8")
        assert ConfigStore(tmp_path).accounts() == []

    def test_malformed_account_skipped(self, tmp_path):
        (tmp_path / "config.json").write_text(json.dumps({
            "accounts": [{"email": "a@example.com"}, {"email": "b@example.com", "password": "p"}]
        }), encoding="utf-8")

        assert [a.email for a in ConfigStore(tmp_path).accounts()] == ["b@example.com"]

    def test_default_dir_from_env(self, tmp_path, monkeypatch):
        monkeypatch.setenv("NZBMEGA_CONFIG_DIR", str(tmp_path / "cfg"))
        assert default_config_dir() == tmp_path / "cfg"
        assert ConfigStore().path == tmp_path / "cfg" / "config.json"
