import json

from insight_dash.config.credentials import CredentialStore

# --- Tests for CredentialStore ---

def test_missing_file_uses_fallback(tmp_path):
    store = CredentialStore(path=str(tmp_path / "creds.json"), fallback_key="env-key")
    assert store.get_api_key() == "env-key"
    assert store.has_api_key()

def test_no_key_at_all(tmp_path):
    store = CredentialStore(path=str(tmp_path / "creds.json"), fallback_key="")
    assert not store.has_api_key()

def test_saved_key_survives_reload(tmp_path):
    path = tmp_path / "nested" / "creds.json"
    CredentialStore(path=str(path), fallback_key="").set_api_key("  gsk-123  ")

    assert json.loads(path.read_text(encoding="utf-8")) == {"llm_api_key": "gsk-123"}
    assert CredentialStore(path=str(path), fallback_key="").get_api_key() == "gsk-123"

def test_saved_key_wins_over_fallback(tmp_path):
    path = tmp_path / "creds.json"
    path.write_text(json.dumps({"llm_api_key": "file-key"}), encoding="utf-8")
    assert CredentialStore(path=str(path), fallback_key="env-key").get_api_key() == "file-key"

def test_corrupt_file_is_ignored(tmp_path):
    path = tmp_path / "creds.json"
    path.write_text("{not json", encoding="utf-8")
    store = CredentialStore(path=str(path), fallback_key="env-key")
    assert store.get_api_key() == "env-key"

def test_clearing_key_falls_back(tmp_path):
    store = CredentialStore(path=str(tmp_path / "creds.json"), fallback_key="")
    store.set_api_key("gsk-123")
    store.set_api_key("")
    assert not store.has_api_key()
