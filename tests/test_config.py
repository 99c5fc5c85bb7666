import os
import sys

import pytest
import yaml

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from config import AppConfig, AppContext
from settings_schema import validate_settings


def test_defaults_without_file(tmp_path):
    config = AppConfig.load(str(tmp_path / "missing.yaml"), environ={})
    assert config.backend == "relational"
    assert config.user_id == "demo-user"
    assert config.can_write


def test_environment_overrides_yaml(tmp_path):
    path = tmp_path / "settings.yaml"
    path.write_text(yaml.safe_dump({"user_id": "from-file", "db_path": "a.db"}))
    config = AppConfig.load(
        str(path),
        environ={"FITLOG_USER_ID": "from-env", "EXERCISEDB_KEY": "k"},
    )
    assert config.user_id == "from-env"
    assert config.db_path == "a.db"
    assert config.exercisedb_key == "k"


def test_document_backend_requires_credentials(tmp_path, caplog):
    config = AppConfig.load(
        str(tmp_path / "none.yaml"),
        environ={"FITLOG_BACKEND": "document", "SANITY_PROJECT_ID": "abc"},
    )
    assert config.missing_credentials() == ["sanity_token"]
    assert not config.can_write
    assert "sanity_token" in caplog.text
    assert config.with_overrides(sanity_token="t").can_write


def test_invalid_settings_rejected():
    with pytest.raises(ValueError):
        validate_settings({"backend": "mongo"})
    with pytest.raises(ValueError):
        validate_settings({"weight_unit": "stone"})


def test_context_theme_and_user():
    ctx = AppContext.from_config(AppConfig(theme="dark", user_id="u1"))
    assert ctx.signed_in
    assert ctx.toggle_theme() == "light"
    assert ctx.toggle_theme() == "dark"
    assert not AppContext(user_id=None).signed_in
