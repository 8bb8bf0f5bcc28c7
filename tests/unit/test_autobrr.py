"""
Unit tests for the autobrr integration service.

Tests cover:
- Saving, replacing and deleting the single settings row
- Encrypted key storage and retrieval
- Webhook action built from the daemon's host, port and apiKey
"""

import json

import pytest
from sqlalchemy.orm import Session

from crossseed_ui.core.exceptions import AutobrrNotConfiguredError
from crossseed_ui.models.autobrr import AutobrrConfig
from crossseed_ui.services import autobrr


class TestSettings:
    def test_save_encrypts_key(self, db_session: Session):
        cfg = autobrr.save_settings(db_session, "http://autobrr:7474/", "AUTOBRRKEY")

        assert cfg.url == "http://autobrr:7474"
        assert cfg.encrypted_api_key != "AUTOBRRKEY"
        assert autobrr.stored_api_key(db_session) == "AUTOBRRKEY"

    def test_save_twice_keeps_one_row(self, db_session: Session):
        autobrr.save_settings(db_session, "http://autobrr:7474", "FIRST")
        autobrr.save_settings(db_session, "http://other:7474", "SECOND")

        rows = db_session.query(AutobrrConfig).all()
        assert len(rows) == 1
        assert rows[0].url == "http://other:7474"
        assert autobrr.stored_api_key(db_session) == "SECOND"

    def test_delete(self, db_session: Session):
        autobrr.save_settings(db_session, "http://autobrr:7474", "AUTOBRRKEY")

        autobrr.delete_settings(db_session)

        assert autobrr.get_settings(db_session) is None

    def test_stored_key_when_unconfigured(self, db_session: Session):
        with pytest.raises(AutobrrNotConfiguredError):
            autobrr.stored_api_key(db_session)

    def test_undecryptable_key(self, db_session: Session):
        db_session.add(AutobrrConfig(id=1, url="http://autobrr:7474", encrypted_api_key="not-a-token"))
        db_session.commit()

        with pytest.raises(AutobrrNotConfiguredError, match="save it again"):
            autobrr.stored_api_key(db_session)


class TestWebhookConfig:
    def test_built_from_daemon_config(self):
        config = autobrr.webhook_config({"host": "cross-seed", "port": 2469, "apiKey": "DAEMONKEY"})

        assert config["crossseed_url"] == "http://cross-seed:2469"
        assert config["webhook_url"] == "http://cross-seed:2469/api/announce"
        assert config["api_key"] == "DAEMONKEY"

        action = json.loads(config["action_json"])
        assert action["type"] == "WEBHOOK"
        assert action["webhook_method"] == "POST"
        assert action["webhook_host"] == config["webhook_url"]
        assert action["webhook_headers"] == [{"key": "X-Api-Key", "value": "DAEMONKEY"}]
        assert json.loads(action["webhook_data"]) == json.loads(config["webhook_data"])

    def test_defaults_when_keys_missing(self):
        config = autobrr.webhook_config({})

        assert config["crossseed_url"] == "http://localhost:2468"
        assert config["api_key"] == ""

    def test_webhook_data_uses_autobrr_templates(self):
        data = json.loads(autobrr.webhook_config({})["webhook_data"])

        assert data == {
            "name": "{{ .TorrentName }}",
            "guid": "{{ .TorrentUrl }}",
            "link": "{{ .TorrentUrl }}",
            "tracker": "{{ .IndexerName }}",
        }
