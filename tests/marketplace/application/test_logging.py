from marketplace.utils.logging import get_log_level, mask_email_addresses


class TestMaskEmailAddresses:
    def test_masks_local_part(self):
        event = mask_email_addresses(None, "info", {"event": "x", "buyer": "ana.buyer@example.com"})
        assert event["buyer"] == "an***@example.com"

    def test_short_local_part(self):
        event = mask_email_addresses(None, "info", {"event": "x", "to": "a@example.com"})
        assert event["to"] == "a***@example.com"

    def test_leaves_other_fields_alone(self):
        event = mask_email_addresses(None, "info", {"event": "sent to a@b.com", "order_id": "o-1", "count": 3})
        assert event == {"event": "sent to a@b.com", "order_id": "o-1", "count": 3}


class TestLogLevel:
    def test_test_environment_is_quiet(self, monkeypatch):
        monkeypatch.delenv("LOG_LEVEL", raising=False)
        monkeypatch.delenv("ENV", raising=False)
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        monkeypatch.setenv("PROTEAN_ENV", "test")
        assert get_log_level() == "WARNING"

    def test_explicit_level_wins(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "ERROR")
        assert get_log_level() == "ERROR"
