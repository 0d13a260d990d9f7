import pytest

from couchpush.config import get_push_config, resolve_urls
from couchpush.errors import ConfigurationError


def test_defaults():
    assert get_push_config() == {
        "batch_size": 100,
        "timeout": 30.0,
        "verify_tls": False,
        "max_retries": 0,
    }


def test_environment_overrides(monkeypatch):
    monkeypatch.setenv("COUCHPUSH_BATCH_SIZE", "25")
    monkeypatch.setenv("COUCHPUSH_TIMEOUT", "2.5")
    monkeypatch.setenv("COUCHPUSH_VERIFY_TLS", "yes")
    monkeypatch.setenv("COUCHPUSH_MAX_RETRIES", "3")

    config = get_push_config()

    assert config == {"batch_size": 25, "timeout": 2.5, "verify_tls": True, "max_retries": 3}


def test_explicit_overrides_win_and_none_is_ignored(monkeypatch):
    monkeypatch.setenv("COUCHPUSH_BATCH_SIZE", "25")

    config = get_push_config({"batch_size": 7, "timeout": None})

    assert config["batch_size"] == 7
    assert config["timeout"] == 30.0


@pytest.mark.parametrize(
    "name,value",
    [
        ("COUCHPUSH_BATCH_SIZE", "many"),
        ("COUCHPUSH_BATCH_SIZE", "0"),
        ("COUCHPUSH_TIMEOUT", "-1"),
        ("COUCHPUSH_TIMEOUT", "soon"),
        ("COUCHPUSH_MAX_RETRIES", "-2"),
    ],
)
def test_invalid_environment_values(monkeypatch, name, value):
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigurationError, match=name):
        get_push_config()


def test_invalid_override_values():
    with pytest.raises(ConfigurationError):
        get_push_config({"batch_size": 0})
    with pytest.raises(ConfigurationError):
        get_push_config({"colour": "blue"})


def test_unparseable_bool_falls_back_to_default(monkeypatch):
    monkeypatch.setenv("COUCHPUSH_VERIFY_TLS", "sometimes")

    assert get_push_config()["verify_tls"] is False


def test_urls_union_arguments_and_environment(monkeypatch):
    monkeypatch.setenv("COUCHPUSH_URL", "http://env/db")

    assert resolve_urls(["http://a/db", "http://b/db"]) == ["http://a/db", "http://b/db", "http://env/db"]


def test_urls_are_deduplicated(monkeypatch):
    monkeypatch.setenv("COUCHPUSH_URL", "http://a/db")

    assert resolve_urls(["http://a/db", " http://a/db ", ""]) == ["http://a/db"]


def test_no_urls():
    assert resolve_urls([]) == []
