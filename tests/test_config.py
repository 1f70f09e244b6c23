import copy

import pytest

from autopress.config import DEFAULT_CONFIG, ConfigError, build_config, load_config, load_credentials


def test_defaults_build_without_overrides():
    config = build_config()
    assert config.app.timezone == "Europe/Bucharest"
    assert config.publish.retries == 3
    assert config.quality.rules["missing_h2"] is True
    assert config.quality.rules["missing_internal_links"] is False
    assert len(config.classifier.guards) == 6


def test_build_config_does_not_mutate_defaults():
    before = copy.deepcopy(DEFAULT_CONFIG)
    build_config({"publish": {"retries": 5}, "quality": {"rules": {"missing_h2": False}}})
    assert DEFAULT_CONFIG == before


def test_load_config_from_yaml(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text(
        "publish:\n  posts_per_run: 2\n  window_enabled: false\nquality:\n  rules:\n    missing_h2: false\n",
        encoding="utf-8",
    )

    config = load_config(str(path))

    assert config.publish.posts_per_run == 2
    assert not config.publish.window_enabled
    assert config.quality.rules["missing_h2"] is False
    assert config.quality.rules["weak_title"] is True


def test_empty_yaml_uses_defaults(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("", encoding="utf-8")
    assert load_config(str(path)) == build_config()


def test_feed_mix_is_replaced_not_merged():
    config = build_config({"feeds": {"mix": {"romania": 1.0}}})
    assert config.feeds.mix == {"romania": 1.0}


def test_unknown_key_rejected():
    with pytest.raises(ConfigError) as excinfo:
        build_config({"publish": {"retry_count": 2}})
    assert "unknown config.publish.retry_count" in str(excinfo.value)


def test_wrong_type_rejected():
    with pytest.raises(ConfigError) as excinfo:
        build_config({"publish": {"retries": "three"}})
    assert "config.publish.retries must be an integer" in str(excinfo.value)


def test_semantic_errors_rejected():
    with pytest.raises(ConfigError) as excinfo:
        build_config({"dedupe": {"overlap_ratio": 1.5}, "quality": {"rules": {"no_such_rule": True}}})
    message = str(excinfo.value)
    assert "overlap_ratio" in message
    assert "no_such_rule" in message


def test_invalid_yaml_raises_config_error(tmp_path):
    path = tmp_path / "config.yml"
    path.write_text("publish: [unclosed\n", encoding="utf-8")
    with pytest.raises(ConfigError):
        load_config(str(path))


def test_missing_file_raises_config_error(tmp_path):
    with pytest.raises(ConfigError):
        load_config(str(tmp_path / "absent.yml"))


def test_load_credentials_from_environ():
    creds = load_credentials({"AP_WP_URL": "https://example.ro/ ", "AP_LLM_API_KEY": "sk"})
    assert creds.wp_url == "https://example.ro"
    assert creds.llm_api_key == "sk"
    assert creds.llm_base_url == "https://api.openai.com/v1"
