import pytest

from leadsight.infrastructure.config import settings


def forget_after_test(monkeypatch, name):
    """Ensures a variable loaded from a .env file is removed after the test."""
    monkeypatch.setenv(name, "placeholder")
    monkeypatch.delenv(name)


def test_defaults_apply_without_overrides():
    assert settings.get_batch_size() == 5
    assert settings.get_item_limit() == 15
    assert settings.get_inter_batch_delay() == 0.5
    assert settings.get_max_outer_retries() == 10
    assert settings.get_max_total_wait() == 600.0
    assert settings.get_provider() == 'gemini'
    assert settings.get_model() is None
    policy = settings.get_retry_policy()
    assert (policy.max_attempts, policy.base_delay, policy.max_delay, policy.jitter) == (5, 1.0, 60.0, True)


def test_environment_overrides_yaml(monkeypatch):
    monkeypatch.setattr(settings, "_config", {'batch': {'size': 3}, 'retry.max_attempts': 2})
    assert settings.get_batch_size() == 3
    assert settings.get_retry_policy().max_attempts == 2

    monkeypatch.setenv('LEADSIGHT_BATCH_SIZE', '8')
    monkeypatch.setenv('LEADSIGHT_RETRY_JITTER', 'false')
    assert settings.get_batch_size() == 8
    assert settings.get_retry_policy().jitter is False


def test_test_config_wins(monkeypatch):
    monkeypatch.setenv('LEADSIGHT_BATCH_SIZE', '8')
    settings.set_config_for_testing({'batch.size': 2})
    assert settings.get_batch_size() == 2


def test_env_var_name():
    assert settings.env_var_name('retry.max_total_wait') == 'LEADSIGHT_RETRY_MAX_TOTAL_WAIT'


@pytest.mark.parametrize("key,value,getter", [
    ('batch.size', 0, settings.get_batch_size),
    ('batch.item_limit', -1, settings.get_item_limit),
    ('batch.inter_batch_delay', -0.5, settings.get_inter_batch_delay),
    ('retry.max_outer_retries', -1, settings.get_max_outer_retries),
])
def test_invalid_numbers_rejected(key, value, getter):
    settings.set_config_for_testing({key: value})
    with pytest.raises(ValueError):
        getter()


def test_load_configuration_reads_yaml_and_dotenv(monkeypatch, tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("batch:\n  item_limit: 30\nai.provider: groq\n", encoding="utf-8")
    env_file = tmp_path / ".env"
    env_file.write_text("LEADSIGHT_BATCH_SIZE=4\nGOOGLE_API_KEY=from-dotenv\n", encoding="utf-8")
    forget_after_test(monkeypatch, 'LEADSIGHT_BATCH_SIZE')
    forget_after_test(monkeypatch, 'GOOGLE_API_KEY')
    settings.reset_configuration()

    settings.load_configuration(config_file=config_file, env_file=env_file)

    assert settings.get_item_limit() == 30
    assert settings.get_provider() == 'groq'
    assert settings.get_batch_size() == 4
    assert [c.secret for c in settings.get_credentials()] == ['from-dotenv']


def test_dotenv_does_not_override_environment(monkeypatch, tmp_path):
    env_file = tmp_path / ".env"
    env_file.write_text("LEADSIGHT_BATCH_SIZE=4\n", encoding="utf-8")
    monkeypatch.setenv('LEADSIGHT_BATCH_SIZE', '9')
    settings.reset_configuration()

    settings.load_configuration(config_file=tmp_path / "missing.yaml", env_file=env_file)

    assert settings.get_batch_size() == 9


def test_broken_yaml_is_ignored(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("batch: [unclosed\n", encoding="utf-8")
    settings.reset_configuration()

    settings.load_configuration(config_file=config_file, env_file=tmp_path / "none.env")

    assert settings.get_batch_size() == 5


def test_gemini_credentials_in_preference_order(monkeypatch):
    monkeypatch.setenv('GEMINI_API_KEY_SECONDARY', 's')
    monkeypatch.setenv('GEMINI_API_KEY_PRIMARY', 'p')
    monkeypatch.setenv('GEMINI_API_KEY_EXTRA_2', 'e2')
    monkeypatch.setenv('GOOGLE_API_KEY', 'g')
    settings.set_config_for_testing({'credentials': ['c1', 'p', ' ']})

    credentials = settings.get_credentials('gemini')

    assert [c.identity for c in credentials] == ['google', 'extra_2', 'primary', 'secondary', 'config_1']
    assert [c.secret for c in credentials] == ['g', 'e2', 'p', 's', 'c1']


def test_duplicate_secrets_are_skipped(monkeypatch):
    monkeypatch.setenv('GOOGLE_API_KEY', 'same')
    monkeypatch.setenv('GEMINI_API_KEY_PRIMARY', 'same')

    assert [c.identity for c in settings.get_credentials()] == ['google']


def test_provider_specific_credentials(monkeypatch):
    monkeypatch.setenv('GOOGLE_API_KEY', 'g')
    monkeypatch.setenv('GROQ_API_KEY', 'gr')
    settings.set_config_for_testing({'credentials': 'a, b'})

    credentials = settings.get_credentials('groq')

    assert [(c.identity, c.secret) for c in credentials] == [('groq', 'gr'), ('config_1', 'a'), ('config_2', 'b')]


def test_no_credentials_yields_empty_list():
    assert settings.get_credentials('openai') == []


def test_numeric_credentials_value_is_read_as_text(monkeypatch):
    monkeypatch.setenv('LEADSIGHT_CREDENTIALS', '12345')

    credentials = settings.get_credentials('gemini')

    assert [(c.identity, c.secret) for c in credentials] == [('config_1', '12345')]


def test_scalar_yaml_credentials_value(monkeypatch):
    monkeypatch.setattr(settings, "_config", {'credentials': 987.5})

    assert [c.secret for c in settings.get_credentials('groq')] == ['987.5']
