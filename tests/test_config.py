"""Testes do carregamento da configuração YAML."""

import pytest

from alarm_bridge.config import DEFAULT_CONFIG, deep_merge, default_config, load_config, validate_config
from alarm_bridge.errors import ConfigError


def write_config(tmp_path, text):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding='utf-8')
    return str(path)


def test_default_config_values():
    config = validate_config(default_config())

    assert config['server'] == {'host': '0.0.0.0', 'port': 9999}
    assert config['panel']['host'] == '192.168.6.131'
    assert config['panel']['port'] == 9080
    assert config['panel']['default_password'] == '3574'
    assert config['panel']['command_timeout'] == 10.0
    assert config['mqtt']['topics'] == {
        'events': 'alarm/events',
        'commands': 'alarm/commands',
        'responses': 'alarm/command_responses',
    }


def test_default_config_is_a_copy():
    config = default_config()
    config['mqtt']['topics']['events'] = 'outro/topico'
    assert DEFAULT_CONFIG['mqtt']['topics']['events'] == 'alarm/events'


def test_deep_merge():
    base = {'a': {'x': 1, 'y': 2}, 'b': 1}
    assert deep_merge(base, {'a': {'y': 3}, 'c': 4}) == {'a': {'x': 1, 'y': 3}, 'b': 1, 'c': 4}
    assert base == {'a': {'x': 1, 'y': 2}, 'b': 1}


def test_load_partial_file_keeps_defaults(tmp_path):
    path = write_config(tmp_path, """
panel:
  host: 10.0.0.5
  default_password: 1234
mqtt:
  topics:
    events: casa/alarme/eventos
""")

    config = load_config(path)

    assert config['panel']['host'] == '10.0.0.5'
    assert config['panel']['port'] == 9080
    assert config['panel']['default_password'] == '1234'
    assert config['mqtt']['topics']['events'] == 'casa/alarme/eventos'
    assert config['mqtt']['topics']['commands'] == 'alarm/commands'


def test_empty_file_uses_defaults(tmp_path):
    config = load_config(write_config(tmp_path, ""))
    assert config['server']['port'] == 9999


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(str(tmp_path / "nao_existe.yaml"))


@pytest.mark.parametrize("text", [
    "panel: [1, 2\n",
    "- apenas\n- uma lista\n",
    "server: 9999\n",
    "server:\n  port: abc\n",
    "panel:\n  command_timeout: 0\n",
    "panel:\n  late_response: keep\n",
    "mqtt:\n  qos: 3\n",
    "mqtt:\n  topics:\n    responses: ''\n",
])
def test_invalid_files(tmp_path, text):
    with pytest.raises(ConfigError):
        load_config(write_config(tmp_path, text))
