"""
Configuração da ponte (arquivo YAML)

O arquivo é mesclado sobre DEFAULT_CONFIG; seções e chaves ausentes usam
os valores padrão.
"""

import copy

import yaml

from .errors import ConfigError

DEFAULT_CONFIG = {
    'server': {
        'host': '0.0.0.0',
        'port': 9999,
    },
    'panel': {
        'host': '192.168.6.131',
        'port': 9080,
        'default_password': '3574',
        'command_timeout': 10,
        'connection_lifetime': 10,
        'late_response': 'discard',
    },
    'mqtt': {
        'broker': 'localhost',
        'port': 1883,
        'client_id': 'alarm-bridge',
        'username': None,
        'password': None,
        'keepalive': 60,
        'qos': 0,
        'topics': {
            'events': 'alarm/events',
            'commands': 'alarm/commands',
            'responses': 'alarm/command_responses',
        },
    },
    'logging': {
        'level': 'INFO',
        'dump_packets': False,
    },
}


def default_config():
    """Cópia da configuração padrão"""
    return copy.deepcopy(DEFAULT_CONFIG)


def deep_merge(base, override):
    """Mescla recursivamente *override* sobre *base*"""
    result = base.copy()
    for key, val in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(val, dict):
            result[key] = deep_merge(result[key], val)
        else:
            result[key] = val
    return result


def _coerce(config, section, key, kind):
    try:
        config[section][key] = kind(config[section][key])
    except (TypeError, ValueError):
        raise ConfigError(f"Valor inválido para {section}.{key}: {config[section][key]!r}")


def validate_config(config):
    """
    Converte e valida os valores numéricos e enumerados

    Args:
        config: dict - configuração já mesclada

    Returns:
        dict - a mesma configuração, com tipos normalizados

    Raises:
        ConfigError - valor inválido
    """
    for section in ('server', 'panel', 'mqtt', 'logging'):
        if not isinstance(config.get(section), dict):
            raise ConfigError(f"Seção '{section}' deve ser um mapeamento")

    _coerce(config, 'server', 'port', int)
    _coerce(config, 'panel', 'port', int)
    _coerce(config, 'panel', 'command_timeout', float)
    _coerce(config, 'panel', 'connection_lifetime', float)
    _coerce(config, 'panel', 'default_password', str)
    _coerce(config, 'mqtt', 'port', int)
    _coerce(config, 'mqtt', 'keepalive', int)
    _coerce(config, 'mqtt', 'qos', int)
    _coerce(config, 'logging', 'dump_packets', bool)

    if config['panel']['command_timeout'] <= 0:
        raise ConfigError("panel.command_timeout deve ser positivo")
    if config['panel']['connection_lifetime'] <= 0:
        raise ConfigError("panel.connection_lifetime deve ser positivo")
    if config['panel']['late_response'] not in ('discard', 'log'):
        raise ConfigError(
            f"panel.late_response deve ser 'discard' ou 'log': {config['panel']['late_response']!r}"
        )
    if config['mqtt']['qos'] not in (0, 1, 2):
        raise ConfigError(f"mqtt.qos inválido: {config['mqtt']['qos']}")

    topics = config['mqtt'].get('topics')
    if not isinstance(topics, dict):
        raise ConfigError("mqtt.topics deve ser um mapeamento")
    for name in ('events', 'commands', 'responses'):
        if not topics.get(name):
            raise ConfigError(f"mqtt.topics.{name} não definido")

    return config


def load_config(config_path='config.yaml'):
    """
    Carrega arquivo de configuração

    Args:
        config_path: str - caminho do arquivo

    Returns:
        dict - configuração mesclada e validada

    Raises:
        FileNotFoundError - arquivo não existe
        ConfigError - YAML inválido ou valores inválidos
    """
    with open(config_path, 'r', encoding='utf-8') as f:
        try:
            loaded = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Erro ao ler {config_path}: {e}")

    if not isinstance(loaded, dict):
        raise ConfigError(f"{config_path} deve conter um mapeamento YAML")

    return validate_config(deep_merge(default_config(), loaded))
