"""
Módulo de comandos para a central

Construção dos comandos enviados à central e validação das mensagens de
comando recebidas do broker.

ATENÇÃO: o formato de fio dos comandos ainda é provisório (texto
`TIPO:parametros\\n`). Os builders ficam em COMMAND_BUILDERS para que o
formato real possa ser registrado sem alterar o restante da ponte.
"""

import json
import time

from .errors import (
    CommandBuildError, InvalidCommandError, MissingZoneError, UnknownCommandError
)

DEFAULT_PASSWORD = '3574'
DEFAULT_COMMAND_TIMEOUT = 10

# ===============================================================================
# TIPOS DE COMANDO
# ===============================================================================

ARM = 'ARM'
DISARM = 'DISARM'
ARM_TOTAL = 'ARM_TOTAL'
ARM_PARTIAL = 'ARM_PARTIAL'
INHIBIT_ZONE = 'INHIBIT_ZONE'
UNINHIBIT_ZONE = 'UNINHIBIT_ZONE'

ZONE_COMMANDS = (INHIBIT_ZONE, UNINHIBIT_ZONE)

# ===============================================================================
# BUILDERS - FORMATO PROVISÓRIO
# ===============================================================================

def build_arm_command(password):
    """Comando de arme simples"""
    return f"{ARM}:{password}\n".encode('ascii')


def build_disarm_command(password):
    """Comando de desarme"""
    return f"{DISARM}:{password}\n".encode('ascii')


def build_arm_total_command(password):
    """Comando de arme total"""
    return f"{ARM_TOTAL}:{password}\n".encode('ascii')


def build_arm_partial_command(password):
    """Comando de arme parcial"""
    return f"{ARM_PARTIAL}:{password}\n".encode('ascii')


def build_inhibit_zone_command(zone, password):
    """Comando de inibição de zona"""
    if zone is None:
        raise MissingZoneError(INHIBIT_ZONE)
    return f"{INHIBIT_ZONE}:{zone}:{password}\n".encode('ascii')


def build_uninhibit_zone_command(zone, password):
    """Comando de desinibição de zona"""
    if zone is None:
        raise MissingZoneError(UNINHIBIT_ZONE)
    return f"{UNINHIBIT_ZONE}:{zone}:{password}\n".encode('ascii')


# Assinatura: builder(parameters: dict, password: str) -> bytes
COMMAND_BUILDERS = {
    ARM: lambda params, password: build_arm_command(password),
    DISARM: lambda params, password: build_disarm_command(password),
    ARM_TOTAL: lambda params, password: build_arm_total_command(password),
    ARM_PARTIAL: lambda params, password: build_arm_partial_command(password),
    INHIBIT_ZONE: lambda params, password: build_inhibit_zone_command(params.get('zone'), password),
    UNINHIBIT_ZONE: lambda params, password: build_uninhibit_zone_command(params.get('zone'), password),
}

COMMAND_TYPES = tuple(COMMAND_BUILDERS)


def register_command_builder(kind, builder):
    """
    Substitui o builder de um tipo de comando

    Usado para plugar o formato binário real da central quando ele for
    confirmado.

    Args:
        kind: str - um dos COMMAND_TYPES
        builder: callable(parameters, password) -> bytes
    """
    if kind not in COMMAND_BUILDERS:
        raise UnknownCommandError(kind)
    COMMAND_BUILDERS[kind] = builder


def build_command(kind, parameters=None, default_password=DEFAULT_PASSWORD):
    """
    Converte um comando estruturado nos bytes enviados à central

    Args:
        kind: str - tipo do comando (ARM, DISARM, ...)
        parameters: dict - {'password': str, 'zone': int}
        default_password: str - senha usada quando não informada

    Returns:
        bytes - comando codificado

    Raises:
        UnknownCommandError - tipo não suportado
        MissingZoneError - comando de zona sem zona
    """
    builder = COMMAND_BUILDERS.get(kind) if isinstance(kind, str) else None
    if builder is None:
        raise UnknownCommandError(kind)

    params = parameters or {}
    password = params.get('password') or default_password

    try:
        return builder(params, password)
    except UnicodeEncodeError as e:
        raise CommandBuildError(f"Parâmetro não ASCII no comando {kind}: {e}")


# ===============================================================================
# MENSAGENS DO BROKER
# ===============================================================================

def parse_command_message(payload, timeout=DEFAULT_COMMAND_TIMEOUT):
    """
    Valida uma mensagem de comando e cria a requisição

    O prazo (deadline) conta a partir do recebimento da mensagem.

    Args:
        payload: bytes ou str - JSON {id, command, parameters, timestamp}
        timeout: float - segundos até o prazo do comando

    Returns:
        dict - requisição {id, command, parameters, timestamp, deadline}

    Raises:
        InvalidCommandError - JSON inválido ou campos obrigatórios ausentes
    """
    try:
        if isinstance(payload, bytes):
            payload = payload.decode('utf-8')
        message = json.loads(payload)
    except (UnicodeDecodeError, ValueError):
        raise InvalidCommandError("Erro ao processar comando JSON")

    if not isinstance(message, dict):
        raise InvalidCommandError("Erro ao processar comando JSON")

    command_id = message.get('id')
    command = message.get('command')
    if not command_id or not command:
        raise InvalidCommandError("Campos obrigatórios não fornecidos", command_id=command_id or None)

    if not isinstance(command, str):
        raise InvalidCommandError("Comando deve ser texto", command_id=str(command_id))

    parameters = message.get('parameters') or {}
    if not isinstance(parameters, dict):
        raise InvalidCommandError("Parâmetros devem ser um objeto", command_id=command_id)

    return {
        'id': str(command_id),
        'command': command,
        'parameters': parameters,
        'timestamp': message.get('timestamp'),
        'deadline': time.monotonic() + timeout,
    }


# ===============================================================================
# UTILITÁRIOS
# ===============================================================================

def hex_string(data):
    """Bytes em hexadecimal separado por espaço (ex: '40 05')"""
    return ' '.join([f'{b:02X}' for b in data])


def format_hex_dump(data, bytes_per_line=16):
    """
    Formata dados binários em hexdump legível

    Args:
        data: bytes - dados a formatar
        bytes_per_line: int - bytes por linha (default 16)

    Returns:
        str - representação hexdump
    """
    lines = []

    for i in range(0, len(data), bytes_per_line):
        chunk = data[i:i+bytes_per_line]

        offset = f"{i:04X}"

        hex_part = hex_string(chunk)
        hex_part = hex_part.ljust(bytes_per_line * 3)

        # ASCII (caracteres imprimíveis)
        ascii_part = ''.join([chr(b) if 32 <= b < 127 else '.' for b in chunk])

        lines.append(f"{offset}  {hex_part}  {ascii_part}")

    return '\n'.join(lines)
