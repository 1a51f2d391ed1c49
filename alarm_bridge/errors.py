"""
Exceções da ponte central de alarme <-> MQTT
"""


class AlarmBridgeError(Exception):
    """Erro base da ponte"""


class ConfigError(AlarmBridgeError):
    """Configuração inválida ou ilegível"""


class ProtocolDecodeError(AlarmBridgeError):
    """Frame malformado, curto ou com campos inválidos"""


class CommandBuildError(AlarmBridgeError, ValueError):
    """Comando não pôde ser construído a partir da requisição"""


class UnknownCommandError(CommandBuildError):
    """Tipo de comando não suportado"""

    def __init__(self, kind):
        super().__init__(f"Comando desconhecido: {kind}")
        self.kind = kind


class MissingZoneError(CommandBuildError):
    """Comando de zona sem o parâmetro zone"""

    def __init__(self, kind):
        super().__init__(f"Zona não especificada para {kind}")
        self.kind = kind


class InvalidCommandError(CommandBuildError):
    """Mensagem de comando recebida do broker é inválida"""

    def __init__(self, message, command_id=None):
        super().__init__(message)
        self.command_id = command_id


class CommandTimeoutError(AlarmBridgeError):
    """Nenhuma resposta final recebida para o comando dentro do prazo"""

    def __init__(self, command_id, command):
        super().__init__(f"Timeout ao aguardar resposta do comando {command}")
        self.command_id = command_id
        self.command = command
