"""
Cliente de comandos via MQTT

Publica comandos no tópico de comandos da ponte e aguarda o resultado
final (RESPONSE ou ERROR) no tópico de respostas.
"""

import json
import logging
import threading
import uuid

from . import commands
from .errors import CommandTimeoutError
from .protocol import utc_timestamp
from .publisher import STATUS_SENT

logger = logging.getLogger(__name__)


class AlarmCommandClient:
    """
    Envia comandos para a central através da ponte

    Attributes:
        transport: MqttTransport - já configurado (start() é responsabilidade do chamador)
        commands_topic: str - tópico de comandos
        responses_topic: str - tópico de respostas
        password: str - senha usada pelos métodos de conveniência
    """

    def __init__(self, transport, commands_topic, responses_topic,
                 password=commands.DEFAULT_PASSWORD):
        self.transport = transport
        self.commands_topic = commands_topic
        self.responses_topic = responses_topic
        self.password = password

        self._pending = {}
        self._lock = threading.Lock()

        self.transport.subscribe(self.responses_topic, self.on_response_message)

    def on_response_message(self, topic, payload):
        """Resolve o comando pendente quando chega o resultado final"""
        try:
            response = json.loads(payload)
            command_id = response['command_id']
            status = response['status']
        except (ValueError, TypeError, KeyError) as e:
            logger.error(f"Erro ao processar resposta do comando: {e}")
            return

        logger.info(f"Resposta do comando {command_id}: {status} - {response.get('message')}")

        if status == STATUS_SENT:
            return

        with self._lock:
            waiter = self._pending.pop(command_id, None)
        if waiter is None:
            return

        waiter['response'] = response
        waiter['event'].set()

    def send_command(self, command, parameters=None, timeout=10):
        """
        Publica um comando e aguarda o resultado final

        Args:
            command: str - tipo do comando (ARM, DISARM, ...)
            parameters: dict - {'password': ..., 'zone': ...}
            timeout: float - espera máxima em segundos

        Returns:
            dict - resposta final {command_id, status, message, timestamp, data?}

        Raises:
            CommandTimeoutError - nenhuma resposta final no prazo
            ConnectionError - publicação rejeitada pelo transporte
        """
        command_id = str(uuid.uuid4())
        message = {
            'id': command_id,
            'command': command,
            'parameters': parameters or {},
            'timestamp': utc_timestamp(),
        }
        waiter = {'event': threading.Event(), 'response': None}

        with self._lock:
            self._pending[command_id] = waiter

        try:
            if not self.transport.publish(self.commands_topic, json.dumps(message)):
                raise ConnectionError(f"Falha ao publicar comando {command}")
            logger.info(f"Comando enviado: {command} (ID: {command_id})")

            if not waiter['event'].wait(timeout):
                raise CommandTimeoutError(command_id, command)
        finally:
            with self._lock:
                self._pending.pop(command_id, None)

        return waiter['response']

    # Métodos convenientes para comandos específicos
    def arm(self, password=None):
        return self.send_command(commands.ARM, {'password': password or self.password})

    def disarm(self, password=None):
        return self.send_command(commands.DISARM, {'password': password or self.password})

    def arm_total(self, password=None):
        return self.send_command(commands.ARM_TOTAL, {'password': password or self.password})

    def arm_partial(self, password=None):
        return self.send_command(commands.ARM_PARTIAL, {'password': password or self.password})

    def inhibit_zone(self, zone, password=None):
        return self.send_command(
            commands.INHIBIT_ZONE, {'zone': zone, 'password': password or self.password}
        )

    def uninhibit_zone(self, zone, password=None):
        return self.send_command(
            commands.UNINHIBIT_ZONE, {'zone': zone, 'password': password or self.password}
        )
