"""
Ponte central de alarme <-> MQTT

Liga o servidor TCP da central, o correlacionador de comandos e o
transporte MQTT.
"""

import logging
import threading

from . import commands
from .errors import InvalidCommandError
from .panel import CommandCorrelator
from .publisher import STATUS_ERROR, EventPublisher, ResponsePublisher
from .server import PanelServer

logger = logging.getLogger(__name__)


class AlarmBridge:
    """
    Ponte bidirecional entre a central e o broker

    Attributes:
        config: dict - configuração completa (config.load_config)
        transport: MqttTransport ou equivalente
        correlator: CommandCorrelator - comandos em andamento
        server: PanelServer - criado em start()
    """

    def __init__(self, config, transport):
        self.config = config
        self.transport = transport

        topics = config['mqtt']['topics']
        panel = config['panel']

        self.event_publisher = EventPublisher(transport, topics['events'])
        self.response_publisher = ResponsePublisher(transport, topics['responses'])
        self.commands_topic = topics['commands']
        self.command_timeout = panel['command_timeout']

        self.correlator = CommandCorrelator(
            self.response_publisher,
            panel['host'],
            panel['port'],
            default_password=panel['default_password'],
            connection_lifetime=panel['connection_lifetime'],
            late_response=panel['late_response'],
        )

        self.server = None
        self._server_thread = None

    @property
    def server_address(self):
        """Endereço (host, porta) efetivo do servidor TCP"""
        return self.server.server_address if self.server else None

    def start(self):
        """
        Conecta ao broker e inicia o servidor TCP em background

        Raises:
            OSError - broker inacessível ou porta TCP em uso
        """
        self.transport.subscribe(self.commands_topic, self.on_command_message)
        self.transport.start()

        server_config = self.config['server']
        self.server = PanelServer(
            (server_config['host'], server_config['port']),
            self.event_publisher,
            dump_packets=self.config['logging'].get('dump_packets', False),
        )
        self._server_thread = threading.Thread(
            target=self.server.serve_forever,
            name="servidor-central",
            daemon=True,
        )
        self._server_thread.start()

        host, port = self.server.server_address[:2]
        logger.info(f"Servidor TCP ouvindo em {host}:{port}")

    def stop(self):
        """Para o servidor, cancela comandos pendentes e desconecta do broker"""
        logger.info("Encerrando ponte...")
        if self.server is not None:
            self.server.shutdown()
            self.server.server_close()
            self.server = None
        self.correlator.shutdown()
        self.transport.stop()

    def on_command_message(self, topic, payload):
        """
        Handler das mensagens do tópico de comandos

        Mensagens inválidas recebem resposta ERROR com o id informado ou
        'unknown'.
        """
        try:
            request = commands.parse_command_message(payload, timeout=self.command_timeout)
        except InvalidCommandError as e:
            logger.error(f"Comando inválido recebido em {topic}: {e}")
            self.response_publisher.publish_response(e.command_id or 'unknown', STATUS_ERROR, str(e))
            return

        logger.info(f"Comando MQTT recebido: {request['command']} (ID: {request['id']})")
        self.correlator.execute(request)
