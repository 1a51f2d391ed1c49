"""
Módulo de comandos para a central

Executa cada comando recebido do broker numa sessão TCP própria com a
central e correlaciona o resultado (resposta, erro ou timeout) ao id do
comando original.
"""

import logging
import threading
import time

from . import commands
from .commands import hex_string
from .connection import PanelConnection
from .errors import CommandBuildError
from .protocol import raw_data
from .publisher import STATUS_ERROR, STATUS_RESPONSE, STATUS_SENT

logger = logging.getLogger(__name__)

# Política para respostas que chegam depois do comando já finalizado:
# 'discard' fecha a sessão no timeout; 'log' mantém a sessão até
# connection_lifetime e registra a resposta tardia
LATE_RESPONSE_DISCARD = 'discard'
LATE_RESPONSE_LOG = 'log'
LATE_RESPONSE_POLICIES = (LATE_RESPONSE_DISCARD, LATE_RESPONSE_LOG)


class PendingCommand:
    """
    Estado de um comando em andamento

    Attributes:
        request: dict - requisição original
        timer: threading.Timer - prazo do comando
        connection: PanelConnection - sessão TCP (após iniciar conexão)
    """

    def __init__(self, request):
        self.request = request
        self.timer = None
        self.connection = None

    @property
    def command_id(self):
        return self.request['id']

    @property
    def kind(self):
        return self.request['command']


class CommandCorrelator:
    """
    Correlaciona comandos enviados à central com seus resultados

    O mapa de comandos pendentes é o único estado compartilhado entre as
    threads de comando, os timers de prazo e o handler do broker. Quem
    remove o id do mapa (sob o lock) é o único a publicar o resultado final.

    Attributes:
        publisher: ResponsePublisher - publica o andamento dos comandos
        host: str - endereço da central
        port: int - porta de comandos da central
    """

    def __init__(self, publisher, host, port,
                 default_password=commands.DEFAULT_PASSWORD,
                 connection_lifetime=10,
                 late_response=LATE_RESPONSE_DISCARD,
                 poll_interval=0.5,
                 connection_factory=PanelConnection):
        """
        Args:
            publisher: ResponsePublisher
            host: str - endereço da central
            port: int - porta TCP de comandos
            default_password: str - senha quando o comando não informa
            connection_lifetime: float - segundos até fechar a sessão TCP
            late_response: str - 'discard' ou 'log'
            poll_interval: float - intervalo de verificação durante a leitura
            connection_factory: callable(host, port, timeout) -> PanelConnection
        """
        if late_response not in LATE_RESPONSE_POLICIES:
            raise ValueError(f"Política de resposta tardia inválida: {late_response}")

        self.publisher = publisher
        self.host = host
        self.port = port
        self.default_password = default_password
        self.connection_lifetime = connection_lifetime
        self.late_response = late_response
        self.poll_interval = poll_interval
        self.connection_factory = connection_factory

        self._pending = {}
        self._lock = threading.Lock()

    @property
    def pending_count(self):
        with self._lock:
            return len(self._pending)

    def is_pending(self, command_id):
        with self._lock:
            return command_id in self._pending

    def execute(self, request):
        """
        Inicia a execução de um comando em thread própria

        Args:
            request: dict - requisição de commands.parse_command_message

        Returns:
            bool - False se já existe um comando pendente com o mesmo id
        """
        command_id = request['id']
        pending = PendingCommand(request)

        with self._lock:
            if command_id in self._pending:
                logger.warning(f"Comando {command_id} já está em andamento, ignorando duplicata")
                return False

            self._pending[command_id] = pending
            delay = max(0.0, request['deadline'] - time.monotonic())
            pending.timer = threading.Timer(delay, self._expire, args=(command_id,))
            pending.timer.daemon = True
            pending.timer.start()

        logger.info(f"Processando comando: {pending.kind} (ID: {command_id})")

        worker = threading.Thread(
            target=self._run,
            args=(pending,),
            name=f"comando-{command_id}",
            daemon=True,
        )
        worker.start()
        return True

    def shutdown(self):
        """Cancela todos os comandos pendentes sem publicar resultados"""
        with self._lock:
            pending_commands = list(self._pending.values())
            self._pending.clear()

        for pending in pending_commands:
            pending.timer.cancel()
            if pending.connection is not None:
                pending.connection.disconnect()

        if pending_commands:
            logger.info(f"{len(pending_commands)} comando(s) pendente(s) cancelado(s)")

    def _run(self, pending):
        """Ciclo de vida de um comando: codifica, conecta, envia e aguarda resposta"""
        command_id = pending.command_id
        kind = pending.kind

        try:
            data = commands.build_command(kind, pending.request.get('parameters'), self.default_password)
        except CommandBuildError as e:
            logger.error(f"Erro ao construir comando {kind}: {e}")
            self._finish(command_id, STATUS_ERROR, f"Erro ao construir comando {kind}: {e}")
            return

        connection = self.connection_factory(self.host, self.port, timeout=self.connection_lifetime)
        with self._lock:
            if command_id not in self._pending:
                return
            pending.connection = connection

        opened_at = time.monotonic()
        try:
            logger.info(f"Conectando à central {self.host}:{self.port} para comando {kind}")
            connection.connect()
            if not self.is_pending(command_id):
                logger.info(f"Comando {kind} expirou durante a conexão, não enviado")
                return

            logger.info(f"Enviando comando {kind}: {hex_string(data)}")
            connection.write(data)

            with self._lock:
                # Publicado sob o lock para sempre preceder o resultado final
                if command_id in self._pending:
                    self.publisher.publish_response(
                        command_id, STATUS_SENT, f"Comando {kind} enviado para a central"
                    )

            self._wait_for_response(command_id, kind, connection, opened_at + self.connection_lifetime)

        except OSError as e:
            if self.is_pending(command_id):
                logger.error(f"Erro na conexão com central para comando {kind}: {e}")
                self._finish(command_id, STATUS_ERROR, f"Erro de conexão: {e}")
        except Exception as e:
            logger.exception(f"Erro inesperado no comando {kind}")
            self._finish(command_id, STATUS_ERROR, f"Erro inesperado: {e}")
        finally:
            connection.disconnect()

    def _wait_for_response(self, command_id, kind, connection, close_at):
        """
        Aguarda a resposta da central até a sessão expirar

        Os primeiros bytes recebidos são a resposta do comando. Com a
        política 'log' a leitura continua após o timeout, para registrar
        uma resposta tardia.
        """
        while self.is_pending(command_id) or self.late_response == LATE_RESPONSE_LOG:
            remaining = close_at - time.monotonic()
            if remaining <= 0:
                logger.info(f"Fechando conexão com central para comando {kind}")
                return

            response = connection.read(timeout=min(self.poll_interval, remaining))
            if response is None:
                continue
            if not response:
                logger.info(f"Conexão com central fechada para comando {kind}")
                return

            finished = self._finish(
                command_id,
                STATUS_RESPONSE,
                f"Resposta da central para {kind}",
                {'command_type': kind, 'response': raw_data(response)},
            )
            if finished:
                logger.info(f"Resposta da central para comando {kind}: {hex_string(response)}")
            elif self.late_response == LATE_RESPONSE_LOG:
                logger.info(f"Resposta tardia da central para comando {kind} descartada: {hex_string(response)}")
            return

    def _expire(self, command_id):
        """Disparado pelo timer no prazo do comando"""
        # Com a política 'log' a sessão segue aberta até connection_lifetime
        close_connection = self.late_response == LATE_RESPONSE_DISCARD
        if self._finish(command_id, STATUS_ERROR, "Timeout aguardando resposta da central",
                        close_connection=close_connection):
            logger.error(f"Timeout no comando {command_id}")

    def _finish(self, command_id, status, message, data=None, close_connection=True):
        """
        Transição final do comando (RESPONSE ou ERROR)

        Returns:
            bool - True se esta chamada finalizou o comando; False se ele
            já havia sido finalizado (resultado descartado)
        """
        with self._lock:
            pending = self._pending.pop(command_id, None)

        if pending is None:
            if self.late_response == LATE_RESPONSE_LOG:
                logger.info(f"Resultado {status} descartado para comando {command_id}: já finalizado")
            return False

        pending.timer.cancel()
        if close_connection and pending.connection is not None:
            pending.connection.disconnect()

        self.publisher.publish_response(command_id, status, message, data)
        return True
