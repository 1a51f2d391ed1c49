"""
Módulo de comunicação TCP com a central

Sessão TCP de saída usada para enviar um único comando à central, com
logging detalhado dos bytes trafegados.
"""

import logging
import socket
import threading

from .commands import hex_string

logger = logging.getLogger(__name__)


class PanelConnection:
    """
    Sessão TCP transitória com a central (uma por comando)

    Attributes:
        host: str - endereço da central
        port: int - porta TCP de comandos da central
        timeout: float - timeout de conexão em segundos
    """

    def __init__(self, host, port, timeout=10):
        """
        Inicializa a sessão (sem conectar)

        Args:
            host: str - endereço da central
            port: int - porta TCP
            timeout: float - timeout de conexão em segundos (default 10)
        """
        self.host = host
        self.port = port
        self.timeout = timeout
        self.socket = None
        self._lock = threading.Lock()
        self._closed = False

    def connect(self, timeout=None):
        """
        Abre a conexão TCP

        Args:
            timeout: float - sobrescreve o timeout de conexão

        Raises:
            OSError - falha de conexão (inclui timeout)
        """
        timeout = self.timeout if timeout is None else timeout
        logger.info(f"Conectando à central {self.host}:{self.port}")
        try:
            sock = socket.create_connection((self.host, self.port), timeout=timeout)
        except OSError as e:
            logger.error(f"Erro ao conectar à central {self.host}:{self.port}: {e}")
            raise

        with self._lock:
            if self._closed:
                # Fechada por outra thread enquanto conectava
                sock.close()
                raise ConnectionAbortedError("Conexão cancelada")
            self.socket = sock
        logger.debug(f"Conectado à central {self.host}:{self.port}")

    def disconnect(self):
        """Fecha a conexão; pode ser chamado de qualquer thread, mais de uma vez"""
        with self._lock:
            self._closed = True
            sock, self.socket = self.socket, None

        if sock is None:
            return

        logger.debug(f"Fechando conexão com central {self.host}:{self.port}")
        try:
            # shutdown acorda uma thread bloqueada em recv()
            sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            pass
        sock.close()

    def is_connected(self):
        """Verifica se conexão está ativa"""
        return self.socket is not None

    def write(self, data):
        """
        Envia dados com logging

        Args:
            data: bytes - dados a enviar

        Raises:
            OSError - conexão fechada ou erro de envio
        """
        sock = self.socket
        if sock is None:
            raise ConnectionError("Conexão com a central não está aberta")

        logger.debug(f"TX ({len(data)} bytes): {hex_string(data)}")
        sock.sendall(data)

    def read(self, length=1024, timeout=None):
        """
        Lê até `length` bytes com logging

        Args:
            length: int - máximo de bytes
            timeout: float - espera máxima (None = bloqueante)

        Returns:
            bytes - dados lidos; b'' se a central fechou a conexão;
            None se o timeout expirou sem dados

        Raises:
            OSError - erro de leitura
        """
        sock = self.socket
        if sock is None:
            return b''

        sock.settimeout(timeout)
        try:
            data = sock.recv(length)
        except socket.timeout:
            return None

        if data:
            logger.debug(f"RX ({len(data)} bytes): {hex_string(data)}")
        else:
            logger.debug("RX: conexão fechada pela central")
        return data

    def __enter__(self):
        """Context manager: abre conexão"""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager: fecha conexão"""
        self.disconnect()
        return False
