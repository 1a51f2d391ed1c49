"""
Servidor TCP que recebe as conexões da central

Cada conexão é atendida numa thread própria: os frames são decodificados
na ordem de chegada, sempre confirmados, e os eventos publicados.
"""

import logging
import socketserver

from . import protocol
from .commands import format_hex_dump

logger = logging.getLogger(__name__)

RECV_SIZE = 1024


class PanelRequestHandler(socketserver.BaseRequestHandler):
    """Atende uma conexão da central até ela ser fechada"""

    def handle(self):
        peer = f"{self.client_address[0]}:{self.client_address[1]}"
        logger.info(f"Nova conexão: {peer}")

        try:
            while True:
                data = self.request.recv(RECV_SIZE)
                if not data:
                    break
                self.handle_frame(peer, data)
        except OSError as e:
            logger.error(f"Erro no socket {peer}: {e}")
        finally:
            logger.info(f"Conexão fechada: {peer}")

    def handle_frame(self, peer, data):
        """
        Processa um frame: classifica, confirma e publica

        A confirmação é enviada mesmo se a decodificação ou a publicação
        falharem, pois a central reenvia o frame se não receber resposta.
        """
        frame_type = protocol.FRAME_UNMATCHED
        event = None

        try:
            logger.debug(f"Dados recebidos de {peer}:")
            logger.debug(f"  HEX: {data.hex()}")
            logger.debug(f"  ASCII: {protocol.raw_data(data)['ascii']}")
            if self.server.dump_packets:
                logger.info(f"Frame de {peer} ({len(data)} bytes):\n{format_hex_dump(data)}")

            frame_type, event = protocol.decode_frame(data)
        except Exception as e:
            logger.error(f"Erro ao processar dados de {peer}: {e}")

        response = protocol.get_response(frame_type)
        self.request.sendall(response)
        logger.debug(f"Resposta enviada para {peer}: {response.hex()}")

        if event is None:
            if frame_type == protocol.FRAME_UNMATCHED:
                logger.debug(f"Frame não reconhecido de {peer}, resposta padrão enviada")
            return

        if frame_type == protocol.FRAME_IDENTIFICATION:
            logger.info(f"Evento de identificação recebido de {peer}")
        else:
            logger.info(f"Evento processado: {event['type']} - {event['message']}")

        try:
            self.server.event_publisher.publish_event(event)
        except Exception as e:
            logger.error(f"Erro ao publicar evento de {peer}: {e}")


class PanelServer(socketserver.ThreadingMixIn, socketserver.TCPServer):
    """
    Servidor TCP multi-thread para as conexões da central

    Attributes:
        event_publisher: EventPublisher - destino dos eventos decodificados
        dump_packets: bool - registra hexdump de cada frame recebido
    """

    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, server_address, event_publisher, dump_packets=False):
        self.event_publisher = event_publisher
        self.dump_packets = dump_packets
        super().__init__(server_address, PanelRequestHandler)
