"""
Publicação de eventos e respostas de comandos no broker

As publicações são best-effort: sem conexão com o broker a mensagem é
descartada e registrada no log, sem retentativa nem buffer local.

O transporte só precisa oferecer:
    is_connected() -> bool
    publish(topic, payload) -> bool
"""

import json
import logging

from .protocol import utc_timestamp

logger = logging.getLogger(__name__)

# Status das respostas de comando
STATUS_SENT = 'SENT'
STATUS_RESPONSE = 'RESPONSE'
STATUS_ERROR = 'ERROR'


def serialize(message):
    """Serializa mensagem para JSON"""
    return json.dumps(message, indent=2, ensure_ascii=False)


class Publisher:
    """
    Publicador base sobre um transporte

    Attributes:
        transport: objeto com is_connected() e publish(topic, payload)
        topic: str - tópico de destino
    """

    def __init__(self, transport, topic):
        self.transport = transport
        self.topic = topic

    def publish(self, message, description):
        """
        Publica uma mensagem no tópico

        Args:
            message: dict - mensagem a serializar
            description: str - resumo para o log

        Returns:
            bool - True se entregue ao transporte
        """
        if not self.transport.is_connected():
            logger.warning(f"Cliente MQTT não conectado, descartando {description}")
            return False

        try:
            payload = serialize(message)
            published = self.transport.publish(self.topic, payload)
        except Exception as e:
            logger.error(f"Erro ao publicar no MQTT ({description}): {e}")
            return False

        if not published:
            logger.error(f"Erro ao publicar no MQTT: {description}")
            return False

        logger.debug(f"Publicado em {self.topic}: {description}")
        return True


class EventPublisher(Publisher):
    """Publica eventos decodificados da central"""

    def publish_event(self, event):
        """
        Args:
            event: dict - evento de protocol.decode_frame
        """
        return self.publish(event, f"evento {event.get('type')}")


class ResponsePublisher(Publisher):
    """Publica o andamento dos comandos, identificado pelo id original"""

    def publish_response(self, command_id, status, message, data=None):
        """
        Args:
            command_id: str - id do comando original
            status: str - SENT, RESPONSE ou ERROR
            message: str - descrição legível
            data: dict - detalhes opcionais (tipo do comando, resposta)
        """
        response = {
            'command_id': command_id,
            'status': status,
            'message': message,
            'timestamp': utc_timestamp(),
        }
        if data:
            response['data'] = data

        return self.publish(response, f"resposta {status} do comando {command_id}")
