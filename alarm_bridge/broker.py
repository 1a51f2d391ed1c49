"""
Transporte MQTT (paho-mqtt)

Conexão com o broker, publicação e assinatura de tópicos. As assinaturas
são refeitas a cada reconexão.
"""

import logging
import threading

import paho.mqtt.client as mqtt

logger = logging.getLogger(__name__)


class MqttTransport:
    """
    Cliente MQTT em thread própria (loop_start)

    Attributes:
        broker: str - endereço do broker
        port: int - porta do broker
        qos: int - QoS usado em publicações e assinaturas
    """

    def __init__(self, config):
        """
        Args:
            config: dict - seção 'mqtt' da configuração
        """
        self.broker = config.get('broker', 'localhost')
        self.port = int(config.get('port', 1883))
        self.keepalive = int(config.get('keepalive', 60))
        self.qos = int(config.get('qos', 0))

        self._subscriptions = {}
        self._lock = threading.Lock()

        self._client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2,
            client_id=config.get('client_id') or '',
        )
        if config.get('username'):
            self._client.username_pw_set(config['username'], config.get('password'))

        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message

    def start(self):
        """
        Conecta ao broker e inicia a thread de rede

        Raises:
            OSError - broker inacessível
        """
        logger.info(f"Conectando ao broker MQTT: {self.broker}:{self.port}")
        self._client.connect(self.broker, self.port, self.keepalive)
        self._client.loop_start()

    def stop(self):
        """Desconecta do broker e para a thread de rede"""
        logger.info("Encerrando conexão MQTT")
        self._client.disconnect()
        self._client.loop_stop()

    def is_connected(self):
        return self._client.is_connected()

    def publish(self, topic, payload):
        """
        Publica payload no tópico

        Returns:
            bool - True se a mensagem foi aceita pelo cliente
        """
        info = self._client.publish(topic, payload, qos=self.qos)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.error(f"Erro ao publicar em {topic}: {mqtt.error_string(info.rc)}")
            return False
        return True

    def subscribe(self, topic, callback):
        """
        Assina um tópico

        Args:
            topic: str - tópico (aceita curingas MQTT)
            callback: callable(topic, payload bytes)
        """
        with self._lock:
            self._subscriptions[topic] = callback

        if self.is_connected():
            self._client.subscribe(topic, qos=self.qos)

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        if reason_code.is_failure:
            logger.error(f"Falha na conexão MQTT: {reason_code}")
            return

        logger.info(f"Conectado ao broker MQTT {self.broker}:{self.port}")
        with self._lock:
            topics = list(self._subscriptions)
        for topic in topics:
            client.subscribe(topic, qos=self.qos)
            logger.info(f"Subscrito ao tópico: {topic}")

    def _on_disconnect(self, client, userdata, flags, reason_code, properties):
        logger.warning(f"Conexão MQTT fechada ({reason_code})")

    def _on_message(self, client, userdata, msg):
        with self._lock:
            callbacks = [
                callback for topic, callback in self._subscriptions.items()
                if mqtt.topic_matches_sub(topic, msg.topic)
            ]

        for callback in callbacks:
            try:
                callback(msg.topic, msg.payload)
            except Exception:
                logger.exception(f"Erro ao processar mensagem de {msg.topic}")
