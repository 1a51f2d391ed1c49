"""
Alarm Bridge

Ponte entre o protocolo TCP da central de alarme e um broker MQTT:
eventos da central são publicados e comandos recebidos do broker são
enviados à central, com a resposta correlacionada ao comando original.
"""

__version__ = "0.1.0"
__author__ = "Alarm Bridge Project"

from .bridge import AlarmBridge
from .broker import MqttTransport
from .client import AlarmCommandClient
from .connection import PanelConnection
from .panel import CommandCorrelator
from .publisher import EventPublisher, ResponsePublisher
from .server import PanelServer
from . import protocol
from . import commands

__all__ = [
    'AlarmBridge',
    'AlarmCommandClient',
    'CommandCorrelator',
    'EventPublisher',
    'MqttTransport',
    'PanelConnection',
    'PanelServer',
    'ResponsePublisher',
    'protocol',
    'commands',
]
