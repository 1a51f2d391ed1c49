"""
Módulo de protocolo da central - Classificação e parse de frames

Implementa o protocolo TCP da central de alarme: identificação, eventos
no formato texto `$AAAAEEEEQQZZZ...` e as respostas de confirmação.
"""

from datetime import datetime, timezone

from construct import Struct, Bytes, Const, GreedyBytes, ConstructError
import logging

from .errors import ProtocolDecodeError

logger = logging.getLogger(__name__)

# ===============================================================================
# CONSTANTES DO PROTOCOLO
# ===============================================================================

IDENTIFICATION_BYTE = 0x21    # '!'
EVENT_START_BYTE = 0x24       # '$'

IDENTIFICATION_RESPONSE = bytes([0x2B])       # '+'
STANDARD_RESPONSE = bytes([0x40, 0x05])       # '@' ENQ

# Tamanho mínimo de um frame de evento ($ + 13 caracteres de campos + 1)
EVENT_FRAME_MIN_LENGTH = 15

# Classificação de frames recebidos
FRAME_IDENTIFICATION = 'IDENTIFICATION'
FRAME_EVENT = 'EVENT'
FRAME_UNMATCHED = 'UNMATCHED'

# ===============================================================================
# TABELA DE EVENTOS
# ===============================================================================

ARM = 'ARM'
DISARM = 'DISARM'
ALARM_TRIGGER = 'ALARM_TRIGGER'
ALARM_RESTORE = 'ALARM_RESTORE'
AC_FAULT = 'AC_FAULT'
AC_RESTORE = 'AC_RESTORE'
UNKNOWN = 'UNKNOWN'
IDENTIFICATION = 'IDENTIFICATION'

EVENT_TYPES = {
    # Arme
    '3441': ARM,
    '3401': ARM,
    '3407': ARM,
    '3409': ARM,

    # Desarme
    '1441': DISARM,
    '1401': DISARM,
    '1407': DISARM,
    '1409': DISARM,

    # Disparo e restauração
    '1130': ALARM_TRIGGER,
    '3130': ALARM_RESTORE,

    # Energia
    '1301': AC_FAULT,
    '3301': AC_RESTORE,
}

# ===============================================================================
# PARSERS
# ===============================================================================

# Frame de evento (central -> servidor)
# Offsets fixos sobre o texto ASCII: $ AAAA EEEE QQ ZZZ ...
EventFrame = Struct(
    "start" / Const(b"$"),
    "account_code" / Bytes(4),
    "event_code" / Bytes(4),
    "qualifier_code" / Bytes(2),
    "zone_user" / Bytes(3),
    "trailer" / GreedyBytes,
)


def utc_timestamp():
    """Timestamp ISO-8601 em UTC com milissegundos (ex: 2024-01-01T12:00:00.000Z)"""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec='milliseconds').replace('+00:00', 'Z')


def raw_data(data):
    """
    Espelho hex/ASCII de um frame

    O ASCII descarta o bit mais alto de cada byte, então nunca falha.

    Args:
        data: bytes - frame recebido

    Returns:
        dict - {'hex': ..., 'ascii': ...}
    """
    return {
        'hex': bytes(data).hex(),
        'ascii': bytes(b & 0x7F for b in data).decode('ascii'),
    }


def classify_frame(data):
    """
    Classifica um frame pelo primeiro byte e tamanho

    Args:
        data: bytes - frame recebido

    Returns:
        str - FRAME_IDENTIFICATION, FRAME_EVENT ou FRAME_UNMATCHED
    """
    if not data:
        return FRAME_UNMATCHED
    if data[0] == IDENTIFICATION_BYTE:
        return FRAME_IDENTIFICATION
    if data[0] == EVENT_START_BYTE and len(data) >= EVENT_FRAME_MIN_LENGTH:
        return FRAME_EVENT
    return FRAME_UNMATCHED


def get_event_type(event_code):
    """Retorna o tipo do evento para o código, ou UNKNOWN"""
    return EVENT_TYPES.get(event_code, UNKNOWN)


def get_event_message(event_type, event_code, zone):
    """
    Monta a mensagem legível do evento

    Args:
        event_type: str - tipo do evento
        event_code: str - código de 4 dígitos
        zone: int - zona/usuário já convertido de hexadecimal (ou o texto
            original, se não for hexadecimal)
    """
    if event_type == ARM:
        return f"Sistema armado - Código: {event_code}, Zona/Usuário: {zone}"
    if event_type == DISARM:
        return f"Sistema desarmado - Código: {event_code}, Zona/Usuário: {zone}"
    if event_type == ALARM_TRIGGER:
        return f"Alarme disparado - Zona: {zone}"
    if event_type == ALARM_RESTORE:
        return f"Alarme restaurado - Zona: {zone}"
    if event_type == AC_FAULT:
        return f"Falha de energia - Código: {event_code}"
    if event_type == AC_RESTORE:
        return f"Energia restaurada - Código: {event_code}"
    if event_type == UNKNOWN:
        return f"Evento desconhecido: {event_code}"
    return f"Evento {event_type} - Código: {event_code}, Zona/Usuário: {zone}"


def _field(value, name):
    try:
        return value.decode('ascii')
    except UnicodeDecodeError:
        raise ProtocolDecodeError(f"Campo {name} não é ASCII: {value.hex()}")


def _zone_number(zone_user):
    """Zona/usuário em hexadecimal; texto original se não for hexadecimal"""
    try:
        return int(zone_user, 16)
    except ValueError:
        return zone_user


def parse_alarm_event(data):
    """
    Faz parse de um frame de evento

    Args:
        data: bytes - frame começando com '$' (mínimo 15 bytes)

    Returns:
        dict - evento com type, códigos, message, timestamp e raw_data

    Raises:
        ProtocolDecodeError - frame curto ou campo não ASCII
    """
    if len(data) < EVENT_FRAME_MIN_LENGTH:
        raise ProtocolDecodeError(f"Frame de evento curto: {len(data)} bytes")

    try:
        parsed = EventFrame.parse(bytes(data))
    except ConstructError as e:
        raise ProtocolDecodeError(f"Frame de evento inválido: {e}")

    account_code = _field(parsed.account_code, 'account_code')
    event_code = _field(parsed.event_code, 'event_code')
    qualifier_code = _field(parsed.qualifier_code, 'qualifier_code')
    zone_user = _field(parsed.zone_user, 'zone_user')

    event_type = get_event_type(event_code)

    return {
        'type': event_type,
        'event_code': event_code,
        'account_code': account_code,
        'qualifier_code': qualifier_code,
        'zone_user': zone_user,
        'message': get_event_message(event_type, event_code, _zone_number(zone_user)),
        'timestamp': utc_timestamp(),
        'raw_data': raw_data(data),
    }


def build_identification_event(data):
    """Evento publicado quando a central se identifica"""
    return {
        'type': IDENTIFICATION,
        'message': "Identificação da central recebida",
        'timestamp': utc_timestamp(),
        'raw_data': raw_data(data),
    }


def decode_frame(data):
    """
    Classifica e decodifica um frame recebido

    Nunca levanta exceção: falhas de parse viram FRAME_UNMATCHED.

    Args:
        data: bytes - frame recebido

    Returns:
        tuple - (tipo do frame, evento dict ou None)
    """
    frame_type = classify_frame(data)

    if frame_type == FRAME_IDENTIFICATION:
        return frame_type, build_identification_event(data)

    if frame_type == FRAME_EVENT:
        try:
            return frame_type, parse_alarm_event(data)
        except ProtocolDecodeError as e:
            logger.warning(f"Erro ao analisar evento: {e}")
            return FRAME_UNMATCHED, None

    return frame_type, None


def get_response(frame_type):
    """
    Retorna a confirmação a enviar para a central

    Args:
        frame_type: str - resultado de classify_frame/decode_frame

    Returns:
        bytes - IDENTIFICATION_RESPONSE ou STANDARD_RESPONSE
    """
    if frame_type == FRAME_IDENTIFICATION:
        return IDENTIFICATION_RESPONSE
    return STANDARD_RESPONSE
