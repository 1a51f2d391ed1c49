"""Testes da ponte (handler de comandos e ciclo de vida)."""

import json
import socket

import pytest

from alarm_bridge import AlarmBridge
from alarm_bridge.config import default_config, validate_config

from conftest import recv_exact

RESPONSES_TOPIC = 'alarm/command_responses'
EVENTS_TOPIC = 'alarm/events'
COMMANDS_TOPIC = 'alarm/commands'


def make_config(panel_host='127.0.0.1', panel_port=9, command_timeout=5):
    config = default_config()
    config['server'].update(host='127.0.0.1', port=0)
    config['panel'].update(host=panel_host, port=panel_port, command_timeout=command_timeout)
    return validate_config(config)


@pytest.fixture
def make_bridge(fake_transport):
    bridges = []

    def factory(**kwargs):
        bridge = AlarmBridge(make_config(**kwargs), fake_transport)
        bridges.append(bridge)
        return bridge

    yield factory

    for bridge in bridges:
        bridge.stop()


def test_invalid_json_is_answered_to_unknown(make_bridge, fake_transport):
    bridge = make_bridge()

    bridge.on_command_message(COMMANDS_TOPIC, b"{not json")

    [response] = fake_transport.messages(RESPONSES_TOPIC)
    assert response['command_id'] == 'unknown'
    assert response['status'] == 'ERROR'
    assert response['message'] == "Erro ao processar comando JSON"


def test_missing_command_is_answered_to_its_id(make_bridge, fake_transport):
    bridge = make_bridge()

    bridge.on_command_message(COMMANDS_TOPIC, json.dumps({'id': 'abc'}).encode())

    [response] = fake_transport.messages(RESPONSES_TOPIC)
    assert response['command_id'] == 'abc'
    assert response['status'] == 'ERROR'
    assert bridge.correlator.pending_count == 0


def test_start_subscribes_and_serves(make_bridge, fake_transport):
    bridge = make_bridge()
    bridge.start()

    assert fake_transport.started
    assert COMMANDS_TOPIC in fake_transport.subscriptions
    host, port = bridge.server_address[:2]
    assert port != 0

    with socket.create_connection((host, port), timeout=5) as sock:
        sock.sendall(b"$0001113000005.")
        assert recv_exact(sock, 2) == b"\x40\x05"

    assert fake_transport.wait_for(lambda t: t.messages(EVENTS_TOPIC))
    [event] = fake_transport.messages(EVENTS_TOPIC)
    assert event['type'] == 'ALARM_TRIGGER'


def test_stop(make_bridge, fake_transport):
    bridge = make_bridge()
    bridge.start()
    bridge.stop()

    assert fake_transport.stopped
    assert bridge.server_address is None


def test_command_round_trip(make_bridge, fake_transport, fake_panel_factory):
    panel = fake_panel_factory(reply=b"\x06")
    bridge = make_bridge(panel_host=panel.host, panel_port=panel.port)
    bridge.start()

    message = {
        'id': 'cmd-1',
        'command': 'DISARM',
        'parameters': {'password': '1234'},
        'timestamp': '2024-01-01T00:00:00.000Z',
    }
    fake_transport.deliver(COMMANDS_TOPIC, json.dumps(message).encode())

    assert fake_transport.wait_for(
        lambda t: any(r['status'] != 'SENT' for r in t.messages(RESPONSES_TOPIC))
    )
    responses = fake_transport.messages(RESPONSES_TOPIC)
    assert [r['status'] for r in responses] == ['SENT', 'RESPONSE']
    assert all(r['command_id'] == 'cmd-1' for r in responses)
    assert responses[1]['data']['response'] == {'hex': '06', 'ascii': '\x06'}
    assert panel.received == [b"DISARM:1234\n"]


def test_command_timeout_from_config(make_bridge, fake_transport, fake_panel_factory):
    panel = fake_panel_factory(reply=None)
    bridge = make_bridge(panel_host=panel.host, panel_port=panel.port, command_timeout=0.5)

    bridge.on_command_message(COMMANDS_TOPIC, json.dumps({'id': 't1', 'command': 'ARM'}).encode())

    assert fake_transport.wait_for(
        lambda t: any(r['status'] == 'ERROR' for r in t.messages(RESPONSES_TOPIC))
    )
    [error] = [r for r in fake_transport.messages(RESPONSES_TOPIC) if r['status'] == 'ERROR']
    assert error['command_id'] == 't1'
    assert error['message'] == "Timeout aguardando resposta da central"


def test_non_text_command_is_answered_immediately(make_bridge, fake_transport):
    bridge = make_bridge()

    bridge.on_command_message(COMMANDS_TOPIC, json.dumps({'id': 'x', 'command': ['ARM']}).encode())

    [response] = fake_transport.messages(RESPONSES_TOPIC)
    assert response['command_id'] == 'x'
    assert response['status'] == 'ERROR'
    assert response['message'] == "Comando deve ser texto"
    assert bridge.correlator.pending_count == 0
