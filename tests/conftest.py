"""Fixtures da ponte central de alarme <-> MQTT."""

import json
import socket
import threading
import time

import pytest


class FakeTransport:
    """Transporte MQTT em memória."""

    def __init__(self, connected=True, publish_result=True):
        self.connected = connected
        self.publish_result = publish_result
        self.published = []
        self.subscriptions = {}
        self.started = False
        self.stopped = False
        self.on_publish = None
        self._cond = threading.Condition()

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def is_connected(self):
        return self.connected

    def publish(self, topic, payload):
        with self._cond:
            self.published.append((topic, payload))
            self._cond.notify_all()
        if self.on_publish is not None:
            self.on_publish(topic, payload)
        return self.publish_result

    def subscribe(self, topic, callback):
        self.subscriptions[topic] = callback

    def deliver(self, topic, payload):
        self.subscriptions[topic](topic, payload)

    def messages(self, topic):
        with self._cond:
            return [json.loads(p) for t, p in self.published if t == topic]

    def wait_for(self, predicate, timeout=5):
        with self._cond:
            return self._cond.wait_for(lambda: predicate(self), timeout)


class RecordingPublisher:
    """Substitui o ResponsePublisher registrando as chamadas."""

    def __init__(self):
        self.responses = []
        self._cond = threading.Condition()

    def publish_response(self, command_id, status, message, data=None):
        with self._cond:
            self.responses.append({
                'command_id': command_id,
                'status': status,
                'message': message,
                'data': data,
            })
            self._cond.notify_all()
        return True

    def for_id(self, command_id):
        with self._cond:
            return [r for r in self.responses if r['command_id'] == command_id]

    def terminal(self, command_id=None):
        with self._cond:
            return [
                r for r in self.responses
                if r['status'] != 'SENT' and (command_id is None or r['command_id'] == command_id)
            ]

    def wait_for(self, predicate, timeout=5):
        with self._cond:
            return self._cond.wait_for(lambda: predicate(self), timeout)


class FakePanel:
    """
    Central falsa escutando em 127.0.0.1

    Para cada conexão: lê o comando, opcionalmente responde após
    `reply_delay` e registra quando a ponte fecha a conexão.
    """

    def __init__(self, reply=None, reply_delay=0.0, close_without_reply=False):
        self.reply = reply
        self.reply_delay = reply_delay
        self.close_without_reply = close_without_reply

        self.received = []
        self.connections = 0
        self.close_times = []
        self._lock = threading.Lock()
        self._running = True

        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.sock.bind(('127.0.0.1', 0))
        self.sock.listen(64)
        self.sock.settimeout(0.1)
        self.host, self.port = self.sock.getsockname()

        self._thread = threading.Thread(target=self._accept_loop, daemon=True)
        self._thread.start()

    def _accept_loop(self):
        while self._running:
            try:
                conn, _ = self.sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with self._lock:
                self.connections += 1
            threading.Thread(target=self._serve, args=(conn,), daemon=True).start()

    def _serve(self, conn):
        opened_at = time.monotonic()
        try:
            conn.settimeout(10)
            data = conn.recv(1024)
            with self._lock:
                self.received.append(data)

            if self.close_without_reply:
                return

            if self.reply is not None:
                time.sleep(self.reply_delay)
                conn.sendall(self.reply)

            while conn.recv(1024):
                pass
            with self._lock:
                self.close_times.append(time.monotonic() - opened_at)
        except OSError:
            with self._lock:
                self.close_times.append(time.monotonic() - opened_at)
        finally:
            conn.close()

    def close(self):
        self._running = False
        self._thread.join(timeout=1)
        self.sock.close()


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def recording_publisher():
    return RecordingPublisher()


@pytest.fixture
def fake_panel_factory():
    panels = []

    def factory(**kwargs):
        panel = FakePanel(**kwargs)
        panels.append(panel)
        return panel

    yield factory

    for panel in panels:
        panel.close()


@pytest.fixture
def unused_port():
    """Porta TCP sem ninguém escutando."""
    sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
    sock.bind(('127.0.0.1', 0))
    port = sock.getsockname()[1]
    sock.close()
    return port


def recv_exact(sock, length, timeout=5):
    """Lê exatamente `length` bytes do socket."""
    sock.settimeout(timeout)
    data = b''
    while len(data) < length:
        chunk = sock.recv(length - len(data))
        if not chunk:
            break
        data += chunk
    return data
