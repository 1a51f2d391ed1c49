#!/usr/bin/env python3
"""
Script principal - Alarm Bridge

Executa a ponte entre a central de alarme (TCP) e o broker MQTT, ou envia
um comando avulso pela ponte.
"""

import argparse
import sys
import logging
import time

from alarm_bridge import AlarmBridge, AlarmCommandClient, MqttTransport, commands
from alarm_bridge.config import default_config, load_config, validate_config
from alarm_bridge.errors import CommandTimeoutError, ConfigError


def setup_logging(config, debug=False):
    """
    Configura sistema de logging

    Args:
        config: dict - configuração completa
        debug: bool - força nível DEBUG
    """
    level_str = 'DEBUG' if debug else config.get('logging', {}).get('level', 'INFO')
    level = getattr(logging, str(level_str).upper(), logging.INFO)

    # Formato com cores (funciona em terminais Unix)
    class ColoredFormatter(logging.Formatter):
        """Formatter que adiciona cores aos logs"""

        COLORS = {
            'DEBUG': '\033[36m',    # Cyan
            'INFO': '\033[32m',     # Green
            'WARNING': '\033[33m',  # Yellow
            'ERROR': '\033[31m',    # Red
            'CRITICAL': '\033[35m', # Magenta
        }
        RESET = '\033[0m'

        def format(self, record):
            color = self.COLORS.get(record.levelname, self.RESET)
            record.levelname = f"{color}{record.levelname}{self.RESET}"
            return super().format(record)

    handler = logging.StreamHandler()
    if sys.stderr.isatty():
        formatter = ColoredFormatter(
            '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
            datefmt='%H:%M:%S'
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s - %(levelname)s - %(name)s - %(message)s',
            datefmt='%H:%M:%S'
        )
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    # paho é verboso em DEBUG
    logging.getLogger('paho').setLevel(max(level, logging.INFO))


def read_config(config_path):
    """
    Carrega arquivo de configuração ou usa o padrão

    Args:
        config_path: str - caminho do arquivo

    Returns:
        dict - configuração carregada
    """
    try:
        config = load_config(config_path)
        print(f"✓ Configuração carregada de {config_path}")
        return config
    except FileNotFoundError:
        print(f"✗ Arquivo de configuração não encontrado: {config_path}")
        print("  Usando configuração padrão")
        return validate_config(default_config())
    except ConfigError as e:
        print(f"✗ Erro ao carregar configuração: {e}")
        sys.exit(1)


def print_banner():
    """Exibe banner do aplicativo"""
    banner = """
╔═══════════════════════════════════════════════════════════╗
║                                                           ║
║          Alarm Bridge - Central de Alarme <-> MQTT        ║
║                                                           ║
╚═══════════════════════════════════════════════════════════╝
"""
    print(banner)


def print_settings(config):
    """Exibe configurações efetivas (senha mascarada)"""
    server = config['server']
    panel = config['panel']
    mqtt = config['mqtt']

    print(f"\nConfigurações:")
    print(f"  Servidor TCP:   {server['host']}:{server['port']}")
    print(f"  Central:        {panel['host']}:{panel['port']}")
    print(f"  Senha padrão:   {'*' * len(panel['default_password'])}")
    print(f"  Timeout:        {panel['command_timeout']}s")
    print(f"  Broker MQTT:    {mqtt['broker']}:{mqtt['port']}")
    print(f"  Tópicos:        {', '.join(mqtt['topics'].values())}")
    print()


def run_bridge(config):
    """Executa a ponte até Ctrl+C"""
    logger = logging.getLogger(__name__)
    bridge = AlarmBridge(config, MqttTransport(config['mqtt']))

    try:
        bridge.start()
    except OSError as e:
        logger.error(f"Erro ao inicializar ponte: {e}")
        sys.exit(1)

    print("✓ Ponte em execução - pressione Ctrl+C para encerrar\n")

    try:
        while True:
            time.sleep(1)
    except KeyboardInterrupt:
        print("\n\nInterrompido pelo usuário")
    finally:
        bridge.stop()
        print("✓ Ponte encerrada\n")


def send_single_command(config, args):
    """Envia um comando pela ponte e exibe o resultado"""
    mqtt_config = dict(config['mqtt'])
    mqtt_config['client_id'] = f"{mqtt_config.get('client_id') or 'alarm-bridge'}-cli"
    transport = MqttTransport(mqtt_config)
    client = AlarmCommandClient(
        transport,
        config['mqtt']['topics']['commands'],
        config['mqtt']['topics']['responses'],
        password=config['panel']['default_password'],
    )

    parameters = {}
    if args.password:
        parameters['password'] = args.password
    if args.zone is not None:
        parameters['zone'] = args.zone

    try:
        transport.start()
    except OSError as e:
        print(f"✗ Erro ao conectar ao broker: {e}")
        sys.exit(1)

    try:
        # Aguarda a conexão e a assinatura do tópico de respostas
        deadline = time.monotonic() + 5
        while not transport.is_connected() and time.monotonic() < deadline:
            time.sleep(0.1)

        print(f"Enviando comando {args.send}...")
        response = client.send_command(args.send, parameters, timeout=args.timeout)
    except (CommandTimeoutError, ConnectionError) as e:
        print(f"✗ {e}")
        sys.exit(1)
    finally:
        transport.stop()

    print(f"\n--- Resposta do Comando ---")
    print(f"ID:        {response['command_id']}")
    print(f"Status:    {response['status']}")
    print(f"Mensagem:  {response['message']}")
    print(f"Timestamp: {response['timestamp']}")
    if response.get('data'):
        print(f"Dados:     {response['data']}")


def parse_args(argv=None):
    parser = argparse.ArgumentParser(
        description="Ponte entre central de alarme (TCP) e broker MQTT"
    )
    parser.add_argument("--config", default="config.yaml",
                        help="Arquivo de configuração (default: config.yaml)")
    parser.add_argument("--debug", action="store_true",
                        help="Habilita logging DEBUG")
    parser.add_argument("--send", choices=commands.COMMAND_TYPES,
                        help="Envia um comando pela ponte e aguarda o resultado")
    parser.add_argument("--zone", type=int,
                        help="Zona para INHIBIT_ZONE/UNINHIBIT_ZONE")
    parser.add_argument("--password",
                        help="Senha do comando (default: senha padrão da configuração)")
    parser.add_argument("--timeout", type=float, default=15,
                        help="Espera máxima pelo resultado em segundos (default: 15)")
    return parser.parse_args(argv)


def main():
    """Função principal"""
    args = parse_args()

    print_banner()
    config = read_config(args.config)
    setup_logging(config, debug=args.debug)

    if args.send:
        send_single_command(config, args)
        return

    print_settings(config)
    run_bridge(config)


if __name__ == '__main__':
    main()
