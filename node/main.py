import argparse
import asyncio
import logging
import socket
import sys
from typing import List, Optional

from acceptor import config as acceptor_config
from acceptor.main import serve
from common.hosts import HostsFileError, load_hosts
from common.logging import setup_logging
from common.models import Role
from common.utils import get_debug_mode
from common.wire import ProtocolError
from proposer.main import run_proposer

# Configuração do logger
logger = logging.getLogger(__name__)

def build_parser() -> argparse.ArgumentParser:
    # -h é o arquivo de hosts; a ajuda fica só em --help
    parser = argparse.ArgumentParser(description='Single-decree Paxos process', add_help=False)
    parser.add_argument('-h', '--hostsfile', type=str, required=True, help='Path to the hosts file')
    parser.add_argument('-v', '--value', type=str, help='Value to propose (proposers only)')
    parser.add_argument('-t', '--delay', type=float, default=0.0, help='Seconds to wait before proposing')
    parser.add_argument('--name', type=str, help='Hostname to look up in the hosts file (defaults to this host)')
    parser.add_argument('--port', type=int, help='Port to listen on (defaults to the hosts file address or PORT)')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')
    parser.add_argument('--help', action='help', help='Show this help message and exit')
    return parser

def resolve_port(address: str, override: Optional[int]) -> int:
    """Porta de escuta: argumento explícito, porta do endereço no arquivo de hosts ou PORT."""
    if override:
        return override
    _, sep, port = address.rpartition(":")
    if sep and port.isdigit():
        return int(port)
    return acceptor_config.PORT

def main(argv: Optional[List[str]] = None) -> None:
    """
    Função principal: decide o papel do processo e o inicia.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    debug = args.debug or get_debug_mode()
    name = args.name or socket.gethostname()

    try:
        hosts = load_hosts(args.hostsfile)
        entry = hosts.entry(name)
    except HostsFileError as e:
        parser.error(str(e))

    setup_logging(f"{entry.role.value}_{entry.id}", debug, acceptor_config.LOG_DIR)

    identity = entry.identity()
    port = resolve_port(identity.address, args.port)

    if entry.role == Role.PROPOSER:
        if not args.value:
            parser.error("Proposers precisam de um valor (-v)")
        acceptors = hosts.acceptors_for(name)
        logger.info(f"Processo {identity.id} ({name}) iniciando como proposer com acceptors "
                    f"{[acceptor.id for acceptor in acceptors]} de {hosts.total_processes} processos")
        try:
            asyncio.run(run_proposer(identity, args.value[0], acceptors, hosts.total_processes,
                                     args.delay, port=port, debug=debug))
        except ProtocolError as e:
            logger.critical(f"Violação do protocolo, encerrando: {e}")
            sys.exit(1)
    else:
        logger.info(f"Processo {identity.id} ({name}) iniciando como acceptor")
        asyncio.run(serve(identity, port=port, debug=debug))

if __name__ == "__main__":
    main()
