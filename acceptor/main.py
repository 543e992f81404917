import argparse
import asyncio
import logging
from typing import List, Optional

import uvicorn

from acceptor import config
from acceptor.api import app, initialize
from common.logging import setup_logging
from common.models import ProcessIdentity
from common.utils import get_debug_mode

# Configuração do logger
logger = logging.getLogger(__name__)

def create_server(identity: ProcessIdentity, host: str, port: int,
                  debug: bool = False, component: str = None) -> uvicorn.Server:
    """
    Cria o servidor HTTP que atende o acceptor deste processo.

    Args:
        identity: Identidade do processo
        host: Interface de escuta
        port: Porta de escuta
        debug: Flag para ativar modo de depuração
        component: Nome do componente usado no buffer de logs

    Returns:
        uvicorn.Server: Servidor pronto para serve()
    """
    initialize(identity, debug, component)
    server_config = uvicorn.Config(
        app,
        host=host,
        port=port,
        log_config=None,
        log_level="debug" if debug else "info",
    )
    return uvicorn.Server(server_config)

async def serve(identity: ProcessIdentity, host: str = config.HOST, port: int = config.PORT,
                debug: bool = False) -> None:
    """
    Atende pedidos de proposers até o processo ser encerrado.
    """
    logger.info(f"Iniciando acceptor {identity.id} em {host}:{port}")
    server = create_server(identity, host, port, debug)
    await server.serve()

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Acceptor - Single-decree Paxos')
    parser.add_argument('--id', type=int, default=config.NODE_ID, help='Unique ID for this acceptor')
    parser.add_argument('--address', type=str, default=config.NODE_ADDRESS, help='Address other processes use to reach this one')
    parser.add_argument('--host', type=str, default=config.HOST, help='Interface to listen on')
    parser.add_argument('--port', type=int, default=config.PORT, help='Port to run the server on')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')
    return parser

async def main(argv: Optional[List[str]] = None):
    """
    Função principal do componente Acceptor.
    """
    args = build_parser().parse_args(argv)
    debug = args.debug or get_debug_mode()

    setup_logging(f"acceptor_{args.id}", debug, config.LOG_DIR)

    identity = ProcessIdentity(id=args.id, address=args.address)
    await serve(identity, args.host, args.port, debug)

def cli():
    """Ponto de entrada do console script."""
    asyncio.run(main())

if __name__ == "__main__":
    cli()
