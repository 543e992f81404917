import argparse
import asyncio
import logging
import sys
from typing import List, Optional

from acceptor.main import create_server
from common.logging import setup_logging
from common.models import ProcessIdentity, ProposalResult
from common.transport import HttpTransport
from common.utils import get_debug_mode
from common.wire import ProtocolError
from proposer import config
from proposer.proposer import Proposer

# Configuração do logger
logger = logging.getLogger(__name__)

def parse_acceptors(text: str) -> List[ProcessIdentity]:
    """
    Converte "2@peer2,3@peer3:7003" numa lista de identidades.

    Raises:
        ValueError: Se algum item não estiver no formato <id>@<endereço>
    """
    acceptors = []
    for item in text.split(","):
        item = item.strip()
        if not item:
            continue
        raw_id, sep, address = item.partition("@")
        if not sep or not raw_id.strip().isdigit() or not address.strip():
            raise ValueError(f"Acceptor inválido: {item!r} (esperado <id>@<endereço>)")
        acceptors.append(ProcessIdentity(id=int(raw_id), address=address.strip()))
    return acceptors

async def run_proposer(identity: ProcessIdentity, value: str, acceptors: List[ProcessIdentity],
                       total_processes: int, delay: float = 0.0, host: str = config.HOST,
                       port: int = config.PORT, debug: bool = False) -> ProposalResult:
    """
    Executa um processo proposer: atende como acceptor e propõe o valor até ele
    (ou outro já aceito) ser escolhido. O acceptor local continua atendendo
    depois da escolha, até o processo ser encerrado.

    Args:
        identity: Identidade do processo
        value: Valor a propor
        acceptors: Conjunto de acceptors (inclui o próprio processo)
        total_processes: Número total de processos da execução
        delay: Atraso adicional antes do primeiro PREPARE, em segundos
        host: Interface de escuta do acceptor local
        port: Porta de escuta do acceptor local
        debug: Flag para ativar modo de depuração

    Returns:
        ProposalResult: Resultado da proposta

    Raises:
        ProtocolError: Se algum acceptor violar o protocolo
    """
    server = create_server(identity, host, port, debug, component=f"proposer_{identity.id}")
    server_task = asyncio.create_task(server.serve())
    while not server.started and not server_task.done():
        await asyncio.sleep(0.05)

    transport = HttpTransport(
        timeout=config.SEND_TIMEOUT,
        retries=config.SEND_RETRIES,
        retry_wait=config.SEND_RETRY_WAIT,
        default_port=port,
    )
    proposer = Proposer(
        identity,
        value,
        acceptors,
        total_processes,
        transport,
        start_delay=config.START_GRACE + delay,
        quorum_timeout=config.QUORUM_TIMEOUT,
        retry_backoff=(config.RETRY_BACKOFF_MIN, config.RETRY_BACKOFF_MAX),
        debug=debug,
    )

    try:
        result = await proposer.run()
    except ProtocolError:
        server.should_exit = True
        await server_task
        raise
    finally:
        await transport.close()

    logger.info(f"Proposer {identity.id} concluiu: valor {result.value!r} com a proposta "
                f"{result.proposal_number}")
    await server_task
    return result

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Proposer - Single-decree Paxos')
    parser.add_argument('--id', type=int, default=config.NODE_ID, help='Unique ID for this proposer')
    parser.add_argument('--address', type=str, default=config.NODE_ADDRESS, help='Address other processes use to reach this one')
    parser.add_argument('--value', type=str, required=True, help='Single-character value to propose')
    parser.add_argument('--acceptors', type=str, default='', help='Comma-separated list of <id>@<address> acceptors')
    parser.add_argument('--total', type=int, help='Total number of processes (defaults to the acceptor count)')
    parser.add_argument('--delay', type=float, default=0.0, help='Extra seconds to wait before the first prepare')
    parser.add_argument('--host', type=str, default=config.HOST, help='Interface to listen on')
    parser.add_argument('--port', type=int, default=config.PORT, help='Port to run the server on')
    parser.add_argument('--debug', action='store_true', help='Enable debug mode')
    return parser

async def main(argv: Optional[List[str]] = None):
    """
    Função principal do componente Proposer.
    """
    parser = build_parser()
    args = parser.parse_args(argv)
    debug = args.debug or get_debug_mode()

    setup_logging(f"proposer_{args.id}", debug, config.LOG_DIR)

    if not args.value:
        parser.error("--value não pode ser vazio")

    identity = ProcessIdentity(id=args.id, address=args.address)
    try:
        acceptors = parse_acceptors(args.acceptors)
    except ValueError as e:
        parser.error(str(e))

    if identity.id not in {acceptor.id for acceptor in acceptors}:
        acceptors.insert(0, identity)
    total = args.total or len(acceptors)

    try:
        await run_proposer(identity, args.value[0], acceptors, total, args.delay,
                           args.host, args.port, debug)
    except ProtocolError as e:
        logger.critical(f"Violação do protocolo, encerrando: {e}")
        sys.exit(1)

def cli():
    """Ponto de entrada do console script."""
    asyncio.run(main())

if __name__ == "__main__":
    cli()
