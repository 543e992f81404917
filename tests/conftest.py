"""
Configuração global para testes.
Contém fixtures compartilhadas entre testes unitários e de integração.
"""
import asyncio
import logging

import pytest

from acceptor.acceptor import Acceptor
from common.models import ProcessIdentity, ProposalNumber
from common.wire import decode, encode


class LoopbackTransport:
    """
    Transporte falso com o mesmo contrato de HttpTransport.send: entrega as
    mensagens a acceptors locais passando pelo codec textual e simula destinos
    inalcançáveis, destinos que nunca respondem e atrasos de entrega.
    """

    def __init__(self, acceptors=None):
        self.acceptors = dict(acceptors or {})
        self.unreachable = set()
        self.silent = set()
        self.delays = {}
        self.before_delivery = None

    async def send(self, peer, message):
        if peer.id in self.unreachable or peer.id not in self.acceptors:
            raise ConnectionRefusedError(f"Processo {peer.id} inalcançável")
        if peer.id in self.silent:
            # Nunca responde
            await asyncio.Event().wait()

        delay = self.delays.get(peer.id)
        if delay:
            await asyncio.sleep(delay)
        if self.before_delivery is not None:
            await self.before_delivery(peer, message)

        reply = await self.acceptors[peer.id].handle_raw(encode(message))
        return decode(reply)


@pytest.fixture
def identity():
    """Fábrica de identidades: identity(3) -> ProcessIdentity(id=3, address='peer3')."""
    def make(process_id: int) -> ProcessIdentity:
        return ProcessIdentity(id=process_id, address=f"peer{process_id}")
    return make


@pytest.fixture
def pn():
    """Fábrica de números de proposta: pn(2, 1) -> 2.1."""
    def make(round_number: int, proposer_id: int) -> ProposalNumber:
        return ProposalNumber(round=round_number, proposer_id=proposer_id)
    return make


@pytest.fixture
def loopback():
    """Fábrica de LoopbackTransport: loopback({2: acceptor})."""
    return LoopbackTransport


@pytest.fixture
def cluster(identity):
    """
    Cria N acceptors em processo ligados por um LoopbackTransport.

    Retorna (acceptors, peers, transport), com acceptors indexados pelo ID.
    """
    def make(size: int):
        peers = [identity(i) for i in range(1, size + 1)]
        acceptors = {peer.id: Acceptor(peer) for peer in peers}
        transport = LoopbackTransport(acceptors)
        return acceptors, peers, transport
    return make


@pytest.fixture
def events(caplog):
    """Captura as linhas de evento do protocolo (sent/received/chose)."""
    caplog.set_level(logging.INFO)

    def lines():
        return [record.getMessage() for record in caplog.records if record.name == "paxos.events"]
    return lines
