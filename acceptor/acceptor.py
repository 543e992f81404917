import asyncio
import logging
from typing import Dict, Optional

import structlog

from common.logging import log_event
from common.metrics import acceptor_metrics
from common.models import (
    AcceptAck, Action, Message, MessageType, PrepareAck, ProcessIdentity, ProposalNumber
)
from common.wire import ProtocolError, decode, encode

logger = logging.getLogger(__name__)
log = structlog.get_logger(__name__)

class Acceptor:
    """
    Implementação do acceptor do Paxos de decisão única.
    Responde a PREPARE e ACCEPT mantendo o estado que garante a segurança do protocolo.
    """

    def __init__(self, identity: ProcessIdentity, debug: bool = False):
        """
        Inicializa o acceptor.

        Args:
            identity: Identidade do processo
            debug: Flag para ativar modo de depuração
        """
        self.identity = identity
        self.id = identity.id
        self.debug = debug

        # Estado do acceptor (vive durante toda a execução, nunca é reiniciado)
        self.min_proposal: Optional[ProposalNumber] = None  # Maior número de proposta já visto
        self.accepted_proposal: Optional[ProposalNumber] = None  # Número da última proposta aceita
        self.accepted_value: Optional[str] = None  # Valor aceito sob accepted_proposal

        # Protege apenas os três campos acima
        self.state_lock = asyncio.Lock()

        # Contadores
        self.prepare_requests_processed = 0
        self.accept_requests_processed = 0
        self.proposals_accepted = 0
        self.stale_accepts = 0

        logger.debug(f"Acceptor {self.id} inicializado (debug={debug})")

    async def prepare(self, proposal_number: ProposalNumber) -> PrepareAck:
        """
        Processa um PREPARE.

        Atualiza min_proposal se o número recebido for maior e responde sempre com
        o estado aceito atual, mesmo quando o pedido é antigo.

        Args:
            proposal_number: Número da proposta recebida

        Returns:
            PrepareAck: Proposta e valor aceitos no momento da leitura
        """
        async with self.state_lock:
            if self.min_proposal is None or proposal_number > self.min_proposal:
                self.min_proposal = proposal_number
            ack = PrepareAck(
                acceptor_id=self.id,
                accepted_proposal=self.accepted_proposal,
                accepted_value=self.accepted_value,
            )

        self.prepare_requests_processed += 1
        acceptor_metrics["prepare_received"].labels(node_id=self.id).inc()
        return ack

    async def accept(self, sender_id: int, proposal_number: ProposalNumber,
                     value: Optional[str]) -> AcceptAck:
        """
        Processa um ACCEPT.

        Aceita se o número for maior ou igual a min_proposal; caso contrário o
        pedido é antigo e o estado não muda. A resposta sempre traz o estado
        aceito resultante, para que o proposer perceba se foi superado.

        Args:
            sender_id: ID do proposer que enviou o pedido
            proposal_number: Número da proposta
            value: Valor proposto

        Returns:
            AcceptAck: Proposta e valor aceitos após o pedido
        """
        async with self.state_lock:
            accepted = self.min_proposal is None or proposal_number >= self.min_proposal
            if accepted:
                self.min_proposal = proposal_number
                self.accepted_proposal = proposal_number
                self.accepted_value = value
            ack = AcceptAck(
                acceptor_id=self.id,
                accepted_proposal=self.accepted_proposal,
                accepted_value=self.accepted_value,
            )
            min_proposal = self.min_proposal

        self.accept_requests_processed += 1
        acceptor_metrics["accept_received"].labels(node_id=self.id).inc()

        if accepted:
            self.proposals_accepted += 1
            acceptor_metrics["accepted"].labels(node_id=self.id).inc()
            log_event(sender_id, Action.CHOSE, MessageType.CHOSE, value, proposal_number)
        else:
            self.stale_accepts += 1
            acceptor_metrics["stale_accepts"].labels(node_id=self.id).inc()
            log.info("ACCEPT antigo ignorado",
                     proposer_id=sender_id,
                     proposal_number=str(proposal_number),
                     min_proposal=str(min_proposal))

        return ack

    async def handle_message(self, message: Message) -> Message:
        """
        Processa uma mensagem de um proposer e prepara a resposta.

        Args:
            message: Mensagem recebida

        Returns:
            Message: Resposta (prepare_ack ou accept_ack)

        Raises:
            ProtocolError: Se o tipo de mensagem não for prepare nem accept
        """
        log_event(message.sender_id, Action.RECEIVED, message.message_type,
                  message.value, message.proposal_number)

        if message.message_type not in (MessageType.PREPARE, MessageType.ACCEPT):
            acceptor_metrics["protocol_errors"].labels(node_id=self.id).inc()
            raise ProtocolError(f"Tipo de mensagem inesperado: {message.message_type.value}")
        if message.proposal_number is None:
            acceptor_metrics["protocol_errors"].labels(node_id=self.id).inc()
            raise ProtocolError(f"{message.message_type.value} sem número de proposta")
        if message.message_type == MessageType.ACCEPT and message.value is None:
            acceptor_metrics["protocol_errors"].labels(node_id=self.id).inc()
            raise ProtocolError(f"accept {message.proposal_number} sem valor")

        if message.message_type == MessageType.PREPARE:
            reply = (await self.prepare(message.proposal_number)).to_message()
        else:
            reply = (await self.accept(message.sender_id, message.proposal_number,
                                       message.value)).to_message()

        log_event(message.sender_id, Action.SENT, reply.message_type,
                  reply.value, reply.proposal_number)
        return reply

    async def handle_raw(self, text: str) -> str:
        """
        Decodifica um pedido textual, processa e devolve a resposta textual.

        Raises:
            ProtocolError: Se o pedido não respeitar o formato ou o protocolo
        """
        try:
            message = decode(text)
        except ProtocolError:
            acceptor_metrics["protocol_errors"].labels(node_id=self.id).inc()
            raise
        reply = await self.handle_message(message)
        return encode(reply)

    def get_status(self) -> Dict:
        """
        Obtém o status atual do acceptor.

        Returns:
            Dict: Status do acceptor
        """
        return {
            "id": self.id,
            "address": self.identity.address,
            "min_proposal": str(self.min_proposal) if self.min_proposal is not None else None,
            "accepted_proposal": (str(self.accepted_proposal)
                                  if self.accepted_proposal is not None else None),
            "accepted_value": self.accepted_value,
            "counters": {
                "prepare_requests_processed": self.prepare_requests_processed,
                "accept_requests_processed": self.accept_requests_processed,
                "proposals_accepted": self.proposals_accepted,
                "stale_accepts": self.stale_accepts,
            },
        }
