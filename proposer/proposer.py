import asyncio
import logging
import random
from typing import Dict, Iterable, List, Optional, Tuple

import structlog

from common.logging import log_event
from common.metrics import proposer_metrics
from common.models import (
    AcceptAck, Action, Message, MessageType, PrepareAck, ProcessIdentity,
    ProposalNumber, ProposalResult, RESERVED_CHARACTERS
)
from common.quorum import QuorumCollector, QuorumTimeoutError
from common.utils import RoundCounter
from common.wire import ProtocolError

logger = logging.getLogger(__name__)
log = structlog.get_logger(__name__)

EXPECTED_REPLY = {
    MessageType.PREPARE: MessageType.PREPARE_ACK,
    MessageType.ACCEPT: MessageType.ACCEPT_ACK,
}

class ProposerState:
    """Estados possíveis do proposer"""
    IDLE = "idle"              # Aguardando início
    PREPARING = "preparing"    # Fase de prepare em andamento
    PREPARED = "prepared"      # Quórum de prepare_ack alcançado
    ACCEPTING = "accepting"    # Fase de accept em andamento
    CHOSEN = "chosen"          # Valor escolhido (estado final)

class Proposer:
    """
    Implementação do proposer do Paxos de decisão única.
    Executa rodadas PREPARE/ACCEPT até que um valor seja escolhido, repetindo
    com números maiores sempre que a rodada for superada.
    """

    def __init__(self, identity: ProcessIdentity, value: str,
                 acceptors: Iterable[ProcessIdentity], total_processes: int, transport,
                 start_delay: float = 0.0, quorum_timeout: Optional[float] = None,
                 retry_backoff: Tuple[float, float] = (0.1, 0.5), debug: bool = False):
        """
        Inicializa o proposer.

        Args:
            identity: Identidade do processo
            value: Valor que este proposer quer ver escolhido
            acceptors: Conjunto fixo de acceptors (o próprio processo é incluído se faltar)
            total_processes: Número total de processos da execução (define a maioria)
            transport: Objeto com send(peer, message) -> reply
            start_delay: Espera antes do primeiro PREPARE, em segundos
            quorum_timeout: Limite de espera por fase (None espera para sempre)
            retry_backoff: Intervalo (mín, máx) da espera aleatória entre rodadas
            debug: Flag para ativar modo de depuração
        """
        if value is None or len(value) != 1 or value in RESERVED_CHARACTERS or value.isspace():
            raise ValueError(f"Valor inválido para proposta: {value!r}")

        self.identity = identity
        self.id = identity.id
        self.debug = debug
        self.transport = transport

        self.acceptors: List[ProcessIdentity] = list(acceptors)
        if self.id not in {acceptor.id for acceptor in self.acceptors}:
            self.acceptors.insert(0, identity)

        if total_processes < len(self.acceptors):
            raise ValueError(
                f"total_processes ({total_processes}) menor que o número de acceptors ({len(self.acceptors)})"
            )
        self.total_processes = total_processes
        self.quorum_size = total_processes // 2 + 1

        self.start_delay = start_delay
        self.quorum_timeout = quorum_timeout
        self.retry_backoff = retry_backoff

        # Estado da execução
        self.state = ProposerState.IDLE
        self.initial_value = value
        self.candidate_value = value
        self.current_proposal_number: Optional[ProposalNumber] = None
        self.round_counter = RoundCounter(initial_value=0)
        self.issued: List[ProposalNumber] = []
        self.rounds = 0
        self.chosen: Optional[ProposalResult] = None

        if self.quorum_size > len(self.acceptors):
            logger.warning(
                f"Proposer {self.id} tem {len(self.acceptors)} acceptors mas precisa de "
                f"{self.quorum_size} respostas: nenhuma fase alcançará o quórum"
            )

        logger.debug(f"Proposer {self.id} inicializado com valor {value!r} (debug={debug})")

    async def next_proposal_number(self) -> ProposalNumber:
        """
        Gera um número de proposta maior que todos os já emitidos por este
        proposer e que todos os já observados em respostas.

        Returns:
            ProposalNumber: O novo número
        """
        round_number = await self.round_counter.get_next()
        number = ProposalNumber(round=round_number, proposer_id=self.id)
        self.issued.append(number)
        self.current_proposal_number = number
        return number

    async def observe(self, proposal_number: Optional[ProposalNumber]) -> None:
        """Registra um número visto numa resposta para que a próxima rodada o supere."""
        if proposal_number is not None:
            await self.round_counter.update_if_greater(proposal_number.round)

    async def _send(self, peer: ProcessIdentity, message_type: MessageType,
                    proposal_number: ProposalNumber, value: Optional[str]) -> Message:
        """
        Envia um pedido a um acceptor e valida o tipo da resposta.

        Raises:
            ProtocolError: Se a resposta não for o *_ack esperado
        """
        message = Message(
            sender_id=self.id,
            action=Action.SENT,
            message_type=message_type,
            value=value,
            proposal_number=proposal_number,
        )
        log_event(peer.id, Action.SENT, message_type, value, proposal_number)

        reply = await self.transport.send(peer, message)

        expected = EXPECTED_REPLY[message_type]
        if reply.message_type != expected:
            raise ProtocolError(
                f"Resposta inválida do processo {peer.id}: esperado {expected.value}, "
                f"recebido {reply.message_type.value}"
            )
        # Estado aceito vem sempre em par: número e valor, ou nenhum dos dois
        if (reply.proposal_number is None) != (reply.value is None):
            raise ProtocolError(
                f"Resposta inválida do processo {peer.id}: proposta {reply.proposal_number} "
                f"com valor {reply.value!r}"
            )

        log_event(reply.sender_id, Action.RECEIVED, reply.message_type,
                  reply.value, reply.proposal_number)
        return reply

    def _overtaken(self, proposal_number: ProposalNumber):
        def is_rejection(reply: Message) -> bool:
            return reply.proposal_number is not None and reply.proposal_number > proposal_number
        return is_rejection

    async def prepare_phase(self, proposal_number: ProposalNumber) -> List[PrepareAck]:
        """
        Executa a fase PREPARE: broadcast para todos os acceptors e espera pelo quórum.

        Args:
            proposal_number: Número da rodada

        Returns:
            List[PrepareAck]: Respostas coletadas (pelo menos quorum_size)
        """
        self.state = ProposerState.PREPARING
        collector = QuorumCollector(
            self.quorum_size,
            is_rejection=self._overtaken(proposal_number),
            timeout=self.quorum_timeout,
        )

        with proposer_metrics["prepare_phase_duration"].labels(node_id=self.id).time():
            result = await collector.collect(
                self.acceptors,
                lambda peer: self._send(peer, MessageType.PREPARE, proposal_number, None),
            )

        acks = [PrepareAck.from_message(reply) for reply in result.replies]
        for ack in acks:
            await self.observe(ack.accepted_proposal)

        self.state = ProposerState.PREPARED
        log.info("Fase PREPARE com quórum",
                 proposal_number=str(proposal_number),
                 replies=len(acks),
                 newer_accepted=len(result.rejections),
                 unreachable=sorted(result.failures))
        return acks

    def adopt_highest_accepted(self, acks: List[PrepareAck]) -> Optional[PrepareAck]:
        """
        Entre as respostas do PREPARE, encontra o valor aceito com o maior número
        e o adota como valor candidato.

        Args:
            acks: Respostas da fase PREPARE

        Returns:
            Optional[PrepareAck]: A resposta adotada, ou None se nenhum acceptor aceitou nada
        """
        highest: Optional[PrepareAck] = None
        for ack in acks:
            if ack.accepted_proposal is None or ack.accepted_value is None:
                continue
            if highest is None or ack.accepted_proposal > highest.accepted_proposal:
                highest = ack

        if highest is not None:
            if highest.accepted_value != self.candidate_value:
                log.info("Adotando valor já aceito",
                         previous_value=self.candidate_value,
                         adopted_value=highest.accepted_value,
                         accepted_proposal=str(highest.accepted_proposal),
                         acceptor_id=highest.acceptor_id)
            self.candidate_value = highest.accepted_value

        return highest

    async def accept_phase(self, proposal_number: ProposalNumber) -> List[AcceptAck]:
        """
        Executa a fase ACCEPT com o valor candidato atual.

        Args:
            proposal_number: Número da rodada

        Returns:
            List[AcceptAck]: Respostas coletadas (pelo menos quorum_size)
        """
        self.state = ProposerState.ACCEPTING
        value = self.candidate_value
        collector = QuorumCollector(
            self.quorum_size,
            is_rejection=self._overtaken(proposal_number),
            timeout=self.quorum_timeout,
        )

        with proposer_metrics["accept_phase_duration"].labels(node_id=self.id).time():
            result = await collector.collect(
                self.acceptors,
                lambda peer: self._send(peer, MessageType.ACCEPT, proposal_number, value),
            )

        acks = [AcceptAck.from_message(reply) for reply in result.replies]
        for ack in acks:
            await self.observe(ack.accepted_proposal)
        return acks

    def evaluate_accept(self, proposal_number: ProposalNumber, acks: List[AcceptAck]) -> bool:
        """
        Decide se a rodada escolheu o valor.

        A rodada é rejeitada se alguma resposta trouxer um número aceito maior
        que o da rodada, ou se menos de quorum_size acceptors distintos
        confirmarem exatamente (número, valor candidato).

        Returns:
            bool: True se o valor foi escolhido
        """
        overtaken = [ack for ack in acks
                     if ack.accepted_proposal is not None and ack.accepted_proposal > proposal_number]
        if overtaken:
            highest = max(ack.accepted_proposal for ack in overtaken)
            log.info("Rodada superada por proposta maior",
                     proposal_number=str(proposal_number),
                     highest_seen=str(highest),
                     acceptors=[ack.acceptor_id for ack in overtaken])
            return False

        confirmations = {ack.acceptor_id for ack in acks
                         if ack.echoes(proposal_number, self.candidate_value)}
        if len(confirmations) < self.quorum_size:
            log.info("Rodada sem maioria de confirmações",
                     proposal_number=str(proposal_number),
                     confirmations=len(confirmations),
                     quorum_size=self.quorum_size)
            return False

        return True

    async def run_round(self) -> bool:
        """
        Executa uma rodada completa (PREPARE e ACCEPT).

        Returns:
            bool: True se o valor foi escolhido nesta rodada
        """
        proposal_number = await self.next_proposal_number()
        self.rounds += 1
        proposer_metrics["rounds"].labels(node_id=self.id).inc()

        log.info("Iniciando rodada",
                 round=self.rounds,
                 proposal_number=str(proposal_number),
                 candidate_value=self.candidate_value,
                 quorum_size=self.quorum_size)

        prepare_acks = await self.prepare_phase(proposal_number)
        self.adopt_highest_accepted(prepare_acks)

        accept_acks = await self.accept_phase(proposal_number)
        if not self.evaluate_accept(proposal_number, accept_acks):
            proposer_metrics["rejected_rounds"].labels(node_id=self.id).inc()
            return False

        self.state = ProposerState.CHOSEN
        self.chosen = ProposalResult(
            value=self.candidate_value,
            proposal_number=proposal_number,
            rounds=self.rounds,
        )
        proposer_metrics["chosen"].labels(node_id=self.id).inc()
        logger.info(f"Valor {self.candidate_value!r} escolhido com a proposta {proposal_number} "
                    f"após {self.rounds} rodada(s)")
        return True

    async def run(self) -> ProposalResult:
        """
        Espera o atraso inicial e executa rodadas até que um valor seja escolhido.

        Returns:
            ProposalResult: Valor escolhido, número da proposta vencedora e total de rodadas

        Raises:
            ProtocolError: Se algum acceptor violar o protocolo
        """
        if self.chosen is not None:
            return self.chosen

        if self.start_delay > 0:
            logger.info(f"Proposer {self.id} aguardando {self.start_delay:.1f}s antes do primeiro PREPARE")
            await asyncio.sleep(self.start_delay)

        while True:
            try:
                if await self.run_round():
                    return self.chosen
            except QuorumTimeoutError as e:
                proposer_metrics["quorum_timeouts"].labels(node_id=self.id).inc()
                logger.warning(f"Rodada {self.current_proposal_number} abandonada: {e}")

            await self._backoff()

    async def _backoff(self) -> None:
        low, high = self.retry_backoff
        if high <= 0:
            return
        delay = random.uniform(max(0.0, low), high)
        logger.debug(f"Aguardando {delay:.3f}s antes da próxima rodada")
        await asyncio.sleep(delay)

    def get_status(self) -> Dict:
        """
        Obtém o status completo do proposer.

        Returns:
            Dict: Status do proposer
        """
        return {
            "id": self.id,
            "state": self.state,
            "initial_value": self.initial_value,
            "candidate_value": self.candidate_value,
            "current_proposal_number": (str(self.current_proposal_number)
                                        if self.current_proposal_number is not None else None),
            "issued": [str(number) for number in self.issued],
            "rounds": self.rounds,
            "quorum_size": self.quorum_size,
            "acceptors": [acceptor.id for acceptor in self.acceptors],
            "chosen": self.chosen.model_dump(mode="json") if self.chosen is not None else None,
        }
