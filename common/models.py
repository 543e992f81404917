"""
Modelos de dados comuns para os componentes do Paxos de decisão única.
"""
from enum import Enum
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Delimitadores do formato textual (common/wire.py)
RESERVED_CHARACTERS = frozenset('{},:"')

class Role(str, Enum):
    """Papéis possíveis de um processo."""
    PROPOSER = "proposer"
    ACCEPTOR = "acceptor"


class Action(str, Enum):
    """Ação registrada em cada evento do protocolo."""
    SENT = "sent"
    RECEIVED = "received"
    CHOSE = "chose"


class MessageType(str, Enum):
    """Tipos de mensagens do protocolo Paxos."""
    PREPARE = "prepare"
    PREPARE_ACK = "prepare_ack"
    ACCEPT = "accept"
    ACCEPT_ACK = "accept_ack"
    CHOSE = "chose"  # apenas em linhas de log


class ProcessIdentity(BaseModel):
    """Identidade imutável de um processo: ID numérico e endereço de rede."""
    model_config = ConfigDict(frozen=True)

    id: int
    address: str


class ProposalNumber(BaseModel):
    """
    Número de proposta: par (rodada, proposer_id) com ordem total.

    A unicidade entre proposers vem do proposer_id; a monotonicidade de um mesmo
    proposer vem da rodada. A forma textual é "<rodada>.<proposer_id>" (3.2).
    """
    model_config = ConfigDict(frozen=True)

    round: int = Field(ge=1)
    proposer_id: int = Field(ge=0)

    def _key(self):
        return (self.round, self.proposer_id)

    def __lt__(self, other: "ProposalNumber") -> bool:
        if not isinstance(other, ProposalNumber):
            return NotImplemented
        return self._key() < other._key()

    def __le__(self, other: "ProposalNumber") -> bool:
        if not isinstance(other, ProposalNumber):
            return NotImplemented
        return self._key() <= other._key()

    def __gt__(self, other: "ProposalNumber") -> bool:
        if not isinstance(other, ProposalNumber):
            return NotImplemented
        return self._key() > other._key()

    def __ge__(self, other: "ProposalNumber") -> bool:
        if not isinstance(other, ProposalNumber):
            return NotImplemented
        return self._key() >= other._key()

    def __str__(self) -> str:
        return f"{self.round}.{self.proposer_id}"

    @classmethod
    def parse(cls, text: str) -> "ProposalNumber":
        """
        Converte a forma textual "<rodada>.<proposer_id>" em ProposalNumber.

        Raises:
            ValueError: Se o texto não estiver no formato esperado
        """
        round_part, sep, proposer_part = text.strip().partition(".")
        if not sep or not round_part.isdigit() or not proposer_part.isdigit():
            raise ValueError(f"Número de proposta inválido: {text!r}")
        return cls(round=int(round_part), proposer_id=int(proposer_part))


class Message(BaseModel):
    """Registro de mensagem independente do transporte."""
    sender_id: int
    action: Action
    message_type: MessageType
    value: Optional[str] = None
    proposal_number: Optional[ProposalNumber] = None

    @field_validator("value")
    @classmethod
    def _single_character(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        if len(value) != 1:
            raise ValueError("o valor deve ser um único caractere")
        if value in RESERVED_CHARACTERS or value.isspace():
            raise ValueError(f"caractere reservado pelo formato de mensagem: {value!r}")
        return value


class PrepareAck(BaseModel):
    """Resposta de um acceptor a um PREPARE: estado aceito atual."""
    acceptor_id: int
    accepted_proposal: Optional[ProposalNumber] = None
    accepted_value: Optional[str] = None

    def to_message(self) -> Message:
        return Message(
            sender_id=self.acceptor_id,
            action=Action.SENT,
            message_type=MessageType.PREPARE_ACK,
            value=self.accepted_value,
            proposal_number=self.accepted_proposal,
        )

    @classmethod
    def from_message(cls, message: Message) -> "PrepareAck":
        return cls(
            acceptor_id=message.sender_id,
            accepted_proposal=message.proposal_number,
            accepted_value=message.value,
        )


class AcceptAck(BaseModel):
    """Resposta de um acceptor a um ACCEPT: estado aceito após o pedido."""
    acceptor_id: int
    accepted_proposal: Optional[ProposalNumber] = None
    accepted_value: Optional[str] = None

    def to_message(self) -> Message:
        return Message(
            sender_id=self.acceptor_id,
            action=Action.SENT,
            message_type=MessageType.ACCEPT_ACK,
            value=self.accepted_value,
            proposal_number=self.accepted_proposal,
        )

    @classmethod
    def from_message(cls, message: Message) -> "AcceptAck":
        return cls(
            acceptor_id=message.sender_id,
            accepted_proposal=message.proposal_number,
            accepted_value=message.value,
        )

    def echoes(self, proposal_number: ProposalNumber, value: Optional[str]) -> bool:
        """True se o acceptor confirma exatamente o par (número, valor) informado."""
        return self.accepted_proposal == proposal_number and self.accepted_value == value


class ProposalResult(BaseModel):
    """Resultado de um proposer que chegou ao estado CHOSEN."""
    value: str
    proposal_number: ProposalNumber
    rounds: int


class HealthResponse(BaseModel):
    """Modelo para resposta de verificação de saúde."""
    status: str = "healthy"
    timestamp: float


class StatusResponse(BaseModel):
    """Estado resumido de um acceptor."""
    id: int
    address: str
    min_proposal: Optional[str] = None
    accepted_proposal: Optional[str] = None
    accepted_value: Optional[str] = None
    counters: Dict[str, Any] = Field(default_factory=dict)
