"""
Codificação textual das mensagens trocadas entre proposers e acceptors.

Formato (uma mensagem por conexão, chaves sempre nesta ordem):

    {"peer_id":1, "action":"sent", "message_type":"prepare", "message_value":"n/a", "proposal_number":1.1}

A mesma linha é usada nos logs de eventos do protocolo.
"""
from typing import Dict, Optional

from pydantic import ValidationError

from common.models import Action, Message, MessageType, ProposalNumber

NO_VALUE = "n/a"
NO_PROPOSAL = "0.0"

FIELDS = ("peer_id", "action", "message_type", "message_value", "proposal_number")


class ProtocolError(Exception):
    """Violação do protocolo: mensagem mal formada ou tipo desconhecido."""


def format_value(value: Optional[str]) -> str:
    return NO_VALUE if value is None else value


def format_proposal(proposal_number: Optional[ProposalNumber]) -> str:
    return NO_PROPOSAL if proposal_number is None else str(proposal_number)


def encode_fields(peer_id: int, action: str, message_type: str,
                  value: Optional[str], proposal_number: Optional[ProposalNumber]) -> str:
    """Monta a linha textual a partir dos campos soltos."""
    return (
        f'{{"peer_id":{peer_id}, "action":"{action}", '
        f'"message_type":"{message_type}", "message_value":"{format_value(value)}", '
        f'"proposal_number":{format_proposal(proposal_number)}}}'
    )


def encode(message: Message) -> str:
    """
    Codifica uma mensagem no formato de texto do protocolo.

    Args:
        message: Mensagem a ser codificada

    Returns:
        str: Linha textual da mensagem
    """
    return encode_fields(
        message.sender_id,
        message.action.value,
        message.message_type.value,
        message.value,
        message.proposal_number,
    )


def _unquote(token: str) -> str:
    token = token.strip()
    if len(token) >= 2 and token[0] == '"' and token[-1] == '"':
        return token[1:-1]
    return token.strip('"')


def _split_pairs(text: str) -> Dict[str, str]:
    body = text.strip()
    if not (body.startswith("{") and body.endswith("}")):
        raise ProtocolError(f"Mensagem sem delimitadores: {text!r}")

    pairs: Dict[str, str] = {}
    for part in body[1:-1].split(","):
        key, sep, raw_value = part.partition(":")
        if not sep:
            raise ProtocolError(f"Par chave:valor inválido: {part.strip()!r}")
        key = _unquote(key)
        if key in pairs:
            raise ProtocolError(f"Chave duplicada: {key}")
        pairs[key] = _unquote(raw_value)
    return pairs


def decode(text: str) -> Message:
    """
    Decodifica uma linha textual do protocolo.

    Args:
        text: Linha recebida do transporte

    Returns:
        Message: Registro decodificado

    Raises:
        ProtocolError: Se a mensagem não respeitar o formato
    """
    pairs = _split_pairs(text)
    if set(pairs) != set(FIELDS):
        raise ProtocolError(f"Campos inesperados: {sorted(pairs)}")

    try:
        sender_id = int(pairs["peer_id"])
    except ValueError:
        raise ProtocolError(f"peer_id inválido: {pairs['peer_id']!r}")

    try:
        action = Action(pairs["action"])
    except ValueError:
        raise ProtocolError(f"Ação desconhecida: {pairs['action']!r}")

    try:
        message_type = MessageType(pairs["message_type"])
    except ValueError:
        raise ProtocolError(f"Tipo de mensagem desconhecido: {pairs['message_type']!r}")

    raw_proposal = pairs["proposal_number"]
    proposal_number = None
    if raw_proposal != NO_PROPOSAL:
        try:
            proposal_number = ProposalNumber.parse(raw_proposal)
        except ValueError as e:
            raise ProtocolError(str(e))

    raw_value = pairs["message_value"]
    value = None if raw_value == NO_VALUE else raw_value

    try:
        return Message(
            sender_id=sender_id,
            action=action,
            message_type=message_type,
            value=value,
            proposal_number=proposal_number,
        )
    except ValidationError as e:
        raise ProtocolError(f"Mensagem inválida: {e.errors()[0]['msg']}")
