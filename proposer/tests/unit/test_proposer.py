"""
File: proposer/tests/unit/test_proposer.py
Unit tests for the Proposer implementation.
"""
import asyncio
from unittest.mock import AsyncMock

import pytest

from common.models import (
    AcceptAck, Action, Message, MessageType, PrepareAck, ProcessIdentity, ProposalNumber
)
from common.wire import ProtocolError
from proposer.proposer import Proposer, ProposerState

PEERS = [ProcessIdentity(id=i, address=f"peer{i}") for i in range(1, 4)]


def pn(round_number, proposer_id):
    return ProposalNumber(round=round_number, proposer_id=proposer_id)

def reply(peer, message_type, value=None, proposal_number=None):
    return Message(sender_id=peer.id, action=Action.SENT, message_type=message_type,
                   value=value, proposal_number=proposal_number)

def echo_transport():
    """Transport mock whose acceptors accept everything and hold no prior value."""
    async def send(peer, message):
        if message.message_type == MessageType.PREPARE:
            return reply(peer, MessageType.PREPARE_ACK)
        return reply(peer, MessageType.ACCEPT_ACK, message.value, message.proposal_number)

    transport = AsyncMock()
    transport.send = AsyncMock(side_effect=send)
    return transport

def make_proposer(transport=None, value="X", acceptors=PEERS, total=3, **kwargs):
    kwargs.setdefault("retry_backoff", (0, 0))
    return Proposer(PEERS[0], value, acceptors, total, transport or echo_transport(), **kwargs)


def test_proposer_initialization():
    """Test if proposer is initialized correctly."""
    proposer = make_proposer()

    assert proposer.id == 1
    assert proposer.state == ProposerState.IDLE
    assert proposer.candidate_value == "X"
    assert proposer.quorum_size == 2
    assert [peer.id for peer in proposer.acceptors] == [1, 2, 3]

def test_proposer_includes_itself():
    """Test that the proposer is added to its own acceptor set."""
    proposer = make_proposer(acceptors=PEERS[1:], total=5)

    assert [peer.id for peer in proposer.acceptors] == [1, 2, 3]
    assert proposer.quorum_size == 3

@pytest.mark.parametrize("value", ["", "XY", ",", " ", None])
def test_proposer_rejects_invalid_value(value):
    """Test that the value must be a single usable character."""
    with pytest.raises(ValueError):
        make_proposer(value=value)

def test_proposer_rejects_total_below_acceptors():
    """Test that the total process count cannot be below the acceptor count."""
    with pytest.raises(ValueError):
        make_proposer(total=2)

@pytest.mark.asyncio
async def test_proposal_numbers_are_monotonic():
    """Test that each new number is higher than the previous one."""
    proposer = make_proposer()

    first = await proposer.next_proposal_number()
    second = await proposer.next_proposal_number()

    assert first == pn(1, 1)
    assert second == pn(2, 1)
    assert proposer.issued == [first, second]

@pytest.mark.asyncio
async def test_observed_numbers_are_surpassed():
    """Test that a number seen in a reply pushes the next round past it."""
    proposer = make_proposer()
    await proposer.next_proposal_number()

    await proposer.observe(pn(5, 3))
    await proposer.observe(None)
    await proposer.observe(pn(2, 2))

    assert await proposer.next_proposal_number() == pn(6, 1)

def test_adopt_highest_accepted():
    """Test that the value accepted under the highest number is adopted."""
    proposer = make_proposer()
    acks = [
        PrepareAck(acceptor_id=1),
        PrepareAck(acceptor_id=2, accepted_proposal=pn(1, 1), accepted_value="W"),
        PrepareAck(acceptor_id=3, accepted_proposal=pn(1, 2), accepted_value="Y"),
    ]

    adopted = proposer.adopt_highest_accepted(acks)

    assert adopted.acceptor_id == 3
    assert proposer.candidate_value == "Y"
    assert proposer.initial_value == "X"

def test_adopt_keeps_value_when_nothing_accepted():
    """Test that the initial value is kept when no acceptor accepted anything."""
    proposer = make_proposer()

    assert proposer.adopt_highest_accepted([PrepareAck(acceptor_id=1), PrepareAck(acceptor_id=2)]) is None
    assert proposer.candidate_value == "X"

def test_evaluate_accept_majority():
    """Test that a majority of echoes chooses the value."""
    proposer = make_proposer()
    acks = [
        AcceptAck(acceptor_id=1, accepted_proposal=pn(1, 1), accepted_value="X"),
        AcceptAck(acceptor_id=2, accepted_proposal=pn(1, 1), accepted_value="X"),
    ]

    assert proposer.evaluate_accept(pn(1, 1), acks)

def test_evaluate_accept_overtaken():
    """Test that any higher accepted number rejects the round."""
    proposer = make_proposer()
    acks = [
        AcceptAck(acceptor_id=1, accepted_proposal=pn(1, 1), accepted_value="X"),
        AcceptAck(acceptor_id=2, accepted_proposal=pn(1, 1), accepted_value="X"),
        AcceptAck(acceptor_id=3, accepted_proposal=pn(2, 2), accepted_value="Y"),
    ]

    assert not proposer.evaluate_accept(pn(1, 1), acks)

def test_evaluate_accept_counts_distinct_acceptors():
    """Test that duplicate replies from one acceptor count once."""
    proposer = make_proposer()
    ack = AcceptAck(acceptor_id=2, accepted_proposal=pn(1, 1), accepted_value="X")
    stale = AcceptAck(acceptor_id=3, accepted_proposal=pn(1, 1), accepted_value="W")

    assert not proposer.evaluate_accept(pn(1, 1), [ack, ack, stale])

@pytest.mark.asyncio
async def test_run_chooses_value():
    """Test a full uncontended run."""
    transport = echo_transport()
    proposer = make_proposer(transport)

    result = await proposer.run()

    assert result.value == "X"
    assert result.proposal_number == pn(1, 1)
    assert result.rounds == 1
    assert proposer.state == ProposerState.CHOSEN
    sent_types = [call.args[1].message_type for call in transport.send.call_args_list]
    assert sent_types.count(MessageType.PREPARE) == 3
    assert sent_types.count(MessageType.ACCEPT) == 3

@pytest.mark.asyncio
async def test_run_returns_existing_result():
    """Test that run is not repeated once a value was chosen."""
    transport = echo_transport()
    proposer = make_proposer(transport)
    first = await proposer.run()

    second = await proposer.run()

    assert second == first
    assert transport.send.call_count == 6

@pytest.mark.asyncio
async def test_run_tolerates_minority_failure():
    """Test that one unreachable acceptor does not stop a round."""
    async def send(peer, message):
        if peer.id == 3:
            raise ConnectionRefusedError("refused")
        if message.message_type == MessageType.PREPARE:
            return reply(peer, MessageType.PREPARE_ACK)
        return reply(peer, MessageType.ACCEPT_ACK, message.value, message.proposal_number)

    transport = AsyncMock()
    transport.send = AsyncMock(side_effect=send)

    result = await make_proposer(transport).run()

    assert result.value == "X"

@pytest.mark.asyncio
async def test_run_retries_after_rejection():
    """Test that an overtaken round is retried with a higher number."""
    attempts = []

    async def send(peer, message):
        if message.message_type == MessageType.PREPARE:
            return reply(peer, MessageType.PREPARE_ACK)
        attempts.append(message.proposal_number)
        if message.proposal_number == pn(1, 1) and peer.id == 2:
            return reply(peer, MessageType.ACCEPT_ACK, "Y", pn(2, 2))
        return reply(peer, MessageType.ACCEPT_ACK, message.value, message.proposal_number)

    transport = AsyncMock()
    transport.send = AsyncMock(side_effect=send)
    proposer = make_proposer(transport)

    result = await proposer.run()

    assert proposer.issued == [pn(1, 1), pn(3, 1)]
    assert result.proposal_number == pn(3, 1)
    assert result.rounds == 2

@pytest.mark.asyncio
async def test_wrong_reply_type_is_protocol_error():
    """Test that a reply of the wrong type aborts the run."""
    async def send(peer, message):
        return reply(peer, MessageType.ACCEPT_ACK)

    transport = AsyncMock()
    transport.send = AsyncMock(side_effect=send)

    with pytest.raises(ProtocolError):
        await make_proposer(transport).run()

@pytest.mark.parametrize("value,proposal_number", [
    (None, pn(1, 2)),
    ("Y", None),
])
@pytest.mark.asyncio
async def test_half_accepted_state_is_protocol_error(value, proposal_number):
    """Test that an ack with a number but no value, or a value but no number, aborts the run."""
    async def send(peer, message):
        if peer.id == 2:
            return reply(peer, MessageType.PREPARE_ACK, value, proposal_number)
        return reply(peer, MessageType.PREPARE_ACK)

    transport = AsyncMock()
    transport.send = AsyncMock(side_effect=send)

    with pytest.raises(ProtocolError):
        await make_proposer(transport).run()

@pytest.mark.asyncio
async def test_start_delay():
    """Test that the first prepare waits for the start delay."""
    transport = echo_transport()
    proposer = make_proposer(transport, start_delay=0.05)

    task = asyncio.create_task(proposer.run())
    await asyncio.sleep(0.01)
    assert transport.send.call_count == 0

    await asyncio.wait_for(task, 1)
    assert transport.send.call_count == 6

def test_get_status():
    """Test the status snapshot of an idle proposer."""
    status = make_proposer().get_status()

    assert status["id"] == 1
    assert status["state"] == ProposerState.IDLE
    assert status["quorum_size"] == 2
    assert status["acceptors"] == [1, 2, 3]
    assert status["chosen"] is None
