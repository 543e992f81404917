"""
File: tests/integration/test_http_flow.py
Integration tests for a proposer talking to the acceptor API over HTTP.
"""
import httpx
import pytest

from acceptor import api
from common.transport import HttpTransport
from common.wire import ProtocolError
from proposer.proposer import Proposer


@pytest.fixture
def asgi_transport(identity):
    """HttpTransport whose requests are served in-process by the acceptor API."""
    api.initialize(identity(1), component="http-flow-test")
    transport = HttpTransport(retry_wait=0)
    transport._client = httpx.AsyncClient(transport=httpx.ASGITransport(app=api.app))
    return transport


@pytest.mark.asyncio
async def test_proposer_chooses_over_http(asgi_transport, identity, pn):
    """Test a full run through the codec, the HTTP layer and the acceptor."""
    proposer = Proposer(identity(1), "K", [identity(1)], 1, asgi_transport, retry_backoff=(0, 0))

    result = await proposer.run()
    await asgi_transport.close()

    assert result.value == "K"
    assert result.proposal_number == pn(1, 1)
    assert api.acceptor.accepted_value == "K"
    assert api.acceptor.get_status()["counters"]["accept_requests_processed"] == 1

@pytest.mark.asyncio
async def test_bad_request_surfaces_as_protocol_error(asgi_transport, identity):
    """Test that a 400 from the acceptor becomes a ProtocolError on the proposer side."""
    async def reject_all(request):
        return httpx.Response(400, json={"detail": "Tipo de mensagem inesperado"})

    asgi_transport._client = httpx.AsyncClient(transport=httpx.MockTransport(reject_all))
    proposer = Proposer(identity(1), "K", [identity(1)], 1, asgi_transport, retry_backoff=(0, 0))

    with pytest.raises(ProtocolError):
        await proposer.run()
