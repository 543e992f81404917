"""
Transporte HTTP usado pelo proposer para falar com os acceptors.

O contrato é send(peer, message) -> reply: uma mensagem por conexão e uma única
resposta. A política de retry de conexão fica aqui, não no coletor de quórum.
"""
import logging
from typing import Optional

import httpx
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_fixed

from common.models import Message, ProcessIdentity
from common.wire import ProtocolError, decode, encode

logger = logging.getLogger("transport")

MESSAGE_PATH = "/message"


class HttpTransport:
    """
    Transporte HTTP entre proposer e acceptors.

    Características:
    1. Keep-alive desativado: cada mensagem usa sua própria conexão
    2. Retry com espera fixa apenas para falhas de conexão
    3. Resposta 4xx do acceptor é tratada como violação do protocolo
    """

    def __init__(self, timeout: float = 5.0, retries: int = 3,
                 retry_wait: float = 0.5, default_port: int = 7000):
        """
        Inicializa o transporte.

        Args:
            timeout: Timeout de cada requisição em segundos
            retries: Número máximo de tentativas por mensagem
            retry_wait: Espera entre tentativas em segundos
            default_port: Porta usada quando o endereço do destino não traz uma
        """
        self.timeout = timeout
        self.retries = max(1, retries)
        self.retry_wait = retry_wait
        self.default_port = default_port
        self.limits = httpx.Limits(max_keepalive_connections=0)
        self._client: Optional[httpx.AsyncClient] = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Obtém o cliente HTTP assíncrono, criando-o se necessário."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout, limits=self.limits)
        return self._client

    async def close(self):
        """Fecha o cliente HTTP."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    def url_for(self, peer: ProcessIdentity) -> str:
        address = peer.address
        if ":" not in address:
            address = f"{address}:{self.default_port}"
        return f"http://{address}{MESSAGE_PATH}"

    async def send(self, peer: ProcessIdentity, message: Message) -> Message:
        """
        Envia uma mensagem a um acceptor e devolve a resposta decodificada.

        Args:
            peer: Destino
            message: Mensagem a enviar

        Returns:
            Message: Resposta do acceptor

        Raises:
            httpx.TransportError: Se todas as tentativas de conexão falharem
            ProtocolError: Se o destino recusar a mensagem ou responder fora do formato
        """
        url = self.url_for(peer)
        payload = encode(message)

        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self.retries),
            wait=wait_fixed(self.retry_wait),
            retry=retry_if_exception_type(httpx.TransportError),
            reraise=True,
        ):
            with attempt:
                if attempt.retry_state.attempt_number > 1:
                    logger.debug(f"Tentativa {attempt.retry_state.attempt_number} para {url}")
                response = await self.client.post(
                    url, content=payload, headers={"Content-Type": "text/plain"}
                )

        if 400 <= response.status_code < 500:
            raise ProtocolError(f"Processo {peer.id} recusou a mensagem: {response.text}")
        response.raise_for_status()
        return decode(response.text)
