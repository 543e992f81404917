"""
Coletor de quórum: envia o mesmo pedido a N processos em paralelo e bloqueia até
que uma maioria de respostas (por contagem, não por identidade) tenha chegado.

O coletor não interpreta o conteúdo das respostas; quem chama decide o que é
rejeição através de um predicado opcional.
"""
import asyncio
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

import structlog

from common.models import ProcessIdentity
from common.wire import ProtocolError

log = structlog.get_logger(__name__)

Request = Callable[[ProcessIdentity], Awaitable[Any]]


class QuorumTimeoutError(Exception):
    """A fase não alcançou o quórum dentro do tempo configurado."""

    def __init__(self, quorum_size: int, received: int, timeout: float):
        super().__init__(
            f"Quórum de {quorum_size} não alcançado em {timeout:.2f}s ({received} respostas)"
        )
        self.quorum_size = quorum_size
        self.received = received
        self.timeout = timeout


class QuorumResult:
    """Fotografia do coletor no momento em que a espera terminou."""

    def __init__(self, replies: List[Any], rejections: List[Any],
                 failures: Dict[int, str], pending: List[int]):
        self.replies = replies
        self.rejections = rejections
        self.failures = failures
        self.pending = pending

    def __repr__(self) -> str:
        return (f"QuorumResult(replies={len(self.replies)}, rejections={len(self.rejections)}, "
                f"failures={sorted(self.failures)}, pending={sorted(self.pending)})")


class QuorumCollector:
    """
    Coletor de respostas de uso único.

    Respostas entram numa lista apenas de acréscimo, preenchida por uma tarefa
    por destino; a espera é feita num asyncio.Event, sem polling. Destinos que
    falham (conexão recusada, timeout do transporte) não contam para o quórum.
    """

    def __init__(self, quorum_size: int,
                 is_rejection: Optional[Callable[[Any], bool]] = None,
                 timeout: Optional[float] = None):
        """
        Inicializa o coletor.

        Args:
            quorum_size: Número de respostas que libera a espera
            is_rejection: Predicado que marca uma resposta como rejeição
            timeout: Limite de espera em segundos (None espera para sempre)
        """
        if quorum_size < 1:
            raise ValueError("quorum_size deve ser positivo")

        self.quorum_size = quorum_size
        self.is_rejection = is_rejection
        self.timeout = timeout

        self.replies: List[Any] = []
        self.rejections: List[Any] = []
        self.failures: Dict[int, str] = {}

        self._tasks: Dict[int, asyncio.Task] = {}
        self._finished = 0
        self._quorum_event: Optional[asyncio.Event] = None
        self._fatal: Optional[ProtocolError] = None

    @property
    def reached(self) -> bool:
        return len(self.replies) >= self.quorum_size

    async def collect(self, peers: Iterable[ProcessIdentity], request: Request) -> QuorumResult:
        """
        Envia o pedido a todos os destinos e aguarda o quórum.

        Args:
            peers: Destinos do broadcast
            request: Corrotina que envia o pedido a um destino e devolve a resposta

        Returns:
            QuorumResult: Respostas coletadas até o momento em que o quórum foi atingido

        Raises:
            ProtocolError: Se algum destino devolver uma mensagem inválida
            QuorumTimeoutError: Se houver timeout configurado e ele expirar
        """
        if self._quorum_event is not None:
            raise RuntimeError("QuorumCollector só pode ser usado uma vez")

        self._quorum_event = asyncio.Event()
        for peer in peers:
            self._tasks[peer.id] = asyncio.create_task(self._deliver(peer, request))

        if len(self._tasks) < self.quorum_size:
            log.warning("Destinos insuficientes para o quórum",
                        peers=len(self._tasks), quorum_size=self.quorum_size)

        try:
            if self.timeout is None:
                await self._quorum_event.wait()
            else:
                try:
                    await asyncio.wait_for(self._quorum_event.wait(), self.timeout)
                except asyncio.TimeoutError:
                    raise QuorumTimeoutError(self.quorum_size, len(self.replies), self.timeout)

            if self._fatal is not None:
                raise self._fatal

            return QuorumResult(
                replies=list(self.replies),
                rejections=list(self.rejections),
                failures=dict(self.failures),
                pending=[peer_id for peer_id, task in self._tasks.items() if not task.done()],
            )
        finally:
            await self._cancel_pending()

    async def _deliver(self, peer: ProcessIdentity, request: Request) -> None:
        try:
            reply = await request(peer)
        except ProtocolError as e:
            self._fatal = e
            self._quorum_event.set()
            return
        except Exception as e:
            self.failures[peer.id] = f"{type(e).__name__}: {e}"
            log.warning("Destino sem resposta", peer_id=peer.id, address=peer.address, error=str(e))
        else:
            self.replies.append(reply)
            if self.is_rejection is not None and self.is_rejection(reply):
                self.rejections.append(reply)
            if self.reached:
                self._quorum_event.set()

        self._finished += 1
        if self._finished == len(self._tasks) and not self._quorum_event.is_set():
            # Sem timeout configurado, a espera continua indefinidamente
            log.warning("Todos os destinos terminaram sem quórum",
                        replies=len(self.replies), failures=len(self.failures),
                        quorum_size=self.quorum_size)

    async def _cancel_pending(self) -> None:
        pending = [task for task in self._tasks.values() if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
