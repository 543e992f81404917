import logging
import time
from typing import Optional

from fastapi import FastAPI, HTTPException, Request, Response
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from acceptor.acceptor import Acceptor
from common.logging import get_log_entries, get_uptime
from common.models import HealthResponse, ProcessIdentity, StatusResponse
from common.wire import ProtocolError

# Configura o logger
logger = logging.getLogger(__name__)

# Variável global para a instância do Acceptor
acceptor: Optional[Acceptor] = None

# Nome do componente no buffer de logs
component_name: str = "acceptor"

# Cria a aplicação FastAPI
app = FastAPI(title="Paxos Acceptor")

# Middleware para logging de requisições
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.debug(f"Requisição recebida: {request.method} {request.url.path}")
    response = await call_next(request)
    logger.debug(f"Resposta enviada: {response.status_code}")
    return response

def _require_acceptor() -> Acceptor:
    if not acceptor:
        raise HTTPException(status_code=500, detail="Acceptor não inicializado")
    return acceptor

# Rotas da API
@app.post("/message", response_class=PlainTextResponse)
async def message_endpoint(request: Request):
    """
    Endpoint que recebe uma mensagem do protocolo (prepare ou accept) em texto
    e devolve a resposta correspondente (prepare_ack ou accept_ack).
    """
    current = _require_acceptor()
    try:
        body = (await request.body()).decode("utf-8")
    except UnicodeDecodeError as e:
        logger.error(f"Mensagem com codificação inválida: {e}")
        raise HTTPException(status_code=400, detail=f"Mensagem não é UTF-8 válido: {e}")

    try:
        reply = await current.handle_raw(body)
    except ProtocolError as e:
        logger.error(f"Violação do protocolo: {e}")
        raise HTTPException(status_code=400, detail=str(e))

    return PlainTextResponse(reply)

@app.get("/status", response_model=StatusResponse)
async def status_endpoint():
    """
    Endpoint para obter o estado do acceptor.
    """
    return _require_acceptor().get_status()

@app.get("/health", response_model=HealthResponse)
async def health_endpoint():
    """
    Endpoint para verificar a saúde do acceptor.
    """
    return {
        "status": "healthy",
        "timestamp": time.time()
    }

@app.get("/metrics")
async def metrics_endpoint():
    """
    Expõe métricas no formato Prometheus.
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

@app.get("/logs")
async def logs_endpoint(lines: int = 100, level: Optional[str] = None):
    """
    Endpoint para obter os logs mais recentes do componente.
    """
    return {
        "component": component_name,
        "uptime_seconds": get_uptime(),
        "entries": get_log_entries(component_name, level=level, limit=lines)
    }

# Funções para inicialização
def initialize(identity: ProcessIdentity, debug: bool = False, component: str = None) -> Acceptor:
    """
    Inicializa o acceptor servido por esta aplicação.

    Args:
        identity: Identidade do processo
        debug: Flag para ativar modo de depuração
        component: Nome do componente usado no buffer de logs

    Returns:
        Acceptor: Instância criada
    """
    global acceptor, component_name

    acceptor = Acceptor(identity, debug)
    component_name = component or f"acceptor_{identity.id}"

    logger.info(f"Acceptor {identity.id} inicializado em {identity.address} (debug={debug})")
    return acceptor
