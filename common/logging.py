"""
File: common/logging.py
Sistema de logging unificado para todos os componentes.
Logs em JSON, nível IMPORTANT para eventos do protocolo e buffer em memória para o endpoint /logs.
"""
import os
import sys
import json
import time
import logging
import datetime
from typing import Dict, Any, List, Optional, Union
from logging.handlers import RotatingFileHandler
from collections import deque

import structlog

from common.models import Action, MessageType, ProposalNumber
from common.wire import encode_fields

# Configuração via ambiente
DEBUG = os.getenv("DEBUG", "false").lower() in ("true", "1", "yes")
LOG_DIR = os.getenv("LOG_DIR")

# Níveis de log
LEVELS = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "IMPORTANT": 25,  # Nível customizado entre INFO e WARNING
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL
}
IMPORTANT = LEVELS["IMPORTANT"]

logging.addLevelName(IMPORTANT, "IMPORTANT")

# Logger dedicado às linhas de evento do protocolo (sent/received/chose)
EVENTS_LOGGER = "paxos.events"
events_logger = logging.getLogger(EVENTS_LOGGER)

# Buffer circular para logs em memória
log_buffer: Dict[str, deque] = {}  # component -> deque(log entries)
log_buffer_size = 1000  # Tamanho máximo do buffer por componente

# Timestamp de início para cálculo de uptime
start_time = time.time()

def setup_logging(component_name: str, debug: bool = None, log_dir: str = None) -> logging.Logger:
    """
    Configura o sistema de logging para um componente.

    Args:
        component_name: Nome do componente
        debug: Se True, habilita logs de DEBUG (sobrescreve variável de ambiente)
        log_dir: Diretório para salvar logs (sobrescreve variável de ambiente; None desativa arquivos)

    Returns:
        logging.Logger: Logger do componente
    """
    debug_enabled = debug if debug is not None else DEBUG
    logs_directory = log_dir if log_dir is not None else LOG_DIR
    level = logging.DEBUG if debug_enabled else logging.INFO

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Remove handlers existentes
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    # Console: JSON por linha
    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(JsonFormatter(component_name, detailed=debug_enabled))
    root_logger.addHandler(console_handler)

    if logs_directory:
        os.makedirs(logs_directory, exist_ok=True)

        all_log_file = os.path.join(logs_directory, f"{component_name}_all.log")
        file_handler = RotatingFileHandler(
            all_log_file,
            maxBytes=10 * 1024 * 1024,  # 10 MB
            backupCount=5
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(JsonFormatter(component_name, detailed=True))
        root_logger.addHandler(file_handler)

        # Somente eventos do protocolo e acima
        events_log_file = os.path.join(logs_directory, f"{component_name}_events.log")
        events_handler = RotatingFileHandler(
            events_log_file,
            maxBytes=10 * 1024 * 1024,
            backupCount=5
        )
        events_handler.setLevel(IMPORTANT)
        events_handler.setFormatter(JsonFormatter(component_name, detailed=True))
        root_logger.addHandler(events_handler)

    # Buffer em memória para o endpoint /logs
    log_buffer[component_name] = deque(maxlen=log_buffer_size)
    buffer_handler = BufferHandler(component_name)
    buffer_handler.setLevel(level)
    root_logger.addHandler(buffer_handler)

    configure_structlog()

    logger = logging.getLogger(component_name)
    logger.info(f"Logging inicializado para {component_name}. Debug: {debug_enabled}, Diretório: {logs_directory}")

    return logger

def configure_structlog() -> None:
    """
    Faz o structlog renderizar pelo logging padrão, levando os pares chave/valor
    para o campo "context" do JsonFormatter.
    """
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.format_exc_info,
            _to_stdlib_context,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
    )

def _to_stdlib_context(logger, method_name: str, event_dict: Dict[str, Any]) -> Dict[str, Any]:
    event = event_dict.pop("event", "")
    exc_text = event_dict.pop("exception", None)
    if exc_text:
        event = f"{event}\n{exc_text}"
    return {"msg": event, "extra": {"context": event_dict}}

def log_event(peer_id: int, action: Union[Action, str], message_type: Union[MessageType, str],
              value: Optional[str], proposal_number: Optional[ProposalNumber]) -> str:
    """
    Registra um evento do protocolo no formato de linha do fio.

    Args:
        peer_id: ID do outro processo envolvido (destino em "sent", origem em "received")
        action: sent, received ou chose
        message_type: Tipo de mensagem
        value: Valor carregado (None vira "n/a")
        proposal_number: Número de proposta carregado (None vira 0.0)

    Returns:
        str: A linha registrada
    """
    action = getattr(action, "value", action)
    message_type = getattr(message_type, "value", message_type)
    line = encode_fields(peer_id, action, message_type, value, proposal_number)
    events_logger.log(IMPORTANT, line, extra={"context": {
        "peer_id": peer_id,
        "action": action,
        "message_type": message_type,
        "message_value": value,
        "proposal_number": str(proposal_number) if proposal_number is not None else None,
    }})
    return line

def add_to_buffer(component: str, record: logging.LogRecord):
    """
    Adiciona um registro de log ao buffer circular.

    Args:
        component: Nome do componente
        record: Registro de log
    """
    if component not in log_buffer:
        log_buffer[component] = deque(maxlen=log_buffer_size)

    log_entry = {
        "timestamp": int(record.created * 1000),  # milissegundos
        "level": record.levelname,
        "component": component,
        "logger": record.name,
        "message": record.getMessage(),
        "module": record.module,
        "lineno": record.lineno,
        "context": getattr(record, "context", None)
    }

    log_buffer[component].append(log_entry)

def get_log_entries(component: str, level: str = None, limit: int = 100) -> List[Dict[str, Any]]:
    """
    Obtém registros de log do buffer.

    Args:
        component: Nome do componente
        level: Filtro opcional por nível de log
        limit: Número máximo de registros a retornar

    Returns:
        List[Dict[str, Any]]: Lista de registros de log (mais recentes primeiro)
    """
    if component not in log_buffer:
        return []

    entries = list(log_buffer[component])

    if level:
        entries = [e for e in entries if e["level"] == level.upper()]

    entries.reverse()

    return entries[:limit]

def get_uptime() -> float:
    """Retorna o tempo de execução em segundos."""
    return time.time() - start_time

class BufferHandler(logging.Handler):
    """Handler que copia cada registro para o buffer do componente."""

    def __init__(self, component: str):
        super().__init__()
        self.component = component

    def emit(self, record: logging.LogRecord) -> None:
        add_to_buffer(self.component, record)

class JsonFormatter(logging.Formatter):
    """
    Formatador que converte logs para formato JSON.
    """

    def __init__(self, component: str, detailed: bool = False):
        """
        Inicializa o formatador.

        Args:
            component: Nome do componente
            detailed: Se True, inclui campos adicionais no log
        """
        super().__init__()
        self.component = component
        self.detailed = detailed

    def format(self, record: logging.LogRecord) -> str:
        """
        Formata um registro de log como JSON.

        Args:
            record: Registro de log

        Returns:
            str: JSON formatado
        """
        log_data = {
            "timestamp": int(record.created * 1000),  # milissegundos
            "datetime": datetime.datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "component": self.component,
            "logger": record.name,
            "message": record.getMessage()
        }

        if self.detailed:
            log_data.update({
                "module": record.module,
                "function": record.funcName,
                "lineno": record.lineno,
                "thread": record.thread,
                "process": record.process
            })

        context = getattr(record, "context", None)
        if context:
            log_data["context"] = context

        if record.exc_info:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": self.formatException(record.exc_info)
            }

        return json.dumps(log_data, default=str)
