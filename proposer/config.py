"""
Configurações para o componente Proposer.
"""
from common.utils import get_env_float, get_env_int, get_env_str


# Informações do nó
NODE_ID = get_env_int("NODE_ID", 1)
NODE_ADDRESS = get_env_str("NODE_ADDRESS", "localhost")

# Configurações do servidor (o proposer também atende como acceptor)
HOST = get_env_str("HOST", "0.0.0.0")
PORT = get_env_int("PORT", 7000)

# Atraso fixo somado ao atraso pedido na linha de comando antes do primeiro PREPARE
START_GRACE = get_env_float("START_GRACE", 1.0)  # 1 segundo

# Configurações do Paxos
QUORUM_TIMEOUT = get_env_float("QUORUM_TIMEOUT")  # None: espera o quórum para sempre
RETRY_BACKOFF_MIN = get_env_float("RETRY_BACKOFF_MIN", 0.1)  # 100ms
RETRY_BACKOFF_MAX = get_env_float("RETRY_BACKOFF_MAX", 0.5)  # 500ms

# Configurações do transporte
SEND_TIMEOUT = get_env_float("SEND_TIMEOUT", 5.0)  # 5 segundos
SEND_RETRIES = get_env_int("SEND_RETRIES", 3)  # tentativas por mensagem
SEND_RETRY_WAIT = get_env_float("SEND_RETRY_WAIT", 0.5)  # 500ms

# Diretório de logs (None mantém apenas o console)
LOG_DIR = get_env_str("LOG_DIR")
