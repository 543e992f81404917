"""
Configurações para o componente Acceptor.
"""
from common.utils import get_env_int, get_env_str


# Informações do nó
NODE_ID = get_env_int("NODE_ID", 1)
NODE_ADDRESS = get_env_str("NODE_ADDRESS", "localhost")

# Configurações do servidor (mesma porta em todos os processos)
HOST = get_env_str("HOST", "0.0.0.0")
PORT = get_env_int("PORT", 7000)

# Diretório de logs (None mantém apenas o console)
LOG_DIR = get_env_str("LOG_DIR")
