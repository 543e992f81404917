import asyncio
import logging
import os
from typing import Any, Optional

logger = logging.getLogger(__name__)

def get_env_var(var_name: str, default: Any = None) -> Any:
    """
    Obtém uma variável de ambiente, com valor padrão opcional.

    Args:
        var_name: Nome da variável de ambiente
        default: Valor padrão caso a variável não exista

    Returns:
        Valor da variável de ambiente ou o valor padrão
    """
    return os.environ.get(var_name, default)

def get_env_str(var_name: str, default: Optional[str] = None) -> Optional[str]:
    """Obtém uma variável de ambiente como string (vazia conta como ausente)."""
    value = get_env_var(var_name)
    if value is None or value.strip() == "":
        return default
    return value.strip()

def get_env_int(var_name: str, default: Optional[int] = None) -> Optional[int]:
    """
    Obtém uma variável de ambiente como inteiro.

    Args:
        var_name: Nome da variável de ambiente
        default: Valor padrão caso a variável não exista

    Returns:
        int: Valor convertido ou o valor padrão

    Raises:
        ValueError: Se a variável existir mas não for um inteiro válido
    """
    value = get_env_str(var_name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Variável {var_name} deve ser um inteiro, recebido: {value!r}")

def get_env_float(var_name: str, default: Optional[float] = None) -> Optional[float]:
    """
    Obtém uma variável de ambiente como float.

    Args:
        var_name: Nome da variável de ambiente
        default: Valor padrão caso a variável não exista

    Returns:
        float: Valor convertido ou o valor padrão

    Raises:
        ValueError: Se a variável existir mas não for um número válido
    """
    value = get_env_str(var_name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"Variável {var_name} deve ser um número, recebido: {value!r}")

def get_debug_mode() -> bool:
    """
    Verifica se o modo de depuração está ativado.

    Returns:
        bool: True se o modo de depuração estiver ativado, False caso contrário
    """
    debug_env = get_env_var("DEBUG", "false").lower()
    return debug_env in ("true", "1", "yes")

class RoundCounter:
    """
    Contador monotônico de rodadas usado na geração de números de proposta.
    Nunca retrocede: cada valor entregue por get_next é maior que todos os anteriores.
    """

    def __init__(self, initial_value: int = 0):
        """
        Inicializa o contador.

        Args:
            initial_value: Valor inicial do contador
        """
        self.value = initial_value
        self.lock = asyncio.Lock()

    async def get_next(self) -> int:
        """
        Obtém o próximo valor do contador de forma segura entre tarefas.

        Returns:
            int: Próximo valor do contador
        """
        async with self.lock:
            self.value += 1
            return self.value

    async def update_if_greater(self, new_value: int) -> int:
        """
        Atualiza o contador se o novo valor for maior que o valor atual.

        Args:
            new_value: Rodada observada em alguma resposta

        Returns:
            int: Valor atual do contador após a possível atualização
        """
        async with self.lock:
            if new_value > self.value:
                self.value = new_value
            return self.value

    def get_current(self) -> int:
        """Obtém o valor atual do contador."""
        return self.value
