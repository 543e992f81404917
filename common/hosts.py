"""
Leitura do arquivo de hosts que define os processos e seus papéis.

Uma linha por processo:

    peer1:proposer1
    peer2:acceptor1
    peer3:acceptor1,acceptor2
    peer4:acceptor2
    peer5:proposer2

O ID do processo são os dígitos finais do hostname. O proposer N usa como
acceptors ele mesmo e todos os hosts marcados com acceptorN. Um sufixo
"@endereço" no hostname (peer1@127.0.0.1:7001) substitui o endereço de rede.
"""
import re
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel

from common.models import ProcessIdentity, Role

_TRAILING_DIGITS = re.compile(r"(\d+)$")
_ROLE_ENTRY = re.compile(r"^([a-z]+)(\d*)$")


class HostsFileError(ValueError):
    """Arquivo de hosts ilegível ou mal formado."""


class HostEntry(BaseModel):
    """Uma linha do arquivo de hosts."""
    name: str
    address: str
    id: int
    roles: List[str]

    @property
    def role(self) -> Role:
        return Role(_ROLE_ENTRY.match(self.roles[0]).group(1))

    def group(self, role: Role) -> Optional[int]:
        """Número associado ao primeiro papel `role` da linha (proposer1 -> 1)."""
        for entry in self.roles:
            match = _ROLE_ENTRY.match(entry)
            if match.group(1) == role.value and match.group(2):
                return int(match.group(2))
        return None

    def has_role(self, role: Role, group: int) -> bool:
        return f"{role.value}{group}" in self.roles

    def identity(self) -> ProcessIdentity:
        return ProcessIdentity(id=self.id, address=self.address)


class HostsConfig(BaseModel):
    """Configuração estática de todos os processos da execução."""
    entries: List[HostEntry]

    @property
    def total_processes(self) -> int:
        return len(self.entries)

    def entry(self, name: str) -> HostEntry:
        for entry in self.entries:
            if entry.name == name:
                return entry
        raise HostsFileError(f"Host {name!r} não encontrado no arquivo de hosts")

    def identity(self, name: str) -> ProcessIdentity:
        return self.entry(name).identity()

    def role_of(self, name: str) -> Role:
        return self.entry(name).role

    def proposer_number(self, name: str) -> int:
        number = self.entry(name).group(Role.PROPOSER)
        if number is None:
            raise HostsFileError(f"Host {name!r} não é um proposer")
        return number

    def acceptors_for(self, name: str) -> List[ProcessIdentity]:
        """
        Conjunto de acceptors de um proposer: o próprio proposer primeiro,
        seguido dos hosts marcados com acceptor<N>.
        """
        me = self.entry(name)
        number = self.proposer_number(name)
        acceptors = [me.identity()]
        for entry in self.entries:
            if entry.name != me.name and entry.has_role(Role.ACCEPTOR, number):
                acceptors.append(entry.identity())
        return acceptors


def _parse_line(line: str, lineno: int) -> HostEntry:
    host_part, sep, roles_part = line.rpartition(":")
    if not sep or not host_part or not roles_part:
        raise HostsFileError(f"Linha {lineno}: esperado '<host>:<papel>', recebido {line!r}")

    name, _, address = host_part.partition("@")
    name = name.strip()
    address = address.strip() or name

    id_match = _TRAILING_DIGITS.search(name)
    if not id_match:
        raise HostsFileError(f"Linha {lineno}: hostname {name!r} não termina com o ID do processo")

    roles = [role.strip() for role in roles_part.split(",") if role.strip()]
    if not roles:
        raise HostsFileError(f"Linha {lineno}: nenhum papel informado")
    for role in roles:
        match = _ROLE_ENTRY.match(role)
        if not match or match.group(1) not in (Role.PROPOSER.value, Role.ACCEPTOR.value):
            raise HostsFileError(f"Linha {lineno}: papel desconhecido {role!r}")

    return HostEntry(name=name, address=address, id=int(id_match.group(1)), roles=roles)


def parse_hosts(text: str) -> HostsConfig:
    """
    Interpreta o conteúdo de um arquivo de hosts.

    Linhas vazias e linhas começando com '#' são ignoradas.

    Raises:
        HostsFileError: Se alguma linha estiver mal formada ou houver IDs repetidos
    """
    entries = []
    for lineno, raw in enumerate(text.splitlines(), start=1):
        line = raw.strip()
        if not line or line.startswith("#"):
            continue
        entries.append(_parse_line(line, lineno))

    seen = {}
    for entry in entries:
        if entry.id in seen:
            raise HostsFileError(f"ID {entry.id} repetido em {seen[entry.id]!r} e {entry.name!r}")
        seen[entry.id] = entry.name

    return HostsConfig(entries=entries)


def load_hosts(path: str) -> HostsConfig:
    """
    Lê e interpreta um arquivo de hosts.

    Raises:
        HostsFileError: Se o arquivo não puder ser lido ou estiver mal formado
    """
    try:
        text = Path(path).read_text()
    except OSError as e:
        raise HostsFileError(f"Erro ao ler arquivo de hosts {path}: {e}")
    return parse_hosts(text)
