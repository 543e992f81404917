"""
Acceptor module for single-decree Paxos.

The acceptor acts as the "memory" of the consensus: it votes on proposals from
proposers and keeps the state that guarantees at most one value is chosen.

Key responsibilities:
- Process "prepare" requests from proposers
- Process "accept" requests from proposers
- Serialize every change to its state under a single lock
- Log the moment a value is accepted
"""

__version__ = "1.0.0"
