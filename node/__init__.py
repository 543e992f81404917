"""
Entry point for a single-decree Paxos process.

Reads the hosts file, finds this host's role (proposer or acceptor) and starts it.
"""

__version__ = "1.0.0"
