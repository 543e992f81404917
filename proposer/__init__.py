"""
Proposer module for single-decree Paxos.

The proposer drives the two phases of the protocol until its value (or a value
already accepted by a majority) is chosen.
Key responsibilities:
- Generate unique, strictly increasing proposal numbers
- Broadcast prepare and accept requests to its acceptors
- Adopt the highest accepted value learned during prepare
- Detect rejections and retry with a higher number
"""

__version__ = "1.0.0"
