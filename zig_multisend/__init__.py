"""
ZIG Multisend: Batch payment tool for ZIGChain.

Reads a CSV/JSON recipient list and pays every recipient in a single
cosmos.bank MsgMultiSend, so the whole batch lands atomically or not at all.
"""

__version__ = "0.1.0"
