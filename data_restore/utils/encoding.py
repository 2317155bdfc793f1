"""
Hex helpers for addresses and hashes.
"""

def to_hex(data: bytes) -> str:
    """Hex-encode bytes with a 0x prefix."""
    return '0x' + data.hex()

def from_hex(value: str) -> bytes:
    """Decode a hex string, with or without a 0x prefix."""
    if value.startswith(('0x', '0X')):
        value = value[2:]
    return bytes.fromhex(value)
