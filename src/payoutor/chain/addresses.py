from __future__ import annotations

from eth_utils import is_hex_address, to_checksum_address


def normalize_address(raw_value: str, *, field_name: str) -> str:
    candidate = raw_value.strip()
    if not candidate:
        raise ValueError(f"{field_name} is required")

    if not is_hex_address(candidate):
        raise ValueError(f"{field_name} must be a valid 20-byte hex account address")
    return to_checksum_address(candidate)


def short_address(address: str) -> str:
    return f"{address[:6]}...{address[-4:]}"
