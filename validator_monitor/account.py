"""Validator account identity (the raw 20-byte consensus address)."""

from __future__ import annotations

from dataclasses import dataclass

LENGTH = 20


class InvalidAccountId(ValueError):
    pass


@dataclass(frozen=True)
class AccountId:
    raw: bytes

    def __post_init__(self) -> None:
        if len(self.raw) != LENGTH:
            raise InvalidAccountId(f"invalid account ID length: expected {LENGTH} bytes, got {len(self.raw)}")

    @classmethod
    def from_hex(cls, value: str) -> AccountId:
        """Parse an upper- or lower-case hex string."""
        try:
            raw = bytes.fromhex(value.strip())
        except ValueError as exc:
            raise InvalidAccountId(f"invalid hex address: {value!r}") from exc
        return cls(raw)

    def matches(self, address: bytes) -> bool:
        return bytes(address) == self.raw

    def __str__(self) -> str:
        return self.raw.hex().upper()
