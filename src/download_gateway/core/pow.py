"""Proof-of-Work helpers.

A challenge is a `(count, salt_length, difficulty)` descriptor plus a random
token. For each index `i` in `1..count` the salt and target are derived from
the token alone, so the browser can solve the puzzle without talking to the
server again:

    salt   = prng(token + str(i), salt_length)
    target = prng(token + str(i) + "d", difficulty)

A nonce solves sub-puzzle `i` when `sha256(salt + str(nonce))` in hex starts
with `target`. `prng` must stay bit-for-bit identical to the browser solver.
"""
from __future__ import annotations

import hashlib
import json
import secrets
from collections.abc import Iterator, Sequence
from dataclasses import dataclass

DEFAULT_CHALLENGE_COUNT = 50
DEFAULT_SALT_LENGTH = 32
DEFAULT_DIFFICULTY = 4
TOKEN_BYTES = 25

FNV_OFFSET_BASIS = 2166136261
UINT32_MASK = 0xFFFFFFFF
HEX_WORD_WIDTH = 8


@dataclass(frozen=True)
class PowChallenge:
    """Puzzle descriptor sent to clients as `{"c": ..., "s": ..., "d": ...}`."""

    count: int
    salt_length: int
    difficulty: int

    def to_wire(self) -> dict[str, int]:
        """Return the compact wire representation."""
        return {"c": self.count, "s": self.salt_length, "d": self.difficulty}

    def canonical_json(self) -> str:
        """Return the JSON form covered by the binding signature."""
        return json.dumps(self.to_wire(), separators=(",", ":"))

    @classmethod
    def from_wire(cls, data: dict[str, int]) -> PowChallenge:
        return cls(count=data["c"], salt_length=data["s"], difficulty=data["d"])


def fnv1a(seed: str) -> int:
    """Hash a string with 32-bit FNV-1a over its UTF-16 code units."""
    encoded = seed.encode("utf-16-le")
    value = FNV_OFFSET_BASIS
    for offset in range(0, len(encoded), 2):
        value ^= encoded[offset] | (encoded[offset + 1] << 8)
        value = (
            value + (value << 1) + (value << 4) + (value << 7) + (value << 8) + (value << 24)
        ) & UINT32_MASK
    return value


def prng(seed: str, length: int) -> str:
    """Return `length` deterministic hex characters derived from `seed`.

    Args:
        seed: Input string used to seed the generator.
        length: Number of hex characters to produce.

    Returns:
        Hex string built from xorshift32 words, each zero-padded to 8 digits.
    """
    state = fnv1a(seed)
    words: list[str] = []
    produced = 0
    while produced < length:
        state ^= (state << 13) & UINT32_MASK
        state ^= state >> 17
        state ^= (state << 5) & UINT32_MASK
        words.append(f"{state:0{HEX_WORD_WIDTH}x}")
        produced += HEX_WORD_WIDTH
    return "".join(words)[:length]


def new_token() -> str:
    """Return a fresh unguessable challenge token."""
    return secrets.token_hex(TOKEN_BYTES)


def create_challenge(
    count: int = DEFAULT_CHALLENGE_COUNT,
    salt_length: int = DEFAULT_SALT_LENGTH,
    difficulty: int = DEFAULT_DIFFICULTY,
) -> tuple[PowChallenge, str]:
    """Create a challenge descriptor and the token its puzzles derive from."""
    if count < 1 or salt_length < 1 or difficulty < 1:
        raise ValueError("count, salt_length and difficulty must be positive")
    return PowChallenge(count, salt_length, difficulty), new_token()


def derive_puzzle(token: str, index: int, challenge: PowChallenge) -> tuple[str, str]:
    """Return the `(salt, target)` pair for the 1-based sub-puzzle `index`."""
    salt = prng(f"{token}{index}", challenge.salt_length)
    target = prng(f"{token}{index}d", challenge.difficulty)
    return salt, target


def iter_puzzles(token: str, challenge: PowChallenge) -> Iterator[tuple[str, str]]:
    """Yield every `(salt, target)` pair of a challenge in order."""
    for index in range(1, challenge.count + 1):
        yield derive_puzzle(token, index, challenge)


def validate_solution(salt: str, target: str, nonce: int) -> bool:
    """Return True if `nonce` solves the puzzle defined by `salt` and `target`."""
    if nonce < 0:
        return False
    digest = hashlib.sha256(f"{salt}{nonce}".encode()).hexdigest()
    return digest.startswith(target)


def validate_solutions(token: str, challenge: PowChallenge, solutions: Sequence[int]) -> bool:
    """Validate one nonce per sub-puzzle.

    Returns:
        True only if exactly `challenge.count` nonces are supplied and each one
        solves its sub-puzzle; False otherwise.
    """
    if len(solutions) != challenge.count:
        return False
    return all(
        validate_solution(salt, target, nonce)
        for (salt, target), nonce in zip(iter_puzzles(token, challenge), solutions)
    )
