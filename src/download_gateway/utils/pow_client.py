"""Client-side proof-of-work utilities.

Mirrors the solver that runs in the browser so scripts and tests can redeem
download challenges the same way a real client does.
"""

from __future__ import annotations

from collections.abc import Callable

from download_gateway.core.pow import PowChallenge, iter_puzzles, validate_solution

MAX_SOLVE_ATTEMPTS = 10_000_000

ProgressCallback = Callable[[int, int], None]


class UnsolvableChallengeError(RuntimeError):
    """Raised when no nonce is found within the attempt budget."""


def solve_challenge(salt: str, target: str, max_attempts: int = MAX_SOLVE_ATTEMPTS) -> int:
    """Find the smallest nonce whose hash starts with `target`.

    Args:
        salt: Salt prepended to each nonce attempt.
        target: Hex prefix the SHA-256 digest must start with.
        max_attempts: Maximum number of nonces to try.

    Returns:
        The first nonce that solves the puzzle.

    Raises:
        UnsolvableChallengeError: If no solution is found within `max_attempts`.
    """
    for nonce in range(max_attempts):
        if validate_solution(salt, target, nonce):
            return nonce
    raise UnsolvableChallengeError(
        f"Failed to solve challenge with target {target} after {max_attempts} attempts"
    )


def solve_captcha(
    token: str,
    challenge: PowChallenge,
    on_progress: ProgressCallback | None = None,
    max_attempts: int = MAX_SOLVE_ATTEMPTS,
) -> list[int]:
    """Solve every sub-puzzle of a challenge in order.

    Args:
        token: Token returned alongside the challenge.
        challenge: Challenge descriptor issued by the server.
        on_progress: Optional callback invoked with `(solved, total)`.
        max_attempts: Per-puzzle attempt budget.

    Returns:
        One nonce per sub-puzzle.
    """
    solutions: list[int] = []
    if on_progress is not None:
        on_progress(0, challenge.count)
    for index, (salt, target) in enumerate(iter_puzzles(token, challenge), start=1):
        solutions.append(solve_challenge(salt, target, max_attempts))
        if on_progress is not None:
            on_progress(index, challenge.count)
    return solutions


def format_solutions(solutions: list[int]) -> str:
    """Encode nonces as the comma-separated list the verify endpoint expects."""
    return ",".join(str(nonce) for nonce in solutions)
