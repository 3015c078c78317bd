"""Identifier generation for runs, comments and fallback result records."""

import random
import string
import time
import uuid
from typing import Optional

_BASE36 = string.digits + string.ascii_lowercase


def _now_ms() -> int:
    return int(time.time() * 1000)


def _base36(rng: random.Random, length: int) -> str:
    return "".join(rng.choice(_BASE36) for _ in range(length))


def generate_run_id(rng: Optional[random.Random] = None) -> str:
    """
    Generate an opaque run identifier.

    Without an injected generator a cryptographically random UUID is used.
    A seeded generator yields a reproducible UUID-shaped id. When the
    platform has no randomness source a time+random string is returned.
    """
    if rng is not None:
        return str(uuid.UUID(int=rng.getrandbits(128), version=4))
    try:
        return str(uuid.uuid4())
    except NotImplementedError:
        return f"run-{_now_ms()}-{_base36(random.Random(), 6)}"


def generate_comment_id(rng: random.Random) -> str:
    return f"c{_now_ms()}{rng.randint(0, 999)}"


def local_result_id() -> str:
    """Synthetic id used when the created result record cannot be located."""
    return f"local-{_now_ms()}"
