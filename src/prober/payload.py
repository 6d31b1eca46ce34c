"""
Random JSON payload generation for probes.
"""

import random
import string
from datetime import UTC, datetime
from typing import Any

ADJECTIVES = ["fast", "slow", "large", "small", "complex", "simple", "heavy", "light"]
NOUNS = ["request", "payload", "data", "package", "message", "packet", "bundle", "container"]
COLORS = ["red", "blue", "green", "yellow", "purple", "orange", "black", "white"]

_ID_ALPHABET = string.ascii_lowercase + string.digits


def random_token(length: int = 13, rng: random.Random | None = None) -> str:
    rng = rng or random
    return "".join(rng.choice(_ID_ALPHABET) for _ in range(length))


def generate_payload(
    environment: str = "development",
    rng: random.Random | None = None,
    now: datetime | None = None,
) -> dict[str, Any]:
    """Build a payload with a fixed structure and random field values

    Args:
        environment: Value reported in the metadata block
        rng: Optional seeded generator for reproducible payloads
        now: Optional timestamp override
    """
    rng = rng or random
    now = now or datetime.now(UTC)

    return {
        "timestamp": now.isoformat(),
        "requestId": random_token(rng=rng),
        "metadata": {
            "source": "probe-monitor",
            "version": "1.0.0",
            "environment": environment,
        },
        "data": {
            "type": rng.choice(NOUNS),
            "size": rng.choice(ADJECTIVES),
            "color": rng.choice(COLORS),
            "random": rng.random(),
            "counter": rng.randint(0, 999),
        },
        "nested": {
            "level1": {
                "level2": {
                    "value": random_token(length=11, rng=rng),
                    "timestamp": int(now.timestamp() * 1000),
                }
            }
        },
    }
