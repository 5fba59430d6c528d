from __future__ import annotations

import math
import random
from dataclasses import dataclass

from .config import GOLDEN_GAMMA

MASK32 = 0xFFFFFFFF
UINT32_MAX = float(MASK32)


@dataclass
class XorShift32:
    """A tiny seeded RNG.

    32-bit xorshift:
      s ^= s << 13; s ^= s >> 17; s ^= s << 5   (all wrapped to 32 bits)
      next = s / (2**32 - 1)          in (0, 1]; 1.0 when s == 0xFFFFFFFF

    The all-zero state is a fixed point of xorshift, so a seed that reduces to
    zero is replaced by a non-zero constant. Not cryptographically secure; it
    exists only to make simulations reproducible.
    """

    state: int

    def __post_init__(self) -> None:
        self.state = int(self.state) & MASK32
        if self.state == 0:
            self.state = GOLDEN_GAMMA

    def next(self) -> float:
        s = self.state
        s = (s ^ (s << 13)) & MASK32
        s ^= s >> 17
        s = (s ^ (s << 5)) & MASK32
        self.state = s
        return s / UINT32_MAX


def box_muller(rng: XorShift32) -> float:
    """One standard-normal draw from two uniforms (no caching of the pair)."""
    u = 0.0
    v = 0.0
    while u == 0.0:
        u = rng.next()
    while v == 0.0:
        v = rng.next()
    return math.sqrt(-2.0 * math.log(u)) * math.cos(2.0 * math.pi * v)


def hash_str(s: str) -> int:
    """31-multiplier string hash, as an unsigned 32-bit integer."""
    h = 0
    for ch in s:
        h = (h * 31 + ord(ch)) & MASK32
    return h


def mix_seed(*parts: int) -> int:
    """XOR-combine seed parts (seed, then key hash, then index) into one 32-bit seed."""
    out = 0
    for p in parts:
        out ^= int(p) & MASK32
    return out & MASK32


def generate_seed() -> int:
    return int(random.random() * 1_000_000_000)
