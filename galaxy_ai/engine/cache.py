"""
Canonical state keys and the evaluation cache.

A key is a compact byte string holding every piece of state the value
features depend on, as seen from one viewpoint: the location, owner, goods
and visibility of every card, each player's counters, and the shared pools.
Keys are hashed with a 64-bit avalanche mix into a fixed number of buckets;
chains compare full keys, so a hash collision never aliases two states.
"""
import struct
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from galaxy_ai.core.constants import CLOCK_ROUND_LIMIT
from galaxy_ai.core.game import GameState

MASK64 = 0xFFFFFFFFFFFFFFFF
GOLDEN = 0x9E3779B97F4A7C13
NUM_BUCKETS = 0x10000


def mix(a: int, b: int, c: int):
    """Mix three 64-bit values reversibly."""
    a = (a - b - c) & MASK64
    a ^= c >> 43
    b = (b - c - a) & MASK64
    b ^= (a << 9) & MASK64
    c = (c - a - b) & MASK64
    c ^= b >> 8
    a = (a - b - c) & MASK64
    a ^= c >> 38
    b = (b - c - a) & MASK64
    b ^= (a << 23) & MASK64
    c = (c - a - b) & MASK64
    c ^= b >> 5
    a = (a - b - c) & MASK64
    a ^= c >> 35
    b = (b - c - a) & MASK64
    b ^= (a << 49) & MASK64
    c = (c - a - b) & MASK64
    c ^= b >> 11
    a = (a - b - c) & MASK64
    a ^= c >> 12
    b = (b - c - a) & MASK64
    b ^= (a << 18) & MASK64
    c = (c - a - b) & MASK64
    c ^= b >> 22
    return a, b, c


def gen_hash(key: bytes) -> int:
    """
    Hash a byte string to 64 bits.

    The key is consumed in 24-byte blocks of three little-endian words; the
    tail is folded in with the length occupying the low byte of the third
    word.
    """
    a = b = GOLDEN
    c = 0
    length = len(key)
    pos = 0

    while length - pos >= 24:
        a = (a + int.from_bytes(key[pos:pos + 8], 'little')) & MASK64
        b = (b + int.from_bytes(key[pos + 8:pos + 16], 'little')) & MASK64
        c = (c + int.from_bytes(key[pos + 16:pos + 24], 'little')) & MASK64
        a, b, c = mix(a, b, c)
        pos += 24

    c = (c + length) & MASK64
    tail = key[pos:]
    if len(tail) > 16:
        c = (c + (int.from_bytes(tail[16:23], 'little') << 8)) & MASK64
    if len(tail) > 8:
        b = (b + int.from_bytes(tail[8:16], 'little')) & MASK64
    if tail:
        a = (a + int.from_bytes(tail[:8], 'little')) & MASK64
    a, b, c = mix(a, b, c)
    return c


def _bits(flags: List[bool]) -> int:
    value = 0
    for i, flag in enumerate(flags):
        if flag:
            value |= 1 << i
    return value


def canonical_key(state: GameState, who: int) -> bytes:
    """
    Build the canonical byte key of a state from a viewpoint.

    The observer whose knowledge decides which cards count as known is the
    searching player in hypothetical play and the viewpoint otherwise.

    Args:
        state: Game state
        who: Viewpoint player

    Returns:
        Key bytes
    """
    observer = state.sim_who if state.simulation else who
    parts = [struct.pack(
        '<BBBhBIIB',
        who,
        observer + 1,
        int(state.game_over),
        state.vp_pool,
        min(state.round, CLOCK_ROUND_LIMIT + 1),
        _bits(state.goal_active),
        _bits(state.goal_avail),
        int(state.oort_kind),
    )]

    card_bytes = bytearray()
    for card in state.cards:
        card_bytes.append(((card.owner + 1) << 4) | int(card.where))
        card_bytes.append(min(card.num_goods, 255))
        card_bytes.append((card.known >> observer) & 1 if observer >= 0 else 0)
    parts.append(bytes(card_bytes))

    for player in state.players:
        parts.append(struct.pack(
            '<hhBHhhBBIB',
            player.vp,
            player.prestige,
            int(player.prestige_action_used),
            min(player.drawn_round, 0xFFFF),
            player.fake_hand,
            player.fake_discards,
            int(player.skip_develop),
            int(player.skip_settle),
            _bits(player.goal_claimed),
            int(player.winner),
        ))
        if player.temp:
            parts.append(";".join(f"{k}={v}" for k, v in sorted(player.temp.items())).encode())
        parts.append(b"|")

    return b"".join(parts)


def placement_key(state: GameState, who: int, opponent: int, card: int, special: int = -1) -> bytes:
    """Key for the value of an opponent placing one card (-1: placing nothing)."""
    return canonical_key(state, who) + struct.pack('<hhh', opponent, card, special)


@dataclass
class CacheEntry:
    """A cached value; ``value`` is None until it has been computed."""
    key: bytes
    value: Optional[Any] = None

    @property
    def valid(self) -> bool:
        return self.value is not None


class EvalCache:
    """
    Chained hash table of computed values.

    Entries are created on lookup with no value; the caller fills the value
    in once computed, so every key is computed at most once between clears.
    """

    def __init__(self, num_buckets: int = NUM_BUCKETS):
        self.num_buckets = num_buckets
        self._buckets: Dict[int, List[CacheEntry]] = {}
        self._size = 0
        self.hits = 0
        self.misses = 0

    def lookup(self, key: bytes) -> CacheEntry:
        """
        Find the entry for a key, creating an empty one if needed.

        Args:
            key: Canonical key

        Returns:
            The key's entry
        """
        bucket = gen_hash(key) % self.num_buckets
        chain = self._buckets.setdefault(bucket, [])
        for entry in chain:
            if entry.key == key:
                if entry.valid:
                    self.hits += 1
                else:
                    self.misses += 1
                return entry

        self.misses += 1
        entry = CacheEntry(key)
        chain.append(entry)
        self._size += 1
        return entry

    def clear(self) -> None:
        self._buckets.clear()
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def hit_ratio(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0
