"""Philox4x32-10 counter-based generator and the value transforms built on it."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Tuple, Union

__all__ = [
    "CTR_SIZE",
    "KEY_SIZE",
    "RNGState",
    "philox4x32",
    "uniform_neg11",
    "box_muller",
]

CTR_SIZE = 4
KEY_SIZE = 2

_MASK32 = 0xFFFFFFFF
_MASK128 = (1 << 128) - 1
_M0 = 0xD2511F53
_M1 = 0xCD9E8D57
_W0 = 0x9E3779B9
_W1 = 0xBB67AE85
_ROUNDS = 10

Counter = Tuple[int, int, int, int]
Key = Tuple[int, int]


def _as_words(value: Union[int, Sequence[int]], size: int, what: str) -> Tuple[int, ...]:
    """Normalise an integer or a word sequence into ``size`` unsigned 32-bit words."""
    if isinstance(value, int):
        if value < 0 or value >> (32 * size):
            raise ValueError(f"{what} {value} does not fit in {size} 32-bit words")
        return tuple((value >> (32 * i)) & _MASK32 for i in range(size))
    words = tuple(value)
    if len(words) != size:
        raise ValueError(f"{what} must have {size} words, got {len(words)}")
    for word in words:
        if not isinstance(word, int) or not 0 <= word <= _MASK32:
            raise ValueError(f"{what} word {word!r} is not an unsigned 32-bit integer")
    return words


def _words_to_int(words: Sequence[int]) -> int:
    return sum(word << (32 * i) for i, word in enumerate(words))


@dataclass(frozen=True, init=False)
class RNGState:
    """A counter/key pair for the Philox4x32 generator.

    ``key`` and ``counter`` accept either an integer (split into little-endian
    32-bit words) or an explicit sequence of words.
    """

    counter: Counter
    key: Key

    def __init__(
        self,
        key: Union[int, Sequence[int]] = 0,
        counter: Union[int, Sequence[int]] = 0,
    ) -> None:
        object.__setattr__(self, "key", _as_words(key, KEY_SIZE, "key"))
        object.__setattr__(self, "counter", _as_words(counter, CTR_SIZE, "counter"))

    @property
    def counter_value(self) -> int:
        """The counter as one 128-bit integer."""
        return _words_to_int(self.counter)

    def incremented(self, n: int = 1) -> "RNGState":
        """Return a state whose counter is advanced by ``n`` (modulo 2**128)."""
        if n < 0:
            raise ValueError("counter increment must be nonnegative")
        value = (self.counter_value + n) & _MASK128
        return RNGState(key=self.key, counter=value)


def _mulhilo(a: int, b: int) -> Tuple[int, int]:
    product = a * b
    return (product >> 32) & _MASK32, product & _MASK32


def philox4x32(counter: Union[int, Sequence[int]], key: Union[int, Sequence[int]]) -> Counter:
    """Apply ten rounds of Philox4x32 to ``counter`` under ``key``."""
    c0, c1, c2, c3 = _as_words(counter, CTR_SIZE, "counter")
    k0, k1 = _as_words(key, KEY_SIZE, "key")
    for round_index in range(_ROUNDS):
        if round_index:
            k0 = (k0 + _W0) & _MASK32
            k1 = (k1 + _W1) & _MASK32
        hi0, lo0 = _mulhilo(_M0, c0)
        hi1, lo1 = _mulhilo(_M1, c2)
        c0, c1, c2, c3 = hi1 ^ c1 ^ k0, lo1, hi0 ^ c3 ^ k1, lo0
    return c0, c1, c2, c3


def _uneg11(word: int) -> float:
    signed = word - (1 << 32) if word & 0x80000000 else word
    return signed * 2.0**-31 + 2.0**-32


def _u01(word: int) -> float:
    return word * 2.0**-32 + 2.0**-33


def uniform_neg11(
    counter: Union[int, Sequence[int]], key: Union[int, Sequence[int]]
) -> Tuple[float, float, float, float]:
    """Four values uniform on the open interval (-1, 1) from one Philox block."""
    a, b, c, d = philox4x32(counter, key)
    return _uneg11(a), _uneg11(b), _uneg11(c), _uneg11(d)


def _box_muller_pair(w0: int, w1: int) -> Tuple[float, float]:
    angle = math.pi * _uneg11(w0)
    radius = math.sqrt(-2.0 * math.log(_u01(w1)))
    return math.sin(angle) * radius, math.cos(angle) * radius


def box_muller(
    counter: Union[int, Sequence[int]], key: Union[int, Sequence[int]]
) -> Tuple[float, float, float, float]:
    """Four standard normal values from one Philox block via Box-Muller."""
    a, b, c, d = philox4x32(counter, key)
    x0, x1 = _box_muller_pair(a, b)
    x2, x3 = _box_muller_pair(c, d)
    return x0, x1, x2, x3