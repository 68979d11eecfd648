"""Gate matrices, fixed-width words and small iteration helpers for the emulator."""

from __future__ import annotations

import math
from dataclasses import dataclass
from itertools import chain, islice, repeat
from typing import Iterable, Iterator, TypeVar

T = TypeVar("T")

Matrix = tuple  # tuple of rows, each a tuple of complex numbers

_I64_SPAN = 1 << 64
_I64_MIN = 1 << 63


def _wrap_i64(value: int) -> int:
    """Wrap an integer into the signed 64-bit range."""
    return (value + _I64_MIN) % _I64_SPAN - _I64_MIN


def _mask(bits: int) -> int:
    return -1 if bits >= 64 else (1 << bits) - 1


@dataclass
class Word:
    """A classical word of ``bits`` bits stored in a signed 64-bit cell."""

    bits: int
    data: int = 0

    def value(self) -> int:
        """The stored value, truncated to the word's width."""
        return _wrap_i64(self.data & _mask(self.bits))

    def set(self, val: int) -> None:
        """Store ``val``, truncated to the word's width."""
        self.data = _wrap_i64(_wrap_i64(val) & _mask(self.bits))

    def set_bit(self, bit: int, val: bool) -> None:
        """Set or clear a single bit of the word."""
        self.set((self.data & ~(1 << bit)) | (int(bool(val)) << bit))

    @staticmethod
    def from_value(val: int, bits: int) -> "Word":
        """Build a word of ``bits`` bits holding ``val``."""
        word = Word(bits)
        word.set(val)
        return word

    def __str__(self) -> str:
        return str(self.value())


def _cis(angle: float) -> complex:
    return complex(math.cos(angle), math.sin(angle))


def u(theta: float, phi: float, lam: float) -> Matrix:
    """The general single-qubit rotation U(theta, phi, lambda)."""
    half = theta / 2.0
    c, s = math.cos(half), math.sin(half)
    return (
        (complex(c), -s * _cis(lam)),
        (s * _cis(phi), c * _cis(lam + phi)),
    )


def rx(theta: float) -> Matrix:
    """Rotation about the X axis."""
    return u(theta, -math.pi / 2, math.pi / 2)


def ry(theta: float) -> Matrix:
    """Rotation about the Y axis."""
    return u(theta, 0.0, 0.0)


def rz(theta: float) -> Matrix:
    """Rotation about the Z axis."""
    half = theta / 2.0
    return (
        (complex(math.cos(half), -math.sin(half)), 0j),
        (0j, complex(math.cos(half), math.sin(half))),
    )


def r1(theta: float) -> Matrix:
    """Phase shift by ``theta`` on the |1> state."""
    return u(0.0, theta, 0.0)


def adjoint(mat: Matrix) -> Matrix:
    """Conjugate transpose of a square matrix."""
    return tuple(tuple(complex(x).conjugate() for x in col) for col in zip(*mat))


def take_exactly(iterable: Iterable[T], n: int, fill: T) -> Iterator[T]:
    """Yield exactly ``n`` items from ``iterable``, padding with ``fill`` if it runs short."""
    return islice(chain(iterable, repeat(fill)), n)


_R2 = 1 / math.sqrt(2)

IDENTITY: Matrix = ((1 + 0j, 0j), (0j, 1 + 0j))
HADAMARD: Matrix = ((complex(_R2), complex(_R2)), (complex(_R2), complex(-_R2)))
PAULI_X: Matrix = ((0j, 1 + 0j), (1 + 0j, 0j))
PAULI_Y: Matrix = ((0j, -1j), (1j, 0j))
PAULI_Z: Matrix = ((1 + 0j, 0j), (0j, -1 + 0j))
S: Matrix = r1(math.pi / 2)
T: Matrix = r1(math.pi / 4)
S_DG: Matrix = adjoint(S)
T_DG: Matrix = adjoint(T)
SQRT_X: Matrix = (
    (complex(0.5, 0.5), complex(0.5, -0.5)),
    (complex(0.5, -0.5), complex(0.5, 0.5)),
)
SQRT_SWAP: Matrix = (
    (1 + 0j, 0j, 0j, 0j),
    (0j, complex(0.5, 0.5), complex(0.5, -0.5), 0j),
    (0j, complex(0.5, -0.5), complex(0.5, 0.5), 0j),
    (0j, 0j, 0j, 1 + 0j),
)