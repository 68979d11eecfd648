import math

import pytest

from qasm_emu.gates import (
    HADAMARD,
    IDENTITY,
    PAULI_X,
    PAULI_Y,
    PAULI_Z,
    S,
    S_DG,
    SQRT_SWAP,
    SQRT_X,
    T,
    T_DG,
    Word,
    adjoint,
    r1,
    rx,
    ry,
    rz,
    take_exactly,
    u,
)

TOL = 1e-12


def _matmul(a, b):
    return tuple(
        tuple(sum(row[k] * b[k][j] for k in range(len(b))) for j in range(len(b[0])))
        for row in a
    )


def _flat(mat):
    return [complex(x) for row in mat for x in row]


def _identity(n):
    return tuple(tuple(1 + 0j if i == j else 0j for j in range(n)) for i in range(n))


# --- Word ---------------------------------------------------------------


def test_word_masks_to_width():
    assert Word.from_value(-1, 8).value() == 255


def test_word_round_trip_within_width():
    for v in (0, 1, 7, 100, 65535):
        assert Word.from_value(v, 16).value() == v


def test_word_value_never_exceeds_width():
    for v in (-5, 1 << 20, 12345678):
        w = Word.from_value(v, 12)
        assert 0 <= w.value() < (1 << 12)


def test_word_set_bit_and_clear():
    w = Word(8)
    w.set_bit(3, True)
    assert w.value() == 1 << 3
    w.set_bit(0, True)
    assert w.value() == (1 << 3) | 1
    w.set_bit(3, False)
    assert w.value() == 1


def test_word_set_bit_beyond_width_is_dropped():
    w = Word(4)
    w.set_bit(6, True)
    assert w.value() == 0


def test_word_64_bits_wraps_signed():
    assert Word.from_value(1 << 63, 64).value() == -(1 << 63)
    assert Word.from_value(-42, 64).value() == -42


def test_word_str_is_value():
    w = Word.from_value(300, 8)
    assert str(w) == str(w.value())


# --- matrices -----------------------------------------------------------


@pytest.mark.parametrize(
    "mat",
    [IDENTITY, HADAMARD, PAULI_X, PAULI_Y, PAULI_Z, S, T, S_DG, T_DG, SQRT_X, SQRT_SWAP],
)
def test_fixed_gates_are_unitary(mat):
    product = _matmul(mat, adjoint(mat))
    assert _flat(product) == pytest.approx(_flat(_identity(len(mat))), abs=TOL)


@pytest.mark.parametrize("theta", [0.0, 0.3, math.pi / 3, math.pi, 2.5])
def test_rotations_are_unitary(theta):
    for mat in (rx(theta), ry(theta), rz(theta), r1(theta), u(theta, 0.7, -1.1)):
        product = _matmul(mat, adjoint(mat))
        assert _flat(product) == pytest.approx(_flat(IDENTITY), abs=TOL)


def test_zero_rotations_are_identity():
    expected = pytest.approx([1, 0, 0, 1], abs=TOL)
    assert _flat(rx(0.0)) == expected
    assert _flat(ry(0.0)) == expected
    assert _flat(rz(0.0)) == expected
    assert _flat(r1(0.0)) == expected


def test_s_gate_is_phase_i():
    assert _flat(r1(math.pi / 2)) == pytest.approx([1, 0, 0, 1j], abs=TOL)
    assert _flat(S) == pytest.approx([1, 0, 0, 1j], abs=TOL)


def test_t_squared_is_s_and_s_squared_is_z():
    t = r1(math.pi / 4)
    assert _flat(t) == pytest.approx(_flat(T), abs=TOL)
    assert _flat(_matmul(t, t)) == pytest.approx([1, 0, 0, 1j], abs=TOL)
    s = r1(math.pi / 2)
    assert _flat(_matmul(s, s)) == pytest.approx([1, 0, 0, -1], abs=TOL)


def test_dagger_gates_invert():
    assert _flat(adjoint(S)) == pytest.approx(_flat(S_DG), abs=TOL)
    assert _flat(adjoint(T)) == pytest.approx(_flat(T_DG), abs=TOL)
    assert _flat(_matmul(S, adjoint(S))) == pytest.approx([1, 0, 0, 1], abs=TOL)
    assert _flat(_matmul(T, adjoint(T))) == pytest.approx([1, 0, 0, 1], abs=TOL)


def test_self_inverse_gates():
    for mat in (HADAMARD, PAULI_X, PAULI_Y, PAULI_Z):
        # Hermitian and unitary, so its adjoint is itself
        assert _flat(adjoint(mat)) == pytest.approx(_flat(mat), abs=TOL)
        assert _flat(_matmul(mat, mat)) == pytest.approx([1, 0, 0, 1], abs=TOL)


def test_sqrt_x_squared_is_x():
    assert _flat(_matmul(SQRT_X, SQRT_X)) == pytest.approx([0, 1, 1, 0], abs=TOL)
    assert _flat(_matmul(SQRT_X, adjoint(SQRT_X))) == pytest.approx(
        [1, 0, 0, 1], abs=TOL
    )


def test_sqrt_swap_squared_is_swap():
    swap = [1, 0, 0, 0, 0, 0, 1, 0, 0, 1, 0, 0, 0, 0, 0, 1]
    assert _flat(_matmul(SQRT_SWAP, SQRT_SWAP)) == pytest.approx(swap, abs=TOL)
    assert _flat(_matmul(SQRT_SWAP, adjoint(SQRT_SWAP))) == pytest.approx(
        _flat(_identity(4)), abs=TOL
    )


@pytest.mark.parametrize("theta", [0.4, 1.3, math.pi])
def test_rz_is_global_phase_times_r1(theta):
    phase = complex(math.cos(theta / 2), -math.sin(theta / 2))
    scaled = [phase * x for x in _flat(r1(theta))]
    assert _flat(rz(theta)) == pytest.approx(scaled, abs=TOL)


def test_rotations_compose_additively():
    assert _flat(_matmul(rx(0.3), rx(0.9))) == pytest.approx(_flat(rx(1.2)), abs=TOL)
    assert _flat(_matmul(ry(0.5), ry(0.25))) == pytest.approx(_flat(ry(0.75)), abs=TOL)
    assert _flat(_matmul(rz(0.2), rz(1.0))) == pytest.approx(_flat(rz(1.2)), abs=TOL)


def test_adjoint_is_involution():
    mat = u(0.4, 1.2, -0.8)
    assert _flat(adjoint(adjoint(mat))) == pytest.approx(_flat(mat), abs=TOL)


def test_adjoint_conjugates_and_transposes():
    mat = ((1 + 2j, 3j), (4 + 0j, 5 - 1j))
    assert adjoint(mat) == ((1 - 2j, 4 - 0j), (-3j, 5 + 1j))


# --- take_exactly -------------------------------------------------------


def test_take_exactly_pads():
    assert list(take_exactly([1, 2], 4, 0)) == [1, 2, 0, 0]


def test_take_exactly_truncates():
    assert list(take_exactly(range(10), 3, 0)) == [0, 1, 2]


def test_take_exactly_zero():
    assert list(take_exactly([True, False], 0, False)) == []


def test_take_exactly_length_always_n():
    for n in range(6):
        assert len(list(take_exactly("abc", n, "-"))) == n