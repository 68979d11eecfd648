"""State-vector emulator that executes resolved qASM programs."""

from __future__ import annotations

import math
import operator
import random
import sys
from enum import Enum
from typing import BinaryIO, Callable, Sequence

from .ast import (
    Address,
    Diagnostic,
    Ident,
    Imm,
    Indirect,
    Inst,
    Op,
    Program,
    Reg,
    Rot,
    SourceSpan,
    resolve_rotation,
)
from .gates import (
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
    r1,
    rx,
    ry,
    rz,
    take_exactly,
    u,
)

_U64 = (1 << 64) - 1
_I64_MIN = 1 << 63


def _wrap(value: int) -> int:
    """Wrap an integer into the signed 64-bit range."""
    return (value + _I64_MIN) % (1 << 64) - _I64_MIN


def _udiv(a: int, b: int) -> int:
    return (a & _U64) // (b & _U64)


def _sdiv(a: int, b: int) -> int:
    quotient = abs(a) // abs(b)
    return quotient if (a < 0) == (b < 0) else -quotient


class _Flow(Enum):
    CONTINUE = 0
    HALTED = 1


_FIXED_GATES = {
    Op.ID: IDENTITY,
    Op.HADAMARD: HADAMARD,
    Op.X: PAULI_X,
    Op.Y: PAULI_Y,
    Op.Z: PAULI_Z,
    Op.S: S,
    Op.T: T,
    Op.SDG: S_DG,
    Op.TDG: T_DG,
    Op.SQRT_X: SQRT_X,
}

_ROTATION_GATES: dict[Op, Callable[[float], tuple]] = {
    Op.RX: rx,
    Op.RY: ry,
    Op.RZ: rz,
    Op.PHASE: r1,
}

_CONTROLLED_GATES = {
    Op.CH: HADAMARD,
    Op.CY: PAULI_Y,
    Op.CZ: PAULI_Z,
}

_BINARY_OPS: dict[Op, Callable[[int, int], int]] = {
    Op.ADD: operator.add,
    Op.SUB: operator.sub,
    Op.MUL: operator.mul,
    Op.SMUL: operator.mul,
    Op.UMUL: lambda a, b: _wrap(a * b) >> 32,
    Op.SUMUL: lambda a, b: _wrap(a * b) >> 32,
    Op.DIV: _udiv,
    Op.SDIV: _sdiv,
    Op.AND: operator.and_,
    Op.OR: operator.or_,
    Op.XOR: operator.xor,
    Op.NAND: lambda a, b: ~(a & b),
    Op.NOR: lambda a, b: ~(a | b),
    Op.XNOR: lambda a, b: ~(a ^ b),
}

# Flags are (less, equal, greater).
_JUMP_CONDITIONS: dict[Op, Callable[[bool, bool, bool], bool]] = {
    Op.JMP: lambda lt, eq, gt: True,
    Op.JEQ: lambda lt, eq, gt: eq,
    Op.JNE: lambda lt, eq, gt: not eq,
    Op.JG: lambda lt, eq, gt: gt,
    Op.JGE: lambda lt, eq, gt: eq or gt,
    Op.JL: lambda lt, eq, gt: lt,
    Op.JLE: lambda lt, eq, gt: lt or eq,
}


def _format_complex(value: complex) -> str:
    sign = "-" if value.imag < 0 else "+"
    return f"{value.real}{sign}{abs(value.imag)}i"


class Emulator:
    """Runs a resolved Program on simulated quantum and classical registers."""

    def __init__(self, program: Program, stdin: BinaryIO | None = None):
        self.program = program
        self._stdin = stdin
        self.rng = random.Random()
        self._init_state()

    def _init_state(self) -> None:
        qbits, cbits, qregs, cregs, mem_size = self.program.headers
        self.qbits = qbits
        self.cbits = cbits
        size = 1 << qbits
        self.qregs = [[1 + 0j] + [0j] * (size - 1) for _ in range(qregs)]
        self.cregs = [Word(cbits) for _ in range(cregs)]
        self.mem = [Word(cbits) for _ in range(mem_size)]
        self.pc = 0
        self.prev_pc = 0
        self.qreg_sel = 0
        self.flags = (False, False, False)
        self.stdout = bytearray()

    @property
    def stdin(self) -> BinaryIO:
        return self._stdin if self._stdin is not None else sys.stdin.buffer

    def reset(self) -> None:
        """Return every register, the memory and the PC to their initial state."""
        self._init_state()

    def run(self) -> None:
        """Execute until a halt instruction; raises Diagnostic on errors."""
        while not self.step():
            pass

    def step(self) -> bool:
        """Execute the instruction at the PC; return True once the program halts."""
        instructions = self.program.instructions
        if not 0 <= self.pc < len(instructions):
            span = instructions[self.prev_pc][1] if instructions else SourceSpan()
            raise (
                Diagnostic("PC went out of bounds")
                .with_label(span)
                .with_note(
                    f"Note: Current PC value is {self.pc} "
                    f"(changed from value {self.prev_pc})"
                )
                .with_note("Maybe you are missing a 'hlt' instruction?")
            )
        inst, span = instructions[self.pc]
        flow = self._execute(inst, span, range(self.qbits), {})
        self.prev_pc = self.pc
        if flow is _Flow.HALTED:
            return True
        self.pc = self.pc + 1 if flow is _Flow.CONTINUE else flow
        return False

    def cregs_state(self) -> list[Word]:
        """The classical registers."""
        return self.cregs

    def mem_state(self) -> list[Word]:
        """The classical memory words."""
        return self.mem

    def __str__(self) -> str:
        lines = [f"Emulator state: (qbits={self.qbits}, cbits={self.cbits})", "qregs=["]
        lines.extend(
            "  [" + ", ".join(_format_complex(a) for a in qreg) + "]" for qreg in self.qregs
        )
        return "\n".join(lines) + "\n]"

    # ----------------------------------------------------------------- checks

    def _qubits(self, span: SourceSpan, mapping: Sequence[int], *qbits: int) -> list[int]:
        mapped = []
        for qbit in qbits:
            if not 0 <= qbit < len(mapping):
                raise (
                    Diagnostic(f"qbit {qbit} is not mapped in local scope")
                    .with_label(span)
                    .with_note(f"Note: Local scope has qbits 0 to {len(mapping)} mapped")
                )
            mapped.append(mapping[qbit])
        if any(not 0 <= q < self.qbits for q in mapped):
            raise (
                Diagnostic("qbit index out of bounds")
                .with_label(span)
                .with_note(f"Note: Number of qbits is {self.qbits} as declared in headers")
            )
        return mapped

    def _check_creg(self, reg: int, span: SourceSpan) -> None:
        if not 0 <= reg < len(self.cregs):
            raise (
                Diagnostic("creg index out of bounds")
                .with_label(span)
                .with_note(f"Note: Number of cregs is {len(self.cregs)} as declared in headers")
            )

    def _check_mem(self, index: int, span: SourceSpan) -> None:
        if not 0 <= index < len(self.mem):
            raise (
                Diagnostic("Memory index out of bounds")
                .with_label(span, f"Attempted to access memory index {index}")
                .with_note(
                    f"Note: Number of words in memory is {len(self.mem)} as declared in headers"
                )
            )

    def _angle(self, rotation, args: dict, span: SourceSpan) -> float:
        rot = resolve_rotation(rotation, args)
        if rot is None:
            raise Diagnostic("Argument passed is not a rotation").with_label(span)
        return rot.angle()

    # ---------------------------------------------------------------- operands

    def _arg(self, name: str, args: dict, span: SourceSpan):
        if name not in args:
            raise Diagnostic(f"'{name}' does not exist in current scope").with_label(span)
        value = args[name]
        if isinstance(value, Rot):
            raise Diagnostic(f"'{name}' is a rotation, not a value").with_label(span)
        return value

    def _mem_addr(self, addr, span: SourceSpan) -> int:
        if isinstance(addr, Address):
            return addr.addr
        self._check_creg(addr.reg, span)
        return (self.cregs[addr.reg].value() & _U64) * addr.align + addr.offset

    def _value(self, operand, args: dict, span: SourceSpan) -> int:
        if isinstance(operand, Imm):
            return _wrap(operand.value)
        if isinstance(operand, Reg):
            self._check_creg(operand.index, span)
            return self.cregs[operand.index].value()
        if isinstance(operand, (Address, Indirect)):
            index = self._mem_addr(operand, span)
            self._check_mem(index, span)
            return self.mem[index].value()
        if isinstance(operand, Ident):
            return self._value(self._arg(operand.name, args, span), args, span)
        raise Diagnostic(f"Invalid operand {operand!r}").with_label(span)

    def _update(self, dst, value: int, args: dict, span: SourceSpan) -> None:
        if isinstance(dst, Reg):
            self._check_creg(dst.index, span)
            self.cregs[dst.index].set(value)
        elif isinstance(dst, (Address, Indirect)):
            index = self._mem_addr(dst, span)
            self._check_mem(index, span)
            self.mem[index].set(value)
        elif isinstance(dst, Ident):
            self._update(self._arg(dst.name, args, span), value, args, span)
        else:
            raise Diagnostic("Destination operand is not writable").with_label(span)

    # -------------------------------------------------------------- execution

    def _execute(self, inst: Inst, span: SourceSpan, mapping: Sequence[int], args: dict):
        op = inst.op
        a = inst.args

        if op is Op.QSEL:
            if not 0 <= a[0] < len(self.qregs):
                raise (
                    Diagnostic("qreg index out of bounds")
                    .with_label(span)
                    .with_note(
                        f"Note: Number of qregs is {len(self.qregs)} as declared in headers"
                    )
                )
            self.qreg_sel = a[0]
        elif op in _FIXED_GATES:
            (q,) = self._qubits(span, mapping, a[0])
            self._apply_mat_2(_FIXED_GATES[op], q)
        elif op in _ROTATION_GATES:
            (q,) = self._qubits(span, mapping, a[0])
            self._apply_mat_2(_ROTATION_GATES[op](self._angle(a[1], args, span)), q)
        elif op is Op.U:
            (q,) = self._qubits(span, mapping, a[0])
            theta, phi, lam = (self._angle(r, args, span) for r in a[1:4])
            self._apply_mat_2(u(theta, phi, lam), q)
        elif op in _CONTROLLED_GATES:
            q1, q2 = self._qubits(span, mapping, a[0], a[1])
            self._apply_controlled(_CONTROLLED_GATES[op], [q1], q2)
        elif op is Op.CPHASE:
            q1, q2 = self._qubits(span, mapping, a[0], a[1])
            self._apply_controlled(r1(self._angle(a[2], args, span)), [q1], q2)
        elif op is Op.CNOT:
            q1, q2 = self._qubits(span, mapping, a[0], a[1])
            self._swap_where(1 << q2, [1 << q1], 1 << q2, 0, 1 << q2)
        elif op is Op.CCNOT:
            q1, q2, q3 = self._qubits(span, mapping, a[0], a[1], a[2])
            self._swap_where(1 << q3, [1 << q1, 1 << q2], 1 << q3, 0, 1 << q3)
        elif op is Op.SWAP:
            q1, q2 = self._qubits(span, mapping, a[0], a[1])
            m1, m2 = 1 << q1, 1 << q2
            self._swap_where(m1 | m2, [], m1 | m2, m1, m2)
        elif op is Op.CSWAP:
            q1, q2, q3 = self._qubits(span, mapping, a[0], a[1], a[2])
            m2, m3 = 1 << q2, 1 << q3
            self._swap_where(m2 | m3, [1 << q1], m2 | m3, m2, m3)
        elif op is Op.SQRT_SWAP:
            q1, q2 = self._qubits(span, mapping, a[0], a[1])
            self._apply_mat_4(SQRT_SWAP, q1, q2)
        elif op is Op.MEASURE:
            self._measure(a[0], a[1], a[2], span, mapping)
        elif op is Op.CUSTOM:
            self._custom(a[0], a[1], a[2])
        elif op is Op.MOV:
            self._update(a[0], self._value(a[1], args, span), args, span)
        elif op is Op.MOV_STR:
            self._mov_str(a[0], a[1], args, span)
        elif op in _BINARY_OPS:
            lhs = self._value(a[1], args, span)
            rhs = self._value(a[2], args, span)
            if op in (Op.DIV, Op.SDIV) and rhs == 0:
                raise Diagnostic("Division by zero").with_label(span)
            self._update(a[0], _wrap(_BINARY_OPS[op](lhs, rhs)), args, span)
        elif op is Op.NOT:
            self._update(a[0], ~self._value(a[1], args, span), args, span)
        elif op is Op.CMP:
            lhs = self._value(a[0], args, span)
            rhs = self._value(a[1], args, span)
            self.flags = (lhs < rhs, lhs == rhs, lhs > rhs)
        elif op in _JUMP_CONDITIONS:
            if _JUMP_CONDITIONS[op](*self.flags):
                return a[0]
        elif op is Op.XCALL:
            self._xcall(a[0], a[1], a[2], args, span)
        elif op is Op.HLT:
            return _Flow.HALTED
        else:
            raise Diagnostic(f"Instruction {op.value} cannot be executed").with_label(span)
        return _Flow.CONTINUE

    def _measure(self, qbit, creg, cbit, span, mapping) -> None:
        (q,) = self._qubits(span, mapping, qbit)
        if not 0 <= creg < len(self.cregs):
            raise (
                Diagnostic("creg index out of bounds")
                .with_label(span)
                .with_note(f"Note: Number of cregs is {len(self.cregs)} as declared in headers")
            )
        if cbit > self.cbits:
            raise (
                Diagnostic("cbit index out of bounds")
                .with_label(span)
                .with_note(f"Note: Number of cbits is {self.cbits} as declared in headers")
            )
        qreg = self.qregs[self.qreg_sel]
        mask = 1 << q
        prob = sum(abs(amp) ** 2 for state, amp in enumerate(qreg) if not state & mask)
        if prob > 1.0:
            raise Diagnostic(f"Error: qubit {q} has invalid probability (prob: {prob})")
        if prob in (0.0, 1.0):
            self.cregs[creg].set_bit(cbit, prob == 0.0)
            return
        outcome = self.rng.random() >= prob
        for state in range(len(qreg)):
            if bool(state & mask) != outcome:
                qreg[state] = 0j
        norm = math.sqrt(sum(abs(amp) ** 2 for amp in qreg))
        self.qregs[self.qreg_sel] = [amp / norm for amp in qreg]
        self.cregs[creg].set_bit(cbit, outcome)

    def _custom(self, name: str, qbits: Sequence[int], values: Sequence) -> None:
        gate = self.program.custom_gates[name]
        local = {pname: value for (pname, _), value in zip(gate.params, values)}
        for body_inst, body_span in gate.body:
            try:
                self._execute(body_inst, body_span, qbits, local)
            except Diagnostic as diag:
                raise diag.with_label(
                    body_span, "Originating from this custom gate call", primary=False
                )

    def _mov_str(self, addr, text: str, args: dict, span: SourceSpan) -> None:
        base = self._value(addr, args, span) & _U64
        for offset, char in enumerate(text):
            self._check_mem(base + offset, span)
            self.mem[base + offset] = Word(self.cbits, ord(char))

    # ------------------------------------------------------------------ xcalls

    def _mem_range(self, start, count, args: dict, span: SourceSpan) -> tuple[int, int]:
        ptr = self._value(start, args, span) & _U64
        length = self._value(count, args, span) & _U64
        if ptr + length > len(self.mem):
            raise (
                Diagnostic("Memory index out of bounds")
                .with_label(span, f"Attempted to access memory index {ptr + length}")
                .with_note(
                    f"Note: Number of words in memory is {len(self.mem)} as declared in headers"
                )
            )
        return ptr, length

    def _read_mem_bytes(self, start, count, args: dict, span: SourceSpan) -> bytes:
        ptr, length = self._mem_range(start, count, args, span)
        bits = [
            (word.value() & _U64) >> i & 1
            for word in self.mem[ptr : ptr + length]
            for i in range(min(word.bits, 64))
        ]
        full = len(bits) // 8
        it = iter(bits)
        chunks = list(zip(*[it] * 8))
        chunks.append(tuple(take_exactly(bits[full * 8 :], 8, 0)))
        return bytes(sum(bit << i for i, bit in enumerate(chunk)) for chunk in chunks)

    def _write_mem_bytes(self, data: bytes, start, count, args: dict, span: SourceSpan) -> None:
        ptr, length = self._mem_range(start, count, args, span)
        width = self.qbits
        if width <= 0:
            raise Diagnostic("Cannot split input into zero-width words").with_label(span)
        bits = [byte >> i & 1 for byte in data for i in range(8)]
        it = iter(bits)
        words = [
            Word.from_value(sum(bit << i for i, bit in enumerate(chunk)), width)
            for chunk in zip(*[it] * width)
        ]
        if len(words) != length:
            raise (
                Diagnostic("Input does not fit the memory buffer")
                .with_label(span)
                .with_note(f"Note: {len(words)} words were read for a buffer of {length}")
            )
        self.mem[ptr : ptr + length] = words

    def _xcall(self, func: int, dest, fargs: Sequence, args: dict, span: SourceSpan) -> None:
        if func == 0x00:
            count = self._value(fargs[1], args, span) & _U64
            try:
                read = self.stdin.read(count) or b""
                result = len(read)
            except OSError:
                read, result = b"", -1
            self._update(dest, result, args, span)
            data = read.ljust(count, b"\0")
            self._write_mem_bytes(data, fargs[0], fargs[1], args, span)
        elif func == 0x01:
            data = self._read_mem_bytes(fargs[0], fargs[1], args, span)
            self.stdout.extend(data)
            self._update(dest, len(data), args, span)
        else:
            raise (
                Diagnostic("Invalid xcall")
                .with_label(span)
                .with_note(f"Xcall {func} does not exist")
            )

    # ---------------------------------------------------------- state vectors

    def _apply_mat_2(self, mat, qbit: int) -> None:
        qreg = self.qregs[self.qreg_sel]
        mask = 1 << qbit
        (m00, m01), (m10, m11) = mat
        for state in range(len(qreg)):
            if state & mask:
                continue
            a, b = qreg[state], qreg[state | mask]
            qreg[state] = m00 * a + m01 * b
            qreg[state | mask] = m10 * a + m11 * b

    def _apply_mat_4(self, mat, qbit1: int, qbit2: int) -> None:
        qreg = self.qregs[self.qreg_sel]
        m1, m2 = 1 << qbit1, 1 << qbit2
        for state in range(len(qreg)):
            if state & m1 or state & m2:
                continue
            indices = (state, state | m1, state | m2, state | m1 | m2)
            vec = [qreg[i] for i in indices]
            for index, row in zip(indices, mat):
                qreg[index] = sum(x * v for x, v in zip(row, vec))

    def _apply_controlled(self, mat, controls: list[int], target: int) -> None:
        qreg = self.qregs[self.qreg_sel]
        masks = [1 << c for c in controls]
        tmask = 1 << target
        (m00, m01), (m10, m11) = mat
        for state in range(len(qreg)):
            if any(not state & m for m in masks) or state & tmask:
                continue
            a, b = qreg[state], qreg[state | tmask]
            qreg[state] = m00 * a + m01 * b
            qreg[state | tmask] = m10 * a + m11 * b

    def _swap_where(self, clear: int, controls: list[int], _unused: int, lo: int, hi: int) -> None:
        """Swap amplitudes ``state|lo`` and ``state|hi`` for states with controls set and ``clear`` bits clear."""
        qreg = self.qregs[self.qreg_sel]
        for state in range(len(qreg)):
            if state & clear or any(not state & m for m in controls):
                continue
            i, j = state | lo, state | hi
            qreg[i], qreg[j] = qreg[j], qreg[i]