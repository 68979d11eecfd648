"""Instruction model, diagnostics and label/gate resolution for qASM programs."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Union


@dataclass(frozen=True)
class SourceSpan:
    """A byte range ``[start, end)`` inside source file number ``file``."""

    file: int = 0
    start: int = 0
    end: int = 0


@dataclass(frozen=True)
class Label:
    """A span of source attached to a diagnostic."""

    span: SourceSpan
    message: str = ""
    primary: bool = True


class Diagnostic(Exception):
    """An error report with source labels and notes."""

    def __init__(self, message: str, labels=None, notes=None):
        super().__init__(message)
        self.message = message
        self.labels: list[Label] = list(labels or [])
        self.notes: list[str] = list(notes or [])

    def with_label(self, span: SourceSpan, message: str = "", primary: bool = True) -> "Diagnostic":
        """Attach a label and return this diagnostic."""
        self.labels.append(Label(span, message, primary))
        return self

    def with_note(self, note: str) -> "Diagnostic":
        """Attach a note and return this diagnostic."""
        self.notes.append(note)
        return self

    def __str__(self) -> str:
        return self.message


class IdentType(Enum):
    """Type of a custom-gate parameter."""

    ROT = "Rot"
    IMM = "Imm"
    REG = "Reg"
    MEM_ADDR = "Addr"

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class Address:
    """A direct memory address."""

    addr: int


@dataclass(frozen=True)
class Indirect:
    """A memory address computed as ``cregs[reg] * align + offset``."""

    reg: int
    align: int
    offset: int


@dataclass(frozen=True)
class Imm:
    """An immediate integer value."""

    value: int


@dataclass(frozen=True)
class Reg:
    """A classical register reference."""

    index: int


@dataclass(frozen=True)
class Ident:
    """A reference to a custom-gate parameter by name."""

    name: str


@dataclass(frozen=True)
class Rot:
    """A rotation of ``num * pi / den`` radians."""

    num: int
    den: int

    def angle(self) -> float:
        return self.num * math.pi / self.den


MemAddr = Union[Address, Indirect]
Operand = Union[Imm, Reg, Address, Indirect, Ident]
IdentVal = Union[Rot, Imm, Reg, Address, Indirect]
Rotation = Union[Rot, Ident]


def ident_type(value: IdentVal) -> IdentType:
    """Return the parameter type that a gate argument value has."""
    if isinstance(value, Rot):
        return IdentType.ROT
    if isinstance(value, Imm):
        return IdentType.IMM
    if isinstance(value, Reg):
        return IdentType.REG
    if isinstance(value, (Address, Indirect)):
        return IdentType.MEM_ADDR
    raise TypeError(f"not a gate argument value: {value!r}")


def resolve_rotation(rotation: Rotation, args: dict) -> Rot | None:
    """Resolve a rotation literal or parameter name; None if it is not a rotation."""
    if isinstance(rotation, Rot):
        return rotation
    value = args.get(rotation.name)
    return value if isinstance(value, Rot) else None


class Op(Enum):
    """Instruction opcodes."""

    # Quantum
    QSEL = "qsel"
    ID = "id"
    HADAMARD = "hadamard"
    CNOT = "cnot"
    CCNOT = "ccnot"
    X = "x"
    Y = "y"
    Z = "z"
    RX = "rx"
    RY = "ry"
    RZ = "rz"
    U = "u"
    S = "s"
    T = "t"
    SDG = "sdg"
    TDG = "tdg"
    PHASE = "phase"
    CH = "ch"
    CY = "cy"
    CZ = "cz"
    CPHASE = "cphase"
    SWAP = "swap"
    SQRT_X = "sqrtx"
    SQRT_SWAP = "sqrtswap"
    CSWAP = "cswap"
    MEASURE = "measure"
    # Custom gates
    GATE_DEF = "gate"
    CUSTOM = "custom"
    # Classical
    MOV = "mov"
    MOV_STR = "movstr"
    ADD = "add"
    SUB = "sub"
    MUL = "mul"
    UMUL = "umul"
    DIV = "div"
    SMUL = "smul"
    SUMUL = "sumul"
    SDIV = "sdiv"
    NOT = "not"
    AND = "and"
    OR = "or"
    XOR = "xor"
    NAND = "nand"
    NOR = "nor"
    XNOR = "xnor"
    # Misc
    CMP = "cmp"
    JMP = "jmp"
    JEQ = "jeq"
    JNE = "jne"
    JG = "jg"
    JGE = "jge"
    JL = "jl"
    JLE = "jle"
    XCALL = "xcall"
    HLT = "hlt"
    LABEL = "label"
    ERR = "err"


class Inst:
    """An instruction: an opcode and its operands.

    Jumps carry a label name before resolution and an instruction index after.
    ``GATE_DEF`` carries ``(name, qbits, params, body)``, ``CUSTOM`` carries
    ``(name, qbits, args)`` and ``XCALL`` carries ``(func, dest, args)``.
    """

    __slots__ = ("op", "args")

    def __init__(self, op: Op, *args):
        self.op = op
        self.args = args

    def __eq__(self, other):
        if not isinstance(other, Inst):
            return NotImplemented
        return self.op is other.op and self.args == other.args

    __hash__ = None

    def __repr__(self) -> str:
        inner = ", ".join(repr(a) for a in self.args)
        return f"Inst({self.op.name}{', ' if inner else ''}{inner})"


@dataclass
class GateDef:
    """A resolved custom gate: qubit count, typed parameters and body."""

    qbits: int
    params: list = field(default_factory=list)
    body: list = field(default_factory=list)


@dataclass
class Program:
    """A resolved program.

    ``headers`` is ``(qbits, cbits, qregs, cregs, mem_size)``.
    """

    headers: tuple
    custom_gates: dict = field(default_factory=dict)
    instructions: list = field(default_factory=list)


_JUMPS = {
    Op.JMP: Op.JMP,
    Op.JEQ: Op.JEQ,
    Op.JNE: Op.JNE,
    Op.JG: Op.JG,
    Op.JGE: Op.JGE,
    Op.JL: Op.JLE,
    Op.JLE: Op.JLE,
}

_XCALL_ARITY = {0x00: 2, 0x01: 2}


def format_types(types) -> str:
    """Format a sequence of items as ``[a, b, c]``."""
    text = "[" + "".join(f"{t}, " for t in types)
    text = text[:-2]
    return text + "]"


def resolve_ast(headers: tuple, ast: list, classical: bool) -> Program:
    """Resolve labels and custom gates in ``ast``, a list of ``(Inst, SourceSpan)``.

    Raises Diagnostic on undefined labels or gates, mismatched gate usage
    and invalid xcalls.
    """
    labels: dict[str, int] = {}
    index = 0
    for inst, _ in ast:
        if inst.op is Op.LABEL:
            labels[inst.args[0]] = index
        else:
            index += 1

    custom_gates: dict[str, GateDef] = {}
    resolved: list = []

    for inst, span in ast:
        op = inst.op
        if op in (Op.LABEL, Op.ERR):
            continue

        if op in _JUMPS:
            name = inst.args[0]
            if name not in labels:
                raise Diagnostic(f'Reference to undefined label "{name}"').with_label(span)
            resolved.append((Inst(_JUMPS[op], labels[name]), span))

        elif op is Op.GATE_DEF:
            name, qbits, params, body = inst.args
            body = resolve_ast(headers, list(body), classical).instructions
            custom_gates[name] = GateDef(qbits, list(params), body)

        elif op is Op.CUSTOM:
            name, qbits, args = inst.args
            gate = custom_gates.get(name)
            if gate is None:
                raise Diagnostic(f'Usage of undefined gate "{name}"').with_label(span)
            if len(qbits) != gate.qbits:
                raise (
                    Diagnostic("Given qubits to gate don't match gate definition")
                    .with_label(span)
                    .with_note(
                        f"Note: Gate expects {gate.qbits} qubits, "
                        f"but {len(qbits)} were given"
                    )
                )
            given = [ident_type(a) for a in args]
            expected = [t for _, t in gate.params]
            if given != expected:
                raise (
                    Diagnostic("Given args to gate don't match gate definition")
                    .with_label(span)
                    .with_note(
                        f"Note: Gate expects arg types {format_types(expected)}, "
                        f"but given arg types were {format_types(given)}"
                    )
                )
            resolved.append((inst, span))

        elif op is Op.XCALL:
            if not classical:
                raise Diagnostic("Xcall not allowed without --classical flag").with_label(span)
            func, _, args = inst.args
            expected_len = _XCALL_ARITY.get(func)
            if expected_len is None:
                raise (
                    Diagnostic("Invalid xcall")
                    .with_label(span)
                    .with_note(f"Xcall {func} does not exist")
                )
            if len(args) != expected_len:
                raise (
                    Diagnostic(f"Number of arguments to xcall {func} are incorrect")
                    .with_label(span)
                    .with_note(f"Note: Expected {expected_len} args, but {len(args)} were given")
                )
            resolved.append((inst, span))

        else:
            resolved.append((inst, span))

    return Program(headers=headers, custom_gates=custom_gates, instructions=resolved)