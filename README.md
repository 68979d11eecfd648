# qasm_emu

A resolver and state-vector emulator for a small quantum assembly language.
A program combines quantum gates, which act on one or more quantum registers,
with a classical instruction set. The classical side has word-sized registers,
memory, arithmetic, comparisons, jumps and two I/O calls.

Programs are built in Python as lists of instruction objects. They are then
resolved and run.

## Installation

```
pip install .
```

To run the tests:

```
pip install ".[test]"
pytest
```

## Modules

- `qasm_emu.ast` is the program model and the resolver:
  - operands: `Imm`, `Reg`, `Address`, `Indirect`, `Ident`
  - rotations: `Rot(num, den)`, which stands for `num * pi / den` radians (`Rot.angle()`)
  - instructions: `Inst(op, *args)`, with the opcode enum `Op`
  - custom gates: `GateDef`, whose parameter types are `IdentType`
  - `Program`
  - `resolve_ast(headers, ast, classical)`
  - the `Diagnostic` exception, with `SourceSpan` and `Label`
- `qasm_emu.gates` holds the gate matrices and the fixed-width classical word:
  - matrix builders `u`, `rx`, `ry`, `rz`, `r1` and `adjoint`
  - constants `IDENTITY`, `HADAMARD`, `PAULI_X`, `PAULI_Y`, `PAULI_Z`, `S`,
    `T`, `S_DG`, `T_DG`, `SQRT_X` and `SQRT_SWAP`
  - the `Word` class
  - the helper `take_exactly`
- `qasm_emu.emulator` holds `Emulator`, which runs a resolved `Program`.

## Headers

A program's headers are a tuple `(qbits, cbits, qregs, cregs, mem_size)`:

| Field      | Meaning                                    |
|------------|--------------------------------------------|
| `qbits`    | number of qubits in each quantum register  |
| `cbits`    | width in bits of each classical word       |
| `qregs`    | number of quantum registers                |
| `cregs`    | number of classical registers              |
| `mem_size` | number of words of memory                  |

## Building and running a program

`resolve_ast` takes a list of `(Inst, SourceSpan)` pairs and returns a
`Program`. It does the following:

- It turns jump labels (`Op.LABEL`) into instruction offsets.
- It registers gate definitions (`Op.GATE_DEF`).
- It checks every custom gate call and every `xcall`.

```python
from collections import Counter

from qasm_emu.ast import Inst, Op, SourceSpan, resolve_ast
from qasm_emu.emulator import Emulator

span = SourceSpan()
ast = [
    (Inst(Op.HADAMARD, 0), span),
    (Inst(Op.CNOT, 0, 1), span),
    (Inst(Op.MEASURE, 0, 0, 0), span),   # qubit 0 -> creg 0, bit 0
    (Inst(Op.MEASURE, 1, 0, 1), span),   # qubit 1 -> creg 0, bit 1
    (Inst(Op.HLT), span),
]
program = resolve_ast((2, 2, 1, 1, 0), ast, classical=False)

emulator = Emulator(program)
counts = Counter()
for _ in range(1000):
    emulator.run()
    counts[emulator.cregs_state()[0].value()] += 1
    emulator.reset()
print(counts)          # outcomes 0 and 3 only
```

The emulator has these methods:

- `run()` executes instructions until `hlt`.
- `step()` executes a single instruction. It returns `True` once the program
  has halted.
- `cregs_state()` and `mem_state()` return the classical registers and the
  memory as lists of `Word`. `Word.value()` gives a word's value.
- `str(emulator)` prints the state vectors of the quantum registers.
- `reset()` puts the program counter back to the start, resets every quantum
  register to |0...0> and zeroes every word.

Measurement draws from `emulator.rng`, which is a `random.Random`. Seed it to
get reproducible runs.

Custom gates are defined with
`Inst(Op.GATE_DEF, name, qbits, params, body)`:

- `params` is a list of `(name, IdentType)` pairs.
- `body` is a list of `(Inst, SourceSpan)` pairs.

A gate is called with `Inst(Op.CUSTOM, name, qubits, args)`. Inside the body,
qubit indices refer to the qubits passed in the call. Parameters are referred
to by `Ident(name)`.

After resolution, `Op.JL` jumps on "less or equal" (the same as `Op.JLE`).

## Classical mode

`xcall` instructions are accepted only when the program is resolved with
`classical=True`. There are two calls, and each takes a destination and two
arguments, a memory start and a count:

- `0x00` reads up to *count* bytes from the emulator's input, pads them with
  zero bytes, and packs the bits into memory words that are `qbits` bits wide.
  The input is `sys.stdin` by default; pass another binary stream as
  `Emulator(program, stdin)`. The destination receives the number of bytes
  read, or -1 if the read failed.
- `0x01` packs the bits of *count* memory words into bytes and appends them
  to `emulator.stdout`, a `bytearray`. The destination receives the number of
  bytes written.

## Errors

Every problem, at resolution or at run time, raises `qasm_emu.ast.Diagnostic`.
Its `message`, `labels` and `notes` describe the problem and where it
happened. Problems include:

- an undefined label or gate
- a gate call with the wrong number of qubits or the wrong argument types
- an unknown `xcall`, or an `xcall` with the wrong number of arguments
- an index out of range
- division by zero
- a program counter that runs past the end because a `hlt` is missing

## What this package does not do

- There is no parser for qASM source text. Programs must be built from `Inst`
  objects.
- There is no command-line tool. Running many shots, collecting outcome
  statistics and writing out memory contents are left to the calling code, as
  in the example above.

Diagnostics are raised as exceptions and are not rendered against source text.