"""Circular-tape interpreter used to score candidate programs."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Mapping

import numpy as np

OPERATIONS = "<>+-.,[]"

_RIGHT = ord(">")
_LEFT = ord("<")
_INC = ord("+")
_DEC = ord("-")
_EMIT = ord(".")
_READ = ord(",")
_OPEN = ord("[")
_CLOSE = ord("]")


def encode(text: str) -> bytes:
    """Return program text as a gene buffer."""
    return text.encode("ascii")


def decode(genes: bytes | bytearray) -> str:
    """Return a gene buffer as printable program text."""
    return bytes(genes).decode("ascii", errors="replace")


def _wrap_int8(value: int) -> int:
    return ((value + 128) & 0xFF) - 128


@dataclass(frozen=True)
class FitnessResult:
    """Score of one evaluation.

    Ordered by ``distance`` first and ``ops_used`` second; lower is better.
    """

    distance: int
    ops_used: int

    def to_dict(self) -> dict[str, int]:
        return {"distance": self.distance, "ops_used": self.ops_used}

    @classmethod
    def from_dict(cls, payload: Mapping[str, Any]) -> "FitnessResult":
        return cls(distance=int(payload["distance"]), ops_used=int(payload["ops_used"]))

    def sort_key(self) -> tuple[int, int]:
        return (self.distance, self.ops_used)


class TapeMachine:
    """Interpreter for the eight-symbol tape language.

    One instance is owned by each worker. The goal, tape size and step budget
    are fixed at construction; tape and output are zeroed on every call to
    :meth:`evaluate` so results depend only on the program.
    """

    def __init__(self, goal: str, tape_size: int, max_ops: int) -> None:
        if tape_size < 1:
            raise ValueError("tape_size must be >= 1")
        if max_ops < 0:
            raise ValueError("max_ops must be >= 0")
        self.goal = np.frombuffer(goal.encode("utf-8"), dtype=np.int8).copy()
        if self.goal.size == 0:
            raise ValueError("goal must be non-empty")
        self.tape_size = int(tape_size)
        self.max_ops = int(max_ops)
        self.tape = np.zeros(self.tape_size, dtype=np.int8)
        self.output = np.zeros(self.goal.size, dtype=np.int8)

    def evaluate(self, program: bytes | bytearray | str) -> FitnessResult:
        """Run ``program`` from a clean state and score its output."""
        code = encode(program) if isinstance(program, str) else bytes(program)
        self.tape.fill(0)
        self.output.fill(0)

        ops_used = self._run(code)
        return FitnessResult(distance=self.distance(), ops_used=ops_used)

    def distance(self) -> int:
        """Sum of absolute byte differences between output and goal."""
        diff = self.output.astype(np.int16) - self.goal.astype(np.int16)
        return int(np.abs(diff).sum())

    def output_text(self) -> str:
        return self.output.tobytes().decode("utf-8", errors="replace")

    def _run(self, code: bytes) -> int:
        tape = self.tape
        output = self.output
        tape_size = self.tape_size
        output_size = output.size

        code_index = 0
        data_index = 0
        output_index = 0

        for ops in range(self.max_ops):
            if code_index >= len(code):
                return ops

            op = code[code_index]
            if op == _RIGHT:
                data_index = (data_index + 1) % tape_size
            elif op == _LEFT:
                data_index = (data_index + tape_size - 1) % tape_size
            elif op == _INC:
                tape[data_index] = _wrap_int8(int(tape[data_index]) + 1)
            elif op == _DEC:
                tape[data_index] = _wrap_int8(int(tape[data_index]) - 1)
            elif op == _EMIT:
                output[output_index] = tape[data_index]
                output_index += 1
                if output_index == output_size:
                    return ops
            elif op == _READ:
                # input is unsupported; reading yields zero
                tape[data_index] = 0
            elif op == _OPEN:
                if tape[data_index] == 0:
                    code_index = self._match_forward(code, code_index)
                    if code_index < 0:
                        return ops
            elif op == _CLOSE:
                if tape[data_index] != 0:
                    code_index = self._match_backward(code, code_index)
                    if code_index < 0:
                        return ops
            code_index += 1
        return self.max_ops

    @staticmethod
    def _match_forward(code: bytes, code_index: int) -> int:
        """Index of the ``]`` closing the ``[`` at ``code_index``, or -1."""
        depth = 1
        while True:
            code_index += 1
            if code_index >= len(code):
                return -1
            if code[code_index] == _OPEN:
                depth += 1
            elif code[code_index] == _CLOSE:
                depth -= 1
                if depth == 0:
                    return code_index

    @staticmethod
    def _match_backward(code: bytes, code_index: int) -> int:
        """Index of the ``[`` opening the ``]`` at ``code_index``, or -1."""
        depth = 1
        while True:
            code_index -= 1
            if code_index < 0:
                return -1
            if code[code_index] == _CLOSE:
                depth += 1
            elif code[code_index] == _OPEN:
                depth -= 1
                if depth == 0:
                    return code_index
