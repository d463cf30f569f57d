"""Deduplicating constant pool used by the IR layer."""

from __future__ import annotations

from typing import Callable, Dict, Iterable, Iterator, List, Optional

from ..chunk import Constant, ConstantKind, number_bits


class IRConstant:
    """A constant pool entry with typed equality probes."""

    __slots__ = ("value",)

    def __init__(self, value: Constant) -> None:
        self.value = value

    @classmethod
    def nil(cls) -> "IRConstant":
        return cls(Constant.nil())

    @classmethod
    def boolean(cls, value: bool) -> "IRConstant":
        return cls(Constant.boolean(value))

    @classmethod
    def number(cls, value: float) -> "IRConstant":
        return cls(Constant.number(value))

    @classmethod
    def string(cls, value: str) -> "IRConstant":
        return cls(Constant.string(value))

    @property
    def kind(self) -> ConstantKind:
        return self.value.kind

    def is_nil(self) -> bool:
        return self.value.kind is ConstantKind.NIL

    def is_bool(self, value: bool) -> bool:
        return self.value.kind is ConstantKind.BOOLEAN and self.value.value is bool(value)

    def is_number(self, value: float) -> bool:
        return (
            self.value.kind is ConstantKind.NUMBER
            and number_bits(self.value.value) == number_bits(value)  # type: ignore[arg-type]
        )

    def is_string(self, value: str) -> bool:
        return self.value.kind is ConstantKind.STRING and self.value.value == value

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, IRConstant):
            return NotImplemented
        return self.value.same_value(other.value)

    def __hash__(self) -> int:
        if self.value.kind is ConstantKind.NUMBER:
            return hash((self.value.kind, number_bits(self.value.value)))  # type: ignore[arg-type]
        return hash((self.value.kind, self.value.value))

    def __repr__(self) -> str:
        return f"IRConstant({self.value.to_code()})"


class IRConstants:
    """Constant pool with lookup-by-value and idempotent insertion.

    Numbers are matched on their exact bit pattern: ``0.0`` and ``-0.0`` are
    different constants and a NaN only matches a NaN with the same payload.
    """

    def __init__(self, constants: Iterable[IRConstant] = ()) -> None:
        self._constants: List[IRConstant] = list(constants)

    @classmethod
    def from_constants(cls, constants: Iterable[Constant]) -> "IRConstants":
        return cls(IRConstant(constant) for constant in constants)

    def __len__(self) -> int:
        return len(self._constants)

    def __getitem__(self, index: int) -> IRConstant:
        return self._constants[index]

    def __iter__(self) -> Iterator[IRConstant]:
        return iter(self._constants)

    def get_all(self) -> List[IRConstant]:
        return list(self._constants)

    def _position(self, predicate: Callable[[IRConstant], bool]) -> Optional[int]:
        for index, constant in enumerate(self._constants):
            if predicate(constant):
                return index
        return None

    def get_string(self, value: str) -> Optional[int]:
        return self._position(lambda constant: constant.is_string(value))

    def get_number(self, value: float) -> Optional[int]:
        return self._position(lambda constant: constant.is_number(value))

    def get_bool(self, value: bool) -> Optional[int]:
        return self._position(lambda constant: constant.is_bool(value))

    def get_nil(self) -> Optional[int]:
        return self._position(IRConstant.is_nil)

    def get(self, constant: IRConstant) -> Optional[int]:
        return self._position(lambda existing: existing == constant)

    def add(self, constant: IRConstant) -> int:
        index = self.get(constant)
        if index is not None:
            return index
        self._constants.append(constant)
        return len(self._constants) - 1

    def add_string(self, value: str) -> int:
        return self.add(IRConstant.string(value))

    def add_number(self, value: float) -> int:
        return self.add(IRConstant.number(value))

    def add_bool(self, value: bool) -> int:
        return self.add(IRConstant.boolean(value))

    def add_nil(self) -> int:
        return self.add(IRConstant.nil())

    def set(self, index: int, constant: IRConstant) -> None:
        self._constants[index] = constant

    def find_duplicates(self) -> Dict[int, int]:
        """Map each repeated constant's index to the first equal index."""

        first_seen: Dict[IRConstant, int] = {}
        duplicates: Dict[int, int] = {}
        for index, constant in enumerate(self._constants):
            original = first_seen.setdefault(constant, index)
            if original != index:
                duplicates[index] = original
        return duplicates
