"""Control-flow graph construction for Lua 5.1 function prototypes."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Sequence, Set, Tuple

from .errors import ControlFlowError
from .graph import Digraph
from .instruction import Instruction
from .opcodes import CONDITIONAL_SKIP_OPCODES, CONTROL_OPCODES, Opcode

if TYPE_CHECKING:  # pragma: no cover - imported for type checking only
    from .chunk import Proto, ProtoPath


logger = logging.getLogger(__name__)

EdgeList = Tuple[Tuple[int, Optional[str]], ...]


@dataclass(frozen=True)
class Target:
    """How control leaves a block.  Block references are block indices."""

    def edges(self, index: int) -> EdgeList:
        raise NotImplementedError

    def successors(self, index: int) -> Tuple[int, ...]:
        return tuple(target for target, _ in self.edges(index))

    def describe(self) -> str:
        raise NotImplementedError


@dataclass(frozen=True)
class Jmp(Target):
    block: int

    def edges(self, index: int) -> EdgeList:
        return ((self.block, None),)

    def describe(self) -> str:
        return f"Jmp({self.block})"


@dataclass(frozen=True)
class BinCond(Target):
    """Compare-and-skip: ``jump`` holds the following JMP, ``skip`` the block after it."""

    jump: int
    skip: int

    def edges(self, index: int) -> EdgeList:
        return ((self.jump, "jump"), (self.skip, "skip"))

    def describe(self) -> str:
        return f"BinCond({self.jump}, {self.skip})"


@dataclass(frozen=True)
class ForLoop(Target):
    body: int
    exit: int

    def edges(self, index: int) -> EdgeList:
        return ((self.body, "loop"), (self.exit, "exit"))

    def describe(self) -> str:
        return f"ForLoop({self.body}, {self.exit})"


@dataclass(frozen=True)
class ForPrep(Target):
    loop: int

    def edges(self, index: int) -> EdgeList:
        return ((self.loop, None),)

    def describe(self) -> str:
        return f"ForPrep({self.loop})"


@dataclass(frozen=True)
class TForLoop(Target):
    """Generic for: fall into the back-edge JMP to loop, skip it to leave."""

    block: int

    def edges(self, index: int) -> EdgeList:
        return ((index + 1, "loop"), (self.block, "exit"))

    def describe(self) -> str:
        return f"TForLoop({self.block})"


@dataclass(frozen=True)
class Nop(Target):
    def edges(self, index: int) -> EdgeList:
        return ((index + 1, None),)

    def describe(self) -> str:
        return "NOP"


@dataclass(frozen=True)
class Block:
    """Half-open instruction range ``[start, stop)`` and its exit."""

    index: int
    start: int
    stop: int
    target: Target

    @property
    def last_pc(self) -> int:
        return self.stop - 1

    @property
    def pcs(self) -> range:
        return range(self.start, self.stop)

    def contains(self, pc: int) -> bool:
        return self.start <= pc < self.stop

    def __len__(self) -> int:
        return self.stop - self.start


class ControlFlowGraph:
    """Blocks of one prototype in program order.

    ``exit_index`` equals the number of blocks and stands for falling off the
    end of the instruction sequence.
    """

    def __init__(self, blocks: Sequence[Block], instructions: Sequence[Instruction]) -> None:
        self.blocks: Tuple[Block, ...] = tuple(blocks)
        self.instructions: Tuple[Instruction, ...] = tuple(instructions)
        self._block_of_pc: Dict[int, int] = {
            pc: block.index for block in self.blocks for pc in block.pcs
        }

    @property
    def instruction_count(self) -> int:
        return len(self.instructions)

    @property
    def exit_index(self) -> int:
        return len(self.blocks)

    def __len__(self) -> int:
        return len(self.blocks)

    def __iter__(self) -> Iterator[Block]:
        return iter(self.blocks)

    def __getitem__(self, index: int) -> Block:
        return self.blocks[index]

    def block_at(self, pc: int) -> Block:
        index = self._block_of_pc.get(pc)
        if index is None:
            raise ControlFlowError(f"pc {pc} is not inside any block")
        return self.blocks[index]

    def successors(self, index: int) -> Tuple[int, ...]:
        return self.blocks[index].target.successors(index)

    def predecessors(self, index: int) -> Tuple[int, ...]:
        return tuple(
            block.index for block in self.blocks if index in block.target.successors(block.index)
        )

    def roots(self) -> List[int]:
        """Block 0 plus every block nothing else flows into."""

        reached: Set[int] = set()
        for block in self.blocks:
            reached.update(block.target.successors(block.index))
        return [block.index for block in self.blocks if block.index == 0 or block.index not in reached]

    def to_graph(self) -> Digraph:
        graph = Digraph()
        entry = "Entry"
        end = f"Block{self.exit_index}"
        graph.add_instance(entry, "Entry")
        graph.add_instance(end, "End")

        for block in self.blocks:
            name = f"Block{block.index}"
            graph.add_instance(name, f"Block {block.index}: [{block.start}, {block.stop})")
            for target, label in block.target.edges(block.index):
                graph.add_edge(name, f"Block{target}", label)

        for name in graph.indegrees_of(0):
            if name not in (entry, end):
                graph.add_edge(entry, name)
        return graph

    def to_dot(self) -> str:
        return self.to_graph().render()

    def to_text(self) -> str:
        lines = [f"cfg blocks={len(self.blocks)} instructions={self.instruction_count}"]
        for block in self.blocks:
            succ = [
                "end" if target == self.exit_index else str(target)
                for target in block.target.successors(block.index)
            ]
            lines.append(
                f"  block {block.index} [{block.start}, {block.stop}) "
                f"{block.target.describe()} succ=[{', '.join(succ)}]"
            )
            for pc in block.pcs:
                lines.append(f"    [{pc:4d}] {self.instructions[pc].format()}")
        return "\n".join(lines) + "\n"


class ControlFlowGraphBuilder:
    """Partition an instruction sequence into basic blocks and classify their exits."""

    def build(self, instructions: Sequence[Instruction]) -> ControlFlowGraph:
        count = len(instructions)
        labels = self._discover_labels(instructions)
        ranges = self._partition(labels)
        block_of_pc = {pc: index for index, (start, stop) in enumerate(ranges) for pc in range(start, stop)}

        blocks = [
            Block(index, start, stop, self._classify(instructions, stop - 1, block_of_pc, len(ranges)))
            for index, (start, stop) in enumerate(ranges)
        ]
        logger.debug("built %d block(s) for %d instruction(s)", len(blocks), count)
        return ControlFlowGraph(blocks, instructions)

    def _discover_labels(self, instructions: Sequence[Instruction]) -> List[int]:
        """Collect the PCs after which a new block starts.

        A label is the last PC of a block, so a branch to ``target`` contributes
        ``target - 1``.
        """

        count = len(instructions)
        labels: Set[int] = {-1, count - 1}
        for pc, instruction in enumerate(instructions):
            opcode = instruction.opcode
            if opcode not in CONTROL_OPCODES:
                continue
            labels.add(pc)
            if opcode in (Opcode.JMP, Opcode.FORPREP, Opcode.FORLOOP):
                target = self._branch_target(pc, instruction)
                if not 0 <= target <= count:
                    raise ControlFlowError(
                        f"{instruction.name} at pc {pc} branches to {target}, outside [0, {count}]"
                    )
                labels.add(target - 1)
        return sorted(labels)

    @staticmethod
    def _partition(labels: Sequence[int]) -> List[Tuple[int, int]]:
        ranges: List[Tuple[int, int]] = []
        for current, following in zip(labels, labels[1:]):
            start, stop = current + 1, following + 1
            if stop > start:
                ranges.append((start, stop))
        return ranges

    @staticmethod
    def _branch_target(pc: int, instruction: Instruction) -> int:
        return pc + 1 + instruction.sbx.as_offset()

    def _classify(
        self,
        instructions: Sequence[Instruction],
        last: int,
        block_of_pc: Dict[int, int],
        block_count: int,
    ) -> Target:
        instruction = instructions[last]
        opcode = instruction.opcode

        def resolve(pc: int) -> int:
            if pc == len(instructions):
                return block_count
            try:
                return block_of_pc[pc]
            except KeyError:
                raise ControlFlowError(
                    f"{instruction.name} at pc {last} targets pc {pc}, which is not inside any block"
                ) from None

        if opcode in CONDITIONAL_SKIP_OPCODES:
            return BinCond(resolve(last + 1), resolve(last + 2))
        if opcode == Opcode.JMP:
            return Jmp(resolve(self._branch_target(last, instruction)))
        if opcode == Opcode.FORPREP:
            return ForPrep(resolve(self._branch_target(last, instruction)))
        if opcode == Opcode.FORLOOP:
            return ForLoop(resolve(self._branch_target(last, instruction)), resolve(last + 1))
        if opcode == Opcode.TFORLOOP:
            return TForLoop(resolve(last + 2))
        return Nop()


def build_cfg(instructions: Sequence[Instruction]) -> ControlFlowGraph:
    return ControlFlowGraphBuilder().build(instructions)


def build_cfgs(proto: "Proto") -> Dict["ProtoPath", ControlFlowGraph]:
    """Build one graph per function in a prototype tree, keyed by child path."""

    builder = ControlFlowGraphBuilder()
    return {path: builder.build(child.instructions) for path, child in proto.walk()}
