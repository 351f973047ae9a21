"""Compile pipeline data types (pure data, no business logic)."""

from __future__ import annotations

from dataclasses import dataclass, field

from . import constants


@dataclass(frozen=True)
class CompilerConfig:
    """Groups compilation configuration."""

    language: str = constants.DEFAULT_LANGUAGE
    max_bytecode_size: int = constants.DEFAULT_MAX_BYTECODE_SIZE
    max_instructions: int = constants.DEFAULT_MAX_INSTRUCTIONS
    contract_file_name: str = constants.CONTRACT_FILE_NAME


@dataclass
class CompileStats:
    """Timing and size statistics for each pipeline stage."""

    source_bytes: int = 0
    source_lines: int = 0
    language: str = ""

    stage_times: dict[str, float] = field(default_factory=dict)

    ir_statement_count: int = 0
    located_statement_count: int = 0
    instruction_count: int = 0
    bytecode_size: int = 0
    frame_count: int = 0

    @property
    def total_time(self) -> float:
        return sum(self.stage_times.values())

    def to_dict(self) -> dict:
        return {
            "source_bytes": self.source_bytes,
            "source_lines": self.source_lines,
            "language": self.language,
            "stage_times": dict(self.stage_times),
            "ir_statement_count": self.ir_statement_count,
            "located_statement_count": self.located_statement_count,
            "instruction_count": self.instruction_count,
            "bytecode_size": self.bytecode_size,
            "frame_count": self.frame_count,
        }

    def report(self) -> str:
        lines = [
            "═══ Compilation Statistics ═══",
            f"  Source: {self.source_lines} lines, {self.source_bytes} bytes"
            f" ({self.language})",
            "",
            f"  {'Stage':<20} {'Time':>10}",
            f"  {'─' * 20} {'─' * 10}",
        ]
        for name, t in self.stage_times.items():
            lines.append(f"  {name:<20} {t * 1000:>8.1f}ms")
        lines.append(f"  {'─' * 20} {'─' * 10}")
        lines.append(f"  {'Total':<20} {self.total_time * 1000:>8.1f}ms")
        lines.append("")
        lines.append(
            f"  Output: {self.ir_statement_count} IR statements"
            f" ({self.located_statement_count} located),"
            f" {self.instruction_count} instructions, {self.bytecode_size} words,"
            f" {self.frame_count} frames"
        )
        return "\n".join(lines)
