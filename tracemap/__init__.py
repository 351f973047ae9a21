"""Cross-layer debug-location correlation: source ↔ IR ↔ encoded instructions."""

from .api import (  # noqa: F401
    compile_contract,
    compile_file,
    compile_source,
    dump_ir,
    lower_source,
    trace_error,
    trace_word_offset,
)
from .compile import CompilationResult  # noqa: F401
from .compile_types import CompilerConfig  # noqa: F401
from .correlate import Found, NotFound, TraceCorrelator  # noqa: F401
