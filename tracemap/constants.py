"""Named constants — eliminates magic strings across the codebase."""

from __future__ import annotations

PARAM_PREFIX = "param:"
CAUGHT_EXCEPTION_PREFIX = "caught_exception"

FUNC_REF_TEMPLATE = "<function:{name}@{label}>"
CLASS_REF_TEMPLATE = "<class:{name}@{label}>"

FUNC_LABEL_PREFIX = "func_"
END_FUNC_LABEL_PREFIX = "end_"
CLASS_LABEL_PREFIX = "class_"
END_CLASS_LABEL_PREFIX = "end_class_"

ENTRY_LABEL = "entry"
FUNCTION_NAME_SEPARATOR = "::"

DEFAULT_LANGUAGE = "python"
DEFAULT_FILE_NAME = "main.py"
SUPPORTED_LANGUAGES: tuple[str, ...] = ("python",)

# Synthesized contract wrappers
CONTRACT_FILE_NAME = "contract"
EXTERNAL_DECORATOR = "external"
L1_HANDLER_DECORATOR = "l1_handler"
CONSTRUCTOR_DECORATOR = "constructor"
ENTRY_POINT_DECORATORS: tuple[str, ...] = (
    EXTERNAL_DECORATOR,
    L1_HANDLER_DECORATOR,
    CONSTRUCTOR_DECORATOR,
)
WRAPPER_PREFIX = "__wrapper__"
SELECTOR_MASK = (1 << 250) - 1

# Instruction encoding
FIELD_PRIME = 2**251 + 17 * 2**192 + 1
OFFSET_BITS = 16
OFFSET_BIAS = 2 ** (OFFSET_BITS - 1)
FLAGS_SHIFT = 3 * OFFSET_BITS
HEX_PREFIX = "0x"

# Frame layout
PARAM_BASE_OFFSET = -3
MAX_FRAME_SLOTS = OFFSET_BIAS - 1

# Limits
DEFAULT_MAX_BYTECODE_SIZE = 2**20
DEFAULT_MAX_INSTRUCTIONS = 2**18

# Pipeline stage names
STAGE_LOWER = "lower"
STAGE_IR_PARSE = "ir-parse"
STAGE_SOURCE_MAP = "source-map"
STAGE_METADATA = "metadata"
STAGE_CODEGEN = "codegen"
STAGE_INSTRUCTION_MAP = "instruction-map"
STAGE_ENTRY_POINTS = "entry-points"

IR_FILE_SUFFIX = ".ir"
TEMP_DIR_PREFIX = "tracemap-"
