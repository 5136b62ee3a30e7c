"""
Defines the core data types for the cmdwrap dispatch engine.

Descriptors are built once by the registry and are read-only afterwards.
Everything else here (candidate sets, bound arguments, outcomes) lives only
for the duration of a single dispatch.
"""

import enum
import datetime
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Literal, Optional, Tuple

# =================================================================
# Errors
# =================================================================

class WrapError(Exception):
    """Base class for every error raised by cmdwrap."""
    pass


class FunctionNotFound(WrapError):
    def __init__(self, name: str):
        super().__init__(f"Method '{name}' is not recognized.")
        self.name = name


class BindError(WrapError):
    """A token stream could not be bound to a candidate."""
    pass


class MissingRequiredParameter(BindError):
    def __init__(self, parameter: str, message: Optional[str] = None):
        super().__init__(message or f"Missing required parameter {parameter}")
        self.parameter = parameter


class MissingArguments(MissingRequiredParameter):
    """No tokens were supplied but the candidate has required parameters."""
    def __init__(self, parameter: str):
        super().__init__(parameter, f"No arguments supplied; missing required parameter {parameter}")


class UnrecognizedOption(BindError):
    def __init__(self, token: str):
        super().__init__(f"Unrecognized option {token}")
        self.token = token


class MissingValueForOption(BindError):
    def __init__(self, option: str, message: Optional[str] = None):
        super().__init__(message or f"Missing value for {option}.")
        self.option = option


class InvalidValue(BindError):
    def __init__(self, token: str, type_name: str, parameter: Optional[str] = None):
        target = f"--{parameter}" if parameter else "this parameter"
        super().__init__(f"The value {token} is not valid for {target} - required '{type_name}'")
        self.token = token
        self.type_name = type_name
        self.parameter = parameter


class UnsupportedType(BindError):
    def __init__(self, type_name: str, parameter: Optional[str] = None):
        prefix = f"Parameter {parameter} requires" if parameter else "Requires"
        super().__init__(
            f"{prefix} the type {type_name}, which cannot be bound from the command line - "
            "only basic value types can be parsed."
        )
        self.type_name = type_name
        self.parameter = parameter


class InvocationFault(WrapError):
    """The invoked function raised; carries the original exception."""
    def __init__(self, descriptor_name: str, original: BaseException):
        super().__init__(f"{descriptor_name} raised {type(original).__name__}: {original}")
        self.original = original


# =================================================================
# Parameter types
# =================================================================

class ParamType(enum.Enum):
    """Semantic types a parameter can be bound to from a command-line token."""
    STRING = "string"
    BOOLEAN = "bool"
    INT8 = "int8"
    UINT8 = "uint8"
    INT16 = "int16"
    UINT16 = "uint16"
    INT32 = "int32"
    UINT32 = "uint32"
    INT64 = "int64"
    UINT64 = "uint64"
    INTEGER = "int"
    FLOAT = "float"
    DOUBLE = "double"
    DECIMAL = "decimal"
    CHAR = "char"
    DATETIME = "datetime"
    DATE = "date"
    UUID = "uuid"
    UNSUPPORTED = "unsupported"

    @property
    def bounds(self) -> Optional[Tuple[int, int]]:
        return _INT_BOUNDS.get(self)

    @property
    def is_integer(self) -> bool:
        return self is ParamType.INTEGER or self in _INT_BOUNDS


_INT_BOUNDS = {
    ParamType.INT8: (-2**7, 2**7 - 1),
    ParamType.UINT8: (0, 2**8 - 1),
    ParamType.INT16: (-2**15, 2**15 - 1),
    ParamType.UINT16: (0, 2**16 - 1),
    ParamType.INT32: (-2**31, 2**31 - 1),
    ParamType.UINT32: (0, 2**32 - 1),
    ParamType.INT64: (-2**63, 2**63 - 1),
    ParamType.UINT64: (0, 2**64 - 1),
}


# =================================================================
# Descriptors
# =================================================================

@dataclass(frozen=True)
class ParameterDescriptor:
    name: str
    type: ParamType = ParamType.STRING
    optional: bool = False
    default: Any = None
    # Display name for help; the annotation's name for unsupported types.
    type_name: Optional[str] = None
    keyword_only: bool = False

    @property
    def display_type(self) -> str:
        if self.type_name:
            return self.type_name
        return self.type.value


@dataclass(frozen=True)
class FunctionDescriptor:
    """Discovered metadata for one invocable function."""
    module: str
    qualname: str
    func: Callable = field(compare=False, repr=False)
    parameters: Tuple[ParameterDescriptor, ...] = ()
    exposed: bool = False
    display_name: Optional[str] = None
    description: Optional[str] = None

    @property
    def name(self) -> str:
        return self.display_name or self.qualname

    @property
    def qualified_name(self) -> str:
        return f"{self.module}.{self.name}"

    @property
    def arity(self) -> int:
        return len(self.parameters)

    @property
    def required(self) -> List[ParameterDescriptor]:
        return [p for p in self.parameters if not p.optional]

    def __repr__(self) -> str:
        sig = ", ".join(p.name for p in self.parameters)
        return f"<FunctionDescriptor {self.module}.{self.qualname}({sig})>"


@dataclass(frozen=True)
class CandidateSet:
    """Same-named descriptors ordered by descending parameter count."""
    name: str
    candidates: Tuple[FunctionDescriptor, ...]

    @classmethod
    def build(cls, name: str, descriptors) -> 'CandidateSet':
        # sorted() is stable, so equal counts keep registry order
        ordered = sorted(descriptors, key=lambda d: d.arity, reverse=True)
        return cls(name, tuple(ordered))

    @property
    def biggest(self) -> FunctionDescriptor:
        return self.candidates[0]

    def __iter__(self):
        return iter(self.candidates)

    def __len__(self):
        return len(self.candidates)


class _Unfilled:
    def __repr__(self):
        return "UNFILLED"

    def __bool__(self):
        return False


UNFILLED = _Unfilled()


@dataclass
class BoundArguments:
    """A slot vector aligned 1:1 with a descriptor's parameters."""
    descriptor: FunctionDescriptor
    slots: List[Any]

    def __post_init__(self):
        if len(self.slots) != self.descriptor.arity:
            raise ValueError("slot vector does not match the parameter list")

    @property
    def complete(self) -> bool:
        return all(s is not UNFILLED or p.optional
                   for p, s in zip(self.descriptor.parameters, self.slots))

    def as_dict(self) -> Dict[str, Any]:
        return {p.name: s for p, s in zip(self.descriptor.parameters, self.slots) if s is not UNFILLED}

    def call_args(self) -> Tuple[list, dict]:
        """Positional and keyword arguments for the call, defaults filled in."""
        args, kwargs = [], {}
        for p, s in zip(self.descriptor.parameters, self.slots):
            value = p.default if s is UNFILLED else s
            if p.keyword_only:
                kwargs[p.name] = value
            else:
                args.append(value)
        return args, kwargs


# =================================================================
# Outcomes
# =================================================================

@dataclass
class InvocationOutcome:
    """The structured result of one dispatch attempt."""
    status: Literal['success', 'fault', 'error', 'help']
    value: Any = None
    descriptor: Optional[FunctionDescriptor] = None
    fault: Optional[InvocationFault] = None
    fault_text: Optional[str] = None
    error: Optional[WrapError] = None
    help_text: Optional[str] = None
    started: Optional[datetime.datetime] = None
    duration: Optional[datetime.timedelta] = None
    log_path: Optional[str] = None
    exit_code: int = 0

    @property
    def ok(self) -> bool:
        return self.status == 'success'

    def format_error(self) -> str:
        if self.status == 'error':
            return str(self.error or "Unknown error")
        if self.status == 'fault':
            return self.fault_text or str(self.fault)
        return ""
