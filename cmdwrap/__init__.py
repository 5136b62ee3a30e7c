"""Expose the functions of a Python program as command-line operations."""

from cmdwrap.cmdwrap_datatypes import (
    BindError, BoundArguments, CandidateSet, FunctionDescriptor, FunctionNotFound,
    InvalidValue, InvocationFault, InvocationOutcome, MissingArguments,
    MissingRequiredParameter, MissingValueForOption, ParameterDescriptor, ParamType,
    UnrecognizedOption, UnsupportedType, WrapError
)
from cmdwrap.cmdwrap_registry import FunctionRegistry, resolve, wrap
from cmdwrap.cmdwrap_config import WrapConfig
from cmdwrap.cmdwrap_runtime import CommandWrapper, Dispatcher, InvocationRunner, console_wrapper, main

__version__ = "0.1.0"
