"""
Maps command-line tokens onto a candidate's parameter slots.

Two token dialects are understood. The canonical one is `--name=value` or
`--name value`. The legacy dialect, bare `name=value` or `name value` pairs,
is accepted when `legacy_syntax` is on. Single-dash tokens are directives for
cmdwrap itself (`-L <folder>`) and are never bound to parameters.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from cmdwrap.cmdwrap_coerce import coerce
from cmdwrap.cmdwrap_datatypes import (
    UNFILLED, BoundArguments, FunctionDescriptor, MissingArguments,
    MissingRequiredParameter, MissingValueForOption, UnrecognizedOption
)

HELP_TOKENS = ("-h", "--help", "/h", "/help")

# Directive flag -> number of value tokens it consumes
DIRECTIVE_ARITY: Dict[str, int] = {
    "L": 1,
}


@dataclass
class Directives:
    """Options addressed to cmdwrap rather than to the wrapped function."""
    log_folder: Optional[str] = None


def is_help_request(tokens: Sequence[str]) -> bool:
    return len(tokens) == 1 and tokens[0].lower() in HELP_TOKENS


def _is_directive(token: str) -> bool:
    return len(token) > 1 and token.startswith("-") and not token.startswith("--")


def _takes_next_value(token: str, legacy_syntax: bool) -> bool:
    # An option without '=' swallows the following token, whatever it looks like
    if token.startswith("--"):
        return "=" not in token[2:]
    if legacy_syntax and not token.startswith("-"):
        return "=" not in token
    return False


def split_directives(tokens: Sequence[str], legacy_syntax: bool = True) -> Tuple[List[str], Directives]:
    """Separate cmdwrap directives from the tokens meant for the function."""
    remaining: List[str] = []
    directives = Directives()
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if _is_directive(token):
            flag = token[1:]
            if flag not in DIRECTIVE_ARITY:
                raise UnrecognizedOption(f"'{token}'")
            if i == len(tokens) - 1:
                raise MissingValueForOption(
                    token, f"Missing log folder name for '{token}' option.  Please specify '{token} <folder>'."
                )
            directives.log_folder = tokens[i + 1]
            i += 2
            continue
        remaining.append(token)
        if _takes_next_value(token, legacy_syntax) and i + 1 < len(tokens):
            remaining.append(tokens[i + 1])
            i += 1
        i += 1
    return remaining, directives


def _find_parameter(descriptor: FunctionDescriptor, name: str) -> Optional[int]:
    wanted = name.casefold()
    for index, p in enumerate(descriptor.parameters):
        if p.name.casefold() == wanted:
            return index
    return None


def bind(descriptor: FunctionDescriptor, tokens: Sequence[str], legacy_syntax: bool = True) -> BoundArguments:
    """Bind `tokens` to the parameters of `descriptor`.

    Raises a BindError subclass describing the first mismatch. The slot vector
    is local to this call, so a failed attempt leaves nothing behind.
    """
    params = descriptor.parameters
    required = descriptor.required
    if not tokens and required:
        raise MissingArguments(required[0].name)

    slots = [UNFILLED] * len(params)
    i = 0
    while i < len(tokens):
        token = tokens[i]
        if token.startswith("--"):
            body = token[2:]
        elif _is_directive(token):
            i += 1 + DIRECTIVE_ARITY.get(token[1:], 0)
            continue
        elif legacy_syntax:
            body = token
        else:
            raise UnrecognizedOption(token)

        name, sep, value = body.partition("=")
        if not name:
            raise UnrecognizedOption(token)
        if not sep:
            if i == len(tokens) - 1:
                raise MissingValueForOption(name)
            i += 1
            value = tokens[i]

        index = _find_parameter(descriptor, name)
        if index is None:
            raise UnrecognizedOption(token)
        p = params[index]
        slots[index] = coerce(p.type, value, p.type_name, p.name)
        i += 1

    for p, slot in zip(params, slots):
        if slot is UNFILLED and not p.optional:
            raise MissingRequiredParameter(p.name)
    return BoundArguments(descriptor, slots)
