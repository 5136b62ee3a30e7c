"""
Renders usage text for a single function or for a whole set of callable names.
"""
import sys
from typing import Mapping, Optional

import pystache

from cmdwrap.cmdwrap_config import WrapConfig
from cmdwrap.cmdwrap_datatypes import CandidateSet, FunctionDescriptor, ParameterDescriptor
from cmdwrap.cmdwrap_docs import DocumentationProvider

BANNER_TEMPLATE = """\
{{title}}{{#version}} {{version}}{{/version}}
{{#copyright}}
{{copyright}}
{{/copyright}}

{{#summary}}
{{summary}}

{{/summary}}
{{{advice}}}
{{#error}}

SYNTAX ERROR:
    {{error}}
{{/error}}
"""

FUNCTION_TEMPLATE = """\
USAGE:
    {{program}}{{#command}} {{command}}{{/command}}{{#has_params}} [parameters]{{/has_params}}
{{#has_params}}

PARAMETERS:
{{#params}}
    {{flag}}
{{#description}}
        {{description}}
{{/description}}
{{/params}}
{{/has_params}}
"""

LISTING_TEMPLATE = """\
USAGE:
    {{program}} [method] [parameters]

METHODS:
{{#methods}}
    {{name}}{{#summary}} - {{summary}}{{/summary}}
{{/methods}}
"""


def parameter_flag(p: ParameterDescriptor) -> str:
    """`--name=Type` for required parameters, `[--name=Type] (optional)` otherwise."""
    flag = f"--{p.name}={p.display_type}"
    if not p.optional:
        return flag
    if p.default is None:
        return f"[{flag}] (optional)"
    return f"[{flag}] (optional, default {p.default})"


class HelpPrinter:
    """Builds help text from descriptors, configuration and documentation."""

    def __init__(self, config: Optional[WrapConfig] = None, docs: Optional[DocumentationProvider] = None, out=None):
        self.config = config or WrapConfig()
        self.docs = docs
        self.out = out
        self._renderer = pystache.Renderer(escape=lambda u: u)

    def _render(self, template: str, context: dict) -> str:
        return self._renderer.render(template, context)

    def _banner(self, advice: str, summary: Optional[str], error: Optional[str]) -> str:
        cfg = self.config
        text = self._render(BANNER_TEMPLATE, {
            "title": cfg.banner_title,
            "version": cfg.version,
            "copyright": cfg.copyright,
            "summary": summary.strip() if summary else None,
            "advice": advice.rstrip("\n"),
            "error": error,
        })
        return text.rstrip("\n") + "\n"

    # --- Help for one function ---

    def function_help(self, descriptor: FunctionDescriptor, error: Optional[str] = None,
                      command: Optional[str] = None) -> str:
        doc = self.docs.lookup(descriptor) if self.docs else None
        if doc is None and descriptor.description:
            summary = descriptor.description
        else:
            summary = doc.summary if doc else None
        params = []
        for p in descriptor.parameters:
            params.append({
                "flag": parameter_flag(p),
                "description": doc.params.get(p.name) if doc else None,
            })
        advice = self._render(FUNCTION_TEMPLATE, {
            "program": self.config.program_name,
            "command": command,
            "has_params": bool(params),
            "params": params,
        })
        return self._banner(advice, summary, error)

    # --- Help for a set of callable names ---

    def listing_help(self, calls: Mapping[str, CandidateSet], error: Optional[str] = None) -> str:
        methods = []
        for name, candidates in calls.items():
            summary = None
            if self.docs and len(candidates):
                summary = self.docs.summary(candidates.biggest)
            methods.append({"name": name, "summary": summary})
        advice = self._render(LISTING_TEMPLATE, {
            "program": self.config.program_name,
            "methods": methods,
        })
        return self._banner(advice, None, error)

    # --- Output ---

    def emit(self, text: str) -> None:
        out = self.out or sys.stdout
        out.write(text)
        out.flush()

    def show(self, error: Optional[str] = None, descriptor: Optional[FunctionDescriptor] = None,
             calls: Optional[Mapping[str, CandidateSet]] = None, command: Optional[str] = None) -> int:
        """Print help and return 0 if no error is attached, -1 otherwise."""
        if descriptor is not None:
            text = self.function_help(descriptor, error, command)
        else:
            text = self.listing_help(calls or {}, error)
        self.emit(text)
        return -1 if error else 0
