"""
Documentation lookup for help output.

Two sources are consulted, in order:

1. A YAML sidecar next to the module source (`tools.py` -> `tools.yaml`),
   keyed by function qualname:

       greet:
         summary: Say hello to someone.
         params:
           name: Who to greet.

2. The function's own docstring. The first paragraph is the summary; Google
   style `Args:` sections and Sphinx `:param name:` fields give parameter text.

Sidecars are parsed once per module. A module whose sidecar is missing or
broken is remembered as such and never re-read. Missing documentation is
never an error.
"""

import inspect
import re
import sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Optional

import yaml
from loguru import logger

from cmdwrap.cmdwrap_datatypes import FunctionDescriptor


class DocumentationUnavailable(Exception):
    pass


@dataclass
class FunctionDoc:
    summary: Optional[str] = None
    params: Dict[str, str] = field(default_factory=dict)

    def __bool__(self):
        return bool(self.summary or self.params)


# --------------------------
# Docstring parsing
# --------------------------

_SECTION_RE = re.compile(r'^(Args|Arguments|Parameters|Params)\s*:\s*$')
_OTHER_SECTION_RE = re.compile(r'^[A-Z][A-Za-z ]*:\s*$')
_GOOGLE_ARG_RE = re.compile(r'^(\*{0,2}\w+)\s*(?:\([^)]*\))?\s*:\s*(.*)$')
_SPHINX_PARAM_RE = re.compile(r'^:param\s+(?:[^:]*\s)?(\w+)\s*:\s*(.*)$')


def _first_paragraph(lines) -> Optional[str]:
    out = []
    for line in lines:
        stripped = line.strip()
        if not stripped or _SECTION_RE.match(stripped) or stripped.startswith(":"):
            break
        out.append(stripped)
    return " ".join(out) or None


def parse_docstring(doc: Optional[str]) -> FunctionDoc:
    if not doc:
        return FunctionDoc()
    lines = inspect.cleandoc(doc).splitlines()
    params: Dict[str, str] = {}
    section = None
    current = None
    arg_indent = None
    for line in lines:
        stripped = line.strip()
        indent = len(line) - len(line.lstrip())
        m = _SPHINX_PARAM_RE.match(stripped)
        if m:
            current, section = m.group(1), "sphinx"
            params[current] = m.group(2).strip()
            continue
        if _SECTION_RE.match(stripped):
            section, current, arg_indent = "args", None, None
            continue
        if not stripped:
            current = None
            if section == "sphinx":
                section = None
            continue
        if section == "args":
            if indent == 0 and _OTHER_SECTION_RE.match(stripped):
                section, current = None, None
                continue
            m = _GOOGLE_ARG_RE.match(stripped)
            if m and (arg_indent is None or indent <= arg_indent):
                current = m.group(1).lstrip("*")
                arg_indent = indent
                params[current] = m.group(2).strip()
                continue
        if current and indent > 0:
            params[current] = f"{params[current]} {stripped}".strip()
        elif stripped.startswith(":"):
            current = None
    return FunctionDoc(summary=_first_paragraph(lines), params=params)


# --------------------------
# Provider
# --------------------------

class DocumentationProvider:
    """Looks up summaries and parameter descriptions for descriptors.

    Owns the per-module sidecar cache and the failure cache. Both live for the
    lifetime of the provider; entries are written on first miss only.
    """

    def __init__(self, use_sidecars: bool = True, use_docstrings: bool = True):
        self.use_sidecars = use_sidecars
        self.use_docstrings = use_docstrings
        self._cache: Dict[str, dict] = {}
        self._fail_cache: Dict[str, Exception] = {}
        self._docstring_cache: Dict[int, FunctionDoc] = {}

    # --- Sidecars ---

    def _sidecar_path(self, module_name: str) -> Path:
        module = sys.modules.get(module_name)
        filename = getattr(module, "__file__", None) if module else None
        if not filename:
            raise DocumentationUnavailable(f"Could not ascertain the source file of module {module_name}")
        return Path(filename).with_suffix(".yaml")

    def _load_sidecar_uncached(self, module_name: str) -> dict:
        path = self._sidecar_path(module_name)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError as e:
            raise DocumentationUnavailable(f"Documentation file {path} not present") from e
        data = yaml.safe_load(text)
        if not isinstance(data, dict):
            raise DocumentationUnavailable(f"Documentation file {path} is not a mapping")
        return data

    def sidecar(self, module_name: str) -> dict:
        """Return the parsed sidecar for a module, raising if there is none."""
        if module_name in self._fail_cache:
            raise self._fail_cache[module_name]
        try:
            if module_name not in self._cache:
                self._cache[module_name] = self._load_sidecar_uncached(module_name)
            return self._cache[module_name]
        except (DocumentationUnavailable, OSError, yaml.YAMLError) as e:
            self._fail_cache[module_name] = e
            raise

    def _from_sidecar(self, descriptor: FunctionDescriptor) -> Optional[FunctionDoc]:
        module_name = getattr(descriptor.func, "__module__", None)
        if not module_name:
            return None
        try:
            tree = self.sidecar(module_name)
        except (DocumentationUnavailable, OSError, yaml.YAMLError) as e:
            logger.debug("Sidecar help is not available for {}: {}", module_name, e)
            return None
        entry = tree.get(descriptor.qualname)
        if entry is None and descriptor.display_name:
            entry = tree.get(descriptor.display_name)
        if isinstance(entry, str):
            return FunctionDoc(summary=entry.strip())
        if not isinstance(entry, dict):
            return None
        params = entry.get("params") or {}
        return FunctionDoc(
            summary=(str(entry["summary"]).strip() if entry.get("summary") else None),
            params={str(k): str(v).strip() for k, v in params.items()} if isinstance(params, dict) else {},
        )

    # --- Docstrings ---

    def _from_docstring(self, descriptor: FunctionDescriptor) -> FunctionDoc:
        key = id(descriptor.func)
        if key not in self._docstring_cache:
            self._docstring_cache[key] = parse_docstring(inspect.getdoc(descriptor.func))
        return self._docstring_cache[key]

    # --- Public API ---

    def lookup(self, descriptor: FunctionDescriptor) -> Optional[FunctionDoc]:
        found = FunctionDoc()
        if self.use_docstrings:
            doc = self._from_docstring(descriptor)
            found = FunctionDoc(doc.summary, dict(doc.params))
        if self.use_sidecars:
            side = self._from_sidecar(descriptor)
            if side:
                found.summary = side.summary or found.summary
                found.params.update(side.params)
        if descriptor.description:
            found.summary = descriptor.description
        return found or None

    def summary(self, descriptor: FunctionDescriptor) -> Optional[str]:
        doc = self.lookup(descriptor)
        return doc.summary if doc else None

    def parameter(self, descriptor: FunctionDescriptor, name: str) -> Optional[str]:
        doc = self.lookup(descriptor)
        return doc.params.get(name) if doc else None
