"""Launch the functions of an outside module: python -m cmdwrap <module> [function] [parameters]"""

import importlib
import importlib.util
import sys
from dataclasses import replace
from pathlib import Path

from dotenv import load_dotenv

from cmdwrap.cmdwrap_binder import is_help_request
from cmdwrap.cmdwrap_config import WrapConfig
from cmdwrap.cmdwrap_runtime import main

LAUNCHER_HELP = """\
cmdwrap

USAGE:
    cmdwrap [module] [function] [parameters]

PARAMETERS:
    [module]: A dotted module name importable from the current directory,
        or the path to a .py file.
    [function]: The function to execute; may be omitted when the module
        exposes only one function.
    [parameters]: --name=value pairs for the function, plus -L <folder>
        to log the function's output into a folder.
"""


def load_target(target: str):
    """Import a module by dotted name or by file path."""
    path = Path(target)
    if target.endswith(".py") or path.parent != Path("."):
        if not path.is_file():
            raise FileNotFoundError(target)
        name = path.stem
        spec = importlib.util.spec_from_file_location(name, path)
        if spec is None or spec.loader is None:
            raise ImportError(f"Unable to load module from file: {target}")
        module = importlib.util.module_from_spec(spec)
        # Registered so documentation sidecars can be located from the module
        sys.modules[name] = module
        sys.path.insert(0, str(path.resolve().parent))
        spec.loader.exec_module(module)
        return module
    if "" not in sys.path:
        sys.path.insert(0, "")
    return importlib.import_module(target)


def run(argv=None) -> int:
    load_dotenv(".env.cmdwrap")
    argv = sys.argv[1:] if argv is None else list(argv)
    if not argv or is_help_request(argv[:1]):
        print(LAUNCHER_HELP)
        return 0 if argv else -1

    target, rest = argv[0], argv[1:]
    try:
        module = load_target(target)
    except (FileNotFoundError, ModuleNotFoundError):
        print(f"Unable to find module: {target}")
        print(LAUNCHER_HELP)
        return -1

    config = replace(WrapConfig.from_module(module), program_name=f"cmdwrap {target}")
    return main(rest, module=module, config=config)


if __name__ == "__main__":
    sys.exit(run())
