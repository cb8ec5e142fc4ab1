# src/lifecycle_tasks/worker/loader.py

from __future__ import annotations

import importlib
import importlib.util
import logging
import os
import sys
from pathlib import Path
from types import ModuleType

from ..core.errors import LoadFailure, ModuleLoadError
from ..core.ports import TaskUnit

logger = logging.getLogger(__name__)


def looks_like_path(target: str) -> bool:
    return target.endswith(".py") or "/" in target or os.sep in target


class ImportlibModuleLoader:
    """
    Turn a target into a TaskUnit.

    Targets:
    - a file path ("jobs/resize.py"): loaded with spec_from_file_location
    - a dotted module name ("jobs.resize"): imported with import_module

    The module must define a callable `run(signal, *args)`; `abort()` is optional.
    """

    def load(self, target: str) -> TaskUnit:
        if not target or not target.strip():
            raise ModuleLoadError(target, LoadFailure.NOT_FOUND, "empty module target")

        module = self._load_file(target) if looks_like_path(target) else self._import(target)

        run = getattr(module, "run", None)
        if not callable(run):
            raise ModuleLoadError(target, LoadFailure.INVALID_MODULE, "module does not define run()")

        abort = getattr(module, "abort", None)
        if abort is not None and not callable(abort):
            raise ModuleLoadError(target, LoadFailure.INVALID_MODULE, "module attribute abort is not callable")

        logger.debug("Loaded task module %s (abort hook: %s)", target, abort is not None)
        return TaskUnit(name=module.__name__, run=run, abort=abort)

    @staticmethod
    def _load_file(target: str) -> ModuleType:
        path = Path(target).expanduser().resolve()
        if not path.is_file():
            raise ModuleLoadError(target, LoadFailure.NOT_FOUND, f"no such file: {path}")

        name = f"_lifecycle_task_{path.stem}"
        spec = importlib.util.spec_from_file_location(name, str(path))
        if spec is None or spec.loader is None:
            raise ModuleLoadError(target, LoadFailure.INVALID_MODULE, "not an importable Python file")

        module = importlib.util.module_from_spec(spec)
        sys.modules[name] = module
        try:
            spec.loader.exec_module(module)
        except Exception as exc:
            sys.modules.pop(name, None)
            raise ModuleLoadError(target, LoadFailure.IMPORT_FAILED, f"{type(exc).__name__}: {exc}") from exc
        return module

    @staticmethod
    def _import(target: str) -> ModuleType:
        try:
            return importlib.import_module(target)
        except ModuleNotFoundError as exc:
            # A missing dependency inside an existing module is an import failure, not "not found".
            if exc.name and (target == exc.name or target.startswith(exc.name + ".")):
                raise ModuleLoadError(target, LoadFailure.NOT_FOUND, str(exc)) from exc
            raise ModuleLoadError(target, LoadFailure.IMPORT_FAILED, str(exc)) from exc
        except Exception as exc:
            raise ModuleLoadError(target, LoadFailure.IMPORT_FAILED, f"{type(exc).__name__}: {exc}") from exc
