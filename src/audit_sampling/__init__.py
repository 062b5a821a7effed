# Minimal package initializer; public API resolved through lazy imports.
__version__ = "1.0.0"

_EXPORTS = {
    "run_sampling": "engine",
    "sample_population": "engine",
    "compute_population": "population",
    "plan_size": "planner",
    "plan_strata": "planner",
    "select_sample": "sampler",
    "annotate": "annotator",
    "assemble": "assembler",
    "InvalidParameters": "errors",
}


def __getattr__(name: str):
    if name in _EXPORTS:
        from importlib import import_module

        module = import_module(f".{_EXPORTS[name]}", __name__)
        return getattr(module, name)
    raise AttributeError(name)
