"""
lxc-bootstrap - resumable provisioning of a container that hosts a web app.

A provisioning run is an ordered list of named steps. Each step is recorded
in a persisted progress ledger once its action succeeds, and every answer
given to the operator prompts is persisted in a session store. Re-running
the program resumes exactly where the previous invocation stopped, without
repeating finished work or asking the same questions twice.

Example usage:
    from lxcbootstrap import Session, StepRunner
    from lxcbootstrap.storage import open_file_stores

    store, ledger = open_file_stores("/root/.lxc-bootstrap")
    session = Session(store, ledger)
    report = StepRunner(store, ledger).run(steps)
    print(report.state)
"""

__version__ = "0.1.0"
__all__ = [
    "BootstrapConfig",
    "Session",
    "Step",
    "StepRunner",
    "RunReport",
    "get_config",
    "__version__",
]


# Lazy imports keep `lxc-bootstrap --version` free of heavy imports
def __getattr__(name: str):
    if name in ("BootstrapConfig", "get_config"):
        from lxcbootstrap import config
        return getattr(config, name)
    if name == "Session":
        from lxcbootstrap.session import Session
        return Session
    if name in ("Step", "StepRunner", "RunReport"):
        from lxcbootstrap import runner
        return getattr(runner, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
