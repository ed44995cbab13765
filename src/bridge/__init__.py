"""bridge - Remote development over SSH.

Syncs a project to a remote host and runs commands there, with
``${VAR}`` substitution, shell-aware quoting, host-scoped locks and
automatic recovery from dropped connections.

Quick Start:
    bridge init
    bridge sync
    bridge run "make test"
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
