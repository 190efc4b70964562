"""CLI command modules for claimcheck.

Each module exposes a ``register(subparsers)`` function that wires up
its argparse sub-commands and sets ``parser.set_defaults(func=handler)``.
"""

from . import domains, maintenance, repo, status
from .domains import cmd_challenge, cmd_verify
from .maintenance import cmd_retry, cmd_revoke, cmd_sweep
from .repo import cmd_repo_claim, cmd_repo_owned, cmd_repo_verify
from .status import cmd_status, cmd_unverified

# All command modules with register() functions, in registration order.
COMMAND_MODULES = [
    domains,
    repo,
    status,
    maintenance,
]

__all__ = [
    "COMMAND_MODULES",
    "cmd_challenge",
    "cmd_repo_claim",
    "cmd_repo_owned",
    "cmd_repo_verify",
    "cmd_retry",
    "cmd_revoke",
    "cmd_status",
    "cmd_sweep",
    "cmd_unverified",
    "cmd_verify",
]
