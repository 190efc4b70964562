# SPDX-License-Identifier: MIT
# Copyright (c) 2026 Ourochronos Contributors

"""claimcheck - ownership verification for registry subjects.

Proves that whoever registers a domain or source repository actually
controls it, and keeps proving it:

  Challenge (token + proof string, time bounded)
    -> Verification (DNS TXT agreed by a resolver majority, or a hash file)
    -> Trust record (verified / unverified / challenged / revoked, scored 0-100)
    -> Sweep (daily re-check, grace period, archival)

CLI entry point: ``claimcheck``
"""

__version__ = "0.1.0"
