"""vmprep: feature-driven preparation of freshly provisioned Windows VMs.

Core design goals:
- Features are self-describing files discovered by name order
- Metadata is read statically; feature code only runs when executed
- Per-feature configuration is a whitelist merge over hard-coded defaults
- One feature's failure never hides the outcome of the others
- Centralized logging
"""

__all__ = []
