"""
Formation vault: an owner-gated record registry with classified, expiring access grants.
"""

from .core.config import VERSION

__version__ = VERSION
