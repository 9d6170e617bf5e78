"""
Stratum - versioned schema and configuration upgrades.

- stratum.core: dialects, errors, logging, settings, protocols
- stratum.upgrade: schema accessor, config store, property rules, catalogs
"""

__version__ = "0.1.0"

from stratum.core import *  # noqa
