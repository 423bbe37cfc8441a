"""Market data providers.

Providers return the normalized structures defined in
:mod:`candlevault.providers.models`.
"""

from __future__ import annotations
