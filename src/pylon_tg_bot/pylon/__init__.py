"""Client for the Pylon ticketing API."""

from .client import PylonClient, PylonError
from .models import Account, CreatedIssue

__all__ = [
    "Account",
    "CreatedIssue",
    "PylonClient",
    "PylonError",
]
