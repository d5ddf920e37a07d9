"""Datastore for profiles and feed items."""

from placetime_fetcher.database.datastore import Datastore
from placetime_fetcher.database.models import Item, Profile

__all__ = [
    "Datastore",
    "Item",
    "Profile",
]
