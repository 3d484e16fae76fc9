"""OCDS release feed: raw release model and clients."""

from .base import FeedSource, StaticFeed
from .client import OcdsFeedClient
from .models import (
    RawAddress,
    RawAward,
    RawBuyer,
    RawClassification,
    RawContactPoint,
    RawDocument,
    RawItem,
    RawParty,
    RawRelease,
    RawTender,
    RawValue,
    coerce_release,
)

__all__ = [
    # Sources
    "FeedSource",
    "OcdsFeedClient",
    "StaticFeed",
    # Raw release model
    "RawAddress",
    "RawAward",
    "RawBuyer",
    "RawClassification",
    "RawContactPoint",
    "RawDocument",
    "RawItem",
    "RawParty",
    "RawRelease",
    "RawTender",
    "RawValue",
    "coerce_release",
]
