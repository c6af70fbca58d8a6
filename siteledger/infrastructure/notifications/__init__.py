"""Realtime notification helpers for the infrastructure layer."""

from .feed import DEFAULT_CHANGE_KINDS, ChangeFeed, ChangeSubscription

__all__ = [
    "ChangeFeed",
    "ChangeSubscription",
    "DEFAULT_CHANGE_KINDS",
]
