"""Membership domain errors."""


class StorageError(Exception):
    """Users, payments or plans could not be read; the cycle is aborted."""


class CycleInProgressError(Exception):
    """An expiration cycle is already running."""
