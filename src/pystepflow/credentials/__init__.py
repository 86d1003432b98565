"""Credential stores and the per-run credential resolver."""

from pystepflow.credentials.base import CredentialStore
from pystepflow.credentials.env import EnvironmentCredentialStore
from pystepflow.credentials.memory import InMemoryCredentialStore
from pystepflow.credentials.resolver import CredentialResolver

__all__ = [
    "CredentialStore",
    "CredentialResolver",
    "EnvironmentCredentialStore",
    "InMemoryCredentialStore",
]
