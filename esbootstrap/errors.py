"""
Exceptions raised while bootstrapping indices.

- GatewayError: the cluster could not be reached, or the call raised (transport errors, timeouts)
- ClusterRejection: the cluster answered, but declined (e.g. acknowledged=false)
- ReconciliationError: a resource could not be brought in line with its schema. This is fatal:
  it should stop the process rather than let an index with a stale mapping serve traffic.
"""

from typing import Sequence

from esbootstrap.models import PathedDifference


class BootstrapError(Exception):
    pass


class GatewayError(BootstrapError):
    def __init__(self, operation: str, message: str, **identifiers: str | None):
        self.operation = operation
        self.identifiers = {k: v for k, v in identifiers.items() if v is not None}
        context = ", ".join(f"{k}={v}" for k, v in self.identifiers.items())
        super().__init__(f"{operation} failed ({context}): {message}" if context else f"{operation} failed: {message}")


class ClusterRejection(GatewayError):
    pass


class ScriptLoadError(BootstrapError):
    pass


class ReconciliationError(BootstrapError):
    def __init__(
        self,
        message: str,
        alias: str,
        index_name: str,
        step: str,
        differences: Sequence[PathedDifference] = (),
    ):
        self.alias = alias
        self.index_name = index_name
        self.step = step
        self.differences = list(differences)
        super().__init__(f"[{alias} -> {index_name}] {step}: {message}")
