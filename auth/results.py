"""
auth/results.py -- Tagged outcome type shared by the service layer and the gate.

Every auth operation resolves to exactly one of:

  Ok(value, message)        -- the operation succeeded.
  PolicyRejected(message)   -- a normal, user-safe refusal (bad credentials,
                               rate limited, duplicate email, validation).
  Fault(kind, message)      -- the call must not proceed (missing or invalid
                               credentials at the gate, or an internal failure
                               the gate cannot recover from).

Only api/ translates these into HTTP: Ok and PolicyRejected become a normal
200 payload with success=true/false, Fault becomes an error status.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class FaultKind(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    INTERNAL = "internal"


@dataclass(frozen=True)
class Ok:
    value: Any = None
    message: str = ""


@dataclass(frozen=True)
class PolicyRejected:
    message: str


@dataclass(frozen=True)
class Fault:
    kind: FaultKind
    message: str


Outcome = Union[Ok, PolicyRejected, Fault]
