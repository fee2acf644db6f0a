"""
Quota module: credential store, window policy, admission and sweeping.

Implements fixed-window admission control per API key with durable,
per-key serialized counters.
"""

from geogate.quota.engine import (
    AdmissionEngine,
    Decision,
    DecisionStatus,
    RejectReason,
    ms_to_iso,
)
from geogate.quota.locks import KeyedLock
from geogate.quota.store import CasResult, Credential, CredentialStore, generate_key
from geogate.quota.sweeper import ExpirySweeper
from geogate.quota.window import expiry_cutoff, is_expired, now_ms, reset_at

__all__ = [
    "AdmissionEngine",
    "CasResult",
    "Credential",
    "CredentialStore",
    "Decision",
    "DecisionStatus",
    "ExpirySweeper",
    "KeyedLock",
    "RejectReason",
    "expiry_cutoff",
    "generate_key",
    "is_expired",
    "ms_to_iso",
    "now_ms",
    "reset_at",
]
