from __future__ import annotations

import logging
from typing import List, Sequence, Union

from accessguard.exceptions import PolicyViolation
from .configuration import GuardConfiguration
from .interfaces import PermissionEngine
from .schemas import AccessKind, GuardDecision, Record, TrustLevel

logger = logging.getLogger(__name__)

Records = Union[Record, Sequence[Record]]


class SecurityGuard:
    """
    Applies the removed-field policy to the output of the permission engine.

    The guard never decides field accessibility itself: it asks the
    permission engine to strip inaccessible fields, then checks the removals
    against the configured policy.
    """

    def __init__(self, permissions: PermissionEngine, config: GuardConfiguration):
        self.permissions = permissions
        self.config = config

    def evaluate(self, access_kind: AccessKind, records: Sequence[Record]) -> GuardDecision:
        """Run the policy without raising; violations are returned on the decision."""
        records = list(records)
        if self.config.trust_level == TrustLevel.elevated or not records:
            logger.debug(
                "Guard bypass for %s (trust=%s, records=%d)",
                access_kind.value,
                self.config.trust_level.value,
                len(records),
            )
            return GuardDecision(records=records)

        evaluation = self.permissions.evaluate_access(access_kind, records, strip=True)
        removed = {
            obj: set(fields) for obj, fields in evaluation.removed_fields.items() if fields
        }
        if removed:
            logger.debug(
                "Fields removed for %s: %s",
                access_kind.value,
                {obj: sorted(fields) for obj, fields in sorted(removed.items())},
            )

        policy = self.config.removed_field_policy
        violations = sorted(
            f"{obj}.{field}"
            for obj, fields in removed.items()
            for field in fields
            if policy.is_critical(obj, field)
        )
        return GuardDecision(
            records=list(evaluation.records),
            removed_fields=removed,
            violations=violations,
            evaluated=True,
        )

    def guard(self, access_kind: AccessKind, records: Records) -> Records:
        """
        Return `records` with inaccessible fields stripped, or raise
        PolicyViolation naming every critical field that was removed.
        A single record comes back as a single record.
        """
        single = isinstance(records, Record)
        batch: List[Record] = [records] if single else list(records)

        decision = self.evaluate(access_kind, batch)
        if not decision.ok:
            logger.warning(
                "Policy violation on %s: %s", access_kind.value, ", ".join(decision.violations)
            )
            raise PolicyViolation(decision.violations, access_kind=access_kind.value)

        if not decision.evaluated:
            # Iterators were consumed above; hand back the materialized batch.
            return records if single or isinstance(records, Sequence) else batch
        return decision.records[0] if single else decision.records
