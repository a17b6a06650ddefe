import pytest
from unittest.mock import MagicMock

from accessguard.exceptions import PolicyViolation
from accessguard.guard.configuration import GuardConfiguration
from accessguard.guard.schemas import AccessEvaluation, AccessKind, Record
from accessguard.guard.security import SecurityGuard


def _account(**fields):
    return Record(type="Account", id="001", fields={"Name": "Acme", **fields})


def _engine_removing(object_type, *field_names):
    """Permission engine stub that strips the given fields from every record."""
    engine = MagicMock()

    def _evaluate(access_kind, records, strip=True):
        hidden = set(field_names)
        output, removed = [], {}
        for record in records:
            gone = hidden & set(record.fields) if record.type == object_type else set()
            if gone:
                removed.setdefault(record.type, set()).update(gone)
                output.append(record.without_fields(gone))
            else:
                output.append(record)
        return AccessEvaluation(records=output, removed_fields=removed)

    engine.evaluate_access.side_effect = _evaluate
    return engine


class TestSecurityGuard:
    @pytest.mark.parametrize("kind", list(AccessKind))
    def test_elevated_bypasses_permission_engine(self, kind):
        engine = _engine_removing("Account", "Industry")
        config = GuardConfiguration().set_trust_level("elevated").require_all_fields()
        records = [_account(Industry="Energy")]

        result = SecurityGuard(engine, config).guard(kind, records)

        assert result is records
        assert result[0].fields["Industry"] == "Energy"
        engine.evaluate_access.assert_not_called()

    def test_empty_input_is_returned_without_evaluation(self):
        engine = _engine_removing("Account", "Industry")
        records = []

        result = SecurityGuard(engine, GuardConfiguration()).guard(AccessKind.readable, records)

        assert result is records
        engine.evaluate_access.assert_not_called()

    def test_policy_disabled_strips_silently(self):
        engine = _engine_removing("Account", "Industry")
        record = _account(Industry="Energy")

        result = SecurityGuard(engine, GuardConfiguration()).guard(AccessKind.readable, [record])

        assert result[0].fields == {"Name": "Acme"}
        # Caller's record is not mutated
        assert record.fields["Industry"] == "Energy"
        engine.evaluate_access.assert_called_once()
        assert engine.evaluate_access.call_args.kwargs["strip"] is True

    def test_access_kind_is_forwarded(self):
        engine = _engine_removing("Account")
        SecurityGuard(engine, GuardConfiguration()).guard(AccessKind.upsertable, [_account()])
        assert engine.evaluate_access.call_args.args[0] == AccessKind.upsertable

    def test_strict_policy_raises(self):
        engine = _engine_removing("Account", "Industry")
        config = GuardConfiguration().require_all_fields()

        with pytest.raises(PolicyViolation, match="Account.Industry") as exc_info:
            SecurityGuard(engine, config).guard(AccessKind.readable, [_account(Industry="Energy")])

        assert exc_info.value.violations == ["Account.Industry"]

    def test_named_policy_tolerates_unlisted_removal(self):
        engine = _engine_removing("Account", "Industry")
        config = GuardConfiguration().require_fields("Account", {"Rating"})

        result = SecurityGuard(engine, config).guard(
            AccessKind.readable, [_account(Industry="Energy", Rating="Hot")]
        )

        assert result[0].fields == {"Name": "Acme", "Rating": "Hot"}

    def test_named_policy_raises_on_listed_removal(self):
        engine = _engine_removing("Account", "Rating")
        config = GuardConfiguration().require_fields("Account", {"Rating"})

        with pytest.raises(PolicyViolation, match="Account.Rating"):
            SecurityGuard(engine, config).guard(AccessKind.readable, [_account(Rating="Hot")])

    def test_named_policy_ignores_other_object_types(self):
        engine = _engine_removing("Contact", "Rating")
        config = GuardConfiguration().require_fields("Account", {"Rating"})
        contact = Record(type="Contact", id="003", fields={"Rating": "Cold", "Email": "a@b.c"})

        result = SecurityGuard(engine, config).guard(AccessKind.updatable, [contact])

        assert result[0].fields == {"Email": "a@b.c"}

    def test_violation_lists_every_field_sorted(self):
        engine = _engine_removing("Account", "Rating", "Industry", "Phone")
        config = GuardConfiguration().require_all_fields()
        records = [_account(Rating="Hot", Industry="Energy"), _account(Phone="555")]

        with pytest.raises(PolicyViolation) as exc_info:
            SecurityGuard(engine, config).guard(AccessKind.creatable, records)

        error = exc_info.value
        assert error.violations == ["Account.Industry", "Account.Phone", "Account.Rating"]
        assert "Account.Industry, Account.Phone, Account.Rating" in error.message
        assert error.to_dict()["details"]["fields"] == error.violations
        assert error.code == "POLICY_VIOLATION"

    def test_single_record_is_unwrapped(self):
        engine = _engine_removing("Account", "Industry")

        result = SecurityGuard(engine, GuardConfiguration()).guard(
            AccessKind.readable, _account(Industry="Energy")
        )

        assert isinstance(result, Record)
        assert result.fields == {"Name": "Acme"}
        assert engine.evaluate_access.call_args.args[1] == [_account(Industry="Energy")]

    def test_evaluate_returns_decision_without_raising(self):
        engine = _engine_removing("Account", "Industry", "Rating")
        config = GuardConfiguration().require_fields("Account", ["Rating"])

        decision = SecurityGuard(engine, config).evaluate(
            AccessKind.readable, [_account(Industry="Energy", Rating="Hot")]
        )

        assert decision.evaluated is True
        assert decision.ok is False
        assert decision.violations == ["Account.Rating"]
        assert decision.removed_fields == {"Account": {"Industry", "Rating"}}
        assert decision.records[0].fields == {"Name": "Acme"}

    def test_guard_reads_configuration_changes(self):
        engine = _engine_removing("Account", "Industry")
        config = GuardConfiguration()
        guard = SecurityGuard(engine, config)

        guard.guard(AccessKind.readable, [_account(Industry="Energy")])
        config.require_all_fields()

        with pytest.raises(PolicyViolation):
            guard.guard(AccessKind.readable, [_account(Industry="Energy")])

    def test_elevated_bypass_with_iterator_returns_records(self):
        engine = _engine_removing("Account", "Industry")
        config = GuardConfiguration().set_trust_level("elevated")
        record = _account(Industry="Energy")

        result = SecurityGuard(engine, config).guard(
            AccessKind.readable, (r for r in [record])
        )

        assert result == [record]
        assert result[0] is record
        engine.evaluate_access.assert_not_called()
