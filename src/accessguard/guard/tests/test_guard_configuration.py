import pytest

from accessguard.config import Settings
from accessguard.exceptions import ConfigurationError
from accessguard.guard.configuration import GuardConfiguration
from accessguard.guard.schemas import BulkOptions, TrustLevel


class TestGuardConfiguration:
    def test_defaults(self):
        config = GuardConfiguration()

        assert config.trust_level == TrustLevel.restricted
        assert config.removed_field_policy.enabled is False
        assert config.removed_field_policy.required_fields == {}
        assert config.bulk_options.allow_field_truncation is True
        assert config.bulk_options.all_or_none is True

    def test_setters_chain_on_same_instance(self):
        config = GuardConfiguration()

        result = (
            config.set_trust_level(TrustLevel.elevated)
            .set_bulk_all_or_none(False)
            .require_all_fields()
        )

        assert result is config
        assert config.trust_level == TrustLevel.elevated
        assert config.bulk_options.all_or_none is False
        assert config.removed_field_policy.is_strict is True

    def test_set_bulk_all_or_none_defaults_to_true(self):
        config = GuardConfiguration().set_bulk_all_or_none(False)
        config.set_bulk_all_or_none()
        assert config.bulk_options.all_or_none is True

    def test_all_or_nothing_alias(self):
        config = GuardConfiguration().set_bulk_all_or_none(False).all_or_nothing()
        assert config.bulk_options.all_or_none is True

    def test_set_trust_level_accepts_string(self):
        config = GuardConfiguration().set_trust_level("elevated")
        assert config.trust_level == TrustLevel.elevated

    def test_set_trust_level_rejects_unknown(self):
        with pytest.raises(ConfigurationError, match="Unknown trust level"):
            GuardConfiguration().set_trust_level("root")

    def test_replace_bulk_options(self):
        config = GuardConfiguration()
        options = BulkOptions(allow_field_truncation=False, all_or_none=False)

        config.replace_bulk_options(options)

        assert config.bulk_options == options
        # Stored as a copy, later changes to the caller's object don't leak in
        assert config.bulk_options is not options

    def test_replace_bulk_options_from_dict(self):
        config = GuardConfiguration().replace_bulk_options({"all_or_none": False})
        assert config.bulk_options.all_or_none is False
        assert config.bulk_options.allow_field_truncation is True

    def test_replace_bulk_options_rejects_none(self):
        with pytest.raises(ConfigurationError):
            GuardConfiguration().replace_bulk_options(None)

    def test_require_fields_merges(self):
        config = GuardConfiguration()

        config.require_fields("Account", {"X", "Y"})
        assert config.removed_field_policy.enabled is True
        assert len(config.removed_field_policy.required_fields["Account"]) == 2

        config.require_fields("Account", ["Y", "Z"])
        assert config.removed_field_policy.required_fields["Account"] == {"X", "Y", "Z"}
        assert config.removed_field_policy.is_strict is False

    @pytest.mark.parametrize(
        "object_type, field_names",
        [("", {"X"}), ("   ", {"X"}), (None, {"X"}), ("Account", set()), ("Account", None)],
    )
    def test_require_fields_rejects_blank_input(self, object_type, field_names):
        config = GuardConfiguration()

        with pytest.raises(ConfigurationError):
            config.require_fields(object_type, field_names)

        # A rejected call leaves the policy untouched
        assert config.removed_field_policy.enabled is False

    def test_configuration_error_is_value_error(self):
        with pytest.raises(ValueError):
            GuardConfiguration().require_fields("", {"X"})

    def test_require_all_fields_toggle(self):
        config = GuardConfiguration().require_all_fields()
        assert config.removed_field_policy.is_strict is True

        config.require_all_fields(False)
        assert config.removed_field_policy.enabled is False

    def test_require_all_fields_keeps_named_fields(self):
        config = GuardConfiguration().require_fields("Account", ["Rating"])
        config.require_all_fields()

        policy = config.removed_field_policy
        assert policy.is_strict is False
        assert policy.is_critical("Account", "Rating")
        assert not policy.is_critical("Account", "Industry")

    def test_from_settings(self):
        settings = Settings(
            DEFAULT_TRUST_LEVEL="elevated",
            BULK_ALL_OR_NONE=False,
            BULK_ALLOW_FIELD_TRUNCATION=False,
        )

        config = GuardConfiguration.from_settings(settings)

        assert config.trust_level == TrustLevel.elevated
        assert config.bulk_options == BulkOptions(
            allow_field_truncation=False, all_or_none=False
        )
        assert config.removed_field_policy.enabled is False

    def test_copy_is_independent(self):
        config = GuardConfiguration().require_fields("Account", ["Rating"])
        clone = config.copy()

        clone.require_fields("Account", ["Industry"]).set_trust_level("elevated")

        assert config.removed_field_policy.required_fields == {"Account": {"Rating"}}
        assert config.trust_level == TrustLevel.restricted

    def test_snapshot(self):
        config = GuardConfiguration().require_fields("Account", ["Rating", "Name"])

        assert config.snapshot() == {
            "trust_level": "restricted",
            "bulk_options": {"allow_field_truncation": True, "all_or_none": True},
            "removed_field_policy": {
                "enabled": True,
                "strict": False,
                "required_fields": {"Account": ["Name", "Rating"]},
            },
        }
