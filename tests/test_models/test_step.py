from __future__ import annotations

import pytest
from packaging.version import InvalidVersion

from drupal_upgrader.models.step import UpgradeStep


@pytest.mark.unit
class TestUpgradeStep:
    """Tests for UpgradeStep."""

    def test_components(self) -> None:
        step = UpgradeStep("10.3.0")

        assert step.major == 10
        assert step.minor == 3
        assert str(step) == "10.3.0"

    @pytest.mark.parametrize(
        "version, constraint",
        [("9.5.0", "^9.5"), ("10.0.0", "^10.0"), ("11.0.0", "^11.0")],
    )
    def test_core_constraint(self, version: str, constraint: str) -> None:
        assert UpgradeStep(version).core_constraint == constraint

    def test_equality_and_hash(self) -> None:
        assert UpgradeStep("10.0.0") == UpgradeStep("10.0.0")
        assert len({UpgradeStep("10.0.0"), UpgradeStep("10.0.0")}) == 1

    def test_invalid_version(self) -> None:
        with pytest.raises(InvalidVersion):
            UpgradeStep("ten")
