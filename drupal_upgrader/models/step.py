"""
Upgrade step model.

An :class:`UpgradeStep` is one stop on the way from the installed core
version to the target: either the final minor release of the current
major, or the first release of a later major.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from packaging.version import Version


@dataclass(frozen=True)
class UpgradeStep:
    """A core version the project is moved to in one update pass.

    Attributes:
        version: Full release number, e.g. ``"10.0.0"``.
    """

    version: str
    _parsed: Version = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        # Raises InvalidVersion for malformed input; steps are only built
        # from known release numbers.
        object.__setattr__(self, "_parsed", Version(self.version))

    def __str__(self) -> str:
        return self.version

    @property
    def major(self) -> int:
        return self._parsed.major

    @property
    def minor(self) -> int:
        return self._parsed.minor

    @property
    def core_constraint(self) -> str:
        """Caret constraint pinning core to this step's minor line.

        ``9.5.0`` → ``^9.5`` (any 9.x from 9.5 up), ``10.0.0`` → ``^10.0``.
        """
        return f"^{self.major}.{self.minor}"
