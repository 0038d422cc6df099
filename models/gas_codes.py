"""Gas codes and the STEL/TWA eligibility table."""

from __future__ import annotations

from typing import FrozenSet, Iterable

CO = "G0001"  # Carbon Monoxide
H2S = "G0002"  # Hydrogen Sulfide
SO2 = "G0003"  # Sulfur Dioxide
NO2 = "G0004"  # Nitrogen Dioxide
CL2 = "G0005"  # Chlorine
HCN = "G0007"  # Hydrogen Cyanide
NH3 = "G0013"  # Ammonia
COMBUSTIBLE_PPM = "G0019"
O2 = "G0020"  # Oxygen
METHANE = "G0021"
COMBUSTIBLE_LEL = "G0022"
HEXANE = "G0023"
UNNAMED_G0024 = "G0024"
UNNAMED_G0025 = "G0025"
PENTANE = "G0026"
PROPANE = "G0027"
ISOBUTANE = "G0133"
HYDROCARBON = "G0248"

# Oxygen and combustibles are reported as concentrations, never as exposure.
DEFAULT_EXCLUDED_CODES: FrozenSet[str] = frozenset(
    {
        O2,
        METHANE,
        COMBUSTIBLE_PPM,
        COMBUSTIBLE_LEL,
        HEXANE,
        UNNAMED_G0024,
        UNNAMED_G0025,
        PENTANE,
        PROPANE,
        ISOBUTANE,
        HYDROCARBON,
    }
)


class StelTwaEligibility:
    """Decides which gases get TWA/STEL exposure computed."""

    def __init__(self, excluded_codes: Iterable[str] = DEFAULT_EXCLUDED_CODES) -> None:
        self.excluded_codes: FrozenSet[str] = frozenset(
            code.strip().upper() for code in excluded_codes if code and code.strip()
        )

    def is_eligible(self, gas_code: str | None) -> bool:
        if not gas_code:
            return False
        return gas_code.strip().upper() not in self.excluded_codes

    def __contains__(self, gas_code: object) -> bool:
        return isinstance(gas_code, str) and self.is_eligible(gas_code)


def default_eligibility(extra_excluded: Iterable[str] = ()) -> StelTwaEligibility:
    """Built-in table, optionally extended with additional exclusions."""
    return StelTwaEligibility(DEFAULT_EXCLUDED_CODES | frozenset(extra_excluded))
