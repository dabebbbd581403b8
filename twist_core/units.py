# twist_core/units.py
from dataclasses import dataclass


@dataclass(frozen=True)
class UnitSystem:
    """
    Unit conventions of the building model (lengths in cm, forces in kN).
    weight / gravity -> mass, so gravity must be expressed in the same length unit.
    """
    gravity: float = 980.665             # cm/s^2
    default_story_height: float = 288.0  # cm, used when a source file gives no levels


CM_KN = UnitSystem()
