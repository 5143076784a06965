from .identity import DisplayIdentityResolver, stable_identifier
from .models import BrightnessSnapshot, Display, DisplayHandle, looks_internal
from .priority import DisplayPrioritySorter


__all__ = [
    "BrightnessSnapshot",
    "Display",
    "DisplayHandle",
    "DisplayIdentityResolver",
    "DisplayPrioritySorter",
    "looks_internal",
    "stable_identifier",
]
