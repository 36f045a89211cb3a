"""
Guidance Button States

The button is a projection of the bus-confirmed guidance state and the
engagement precondition. It is never the source of truth.
"""
from enum import Enum, auto


class GuidanceButtonState(Enum):
    """Operator-facing guidance button states"""

    DISABLED = auto()      # Waiting for route, capability and widget selection
    ENABLED = auto()       # Ready to request activation
    ACTIVE = auto()        # Activation confirmed, waiting for the vehicle to engage
    ENGAGED = auto()       # Vehicle confirmed automated control
    INACTIVE = auto()      # Vehicle dropped out of automated control
    DISENGAGED = auto()    # Operator disengaged; terminal for the session


class GuidanceTransitionReason(Enum):
    """Reasons for button state transitions"""

    # Precondition
    PRECONDITION_MET = auto()
    PRECONDITION_NOT_MET = auto()

    # Operator
    ACTIVATION_CONFIRMED = auto()
    DEACTIVATION_CONFIRMED = auto()

    # Bus reports
    GUIDANCE_ACTIVE = auto()
    GUIDANCE_ENGAGED = auto()
    GUIDANCE_INACTIVE = auto()

    # Resume
    SESSION_RESTORED = auto()
