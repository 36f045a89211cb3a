"""
Guidance Engagement State Machine Package

Button states projected to the operator:
- DISABLED: waiting for route, capability and widget selection
- ENABLED: ready to request activation
- ACTIVE: activation confirmed, vehicle not yet engaged
- ENGAGED: vehicle confirmed automated control
- INACTIVE: vehicle dropped out of automated control
- DISENGAGED: operator disengaged (terminal)
"""

from .guidance_state import GuidanceButtonState, GuidanceTransitionReason
from .guidance_state_machine import GuidanceEngagementStateMachine

__all__ = ['GuidanceButtonState', 'GuidanceTransitionReason', 'GuidanceEngagementStateMachine']
