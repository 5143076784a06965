from .machine import BrightnessStateMachine
from .state import Operation, OperationState, Phase


__all__ = ["BrightnessStateMachine", "Operation", "OperationState", "Phase"]
