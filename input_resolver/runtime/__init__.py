from input_resolver.runtime.accessibility import AccessibilityGate
from input_resolver.runtime.resolver import InputResolver

__all__ = [
    "AccessibilityGate",
    "InputResolver",
]
