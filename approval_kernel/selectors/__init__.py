"""Read-only query selectors."""

from approval_kernel.selectors.step_selector import StepSelector

__all__ = ["StepSelector"]
