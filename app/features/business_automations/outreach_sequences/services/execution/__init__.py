from .step_executor import StepExecutor, allow_all, message_type_for
from .driver import SequenceExecutionDriver

__all__ = ["StepExecutor", "SequenceExecutionDriver", "allow_all", "message_type_for"]
