"""Inspection pipeline: lifecycle, scheduling and serialized analysis."""

from deadscan.pipeline.executor import InspectionPipeline
from deadscan.pipeline.queue import ExecutionQueue
from deadscan.pipeline.state_machine import InspectionStateMachine

__all__ = ["ExecutionQueue", "InspectionPipeline", "InspectionStateMachine"]
