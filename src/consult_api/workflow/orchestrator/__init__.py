"""
Workflow Orchestrator Module

Controller for the consultation request lifecycle.
"""

from consult_api.workflow.orchestrator.consultation_flow import ConsultationWorkflow

__all__ = ["ConsultationWorkflow"]
