"""
Verification Workflow Services

Tester submission -> tech lead review -> closure, with the visibility rules
that scope what each role sees and the dashboard counters built on top.
"""

from .state_machine import VerificationStateMachine, WorkflowState, TLOutcome, state_of
from .team_resolver import TeamResolver
from .engine import VerificationWorkflow
from .dashboard import DashboardAggregator, DashboardCounts

__all__ = [
    'VerificationStateMachine',
    'WorkflowState',
    'TLOutcome',
    'state_of',
    'TeamResolver',
    'VerificationWorkflow',
    'DashboardAggregator',
    'DashboardCounts',
]
