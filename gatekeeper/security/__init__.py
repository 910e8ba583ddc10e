"""Access-control decision engine and its collaborators."""

from gatekeeper.security.codes import Action, Reason, RecordKind, TimeUnit
from gatekeeper.security.context import RequestContext
from gatekeeper.security.errors import (
    CollaboratorError,
    ConfigurationError,
    ShieldError,
    StoreError,
)
from gatekeeper.security.interfaces import (
    NullRobotClassifier,
    RobotClassifier,
    RuleList,
    RuleLookup,
    RuleStatus,
    Store,
)
from gatekeeper.security.ip_rules import IpRuleList
from gatekeeper.security.records import CounterRecord, Decision, Verdict
from gatekeeper.security.robot import RobotVerifier
from gatekeeper.security.settings import ShieldSettings, StoreErrorPolicy
from gatekeeper.security.shield import Shield
from gatekeeper.security.middleware import ShieldMiddleware
from gatekeeper.security.axiom import get_axiom_client, AxiomClient, DecisionEvent

__all__ = [
    "Action",
    "Reason",
    "RecordKind",
    "TimeUnit",
    "RequestContext",
    "CollaboratorError",
    "ConfigurationError",
    "ShieldError",
    "StoreError",
    "NullRobotClassifier",
    "RobotClassifier",
    "RuleList",
    "RuleLookup",
    "RuleStatus",
    "Store",
    "IpRuleList",
    "CounterRecord",
    "Decision",
    "Verdict",
    "RobotVerifier",
    "ShieldSettings",
    "StoreErrorPolicy",
    "Shield",
    "ShieldMiddleware",
    "get_axiom_client",
    "AxiomClient",
    "DecisionEvent",
]
