"""Deployment pipeline: argument resolution, simulation, orchestration, records and contract calls."""

from somnia_deployer.deploy.arguments import (
    DEFAULT_RULES,
    ArgumentResolver,
    ConstructorParam,
    DefaultRule,
    ResolutionSource,
    ResolvedArgument,
    resolve,
    summarize,
)
from somnia_deployer.deploy.encoding import (
    coerce_value,
    decode_function_result,
    encode_constructor_args,
    encode_deployment_data,
    encode_function_call,
    function_signature,
    parse_user_args,
)
from somnia_deployer.deploy.orchestrator import (
    ALLOWED_TRANSITIONS,
    DeploymentOrchestrator,
    DeploymentQuote,
    DeploymentResult,
    DeploymentState,
    auto_approve,
    max_cost_policy,
)
from somnia_deployer.deploy.records import DeploymentRecord, DeploymentRecordStore
from somnia_deployer.deploy.simulator import SimulationOutcome, SimulationStatus, Simulator
from somnia_deployer.deploy.caller import (
    BASIC_TOKEN_ABI,
    CallQuote,
    CallResult,
    ContractCaller,
    find_function,
)

__all__ = [
    "DEFAULT_RULES",
    "ArgumentResolver",
    "DefaultRule",
    "ConstructorParam",
    "ResolutionSource",
    "ResolvedArgument",
    "resolve",
    "summarize",
    "coerce_value",
    "encode_constructor_args",
    "encode_deployment_data",
    "encode_function_call",
    "decode_function_result",
    "function_signature",
    "parse_user_args",
    "ALLOWED_TRANSITIONS",
    "DeploymentOrchestrator",
    "DeploymentQuote",
    "DeploymentResult",
    "DeploymentState",
    "auto_approve",
    "max_cost_policy",
    "DeploymentRecord",
    "DeploymentRecordStore",
    "SimulationOutcome",
    "SimulationStatus",
    "Simulator",
    "BASIC_TOKEN_ABI",
    "CallQuote",
    "CallResult",
    "ContractCaller",
    "find_function",
]
