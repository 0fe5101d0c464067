"""Shared types for the orchestrator.

Import from here rather than submodules:
    from envelope_core.types import ExecutionArgs, OnExecuteHookResult, Phase
"""

from .args import ExecutionArgs, OperationArgs, SubscriptionArgs
from .enums import LogFormat, Phase, PluginSource
from .hooks import (
    AfterResolverPayload,
    Context,
    ExecuteFn,
    OnContextBuildingDonePayload,
    OnContextBuildingPayload,
    OnEnvelopedPayload,
    OnExecuteDoneHookResult,
    OnExecuteDonePayload,
    OnExecuteHookResult,
    OnExecutePayload,
    OnNextPayload,
    OnParseDonePayload,
    OnParsePayload,
    OnPluginInitPayload,
    OnResolverCalledPayload,
    OnSchemaChangePayload,
    OnSubscribeErrorPayload,
    OnSubscribeHookResult,
    OnSubscribePayload,
    OnSubscribeResultHookResult,
    OnSubscribeResultPayload,
    OnValidateDonePayload,
    OnValidatePayload,
    ParseFn,
    ParseParams,
    ResultOrStream,
    SubscribeFn,
    ValidateFn,
    ValidateParams,
)
from .validation import ValidationIssue, ValidationResult

__all__ = [
    # Enums
    "Phase",
    "PluginSource",
    "LogFormat",
    # Arguments
    "OperationArgs",
    "ExecutionArgs",
    "SubscriptionArgs",
    # Phase functions
    "ParseFn",
    "ValidateFn",
    "ExecuteFn",
    "SubscribeFn",
    "Context",
    "ResultOrStream",
    # Payloads
    "OnPluginInitPayload",
    "OnSchemaChangePayload",
    "OnEnvelopedPayload",
    "OnContextBuildingPayload",
    "OnContextBuildingDonePayload",
    "ParseParams",
    "OnParsePayload",
    "OnParseDonePayload",
    "ValidateParams",
    "OnValidatePayload",
    "OnValidateDonePayload",
    "OnResolverCalledPayload",
    "AfterResolverPayload",
    "OnNextPayload",
    "OnExecutePayload",
    "OnExecuteDonePayload",
    "OnSubscribePayload",
    "OnSubscribeResultPayload",
    "OnSubscribeErrorPayload",
    # Hook results
    "OnExecuteHookResult",
    "OnExecuteDoneHookResult",
    "OnSubscribeHookResult",
    "OnSubscribeResultHookResult",
    # Validation
    "ValidationIssue",
    "ValidationResult",
]
