"""Operational workflows built on the chain, Safe and ERC-4337 layers."""

from .deploy import SafeDeployment, TokenFunding, deploy_artifact, deploy_safe, fund_safe_with_token
from .inspect import (
    FundsReport,
    NetworkReport,
    ProjectStatus,
    SafeAddressReport,
    check_pack_config,
    funds_report,
    network_check,
    project_status,
    safe_address_from_tx,
    safe_address_report,
)
from .runner import Runner, StepResult, run_all
from .userops import UserOperationResult, UserOperationService

__all__ = [
    "SafeDeployment",
    "TokenFunding",
    "deploy_artifact",
    "deploy_safe",
    "fund_safe_with_token",
    "FundsReport",
    "NetworkReport",
    "ProjectStatus",
    "SafeAddressReport",
    "check_pack_config",
    "funds_report",
    "network_check",
    "project_status",
    "safe_address_from_tx",
    "safe_address_report",
    "Runner",
    "StepResult",
    "run_all",
    "UserOperationResult",
    "UserOperationService",
]
