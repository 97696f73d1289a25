"""
Deployment operations: Safe 1/1 with the 4337 module, Counter / TestToken
contracts and TestToken funding of the Safe.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from eth_account.signers.local import LocalAccount
from web3 import Web3

from ..chain import ChainClient, TransactionResult, load_foundry_artifact
from ..config import DEPLOYMENT_FILES, SAFE_CONFIG, ContractAddresses
from ..deployments import save_address, write_deployment_record
from ..exceptions import DeploymentError, InsufficientFundsError
from ..logging_utils import get_logger, operation_context
from ..safe_account import (
    encode_create_proxy_with_nonce,
    encode_safe_setup,
    fetch_proxy_creation_code,
    predict_safe_address,
)

logger = get_logger(__name__)

DEFAULT_TOKEN_TRANSFER = Web3.to_wei(10, "ether")

ARTIFACT_FILES = {
    "counter": (Path("out/Counter.sol/Counter.json"), DEPLOYMENT_FILES.counter),
    "token": (Path("out/TestToken.sol/TestToken.json"), DEPLOYMENT_FILES.token),
}


@dataclass
class SafeDeployment:
    safe_address: str
    owner: str
    salt_nonce: int
    transaction: Optional[TransactionResult]
    already_deployed: bool = False
    funding: Optional[TransactionResult] = None
    record_path: Optional[str] = None
    record_sha256: Optional[str] = None


@dataclass
class TokenFunding:
    token: str
    safe: str
    amount: int
    sender_balance_before: int
    safe_balance_before: int
    safe_balance_after: int
    transaction: TransactionResult


def prepare_safe(
    chain: ChainClient,
    owner: str,
    salt_nonce: int,
    contracts: ContractAddresses,
) -> tuple[bytes, str]:
    """Initializer and predicted address of the owner's Safe for a salt nonce."""
    initializer = encode_safe_setup(
        [owner],
        SAFE_CONFIG.threshold,
        module_setup=contracts.safe_module_setup,
        safe_4337_module=contracts.safe_4337_module,
    )
    creation_code = fetch_proxy_creation_code(chain.w3, contracts.safe_proxy_factory)
    predicted = predict_safe_address(
        initializer,
        salt_nonce,
        creation_code,
        factory=contracts.safe_proxy_factory,
        singleton=contracts.safe_singleton,
    )
    return initializer, predicted


def deploy_safe(
    chain: ChainClient,
    account: LocalAccount,
    deployments_dir: str | Path,
    salt_nonce: Optional[int] = None,
    fund: bool = True,
    min_balance_wei: int = SAFE_CONFIG.deploy_min_balance_wei,
) -> SafeDeployment:
    """
    Deploy a Safe 1/1 owned by ``account`` with the Safe4337Module enabled.

    Raises:
        InsufficientFundsError: If the owner holds less than ``min_balance_wei``
        DeploymentError: If no code appears at the predicted address
    """
    contracts = chain.settings.contracts
    owner = account.address
    salt_nonce = SAFE_CONFIG.default_salt_nonce() if salt_nonce is None else salt_nonce
    log = logger.child(owner=owner, salt_nonce=salt_nonce)

    balance = chain.get_balance(owner)
    log.transaction(f"Owner balance: {Web3.from_wei(balance, 'ether')} ETH")
    if balance < min_balance_wei:
        raise InsufficientFundsError(owner, balance, min_balance_wei)

    with operation_context("deploy_safe", log) as ctx:
        initializer, predicted = prepare_safe(chain, owner, salt_nonce, contracts)
        log.contract(f"Predicted Safe address: {predicted}")
        ctx["predicted"] = predicted

        if chain.is_contract(predicted):
            log.warning("Safe already deployed at predicted address")
            return SafeDeployment(
                safe_address=predicted,
                owner=owner,
                salt_nonce=salt_nonce,
                transaction=None,
                already_deployed=True,
            )

        calldata = encode_create_proxy_with_nonce(initializer, salt_nonce, contracts.safe_singleton)
        tx = chain.send_transaction(
            account,
            {
                "to": Web3.to_checksum_address(contracts.safe_proxy_factory),
                "data": "0x" + calldata.hex(),
                "gas": SAFE_CONFIG.deploy_gas_limit,
            },
        )

        if not chain.is_contract(predicted):
            raise DeploymentError(
                f"No code at predicted Safe address {predicted} after {tx.tx_hash}",
                details={"tx_hash": tx.tx_hash, "predicted": predicted},
            )
        log.success(f"Safe deployed at {predicted}")

        funding = None
        if fund:
            funding = chain.send_transaction(
                account,
                {"to": predicted, "value": SAFE_CONFIG.funding_amount_wei},
            )
            log.transaction(
                f"Funded Safe with {Web3.from_wei(SAFE_CONFIG.funding_amount_wei, 'ether')} ETH"
            )

        record = write_deployment_record(
            directory=deployments_dir,
            safe_address=predicted,
            owner=owner,
            chain=chain.network.name,
            chain_id=chain.network.chain_id,
            tx_hash=tx.tx_hash,
            block_number=tx.block_number,
            salt_nonce=salt_nonce,
            modules={
                "safe_4337_module": contracts.safe_4337_module,
                "safe_module_setup": contracts.safe_module_setup,
                "entry_point": contracts.entry_point,
                "safe_singleton": contracts.safe_singleton,
                "safe_proxy_factory": contracts.safe_proxy_factory,
            },
        )

    return SafeDeployment(
        safe_address=predicted,
        owner=owner,
        salt_nonce=salt_nonce,
        transaction=tx,
        funding=funding,
        record_path=record.path,
        record_sha256=record.sha256,
    )


def deploy_artifact(
    chain: ChainClient,
    account: LocalAccount,
    kind: str,
    deployments_dir: str | Path,
    artifact_path: Optional[str | Path] = None,
) -> TransactionResult:
    """Deploy the Counter or TestToken from its compiled artifact and save its address."""
    if kind not in ARTIFACT_FILES:
        raise ValueError(f"Unknown contract kind: {kind}")
    default_path, address_file = ARTIFACT_FILES[kind]
    artifact = load_foundry_artifact(artifact_path or default_path)

    logger.contract(f"Deploying {artifact.name}", context={"deployer": account.address})
    result = chain.deploy_contract(account, artifact.abi, artifact.bytecode)
    save_address(deployments_dir, address_file, result.contract_address)
    logger.success(f"{artifact.name} deployed at {result.contract_address}")
    return result


def fund_safe_with_token(
    chain: ChainClient,
    account: LocalAccount,
    token: str,
    safe: str,
    amount: int = DEFAULT_TOKEN_TRANSFER,
) -> TokenFunding:
    """Transfer TestToken from the owner to the Safe (ERC-20 gas payment)."""
    sender_balance = chain.erc20_balance(token, account.address)
    safe_before = chain.erc20_balance(token, safe)
    logger.info(
        "Token balances before transfer",
        context={"sender": sender_balance, "safe": safe_before, "amount": amount},
    )
    if sender_balance < amount:
        raise InsufficientFundsError(account.address, sender_balance, amount)

    tx = chain.erc20_transfer(account, token, safe, amount)
    safe_after = chain.erc20_balance(token, safe)
    logger.success(f"Transferred {amount} tokens to {safe}", context={"safe_balance": safe_after})
    return TokenFunding(
        token=token,
        safe=safe,
        amount=amount,
        sender_balance_before=sender_balance,
        safe_balance_before=safe_before,
        safe_balance_after=safe_after,
        transaction=tx,
    )
