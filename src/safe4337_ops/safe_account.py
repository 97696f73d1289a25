"""Safe Smart Account helpers for ERC-4337 deployment and inspection.

Uses Safe's canonical infrastructure:
- SafeProxyFactory for CREATE2 proxy deployment
- Safe singleton (v1.4.1) as implementation
- SafeModuleSetup to enable modules during ``setup`` (delegatecall)
- Safe4337Module as both enabled module and fallback handler

References:
- https://github.com/safe-global/safe-smart-account
- https://github.com/safe-global/safe-modules/tree/main/modules/4337
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

from eth_abi import encode
from web3 import Web3

from .abis import SAFE_4337_MODULE_ABI, SAFE_ABI, SAFE_PROXY_FACTORY_ABI
from .config import CONTRACT_ADDRESSES, SAFE_CONFIG, ContractAddresses
from .exceptions import ChainError, ValidationError
from .logging_utils import get_logger

logger = get_logger(__name__)

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"
SENTINEL_MODULES = "0x0000000000000000000000000000000000000001"

# keccak256("fallback_manager.handler.address")
FALLBACK_HANDLER_STORAGE_SLOT = 0x6C9A6C4A39284E37ED1CF53D337577D14212A4870FB976A4366C693B939918D5

OPERATION_CALL = 0
OPERATION_DELEGATECALL = 1


def _selector(signature: str) -> bytes:
    return Web3.keccak(text=signature)[:4]


def _to_bytes(data: bytes | str) -> bytes:
    if isinstance(data, str):
        return bytes.fromhex(data.removeprefix("0x"))
    return bytes(data)


def encode_enable_modules(modules: Sequence[str]) -> bytes:
    """SafeModuleSetup.enableModules(address[]) calldata."""
    return _selector("enableModules(address[])") + encode(
        ["address[]"], [[Web3.to_checksum_address(m) for m in modules]]
    )


def encode_safe_setup(
    owners: Sequence[str],
    threshold: int = SAFE_CONFIG.threshold,
    module_setup: str = CONTRACT_ADDRESSES.safe_module_setup,
    safe_4337_module: str = CONTRACT_ADDRESSES.safe_4337_module,
) -> bytes:
    """Encode Safe.setup() calldata for a Safe with the 4337 module enabled.

    Safe.setup(
        address[] _owners,
        uint256 _threshold,
        address to,               # SafeModuleSetup, delegatecalled during setup
        bytes data,               # enableModules([safe4337Module])
        address fallbackHandler,  # Safe4337Module
        address paymentToken,
        uint256 payment,
        address paymentReceiver
    )
    """
    if not owners:
        raise ValidationError("At least one owner is required", field="owners")
    if threshold < 1 or threshold > len(owners):
        raise ValidationError(
            f"Threshold {threshold} is invalid for {len(owners)} owner(s)", field="threshold"
        )

    setup_params = encode(
        [
            "address[]",
            "uint256",
            "address",
            "bytes",
            "address",
            "address",
            "uint256",
            "address",
        ],
        [
            [Web3.to_checksum_address(o) for o in owners],
            threshold,
            Web3.to_checksum_address(module_setup),
            encode_enable_modules([safe_4337_module]),
            Web3.to_checksum_address(safe_4337_module),
            ZERO_ADDRESS,
            0,
            ZERO_ADDRESS,
        ],
    )
    return _selector(
        "setup(address[],uint256,address,bytes,address,address,uint256,address)"
    ) + setup_params


def compute_salt(initializer: bytes, salt_nonce: int) -> bytes:
    """salt = keccak256(keccak256(initializer) ++ uint256(saltNonce))"""
    return Web3.keccak(Web3.keccak(initializer) + encode(["uint256"], [salt_nonce]))


def create2_address(deployer: str, salt: bytes, init_code_hash: bytes) -> str:
    """EIP-1014 address: keccak256(0xff ++ deployer ++ salt ++ initCodeHash)[12:]"""
    if len(salt) != 32 or len(init_code_hash) != 32:
        raise ValidationError("CREATE2 salt and init code hash must be 32 bytes", field="salt")
    digest = Web3.keccak(b"\xff" + bytes.fromhex(deployer[2:]) + bytes(salt) + bytes(init_code_hash))
    return Web3.to_checksum_address("0x" + bytes(digest[12:]).hex())


def predict_safe_address(
    initializer: bytes,
    salt_nonce: int,
    proxy_creation_code: bytes,
    factory: str = CONTRACT_ADDRESSES.safe_proxy_factory,
    singleton: str = CONTRACT_ADDRESSES.safe_singleton,
) -> str:
    """Predict the CREATE2 address of a Safe proxy before deployment.

    Same algorithm as SafeProxyFactory.createProxyWithNonce():
    - salt = keccak256(keccak256(initializer) + saltNonce)
    - deploymentData = proxyCreationCode ++ uint256(uint160(singleton))
    - address = keccak256(0xff ++ factory ++ salt ++ keccak256(deploymentData))[12:]

    Returns:
        Predicted Safe proxy address (checksummed)
    """
    if not proxy_creation_code:
        raise ValidationError("Proxy creation code is empty", field="proxy_creation_code")

    salt = compute_salt(initializer, salt_nonce)
    deployment_data = proxy_creation_code + encode(["uint256"], [int(singleton, 16)])
    return create2_address(factory, salt, Web3.keccak(deployment_data))


def fetch_proxy_creation_code(w3: Web3, factory: str = CONTRACT_ADDRESSES.safe_proxy_factory) -> bytes:
    """Read SafeProxyFactory.proxyCreationCode() from the chain."""
    contract = w3.eth.contract(address=Web3.to_checksum_address(factory), abi=SAFE_PROXY_FACTORY_ABI)
    try:
        code = contract.functions.proxyCreationCode().call()
    except Exception as e:
        raise ChainError(f"Failed to read proxyCreationCode from {factory}: {e}") from e
    return bytes(code)


def encode_create_proxy_with_nonce(
    initializer: bytes,
    salt_nonce: int,
    singleton: str = CONTRACT_ADDRESSES.safe_singleton,
) -> bytes:
    """createProxyWithNonce(address _singleton, bytes initializer, uint256 saltNonce)"""
    return _selector("createProxyWithNonce(address,bytes,uint256)") + encode(
        ["address", "bytes", "uint256"],
        [Web3.to_checksum_address(singleton), initializer, salt_nonce],
    )


def build_init_code(
    initializer: bytes,
    salt_nonce: int,
    factory: str = CONTRACT_ADDRESSES.safe_proxy_factory,
    singleton: str = CONTRACT_ADDRESSES.safe_singleton,
) -> str:
    """Build initCode for the first UserOperation: factory ++ createProxyWithNonce calldata."""
    calldata = encode_create_proxy_with_nonce(initializer, salt_nonce, singleton)
    return Web3.to_checksum_address(factory) + calldata.hex()


def split_init_code(init_code: str) -> Tuple[Optional[str], str]:
    """Split legacy initCode into the v0.7 ``factory`` / ``factoryData`` pair."""
    raw = init_code.removeprefix("0x")
    if not raw:
        return None, "0x"
    if len(raw) < 40:
        raise ValidationError(f"initCode too short: {init_code}", field="initCode")
    return Web3.to_checksum_address("0x" + raw[:40]), "0x" + raw[40:]


def encode_execute_user_op(
    to: str,
    value: int,
    data: bytes | str,
    operation: int = OPERATION_CALL,
) -> str:
    """Encode Safe4337Module.executeUserOp(address,uint256,bytes,uint8) calldata."""
    if operation not in (OPERATION_CALL, OPERATION_DELEGATECALL):
        raise ValidationError(f"Invalid Safe operation: {operation}", field="operation")
    params = encode(
        ["address", "uint256", "bytes", "uint8"],
        [Web3.to_checksum_address(to), value, _to_bytes(data), operation],
    )
    return "0x" + (_selector("executeUserOp(address,uint256,bytes,uint8)") + params).hex()


@dataclass
class SafeStatus:
    address: str
    deployed: bool
    owners: List[str] = field(default_factory=list)
    threshold: int = 0
    modules: List[str] = field(default_factory=list)
    module_enabled: bool = False
    fallback_handler: Optional[str] = None
    nonce: Optional[int] = None
    version: Optional[str] = None
    safe_4337_module: str = CONTRACT_ADDRESSES.safe_4337_module

    @property
    def fallback_is_module(self) -> bool:
        return bool(self.fallback_handler) and (
            self.fallback_handler.lower() == self.safe_4337_module.lower()
        )

    @property
    def ready_for_user_operations(self) -> bool:
        return self.deployed and self.module_enabled and self.fallback_is_module


@dataclass
class ModuleCheck:
    safe_4337_module: str
    module_deployed: bool
    supported_entrypoint: Optional[str]
    entrypoint_matches: bool
    safe_module_setup: str
    setup_deployed: bool

    @property
    def ok(self) -> bool:
        return self.module_deployed and self.entrypoint_matches and self.setup_deployed


class SafeInspector:
    """Read-only view of a Safe and the 4337 modules on the connected chain."""

    def __init__(self, chain, contracts: ContractAddresses = CONTRACT_ADDRESSES, page_size: int = 10):
        self.chain = chain
        self.contracts = contracts
        self.page_size = page_size

    def _fallback_handler(self, safe: str) -> Optional[str]:
        raw = bytes(self.chain.w3.eth.get_storage_at(
            Web3.to_checksum_address(safe), FALLBACK_HANDLER_STORAGE_SLOT
        ))
        if not any(raw):
            return None
        return Web3.to_checksum_address("0x" + raw[-20:].hex())

    def status(self, safe: str) -> SafeStatus:
        if not self.chain.is_contract(safe):
            logger.warning(f"No contract code at {safe}", context={"safe": safe})
            return SafeStatus(address=safe, deployed=False, safe_4337_module=self.contracts.safe_4337_module)

        contract = self.chain.contract(safe, SAFE_ABI)
        fns = contract.functions
        try:
            owners = list(fns.getOwners().call())
            threshold = int(fns.getThreshold().call())
            modules, _next = fns.getModulesPaginated(SENTINEL_MODULES, self.page_size).call()
            module_enabled = bool(
                fns.isModuleEnabled(Web3.to_checksum_address(self.contracts.safe_4337_module)).call()
            )
            nonce = int(fns.nonce().call())
            version = fns.VERSION().call()
        except Exception as e:
            raise ChainError(f"Could not read Safe status for {safe}: {e}") from e

        return SafeStatus(
            address=safe,
            deployed=True,
            owners=owners,
            threshold=threshold,
            modules=list(modules),
            module_enabled=module_enabled,
            fallback_handler=self._fallback_handler(safe),
            nonce=nonce,
            version=version,
            safe_4337_module=self.contracts.safe_4337_module,
        )

    def check_modules(self) -> ModuleCheck:
        module = self.contracts.safe_4337_module
        setup = self.contracts.safe_module_setup

        module_deployed = self.chain.is_contract(module)
        supported = None
        if module_deployed:
            try:
                supported = self.chain.contract(module, SAFE_4337_MODULE_ABI).functions.SUPPORTED_ENTRYPOINT().call()
            except Exception as e:
                logger.warning(f"SUPPORTED_ENTRYPOINT() failed on {module}: {e}")

        return ModuleCheck(
            safe_4337_module=module,
            module_deployed=module_deployed,
            supported_entrypoint=supported,
            entrypoint_matches=bool(supported) and supported.lower() == self.contracts.entry_point.lower(),
            safe_module_setup=setup,
            setup_deployed=self.chain.is_contract(setup),
        )
