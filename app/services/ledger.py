from typing import Optional

from loguru import logger
from sqlmodel import SQLModel
from web3 import Web3

from app.core.config import Settings
from app.core.exceptions import ExternalServiceError


def _string_fn(name, *args):
    return {
        "name": name,
        "type": "function",
        "stateMutability": "nonpayable",
        "inputs": [{"internalType": "string", "name": a, "type": "string"} for a in args],
        "outputs": [],
    }


DPP_REGISTRY_ABI = [
    _string_fn("createProject", "projectId", "metadataIPFS"),
    _string_fn("mintDPP", "dppId", "projectId", "metadataIPFS"),
    _string_fn("updateInstallation", "dppId", "installationMetadataIPFS"),
    _string_fn("enrichDPP", "dppId", "enrichmentMetadataIPFS"),
]


class LedgerReceipt(SQLModel):
    transaction_hash: str
    block_number: Optional[int] = None
    gas_used: Optional[int] = None
    status: str


class LedgerClient:
    """
    Mirrors lifecycle events to the DPP registry contract.

    Each call submits one signed transaction and waits for its receipt, bounded
    by `ledger_timeout`. There is no retry. Any failure, including a missing
    configuration, surfaces as ExternalServiceError so the caller can carry on
    without a transaction reference.
    """

    def __init__(self, settings: Settings, w3: Optional[Web3] = None):
        self.settings = settings
        self.w3 = w3
        self.contract = None
        self.account = None

        if not self.configured:
            return

        if self.w3 is None:
            self.w3 = Web3(Web3.HTTPProvider(
                settings.ethereum_rpc_url,
                request_kwargs={"timeout": settings.ledger_timeout},
            ))
        self.account = self.w3.eth.account.from_key(settings.private_key)
        self.contract = self.w3.eth.contract(
            address=Web3.to_checksum_address(settings.contract_address),
            abi=DPP_REGISTRY_ABI,
        )

    @property
    def configured(self) -> bool:
        s = self.settings
        return bool(s.ethereum_rpc_url and s.private_key and s.contract_address)

    def _send(self, label: str, fn) -> LedgerReceipt:
        try:
            tx = fn.build_transaction({
                "from": self.account.address,
                "nonce": self.w3.eth.get_transaction_count(self.account.address),
                "gas": self.settings.ledger_gas_limit,
                "gasPrice": self.w3.eth.gas_price,
            })
            signed = self.account.sign_transaction(tx)
            raw = getattr(signed, "raw_transaction", None) or getattr(signed, "rawTransaction", None)
            tx_hash = self.w3.eth.send_raw_transaction(raw)
            logger.info(f"Ledger {label} submitted: {tx_hash.hex()}")

            receipt = self.w3.eth.wait_for_transaction_receipt(
                tx_hash, timeout=self.settings.ledger_timeout
            )
        except Exception as e:
            raise ExternalServiceError(f"Ledger {label} failed: {e}")

        result = LedgerReceipt(
            transaction_hash=Web3.to_hex(tx_hash),
            block_number=receipt.get("blockNumber"),
            gas_used=receipt.get("gasUsed"),
            status="success" if receipt.get("status") == 1 else "failed",
        )
        logger.info(f"Ledger {label} mined in block {result.block_number}")
        return result

    def create_project(self, project_id: str, metadata_ref: str) -> LedgerReceipt:
        return self._send(
            f"createProject({project_id})",
            self._functions().createProject(project_id, metadata_ref or ""),
        )

    def mint_dpp(self, dpp_id: str, project_id: str, metadata_ref: str) -> LedgerReceipt:
        return self._send(
            f"mintDPP({dpp_id})",
            self._functions().mintDPP(dpp_id, project_id, metadata_ref or ""),
        )

    def update_installation(self, dpp_id: str, metadata_ref: str) -> LedgerReceipt:
        return self._send(
            f"updateInstallation({dpp_id})",
            self._functions().updateInstallation(dpp_id, metadata_ref or ""),
        )

    def enrich_dpp(self, dpp_id: str, metadata_ref: str) -> LedgerReceipt:
        return self._send(
            f"enrichDPP({dpp_id})",
            self._functions().enrichDPP(dpp_id, metadata_ref or ""),
        )

    def _functions(self):
        if self.contract is None:
            raise ExternalServiceError(
                "Ledger not configured. Set ETHEREUM_RPC_URL, PRIVATE_KEY and CONTRACT_ADDRESS."
            )
        return self.contract.functions
