"""Best-effort mirroring of submitted votes to the on-chain vote registry."""
import logging
import uuid

from web3 import Web3
from web3.exceptions import Web3Exception

from ..errors import LedgerMirrorFailure

logger = logging.getLogger(__name__)

# recordVote(uint256 sessionId, string voterSerial, uint256 filmId)
VOTE_REGISTRY_ABI = [
    {
        "type": "function",
        "name": "recordVote",
        "inputs": [
            {"name": "sessionId", "type": "uint256"},
            {"name": "voterSerial", "type": "string"},
            {"name": "filmId", "type": "uint256"},
        ],
        "outputs": [],
        "stateMutability": "nonpayable",
    },
    {
        "type": "event",
        "name": "VoteRecorded",
        "inputs": [
            {"name": "sessionId", "type": "uint256", "indexed": True},
            {"name": "voterSerial", "type": "string", "indexed": False},
            {"name": "filmId", "type": "uint256", "indexed": False},
            {"name": "timestamp", "type": "uint256", "indexed": False},
            {"name": "voterAddress", "type": "address", "indexed": False},
        ],
        "anonymous": False,
    },
]


def session_key(session_id) -> int:
    """Sessions are UUIDs here; the contract keys them by uint256."""
    if isinstance(session_id, uuid.UUID):
        return session_id.int
    return uuid.UUID(str(session_id)).int


class LedgerMirror:
    def __init__(self, w3: Web3, contract_address: str, private_key: str, chain_id: int,
                 explorer_url: str | None = None):
        self.w3 = w3
        self.contract = w3.eth.contract(
            address=Web3.to_checksum_address(contract_address), abi=VOTE_REGISTRY_ABI
        )
        self.account = w3.eth.account.from_key(private_key)
        self.chain_id = chain_id
        self.explorer_url = explorer_url

    @classmethod
    def from_config(cls, config):
        if not config.get("LEDGER_ENABLED"):
            return None
        address = config.get("LEDGER_CONTRACT_ADDRESS")
        key = config.get("LEDGER_PRIVATE_KEY")
        if not address or not key:
            logger.warning("Ledger mirror enabled but contract address or key missing; disabled")
            return None
        provider = Web3.HTTPProvider(
            config["LEDGER_RPC_URL"],
            request_kwargs={"timeout": config.get("LEDGER_RPC_TIMEOUT_SECONDS", 5)},
        )
        w3 = Web3(provider)
        return cls(w3, address, key, config["LEDGER_CHAIN_ID"], config.get("LEDGER_EXPLORER_URL"))

    def tx_url(self, tx_hash: str) -> str | None:
        return f"{self.explorer_url}/tx/{tx_hash}" if self.explorer_url else None

    def record_vote(self, session_id, voter_serial: str, candidate_numbers) -> list[str]:
        """Send one recordVote transaction per candidate; returns the tx hashes."""
        key = session_key(session_id)
        hashes = []
        try:
            nonce = self.w3.eth.get_transaction_count(self.account.address)
            for offset, number in enumerate(candidate_numbers):
                tx = self.contract.functions.recordVote(key, voter_serial, int(number)).build_transaction({
                    "from": self.account.address,
                    "nonce": nonce + offset,
                    "chainId": self.chain_id,
                })
                signed = self.account.sign_transaction(tx)
                tx_hash = self.w3.eth.send_raw_transaction(signed.raw_transaction)
                hashes.append(Web3.to_hex(tx_hash))
        except (Web3Exception, ValueError, OSError) as e:
            raise LedgerMirrorFailure(details={"voter_serial": voter_serial, "sent": hashes, "error": str(e)}) from e

        logger.info("Mirrored ballot of %s to ledger: %s", voter_serial, hashes)
        return hashes
