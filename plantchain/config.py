"""
Environment-driven configuration for the PlantChain client.

All values are read once at import time. Override them through the
environment, never by editing this file.
"""
import os
from pathlib import Path

# Wallet / RPC
RPC_URL = os.getenv("PLANTCHAIN_RPC_URL", "http://localhost:8545")
PRIVATE_KEY = os.getenv("PLANTCHAIN_PRIVATE_KEY")

# Relayer (production cryptosystem)
RELAYER_URL = os.getenv("PLANTCHAIN_RELAYER_URL", "https://relayer.testnet.zama.cloud")
TFHE_ENCRYPTOR = os.getenv("PLANTCHAIN_TFHE_ENCRYPTOR", "")
HTTP_TIMEOUT = float(os.getenv("PLANTCHAIN_HTTP_TIMEOUT", "30"))

# Ledger deployments: {chainId: {address, chainId, chainName}}
DEPLOYMENTS_PATH = Path(
    os.getenv("PLANTCHAIN_DEPLOYMENTS", str(Path.cwd() / "deployments.json"))
)

# Pay-to-view fee for point logs (0.0001 ether)
POINT_LOG_FEE_WEI = int(os.getenv("PLANTCHAIN_POINT_LOG_FEE_WEI", str(10**14)))

# Content-addressed storage
IPFS_GATEWAY = os.getenv("PLANTCHAIN_IPFS_GATEWAY", "https://gateway.pinata.cloud/ipfs/")

LOG_LEVEL = os.getenv("PLANTCHAIN_LOG_LEVEL", "INFO")

# User-decrypt authorization window
USER_DECRYPT_VALIDITY_DAYS = 365

# Chain id of local development nodes (hardhat / localhost deployments)
LOCAL_CHAIN_ID = 31337

# Relayer defaults for Sepolia (merged with the wallet transport at instance creation)
SEPOLIA_CONFIG = {
    "aclContractAddress": "0x687820221192C5B662b25367F70076A37bc79b6c",
    "kmsContractAddress": "0x1364cBBf2cDF5032C47d8226a6f6FBD2AFCDacAC",
    "inputVerifierContractAddress": "0xbc91f3daD1A5F19F8390c400196e58073B6a0BC4",
    "verifyingContractAddressDecryption": "0xb6E160B1ff80D67Bfe90A85eE06Ce0A2613607D1",
    "verifyingContractAddressInputVerification": "0x7048C39f048125eDa9d678AEbaDfB22F7900a29F",
    "chainId": 11155111,
    "gatewayChainId": 55815,
    "relayerUrl": RELAYER_URL,
}
