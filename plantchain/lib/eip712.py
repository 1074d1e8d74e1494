"""
EIP-712 user-decrypt authorization.

The relayer rebuilds this exact typed-data structure server side, so the
domain, the field order and the value encodings below are part of the wire
format. Signatures are produced with the typed-data primitive
(eth_signTypedData_v4), never with personal_sign.
"""
import logging
from typing import Iterable

from eth_account import Account
from eth_account.messages import SignableMessage, encode_typed_data
from eth_utils import to_checksum_address

from ..models.confidential import EIP712AuthorizationMessage

logger = logging.getLogger("eip712")

DOMAIN_NAME = "Decryption"
DOMAIN_VERSION = "1"
USER_DECRYPT_PRIMARY_TYPE = "UserDecryptRequestVerification"

EIP712_DOMAIN_FIELDS = [
    {"name": "name", "type": "string"},
    {"name": "version", "type": "string"},
    {"name": "chainId", "type": "uint256"},
    {"name": "verifyingContract", "type": "address"},
]

USER_DECRYPT_FIELDS = [
    {"name": "publicKey", "type": "bytes"},
    {"name": "contractAddresses", "type": "address[]"},
    {"name": "contractsChainId", "type": "uint256"},
    {"name": "startTimestamp", "type": "uint256"},
    {"name": "durationDays", "type": "uint256"},
    {"name": "extraData", "type": "bytes"},
]


def _hex(value: str) -> str:
    return value if value.startswith("0x") else f"0x{value}"


def build_user_decrypt_eip712(
    public_key: str,
    contract_addresses: Iterable[str],
    contracts_chain_id: int,
    start_timestamp: int,
    duration_days: int,
    verifying_contract: str,
    gateway_chain_id: int,
    extra_data: str = "0x00",
) -> EIP712AuthorizationMessage:
    """
    Build the typed-data request binding a decryption public key to a set of
    contracts and a validity window.
    """
    return EIP712AuthorizationMessage(
        domain={
            "name": DOMAIN_NAME,
            "version": DOMAIN_VERSION,
            "chainId": gateway_chain_id,
            "verifyingContract": to_checksum_address(verifying_contract),
        },
        types={
            "EIP712Domain": list(EIP712_DOMAIN_FIELDS),
            USER_DECRYPT_PRIMARY_TYPE: list(USER_DECRYPT_FIELDS),
        },
        primary_type=USER_DECRYPT_PRIMARY_TYPE,
        message={
            "publicKey": _hex(public_key),
            "contractAddresses": [to_checksum_address(a) for a in contract_addresses],
            "contractsChainId": int(contracts_chain_id),
            "startTimestamp": int(start_timestamp),
            "durationDays": int(duration_days),
            "extraData": extra_data,
        },
    )


def signable_message(auth: EIP712AuthorizationMessage) -> SignableMessage:
    return encode_typed_data(
        domain_data=auth.domain,
        message_types=auth.signing_types(),
        message_data=auth.message,
    )


def recover_signer(auth: EIP712AuthorizationMessage, signature: str) -> str:
    """Recover the address that produced `signature` over `auth`."""
    return Account.recover_message(signable_message(auth), signature=_hex(signature))


def verify_user_decrypt_signature(
    auth: EIP712AuthorizationMessage,
    signature: str,
    expected_address: str,
) -> bool:
    """
    Check that `expected_address` signed exactly this authorization.

    SECURITY: fails closed, any decoding or recovery error returns False.
    """
    try:
        recovered = recover_signer(auth, signature)
    except Exception as e:
        logger.warning(f"Typed-data signature rejected: {e}")
        return False
    return recovered.lower() == expected_address.lower()
