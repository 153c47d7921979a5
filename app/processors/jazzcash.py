"""
JazzCash hosted-checkout (merchant form) protocol.

Signature scheme (pp_SecureHash):
1. Drop pp_SecureHash itself
2. Sort the remaining field names ascending
3. Skip values that are None or blank after trimming
4. Base string = integrity salt, then "&" + trimmed value per kept field
5. HMAC-SHA256 of the base string keyed with the same salt, upper-case hex

The salt appears both as the seed of the base string and as the HMAC key.
JazzCash computes it this way, so it must stay byte-for-byte identical.
"""
import hashlib
import hmac
from typing import Dict, Mapping, Optional

from app.config import GatewaySettings
from app.processors.base import BaseProcessor

SECURE_HASH_FIELD = "pp_SecureHash"
APPROVED_RESPONSE_CODE = "000"

PROTOCOL_VERSION = "1.1"
TXN_TYPE = "MWALLET"
LANGUAGE = "EN"
CURRENCY = "PKR"

# Callback fields read by the reconciler
TXN_REF_FIELD = "pp_TxnRefNo"
RESPONSE_CODE_FIELD = "pp_ResponseCode"
RESPONSE_MESSAGE_FIELD = "pp_ResponseMessage"
RETRIEVAL_REF_FIELD = "pp_RetreivalReferenceNo"  # sic, JazzCash spelling
PLAN_FIELD = "ppmpf_2"
USER_ID_FIELD = "ppmpf_3"

MAX_REFERENCE_LENGTH = 20
MAX_BILL_REFERENCE_LENGTH = 20


def build_signature_base(fields: Mapping[str, Optional[str]], integrity_salt: str) -> str:
    parts = [integrity_salt]
    for key in sorted(k for k in fields if k != SECURE_HASH_FIELD):
        value = fields[key]
        if value is None:
            continue
        trimmed = str(value).strip()
        if not trimmed:
            continue
        parts.append(trimmed)
    return "&".join(parts)


def compute_secure_hash(fields: Mapping[str, Optional[str]], integrity_salt: str) -> str:
    base = build_signature_base(fields, integrity_salt)
    digest = hmac.new(
        integrity_salt.encode("utf-8"),
        base.encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()
    return digest.upper()


def verify_secure_hash(fields: Mapping[str, Optional[str]], integrity_salt: str) -> bool:
    """Recompute the hash over fields and compare it with the pp_SecureHash they carry."""
    received = str(fields.get(SECURE_HASH_FIELD) or "").upper()
    if not received:
        return False
    expected = compute_secure_hash(fields, integrity_salt)
    return hmac.compare_digest(expected.encode("utf-8"), received.encode("utf-8"))


class JazzCashProcessor(BaseProcessor):
    """
    JazzCash merchant-form integration.
    Signature field: `pp_SecureHash`
    Approved response code: `000`
    Passthrough fields: ppmpf_1 (email), ppmpf_2 (plan), ppmpf_3 (user id)
    """

    def __init__(self, settings: GatewaySettings):
        self.settings = settings

    @property
    def processor_name(self) -> str:
        return "jazzcash"

    @property
    def action_url(self) -> str:
        return self.settings.endpoint

    def build_checkout_fields(
        self,
        reference: str,
        txn_datetime: str,
        expiry_datetime: str,
        amount: int,
        plan_id: str,
        user_id: str,
        email: Optional[str] = None,
    ) -> Dict[str, str]:
        cfg = self.settings
        return {
            "pp_Version": PROTOCOL_VERSION,
            "pp_TxnType": TXN_TYPE,
            "pp_Language": LANGUAGE,
            "pp_MerchantID": cfg.merchant_id,
            "pp_SubMerchantID": "",
            "pp_Password": cfg.password,
            "pp_BankID": cfg.bank_id,
            "pp_ProductID": cfg.product_id,
            "pp_TxnRefNo": reference[:MAX_REFERENCE_LENGTH],
            "pp_Amount": str(amount),
            "pp_TxnCurrency": CURRENCY,
            "pp_TxnDateTime": txn_datetime,
            "pp_BillReference": f"{plan_id}-{user_id}"[:MAX_BILL_REFERENCE_LENGTH],
            "pp_Description": f"{plan_id.upper()} plan",
            "pp_TxnExpiryDateTime": expiry_datetime,
            "pp_ReturnURL": cfg.return_url,
            "ppmpf_1": email or "",
            "ppmpf_2": plan_id,
            "ppmpf_3": user_id,
            "ppmpf_4": "",
            "ppmpf_5": "",
        }

    def sign(self, fields: Mapping[str, str]) -> Dict[str, str]:
        signed = dict(fields)
        signed[SECURE_HASH_FIELD] = compute_secure_hash(fields, self.settings.integrity_salt)
        return signed

    def verify_callback(self, payload: Mapping[str, str]) -> bool:
        return verify_secure_hash(payload, self.settings.integrity_salt)

    def is_approved(self, payload: Mapping[str, str]) -> bool:
        return str(payload.get(RESPONSE_CODE_FIELD) or "") == APPROVED_RESPONSE_CODE
