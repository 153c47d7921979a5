"""
Builds a signed JazzCash callback body for exercising the callback endpoint locally.

Usage:
    python scripts/simulate_callback.py --ref T20240115100000123 --user-id u_1 --plan premium \
        | curl -i -X POST -H "Content-Type: application/x-www-form-urlencoded" \
               --data-binary @- http://localhost:8000/api/payments/jazzcash/callback

The integrity salt comes from --salt or JAZZCASH_INTEGRITY_SALT.
"""
import argparse
import os
import sys
from urllib.parse import urlencode

# Allow running from project root
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from app.config import normalize_env_value
from app.processors.jazzcash import APPROVED_RESPONSE_CODE, SECURE_HASH_FIELD, compute_secure_hash


def build_callback_payload(ref, user_id, plan, response_code, salt, amount=None):
    payload = {
        "pp_TxnRefNo": ref,
        "pp_ResponseCode": response_code,
        "pp_ResponseMessage": "Thank you for Using JazzCash, your transaction was successful."
        if response_code == APPROVED_RESPONSE_CODE else "Transaction failed.",
        "pp_RetreivalReferenceNo": f"R{ref[1:]}"[:20],
        "pp_TxnCurrency": "PKR",
        "pp_Amount": str(amount if amount is not None else (160000 if plan == "premium" else 100000)),
        "ppmpf_1": "",
        "ppmpf_2": plan,
        "ppmpf_3": user_id,
        "ppmpf_4": "",
        "ppmpf_5": "",
    }
    payload[SECURE_HASH_FIELD] = compute_secure_hash(payload, salt)
    return payload


def main(argv=None):
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[1])
    parser.add_argument("--ref", required=True, help="pp_TxnRefNo of a pending transaction")
    parser.add_argument("--user-id", required=True)
    parser.add_argument("--plan", default="premium", choices=["basic", "premium"])
    parser.add_argument("--response-code", default=APPROVED_RESPONSE_CODE)
    parser.add_argument("--salt", default=None)
    parser.add_argument("--tamper", action="store_true",
                        help="corrupt the signature to simulate a forged callback")
    args = parser.parse_args(argv)

    salt = normalize_env_value(args.salt or os.environ.get("JAZZCASH_INTEGRITY_SALT"))
    if not salt:
        parser.error("integrity salt required (--salt or JAZZCASH_INTEGRITY_SALT)")

    payload = build_callback_payload(args.ref, args.user_id, args.plan, args.response_code, salt)
    if args.tamper:
        payload[SECURE_HASH_FIELD] = payload[SECURE_HASH_FIELD][::-1]
    print(urlencode(payload))


if __name__ == "__main__":
    main()
