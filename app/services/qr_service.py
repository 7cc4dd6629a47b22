"""
PromptPay QR payloads for the qr-transfer rail.

The payload is the EMVCo merchant-presented string that banking apps scan;
rendering it as an image is left to the client.
"""
import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

logger = logging.getLogger(__name__)

PROMPTPAY_AID = "A000000677010111"
_PHONE_RE = re.compile(r"^0\d{9}$")
_TAX_ID_RE = re.compile(r"^\d{13}$")


class QRNotConfigured(RuntimeError):
    pass


@dataclass(frozen=True)
class QRPayload:
    qr_code: str
    reference: str


def _field(tag: str, value: str) -> str:
    return f"{tag}{len(value):02d}{value}"


def crc16_ccitt(data: str) -> str:
    crc = 0xFFFF
    for byte in data.encode("ascii"):
        crc ^= byte << 8
        for _ in range(8):
            if crc & 0x8000:
                crc = ((crc << 1) ^ 0x1021) & 0xFFFF
            else:
                crc = (crc << 1) & 0xFFFF
    return f"{crc:04X}"


def _sanitize(merchant_id: Optional[str]) -> str:
    return re.sub(r"[^0-9]", "", merchant_id or "")


class PromptPayQRService:
    def __init__(self, merchant_id: Optional[str]):
        self.merchant_id = _sanitize(merchant_id)
        self._raw_merchant_id = merchant_id

    def is_configured(self) -> bool:
        if not self._raw_merchant_id:
            return False
        return bool(_PHONE_RE.match(self.merchant_id) or _TAX_ID_RE.match(self.merchant_id))

    def _merchant_account(self) -> str:
        if _PHONE_RE.match(self.merchant_id):
            # 0812345678 -> 0066812345678
            proxy = _field("01", "0066" + self.merchant_id[1:])
        else:
            proxy = _field("02", self.merchant_id)
        return _field("29", _field("00", PROMPTPAY_AID) + proxy)

    @staticmethod
    def build_reference(reference: str) -> str:
        compact = re.sub(r"[^0-9A-Za-z]", "", reference or "").upper()
        return f"VIP{compact[:12]}"

    def generate(self, amount, reference: str) -> QRPayload:
        if not self.is_configured():
            raise QRNotConfigured("PromptPay merchant ID not configured")

        ref = self.build_reference(reference)
        amount_str = f"{Decimal(str(amount)):.2f}"
        body = "".join(
            [
                _field("00", "01"),
                _field("01", "12"),
                self._merchant_account(),
                _field("53", "764"),
                _field("54", amount_str),
                _field("58", "TH"),
                _field("62", _field("05", ref)),
            ]
        )
        body += "6304"
        payload = body + crc16_ccitt(body)
        logger.debug(f"PromptPay payload generated for reference {ref} ({amount_str} THB)")
        return QRPayload(qr_code=payload, reference=ref)
