"""NCP business keys: YYMM-NNNN, sequence restarting every month."""
from datetime import date
from typing import Optional

from ncp_portal.core.exceptions import ValidationError
from ncp_portal.core.gateway import PersistenceGateway

SEQUENCE_WIDTH = 4
MAX_SEQUENCE = 10 ** SEQUENCE_WIDTH - 1


def code_prefix(day: date) -> str:
    return day.strftime("%y%m")


def next_code(prefix: str, latest: Optional[str]) -> str:
    """Code following ``latest`` within ``prefix``; 0001 when the month has none yet."""
    sequence = 1
    if latest:
        _, _, suffix = latest.partition("-")
        try:
            sequence = int(suffix) + 1
        except ValueError:
            raise ValidationError(f"Malformed NCP code in storage: {latest}") from None
    if sequence > MAX_SEQUENCE:
        raise ValidationError(f"NCP sequence for {prefix} is exhausted")
    return f"{prefix}-{sequence:0{SEQUENCE_WIDTH}d}"


class NCPCodeGenerator:
    def __init__(self, gateway: PersistenceGateway):
        self._gateway = gateway

    async def generate(self, day: date) -> str:
        prefix = code_prefix(day)
        rows = await self._gateway.query(
            "ncp_reports",
            {"ncp_code__startswith": f"{prefix}-"},
            order_by="ncp_code",
            descending=True,
            limit=1,
        )
        return next_code(prefix, rows[0]["ncp_code"] if rows else None)
