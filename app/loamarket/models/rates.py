
from dataclasses import dataclass, asdict
from typing import Optional


@dataclass
class ExchangeRateEntry:
    date: str
    discord: int
    exchange: float = 0  # legacy field, no longer written with real data

    def to_json(self) -> dict:
        return {"date": self.date, "exchange": self.exchange, "discord": self.discord}

    @staticmethod
    def from_json(data: dict) -> "ExchangeRateEntry":
        return ExchangeRateEntry(
            date=str(data.get("date", "")),
            discord=data.get("discord"),
            exchange=data.get("exchange", 0) or 0,
        )


@dataclass
class CrystalRate:
    timestamp: str
    exchange: float
    updated_at: Optional[str] = None
    source_timestamp: Optional[str] = None

    def to_row(self) -> dict:
        return {k: v for k, v in asdict(self).items() if v is not None}

    @staticmethod
    def from_row(row: dict) -> "CrystalRate":
        return CrystalRate(
            timestamp=_text(row.get("timestamp")),
            exchange=float(row.get("exchange")),
            updated_at=_text(row.get("updated_at") or row.get("created_at")),
            source_timestamp=_text(row.get("source_timestamp") or row.get("timestamp")),
        )


def _text(value) -> Optional[str]:
    if value is None:
        return None
    if hasattr(value, "isoformat"):
        return value.isoformat()
    return str(value)
