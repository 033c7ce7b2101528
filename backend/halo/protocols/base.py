"""
Protocol Adapter Interface

All checkout protocols (ACP, UCP, x402) implement this interface so the
registry can dispatch by name or by inspecting a raw payload.
"""
import hashlib
import json
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP
from typing import Any, Callable, Dict, Optional, Type

from pydantic import BaseModel, ValidationError

from ..exceptions import NormalizationGapError
from ..models.intents import StructuredIntent
from ..models.payloads import NormalizedPayload, HaloNormalized


@dataclass(frozen=True)
class CatalogEntry:
    """Catalog answer for an item name."""
    id: str
    price_cents: int


# item name -> CatalogEntry, raises CatalogMissError on miss
CatalogLookup = Callable[[str], CatalogEntry]


def to_minor_units(amount: Any) -> int:
    """
    Convert a major-unit amount to integer minor units.

    Rounds half-up on the decimal representation, so 0.125 -> 13 and
    2.5 cents never flips to the even neighbour.
    """
    cents = (Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    return int(cents)


def stable_id(prefix: str, *parts: Any) -> str:
    """
    Deterministic identifier from the given parts.

    Same parts always produce the same id, which keeps adapter builds
    idempotent for a given intent and catalog answer.
    """
    canonical = json.dumps([str(p) for p in parts], separators=(",", ":"))
    return f"{prefix}_{hashlib.sha256(canonical.encode('utf-8')).hexdigest()[:16]}"


class ProtocolAdapter(ABC):
    """
    Base class for checkout protocol adapters.

    Subclasses declare protocol_name and version and implement the
    structural detector, the builder and the normalizer.
    """

    protocol_name: str = ""
    version: str = ""
    description: str = ""
    payload_model: Type[BaseModel] = BaseModel

    @abstractmethod
    def can_handle(self, raw: Dict[str, Any]) -> bool:
        """Pure structural check: does this raw payload belong to this protocol?"""

    @abstractmethod
    def build(self, intent: StructuredIntent, catalog_lookup: CatalogLookup) -> Any:
        """Build this protocol's checkout payload from a structured intent."""

    @abstractmethod
    def normalize(self, payload: Any) -> NormalizedPayload:
        """Collapse this protocol's payload into the canonical shape."""

    def parse(self, raw: Dict[str, Any]) -> BaseModel:
        """
        Validate a raw dict into this protocol's payload model.

        The "protocol" tag is dropped first so any registered alias or
        casing is accepted; the model supplies its canonical tag.
        """
        if isinstance(raw, self.payload_model):
            return raw

        data = {k: v for k, v in raw.items() if k != "protocol"}
        try:
            return self.payload_model.model_validate(data)
        except ValidationError as e:
            raise NormalizationGapError(
                f"Malformed {self.protocol_name} payload",
                {
                    "protocol": self.protocol_name,
                    "errors": [{"loc": list(err["loc"]), "msg": err["msg"]} for err in e.errors()]
                }
            )

    def metadata(self) -> Dict[str, str]:
        return {
            "name": self.protocol_name,
            "version": self.version,
            "description": self.description,
        }

    # ------------------------------------------------------------------
    # Helpers shared by concrete adapters
    # ------------------------------------------------------------------

    def _canonical(
        self,
        amount: Optional[Any],
        currency: Optional[str],
        country: str,
        provider: str,
        shipping_speed: str,
    ) -> NormalizedPayload:
        """Assemble a NormalizedPayload, refusing to default money fields."""
        missing = []
        if amount is None:
            missing.append("amount")
        if not currency:
            missing.append("currency")
        if missing:
            raise NormalizationGapError(
                f"{self.protocol_name} payload is missing required field(s): {', '.join(missing)}",
                {"protocol": self.protocol_name, "missing": missing}
            )

        try:
            total_cents = to_minor_units(amount)
        except (InvalidOperation, ValueError):
            raise NormalizationGapError(
                f"{self.protocol_name} payload has a non-numeric or non-finite amount",
                {"protocol": self.protocol_name, "amount": str(amount)}
            )
        if total_cents < 0:
            raise NormalizationGapError(
                f"{self.protocol_name} payload has a negative amount",
                {"protocol": self.protocol_name, "amount": str(amount)}
            )

        return NormalizedPayload(
            halo_normalized=HaloNormalized(
                total_cents=total_cents,
                currency=str(currency).upper(),
                country=str(country).upper(),
                provider=str(provider).lower(),
                shipping_speed=str(shipping_speed).lower(),
            )
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.protocol_name} v{self.version}>"
