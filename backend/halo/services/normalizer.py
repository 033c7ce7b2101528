"""
Payload Normalizer

Collapses any registered protocol's payload into the canonical
NormalizedPayload by dispatching to the owning adapter.
"""
import logging
from typing import Any, Dict, Optional, Tuple, Union

from pydantic import BaseModel

from ..exceptions import NormalizationGapError, UnknownProtocolError
from ..models.payloads import NormalizedPayload
from ..protocols.registry import ProtocolRegistry

logger = logging.getLogger(__name__)


class PayloadNormalizer:
    """Registry-backed normalization of ACP / UCP / x402 payloads."""

    def __init__(self, registry: ProtocolRegistry):
        self.registry = registry

    def resolve(self, payload: Union[BaseModel, Dict[str, Any]], protocol: Optional[str] = None):
        """Find the adapter for a payload, by explicit name or detection."""
        raw = payload.model_dump(by_alias=True) if isinstance(payload, BaseModel) else payload

        name = protocol or self.registry.detect(raw)
        adapter = self.registry.get(name) if name else None
        if adapter is None:
            raise UnknownProtocolError(
                f"No protocol adapter for {protocol!r}" if protocol
                else "Payload does not match any registered protocol",
                {"protocol": protocol}
            )

        return adapter, raw

    def normalize(
        self,
        payload: Union[BaseModel, Dict[str, Any]],
        protocol: Optional[str] = None,
        submitted: bool = False
    ) -> Tuple[str, NormalizedPayload]:
        """
        Normalize a protocol payload.

        Args:
            payload: Payload model or raw dict
            protocol: Protocol name or alias; detected when omitted
            submitted: True when the payload already went through protocol
                submission, in which case a gap means a builder bug

        Returns:
            (canonical protocol name, NormalizedPayload)

        Raises:
            UnknownProtocolError: No adapter claims the payload
            NormalizationGapError: Amount or currency missing
        """
        adapter, raw = self.resolve(payload, protocol)

        try:
            normalized = adapter.normalize(adapter.parse(raw))
        except NormalizationGapError as e:
            if submitted:
                logger.error(
                    f"Submitted {adapter.protocol_name} payload could not be normalized: "
                    f"{e.message} (details={e.details})"
                )
            else:
                logger.warning(f"Normalization gap: {e.message}")
            raise

        logger.debug(
            f"Normalized {adapter.protocol_name} payload: "
            f"{normalized.halo_normalized.total_cents} {normalized.halo_normalized.currency}"
        )
        return adapter.protocol_name, normalized
