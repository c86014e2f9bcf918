"""Per-run state threaded through ingestion and normalization.

Every skipped source and every defaulted record field is logged as it
happens and kept here so the evidence trail can be reproduced from the
result bundle.
"""

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from recoverability.schemas.posture import (
    FieldDefault,
    IngestionSource,
    IngestionStatus,
    SourceKind,
)

logger = logging.getLogger(__name__)


@dataclass
class RunContext:
    """Mutable accumulator for one assessment run."""

    organization: str = "Default"
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    sources: list[IngestionSource] = field(default_factory=list)
    field_defaults: list[FieldDefault] = field(default_factory=list)

    @property
    def ingested_at(self) -> datetime:
        """Timestamp assigned to results whose source carries none."""
        return self.started_at

    @property
    def ingested_sources(self) -> list[IngestionSource]:
        return [s for s in self.sources if s.status == IngestionStatus.INGESTED]

    @property
    def skipped_sources(self) -> list[IngestionSource]:
        return [s for s in self.sources if s.status == IngestionStatus.SKIPPED]

    def record_source(self, source: IngestionSource) -> None:
        """Record a successfully ingested source."""
        self.sources.append(source)
        logger.info(
            f"Ingested {source.kind.value} source {source.location}: "
            f"{source.record_count} records -> {source.result_count} results"
        )

    def record_skip(self, kind: SourceKind, location: str, reason: str) -> None:
        """Record a source that could not be used."""
        self.sources.append(
            IngestionSource(
                kind=kind,
                location=location,
                status=IngestionStatus.SKIPPED,
                reason=reason,
            )
        )
        logger.warning(f"Skipping {kind.value} source {location}: {reason}")

    def record_default(
        self,
        source: str,
        record_index: int,
        field_name: str,
        assumed: Any,
        reason: str,
    ) -> None:
        """Record a record field that resolved to its default."""
        self.field_defaults.append(
            FieldDefault(
                source=source,
                record_index=record_index,
                field=field_name,
                assumed=repr(assumed),
                reason=reason,
            )
        )
        message = (
            f"{source} record {record_index}: field '{field_name}' "
            f"defaulted to {assumed!r} ({reason})"
        )
        if reason.startswith("invalid"):
            logger.warning(message)
        else:
            logger.debug(message)

    def record_skipped_record(self, source: str, record_index: int, reason: str) -> None:
        """Record a record that could not be read at all."""
        self.field_defaults.append(
            FieldDefault(
                source=source,
                record_index=record_index,
                field="*",
                assumed="record skipped",
                reason=reason,
            )
        )
        logger.warning(f"{source} record {record_index} skipped: {reason}")
