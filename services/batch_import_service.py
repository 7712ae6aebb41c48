"""
Batch record import.

Writes transformed records to Lark in chunks of at most 500 (the
batch_create limit). A failing chunk marks only its own records as failed;
the remaining chunks are still sent. Chunks go out one after another so
record indexes in errors always line up with the submitted list.
"""

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional
import structlog

from config import get_settings, LARK_MAX_BATCH_SIZE
from exceptions import ExternalServiceError
from models.imports import BatchCreateResult, RecordError

logger = structlog.get_logger(__name__)


@dataclass
class ChunkOutcome:
    """Result of one batch_create call."""
    number: int
    start: int
    size: int
    record_ids: list[str] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def chunked(records: list, size: int) -> list[tuple[int, list]]:
    """Split into (start_index, slice) pairs of at most size items."""
    return [(start, records[start:start + size]) for start in range(0, len(records), size)]


class BatchImportService:
    """
    Chunked writer for one table.

    Usage:
        service = BatchImportService(client)
        result = await service.create_records(app_token, table_id, rows)

        # or, to stop between chunks:
        async for outcome in service.iter_chunks(app_token, table_id, rows):
            if should_stop():
                break
    """

    def __init__(self, client, batch_size: Optional[int] = None):
        self.client = client
        size = batch_size or get_settings().import_batch_size
        self.batch_size = max(1, min(size, LARK_MAX_BATCH_SIZE))

    async def _send_chunk(
        self,
        app_token: str,
        table_id: str,
        number: int,
        start: int,
        chunk: list[dict[str, Any]]
    ) -> ChunkOutcome:
        outcome = ChunkOutcome(number=number, start=start, size=len(chunk))

        try:
            result = await self.client.batch_create_records(app_token, table_id, chunk)
        except ExternalServiceError as e:
            outcome.error = e.message
            logger.error(
                "batch_chunk_failed",
                chunk=number,
                start=start,
                size=len(chunk),
                error=e.message,
                error_type=type(e).__name__
            )
            return outcome

        if not result.ok:
            outcome.error = result.error_text()
            logger.error(
                "batch_chunk_rejected",
                chunk=number,
                start=start,
                size=len(chunk),
                lark_code=result.code,
                error=result.message
            )
            return outcome

        outcome.record_ids = list(result.data)
        logger.info("batch_chunk_created", chunk=number, start=start, size=len(chunk))
        return outcome

    async def iter_chunks(
        self,
        app_token: str,
        table_id: str,
        records: list[dict[str, Any]]
    ) -> AsyncIterator[ChunkOutcome]:
        """Send chunks sequentially, yielding each outcome as it completes."""
        for number, (start, chunk) in enumerate(chunked(records, self.batch_size), start=1):
            yield await self._send_chunk(app_token, table_id, number, start, chunk)

    @staticmethod
    def aggregate(outcomes: list[ChunkOutcome]) -> BatchCreateResult:
        """Combine chunk outcomes; errors keep submission order."""
        result = BatchCreateResult()

        for outcome in outcomes:
            if outcome.ok:
                result.success_count += outcome.size
                result.record_ids.extend(outcome.record_ids)
            else:
                result.failed_count += outcome.size
                result.errors.extend(
                    RecordError(index=outcome.start + offset, error=outcome.error)
                    for offset in range(outcome.size)
                )

        return result

    async def create_records(
        self,
        app_token: str,
        table_id: str,
        records: list[dict[str, Any]]
    ) -> BatchCreateResult:
        """
        Write all records.

        Returns:
            BatchCreateResult where success_count + failed_count == len(records)
        """
        logger.info(
            "batch_import_started",
            table_id=table_id,
            records=len(records),
            batch_size=self.batch_size
        )

        outcomes = [outcome async for outcome in self.iter_chunks(app_token, table_id, records)]
        result = self.aggregate(outcomes)

        logger.info(
            "batch_import_complete",
            table_id=table_id,
            success=result.success_count,
            failed=result.failed_count,
            chunks=len(outcomes)
        )
        return result
