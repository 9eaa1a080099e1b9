"""
Record extraction over one document or many.

Batches are processed one after another; documents inside a batch run as
concurrent tasks. The first failure inside a batch cancels its siblings and is
re-raised as-is, so callers get either every record or an exception.
"""

from __future__ import annotations

import asyncio
import logging
import math
from pathlib import Path
from typing import List, Optional, Sequence, Union

from .config import Settings
from .llm_client import LLMClient
from .prompts import build_extraction_prompt, load_prompt_template
from .providers.types import GenerationOptions
from .record import Record
from .response_parser import parse_record_response
from .schema import JSONSchema


def chunked(items: Sequence[str], size: int) -> List[Sequence[str]]:
    return [items[i:i + size] for i in range(0, len(items), size)]


class RecordExtractor:
    def __init__(
        self,
        llm: LLMClient,
        *,
        prompt_template: Optional[str] = None,
        prompt_template_path: Optional[Union[str, Path]] = None,
        settings: Optional[Settings] = None,
        logger: Optional[logging.Logger] = None,
    ) -> None:
        self.llm = llm
        self.settings = settings or llm.settings
        self.log = logger or logging.getLogger(__name__)
        self.prompt_template = prompt_template
        if self.prompt_template is None and prompt_template_path is not None:
            self.prompt_template = load_prompt_template(prompt_template_path)

    def build_prompt(self, document: str, schema: JSONSchema) -> str:
        return build_extraction_prompt(document, schema, self.prompt_template)

    async def extract_record(
        self,
        document: str,
        schema: JSONSchema,
        options: Optional[GenerationOptions] = None,
        *,
        batch_index: Optional[int] = None,
    ) -> Record:
        ctx = {"document_length": len(document), "schema_title": schema.title}
        if batch_index is not None:
            ctx["batch_index"] = batch_index
        self.log.debug("Extracting record from document", extra={**ctx, "properties": len(schema.properties)})
        try:
            prompt = self.build_prompt(document, schema)
            response = await self.llm.generate(prompt, options)
            data = parse_record_response(response.content)
            record = Record(data, schema, validate=False).standardize()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self.log.error(
                "Failed to extract record",
                extra={**ctx, "error": str(e), "error_type": type(e).__name__},
            )
            raise
        self.log.info(
            "Successfully extracted record",
            extra={
                "schema_title": schema.title,
                "field_count": len(data),
                "tokens": response.usage.total_tokens if response.usage else None,
            },
        )
        return record

    async def _run_batch(
        self,
        batch: Sequence[str],
        schema: JSONSchema,
        options: Optional[GenerationOptions],
        batch_index: int,
    ) -> List[Record]:
        tasks = [
            asyncio.ensure_future(self.extract_record(doc, schema, options, batch_index=batch_index))
            for doc in batch
        ]
        try:
            done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_EXCEPTION)
        except asyncio.CancelledError:
            for t in tasks:
                t.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        if pending:
            for t in pending:
                t.cancel()
            # Reap cancelled siblings so none is left un-awaited.
            await asyncio.gather(*pending, return_exceptions=True)

        # Input order, not completion order, decides which failure is reported.
        for t in tasks:
            if t in done and not t.cancelled() and t.exception() is not None:
                raise t.exception()
        return [t.result() for t in tasks]

    async def batch_extract(
        self,
        documents: Sequence[str],
        schema: JSONSchema,
        batch_size: Optional[int] = None,
        options: Optional[GenerationOptions] = None,
    ) -> List[Record]:
        size = batch_size if batch_size is not None else self.settings.extraction_batch_size
        if size < 1:
            raise ValueError("batch_size must be >= 1")
        batches = chunked(documents, size)
        total_batches = math.ceil(len(documents) / size)
        self.log.info(
            "Starting batch extraction",
            extra={"total_documents": len(documents), "batch_size": size, "schema_title": schema.title},
        )

        records: List[Record] = []
        for idx, batch in enumerate(batches, start=1):
            self.log.debug(
                "Processing batch",
                extra={"batch": idx, "total_batches": total_batches, "documents_in_batch": len(batch)},
            )
            try:
                batch_records = await self._run_batch(batch, schema, options, idx)
            except Exception as e:
                self.log.error(
                    "Batch extraction failed",
                    extra={
                        "batch_index": idx,
                        "total_documents": len(documents),
                        "records_extracted": len(records),
                        "schema_title": schema.title,
                        "error": str(e),
                    },
                )
                raise
            records.extend(batch_records)
            self.log.info(
                "Batch completed",
                extra={
                    "batch": idx,
                    "total_batches": total_batches,
                    "records_extracted": len(batch_records),
                    "total_records": len(records),
                },
            )

        self.log.info(
            "Batch extraction completed",
            extra={"total_documents": len(documents), "total_records": len(records)},
        )
        return records
