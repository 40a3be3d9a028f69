"""Platform-to-platform conversion through the canonical model."""

import logging
from typing import Any, Iterable, List, Optional, Union

from .adapters import Converted, PlatformAdapter, Skipped, get_adapter

logger = logging.getLogger(__name__)


def convert(
    record: Any,
    source: PlatformAdapter,
    target: PlatformAdapter,
) -> Union[Converted[Any], Skipped]:
    """
    Convert one source record into the target platform's record.

    A record the source adapter skips is returned as the ``Skipped`` result
    untouched; nothing is written to the target.
    """
    result = source.from_platform(record)
    if isinstance(result, Skipped):
        return result
    return Converted(target.to_platform(result.value))


def convert_batch(
    records: Iterable[Any],
    source: PlatformAdapter,
    target: PlatformAdapter,
) -> List[Any]:
    """Convert many records, dropping the ones the source adapter skips."""
    converted = []
    skipped = 0
    for record in records:
        result = convert(record, source, target)
        if isinstance(result, Skipped):
            skipped += 1
            continue
        converted.append(result.value)
    logger.info(
        "batch_converted",
        extra={
            "source": source.platform,
            "target": target.platform,
            "converted": len(converted),
            "skipped": skipped,
        },
    )
    return converted


def convert_payloads(
    payloads: Iterable[dict],
    source: str,
    target: str,
    adapter_logger: Optional[logging.Logger] = None,
) -> List[dict]:
    """Convert raw JSON payloads between platforms by name."""
    source_adapter = get_adapter(source, logger=adapter_logger)
    target_adapter = get_adapter(target, logger=adapter_logger)
    records = [source_adapter.parse_record(payload) for payload in payloads]
    return [
        target_adapter.dump_record(record)
        for record in convert_batch(records, source_adapter, target_adapter)
    ]
