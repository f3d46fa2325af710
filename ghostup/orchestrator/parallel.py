"""Parallel upload utilities."""
import asyncio
import logging
from pathlib import Path
from typing import Awaitable, Callable, List, Sequence, Union

from ..models import TransferProfile, UploadOutcome
from .models import BatchUploadResult

logger = logging.getLogger(__name__)

UploadFn = Callable[[Union[str, Path]], Awaitable[UploadOutcome]]


def get_parallel_count(profile: TransferProfile, file_count: int) -> int:
    """
    Number of runs allowed in flight at once.

    Capped by the profile and never more than the number of files.
    """
    return max(1, min(profile.max_concurrent_uploads, file_count))


async def upload_bounded(
    paths: Sequence[Union[str, Path]],
    upload_fn: UploadFn,
    profile: TransferProfile,
) -> BatchUploadResult:
    """
    Run independent uploads with at most ``profile.max_concurrent_uploads``
    in flight. Outcomes keep the order of ``paths``.
    """
    limit = get_parallel_count(profile, len(paths))
    semaphore = asyncio.Semaphore(limit)
    logger.info(f"Starting upload: {len(paths)} files, {limit} at a time")

    async def _run(path: Union[str, Path]) -> UploadOutcome:
        async with semaphore:
            return await upload_fn(path)

    outcomes: List[UploadOutcome] = list(await asyncio.gather(*(_run(p) for p in paths)))
    uploaded = sum(1 for o in outcomes if o.success)
    return BatchUploadResult(
        total_files=len(outcomes),
        uploaded_files=uploaded,
        failed_files=len(outcomes) - uploaded,
        outcomes=outcomes,
    )
