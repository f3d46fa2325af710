"""Transfer strategy selection."""
from ..models import FileDescriptor, KIB, MIB, TransferProfile, TransferStrategy

# Files above this size are streamed instead of read into memory.
STREAMING_THRESHOLD = 100 * MIB

MIN_STREAM_CHUNK = 64 * KIB
MAX_STREAM_CHUNK = 1 * MIB


class TransferPlanner:
    """Decides how a file's bytes are sent."""

    threshold = STREAMING_THRESHOLD

    def plan(self, descriptor: FileDescriptor, profile: TransferProfile) -> TransferStrategy:
        if descriptor.size_bytes > self.threshold:
            return TransferStrategy.STREAMED
        return TransferStrategy.BUFFERED

    @staticmethod
    def chunk_size(profile: TransferProfile) -> int:
        """Streamed read size: the profile's part size kept within memory bounds."""
        return max(MIN_STREAM_CHUNK, min(profile.part_size_bytes, MAX_STREAM_CHUNK))
