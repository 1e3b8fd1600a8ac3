"""
Key-to-partition selection for telemetry messages.

The message key is the partition index written as a decimal string
("0", "1", ...). Anything that isn't a usable index goes to the first
partition rather than being dropped.
"""

from typing import Sequence, Union


def select_partition(key: Union[bytes, str], partitions: Sequence[int]) -> int:
    """
    Pick the partition for a message key.

    Args:
        key: Message key, expected to be a decimal index
        partitions: Available partition ids, in order

    Returns:
        partitions[int(key)], or partitions[0] when the key is not a
        valid index. 0 when there are no partitions at all.
    """
    if not partitions:
        return 0

    if isinstance(key, bytes):
        try:
            key = key.decode("ascii")
        except UnicodeDecodeError:
            return partitions[0]

    try:
        index = int(key)
    except ValueError:
        return partitions[0]

    if index < 0 or index >= len(partitions):
        return partitions[0]
    return partitions[index]
