"""Readable memory captured in a crash snapshot"""
from abc import ABC, abstractmethod

from crashaddr.error_handling import ErrorContext, OutOfRangeError, create_error


class MemoryRegion(ABC):
    """A contiguous range of captured memory starting at ``base``"""

    @property
    @abstractmethod
    def base(self) -> int:
        pass

    @property
    @abstractmethod
    def size(self) -> int:
        pass

    @abstractmethod
    def read_byte(self, address: int) -> int:
        """
        Read one byte.

        Raises:
            OutOfRangeError: If ``address`` is not inside the region
        """
        pass

    def contains(self, address: int) -> bool:
        return self.base <= address < self.base + self.size

    def check_address(self, address: int):
        """Raise OutOfRangeError unless ``address`` is inside the region"""
        if not self.contains(address):
            raise create_error(
                "address_out_of_range",
                error_class=OutOfRangeError,
                context=ErrorContext(address=address),
                address=address,
                start=self.base,
                end=self.base + self.size,
            )


class BytesMemoryRegion(MemoryRegion):
    """Memory region backed by an in-memory bytes object"""

    def __init__(self, base: int, data: bytes):
        self._base = base
        self._data = bytes(data)

    @property
    def base(self) -> int:
        return self._base

    @property
    def size(self) -> int:
        return len(self._data)

    def read_byte(self, address: int) -> int:
        self.check_address(address)
        return self._data[address - self._base]

    def __repr__(self):
        return f"BytesMemoryRegion(base={self._base:#x}, size={self.size:#x})"


def read_window(region: MemoryRegion, address: int, limit: int) -> bytes:
    """
    Read up to ``limit`` bytes starting at ``address``.

    Reads byte by byte and stops at the first unreadable byte, so an
    instruction near the end of the region still yields a (short) window.

    Raises:
        OutOfRangeError: If ``address`` itself is not readable
    """
    region.check_address(address)

    window = bytearray()
    for offset in range(limit):
        try:
            window.append(region.read_byte(address + offset))
        except OutOfRangeError:
            break
    return bytes(window)
