"""Compression codec for cached feed payloads.

This module turns JSON-serializable values into compact text and back:
- zlib compression, base64-encoded so payloads stay plain text
- Fallback to raw JSON when compression fails or saves less than 10%
- Format auto-detection for entries whose compression flag was lost
- Cumulative metrics for tuning the compression policy
"""

import base64
import binascii
import json
import threading
import zlib
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence, Tuple

import structlog
from pydantic import BaseModel

from feed_cache.errors import CompressionError, DecompressionError, SerializationError
from feed_cache.utils import calculate_storage_size

logger = structlog.get_logger(__name__)

DEFAULT_COMPRESSION_THRESHOLD = 0.9


@dataclass
class CompressionResult:
    """Outcome of a compress call.

    Attributes:
        data: Payload text to store
        compressed: Whether ``data`` is the compressed form
        original_size: Byte size of the serialized value
        stored_size: Byte size of ``data``
        ratio: stored_size / original_size
    """

    data: str
    compressed: bool
    original_size: int
    stored_size: int
    ratio: float

    @property
    def savings(self) -> int:
        return self.original_size - self.stored_size


@dataclass
class DecompressionResult:
    """Outcome of a decompress call.

    ``value`` is only meaningful when ``success`` is True; otherwise ``error``
    carries the reason.
    """

    value: Any
    success: bool
    was_compressed: bool
    error: Optional[str] = None

    @classmethod
    def failure(cls, error: str, was_compressed: bool) -> "DecompressionResult":
        return cls(value=None, success=False, was_compressed=was_compressed, error=error)


def _json_default(obj: Any) -> Any:
    if isinstance(obj, BaseModel):
        return obj.model_dump(mode="json", exclude_none=True)
    raise TypeError(f"Object of type {type(obj).__name__} is not JSON serializable")


def serialize(value: Any) -> str:
    """Serialize a value to its canonical compact JSON form.

    Raises:
        SerializationError: If the value is not JSON-serializable
    """
    try:
        return json.dumps(value, separators=(",", ":"), ensure_ascii=False, default=_json_default)
    except (TypeError, ValueError) as e:
        raise SerializationError(str(e), {"type": type(value).__name__}) from e


class PayloadFormat(ABC):
    """A way of storing serialized JSON as text."""

    name: str = ""
    compressed: bool = False

    @abstractmethod
    def encode(self, text: str) -> str:
        """Encode serialized JSON into stored text.

        Raises:
            CompressionError: If encoding fails
        """

    @abstractmethod
    def decode(self, data: str) -> Any:
        """Decode stored text back into a value.

        Raises:
            DecompressionError: If the data is not in this format
        """


class RawJsonFormat(PayloadFormat):
    """Serialized JSON stored as-is."""

    name = "raw-json"
    compressed = False

    def encode(self, text: str) -> str:
        return text

    def decode(self, data: str) -> Any:
        try:
            return json.loads(data)
        except (TypeError, ValueError) as e:
            raise DecompressionError(f"Invalid JSON: {e}") from e


class ZlibBase64Format(PayloadFormat):
    """zlib-compressed UTF-8 JSON, base64-encoded."""

    name = "zlib-base64"
    compressed = True

    def __init__(self, level: int = 6) -> None:
        self.level = level

    def encode(self, text: str) -> str:
        try:
            packed = zlib.compress(text.encode("utf-8"), self.level)
        except zlib.error as e:
            raise CompressionError(f"zlib compression failed: {e}") from e
        return base64.b64encode(packed).decode("ascii")

    def decode(self, data: str) -> Any:
        try:
            packed = base64.b64decode(data, validate=True)
        except (binascii.Error, TypeError, ValueError) as e:
            raise DecompressionError(f"Invalid base64 payload: {e}") from e
        try:
            text = zlib.decompress(packed).decode("utf-8")
        except (zlib.error, UnicodeDecodeError) as e:
            raise DecompressionError(f"Decompression failed: {e}") from e
        try:
            return json.loads(text)
        except ValueError as e:
            raise DecompressionError(f"Decompressed data is not valid JSON: {e}") from e


class CompressionMetrics:
    """Cumulative codec statistics.

    These are observations only; the codec never reads them back.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.reset()

    def reset(self) -> None:
        with self._lock:
            self.total_compressions = 0
            self.total_decompressions = 0
            self.total_original_size = 0
            self.total_stored_size = 0
            self._compression_successes = 0
            self._decompression_successes = 0

    def record_compression(self, result: CompressionResult) -> None:
        with self._lock:
            self.total_compressions += 1
            self.total_original_size += result.original_size
            self.total_stored_size += result.stored_size
            if result.compressed:
                self._compression_successes += 1

    def record_decompression(self, success: bool) -> None:
        with self._lock:
            self.total_decompressions += 1
            if success:
                self._decompression_successes += 1

    def get_metrics(self) -> Dict[str, Any]:
        """Return a snapshot of the codec metrics."""
        with self._lock:
            return {
                "total_compressions": self.total_compressions,
                "total_decompressions": self.total_decompressions,
                "total_original_size": self.total_original_size,
                "total_stored_size": self.total_stored_size,
                "average_compression_ratio": (
                    self.total_stored_size / self.total_original_size
                    if self.total_original_size
                    else 1.0
                ),
                "compression_success_rate": (
                    self._compression_successes / self.total_compressions
                    if self.total_compressions
                    else 0.0
                ),
                "decompression_success_rate": (
                    self._decompression_successes / self.total_decompressions
                    if self.total_decompressions
                    else 0.0
                ),
            }


class CompressionCodec:
    """Compresses feed payloads with fallback and format auto-detection.

    ``smart_decompress`` walks ``formats`` in order and returns the first
    successful decode. The default order tries raw JSON before zlib because a
    failed JSON parse is cheap and covers entries written before compression
    existed.
    """

    def __init__(
        self,
        threshold: float = DEFAULT_COMPRESSION_THRESHOLD,
        level: int = 6,
        enabled: bool = True,
        formats: Optional[Sequence[PayloadFormat]] = None,
    ) -> None:
        self.threshold = threshold
        self.enabled = enabled
        self.raw_format = RawJsonFormat()
        self.compressed_format = ZlibBase64Format(level=level)
        self.formats: Tuple[PayloadFormat, ...] = tuple(
            formats if formats is not None else (self.raw_format, self.compressed_format)
        )
        self.metrics = CompressionMetrics()

    @classmethod
    def from_config(cls, config) -> "CompressionCodec":
        return cls(
            threshold=config.compression_threshold,
            level=config.compression_level,
            enabled=config.enable_compression,
        )

    def compress(self, value: Any) -> CompressionResult:
        """Compress a JSON-serializable value.

        Args:
            value: Value to compress

        Returns:
            Compressed form if it saves enough space, raw JSON otherwise

        Raises:
            SerializationError: If the value is not JSON-serializable
        """
        text = serialize(value)
        original_size = calculate_storage_size(text)
        result = self._raw_result(text, original_size)

        if self.enabled and original_size > 0:
            try:
                data = self.compressed_format.encode(text)
            except CompressionError as e:
                logger.warning("Compression failed, storing raw data", error=str(e))
            else:
                stored_size = calculate_storage_size(data)
                ratio = stored_size / original_size
                if ratio < self.threshold:
                    result = CompressionResult(
                        data=data,
                        compressed=True,
                        original_size=original_size,
                        stored_size=stored_size,
                        ratio=ratio,
                    )

        self.metrics.record_compression(result)
        return result

    def decompress(self, data: str, was_compressed: bool) -> DecompressionResult:
        """Decode a payload whose format is known.

        Args:
            data: Stored payload text
            was_compressed: Whether the payload holds the compressed form

        Returns:
            DecompressionResult, never raises
        """
        payload_format = self.compressed_format if was_compressed else self.raw_format
        try:
            result = DecompressionResult(
                value=payload_format.decode(data), success=True, was_compressed=was_compressed
            )
        except DecompressionError as e:
            result = DecompressionResult.failure(e.message, was_compressed)
        self.metrics.record_decompression(result.success)
        return result

    def smart_decompress(self, data: str) -> DecompressionResult:
        """Decode a payload whose format is unknown.

        Args:
            data: Stored payload text

        Returns:
            Result of the first format that decodes ``data``
        """
        errors = []
        for payload_format in self.formats:
            try:
                value = payload_format.decode(data)
            except DecompressionError as e:
                errors.append(f"{payload_format.name}: {e.message}")
                continue
            self.metrics.record_decompression(True)
            return DecompressionResult(
                value=value, success=True, was_compressed=payload_format.compressed
            )

        self.metrics.record_decompression(False)
        return DecompressionResult.failure(
            "Unable to decode data in any known format (" + "; ".join(errors) + ")",
            was_compressed=False,
        )

    @staticmethod
    def _raw_result(text: str, size: int) -> CompressionResult:
        return CompressionResult(
            data=text, compressed=False, original_size=size, stored_size=size, ratio=1.0
        )
