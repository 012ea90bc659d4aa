"""Tests for the compression codec."""

import pytest

from feed_cache.compression import (
    CompressionCodec,
    RawJsonFormat,
    ZlibBase64Format,
    serialize,
)
from feed_cache.errors import CompressionError, DecompressionError, SerializationError
from feed_cache.models import Article
from feed_cache.utils import generate_mock_articles


@pytest.fixture
def codec():
    return CompressionCodec()


class TestCompress:
    """Test suite for CompressionCodec.compress."""

    def test_round_trip(self, codec, mock_articles):
        """Compressed articles decompress to the same list."""
        result = codec.compress(mock_articles)
        restored = codec.decompress(result.data, result.compressed)

        assert result.compressed is True
        assert restored.success is True
        assert restored.value == mock_articles

    @pytest.mark.parametrize(
        "value",
        [[], [1], "x", {"a": None}, generate_mock_articles(1), generate_mock_articles(40)],
    )
    def test_stored_size_never_exceeds_original(self, codec, value):
        """Stored size is at most the serialized size for any value."""
        result = codec.compress(value)

        assert result.stored_size <= result.original_size
        restored = codec.decompress(result.data, result.compressed)
        assert restored.value == value

    def test_compressed_only_below_threshold(self, codec, mock_articles):
        """Compression is kept only when it saves at least 10%."""
        for count in (1, 2, 5, 100):
            result = codec.compress(mock_articles[:count])
            if result.compressed:
                assert result.stored_size / result.original_size < 0.9
            else:
                assert result.stored_size == result.original_size
                assert result.ratio == 1.0

    def test_small_payload_stored_raw(self, codec):
        """Tiny payloads do not benefit from compression."""
        result = codec.compress([])

        assert result.compressed is False
        assert result.data == "[]"
        assert result.original_size == 2

    def test_threshold_is_configurable(self, mock_articles):
        """A strict threshold rejects the compressed form."""
        codec = CompressionCodec(threshold=0.0001)

        result = codec.compress(mock_articles)

        assert result.compressed is False
        assert result.data == serialize(mock_articles)

    def test_disabled_codec_stores_raw(self, mock_articles):
        codec = CompressionCodec(enabled=False)

        result = codec.compress(mock_articles)

        assert result.compressed is False
        assert result.stored_size == result.original_size

    def test_engine_failure_falls_back_to_raw(self, codec, mock_articles, mocker):
        """A compression error degrades to storing raw JSON."""
        mocker.patch.object(
            codec.compressed_format, "encode", side_effect=CompressionError("engine broke")
        )

        result = codec.compress(mock_articles)

        assert result.compressed is False
        assert codec.decompress(result.data, False).value == mock_articles

    def test_unserializable_value_raises(self, codec):
        with pytest.raises(SerializationError):
            codec.compress([object()])

    def test_pydantic_articles_are_serialized(self, codec):
        article = Article(
            title="Budget vote",
            link="https://example.com/a",
            pubDate="2024-01-01T00:00:00Z",
            source="bbc-news",
            sourceLean="center",
        )

        result = codec.compress([article])
        restored = codec.decompress(result.data, result.compressed)

        assert restored.value == [article.to_record()]

    def test_original_size_counts_utf8_bytes(self, codec):
        result = codec.compress(["é"])

        assert result.original_size == len('["é"]'.encode("utf-8"))


class TestDecompress:
    """Test suite for decompress and smart_decompress."""

    def test_corrupt_compressed_payload_fails(self, codec):
        result = codec.decompress("not-base64!!", True)

        assert result.success is False
        assert result.value is None
        assert result.was_compressed is True
        assert result.error

    def test_truncated_compressed_payload_fails(self, codec, mock_articles):
        data = codec.compress(mock_articles).data

        result = codec.decompress(data[: len(data) // 2], True)

        assert result.success is False

    def test_invalid_raw_payload_fails(self, codec):
        result = codec.decompress("{not json", False)

        assert result.success is False
        assert "Invalid JSON" in result.error

    def test_smart_decompress_raw(self, codec, mock_articles):
        result = codec.smart_decompress(serialize(mock_articles))

        assert result.success is True
        assert result.was_compressed is False
        assert result.value == mock_articles

    def test_smart_decompress_compressed(self, codec, mock_articles):
        data = codec.compress(mock_articles).data

        result = codec.smart_decompress(data)

        assert result.success is True
        assert result.was_compressed is True
        assert result.value == mock_articles

    def test_smart_decompress_garbage(self, codec):
        result = codec.smart_decompress("definitely not a payload")

        assert result.success is False
        assert "raw-json" in result.error
        assert "zlib-base64" in result.error

    def test_smart_decompress_tries_formats_in_order(self, mocker):
        first = mocker.Mock(name="first", compressed=False)
        first.name = "first"
        first.decode.side_effect = DecompressionError("nope")
        second = mocker.Mock(name="second", compressed=True)
        second.name = "second"
        second.decode.return_value = ["ok"]
        codec = CompressionCodec(formats=[first, second])

        result = codec.smart_decompress("payload")

        assert result.value == ["ok"]
        assert result.was_compressed is True
        first.decode.assert_called_once_with("payload")
        second.decode.assert_called_once_with("payload")


class TestFormats:
    """Payload formats are usable on their own."""

    def test_raw_json_format(self):
        fmt = RawJsonFormat()

        assert fmt.decode(fmt.encode('{"a":1}')) == {"a": 1}
        with pytest.raises(DecompressionError):
            fmt.decode("eJxLTEpOSU1LBwAJ4AK5")

    def test_zlib_format(self):
        fmt = ZlibBase64Format(level=9)
        text = serialize({"title": "x" * 500})

        encoded = fmt.encode(text)

        assert encoded.startswith("eN")
        assert fmt.decode(encoded) == {"title": "x" * 500}
        with pytest.raises(DecompressionError):
            fmt.decode('{"title": "plain"}')


class TestCompressionMetrics:
    """Codec metrics are tracked across calls."""

    def test_initial_metrics(self, codec):
        metrics = codec.metrics.get_metrics()

        assert metrics["total_compressions"] == 0
        assert metrics["compression_success_rate"] == 0.0
        assert metrics["decompression_success_rate"] == 0.0
        assert metrics["average_compression_ratio"] == 1.0

    def test_metrics_accumulate(self, codec, mock_articles):
        big = codec.compress(mock_articles)
        small = codec.compress([])
        codec.decompress(big.data, True)
        codec.decompress("garbage", True)

        metrics = codec.metrics.get_metrics()

        assert metrics["total_compressions"] == 2
        assert metrics["total_decompressions"] == 2
        assert metrics["total_original_size"] == big.original_size + small.original_size
        assert metrics["total_stored_size"] == big.stored_size + small.stored_size
        assert metrics["compression_success_rate"] == 0.5
        assert metrics["decompression_success_rate"] == 0.5
        assert metrics["average_compression_ratio"] < 1.0

    def test_reset(self, codec, mock_articles):
        codec.compress(mock_articles)
        codec.metrics.reset()

        assert codec.metrics.get_metrics()["total_compressions"] == 0
