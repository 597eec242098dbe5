import io
import unittest

from PIL import Image

from s3_gallery.ingest import (
    ImageIngestPipeline,
    TranscodingImageIngest,
    ValidationError,
    create_ingest,
    sniff_mime_type,
)
from s3_gallery.services import StorageError
from s3_gallery.settings import GallerySettings

PNG_HEADER = b"\x89PNG\r\n\x1a\n"
JPEG_HEADER = b"\xff\xd8\xff\xe0"


def encode_image(size, image_format, color=(200, 30, 30)):
    buffer = io.BytesIO()
    Image.new("RGB", size, color).save(buffer, format=image_format)
    return buffer.getvalue()


class FakeWriter:
    def __init__(self, delete_error=None):
        self.put_calls = []
        self.delete_calls = []
        self.delete_error = delete_error

    def put(self, key, mime_type, data):
        self.put_calls.append((key, mime_type, data))

    def delete(self, key):
        self.delete_calls.append(key)
        if self.delete_error:
            raise self.delete_error


class SniffMimeTypeTests(unittest.TestCase):
    def test_detects_common_signatures(self):
        self.assertEqual("image/png", sniff_mime_type(PNG_HEADER + b"rest"))
        self.assertEqual("image/jpeg", sniff_mime_type(JPEG_HEADER + b"rest"))
        self.assertEqual("image/gif", sniff_mime_type(b"GIF89a" + b"\x00" * 10))
        self.assertEqual("image/webp", sniff_mime_type(b"RIFF\x00\x00\x00\x00WEBPVP8 "))
        self.assertEqual("application/pdf", sniff_mime_type(b"%PDF-1.7"))

    def test_text_and_unknown_payloads(self):
        self.assertEqual("text/plain", sniff_mime_type(b"hello world"))
        self.assertEqual("text/xml", sniff_mime_type(b"  <svg xmlns='http://www.w3.org/2000/svg'/>"))
        self.assertEqual("application/octet-stream", sniff_mime_type(b"\x00\x01\x02\x03"))
        self.assertEqual("application/octet-stream", sniff_mime_type(b""))

    def test_real_encoded_images(self):
        self.assertEqual("image/png", sniff_mime_type(encode_image((4, 4), "PNG")))
        self.assertEqual("image/jpeg", sniff_mime_type(encode_image((4, 4), "JPEG")))


class ImageIngestPipelineTests(unittest.TestCase):
    def setUp(self):
        self.writer = FakeWriter()
        self.pipeline = ImageIngestPipeline(self.writer, max_bytes=1024)

    def test_stores_png_under_given_key_with_detected_type(self):
        payload = PNG_HEADER + b"\x00" * 32

        key = self.pipeline.insert("shoes/red/1.png", payload)

        self.assertEqual("shoes/red/1.png", key)
        self.assertEqual([("shoes/red/1.png", "image/png", payload)], self.writer.put_calls)

    def test_detected_type_wins_over_extension(self):
        payload = JPEG_HEADER + b"\x00" * 32

        self.pipeline.insert("misnamed.png", payload)

        self.assertEqual("image/jpeg", self.writer.put_calls[0][1])

    def test_oversized_payload_is_rejected_without_writing(self):
        payload = PNG_HEADER + b"\x00" * 1024

        with self.assertRaises(ValidationError) as ctx:
            self.pipeline.insert("big.png", payload)

        self.assertIn("upload limit", str(ctx.exception))
        self.assertEqual([], self.writer.put_calls)

    def test_payload_at_the_limit_is_accepted(self):
        payload = PNG_HEADER + b"\x00" * (1024 - len(PNG_HEADER))

        self.pipeline.insert("exact.png", payload)

        self.assertEqual(1, len(self.writer.put_calls))

    def test_gif_is_rejected_naming_the_detected_type(self):
        with self.assertRaises(ValidationError) as ctx:
            self.pipeline.insert("anim.gif", b"GIF89a" + b"\x00" * 16)

        self.assertIn("image/gif", str(ctx.exception))
        self.assertEqual([], self.writer.put_calls)

    def test_empty_name_is_rejected(self):
        with self.assertRaises(ValidationError):
            self.pipeline.insert("  ", PNG_HEADER)

    def test_default_limit_is_ten_mebibytes(self):
        self.assertEqual(10 * 1024 * 1024, ImageIngestPipeline(self.writer).max_bytes)

    def test_rejects_non_positive_limit(self):
        with self.assertRaises(ValueError):
            ImageIngestPipeline(self.writer, max_bytes=0)

    def test_delete_propagates_backend_error(self):
        writer = FakeWriter(delete_error=StorageError("Failed to delete 'x.png'"))
        pipeline = ImageIngestPipeline(writer)

        with self.assertRaises(StorageError):
            pipeline.delete("x.png")

        self.assertEqual(["x.png"], writer.delete_calls)


class TranscodingImageIngestTests(unittest.TestCase):
    def setUp(self):
        self.writer = FakeWriter()

    def test_resizes_into_box_and_stores_jpeg(self):
        pipeline = TranscodingImageIngest(self.writer, box=(300, 300))
        payload = encode_image((1200, 600), "PNG")

        key = pipeline.insert("shoes/red/photo.png", payload)

        self.assertEqual("shoes/red/photo.jpg", key)
        stored_key, mime_type, data = self.writer.put_calls[0]
        self.assertEqual("shoes/red/photo.jpg", stored_key)
        self.assertEqual("image/jpeg", mime_type)
        with Image.open(io.BytesIO(data)) as image:
            self.assertEqual("JPEG", image.format)
            self.assertEqual((300, 150), image.size)

    def test_target_key_is_the_transcoded_name(self):
        self.assertEqual("shoes/a.jpg", TranscodingImageIngest(self.writer).target_key("shoes/a.png"))
        self.assertEqual("shoes/a.png", ImageIngestPipeline(self.writer).target_key("shoes/a.png"))

    def test_small_images_are_not_enlarged(self):
        pipeline = TranscodingImageIngest(self.writer, box=(300, 300))

        pipeline.insert("tiny.png", encode_image((40, 20), "PNG"))

        with Image.open(io.BytesIO(self.writer.put_calls[0][2])) as image:
            self.assertEqual((40, 20), image.size)

    def test_returns_retrieval_url_when_configured(self):
        pipeline = TranscodingImageIngest(
            self.writer,
            url_base=("http://storage.local:9000/", "images"),
        )

        url = pipeline.insert("hats/cap.gif", encode_image((10, 10), "GIF"))

        self.assertEqual("http://storage.local:9000/images/hats/cap.jpg", url)

    def test_undecodable_payload_is_a_validation_error(self):
        pipeline = TranscodingImageIngest(self.writer)

        with self.assertRaises(ValidationError):
            pipeline.insert("broken.png", b"not an image at all")

        self.assertEqual([], self.writer.put_calls)

    def test_size_cap_applies_before_decoding(self):
        pipeline = TranscodingImageIngest(self.writer, max_bytes=10)

        with self.assertRaises(ValidationError):
            pipeline.insert("big.png", encode_image((10, 10), "PNG"))

        self.assertEqual([], self.writer.put_calls)


class CreateIngestTests(unittest.TestCase):
    def test_validate_mode_is_the_default(self):
        pipeline = create_ingest(FakeWriter(), GallerySettings())

        self.assertIs(ImageIngestPipeline, type(pipeline))

    def test_transcode_mode_uses_settings(self):
        settings = GallerySettings(ingest_mode="transcode", thumbnail_width=64, thumbnail_height=32, return_url=True)
        writer = FakeWriter()

        pipeline = create_ingest(writer, settings, endpoint_url="http://host", bucket="images")
        url = pipeline.insert("a.png", encode_image((128, 128), "PNG"))

        self.assertIsInstance(pipeline, TranscodingImageIngest)
        self.assertEqual("http://host/images/a.jpg", url)
        with Image.open(io.BytesIO(writer.put_calls[0][2])) as image:
            self.assertEqual((32, 32), image.size)


if __name__ == "__main__":
    unittest.main()
