"""
Image Processor Module.

This module handles receipt image processing including:
    - Decoding and validation (corrupted uploads are rejected)
    - Orientation correction
    - Resolution normalization
    - Preview thumbnails
    - Image enhancement for OCR (quality presets)

Author: ML Engineering Team
"""

import io
from pathlib import Path
from typing import Union

from PIL import Image, ImageEnhance, ImageFilter, ImageOps, UnidentifiedImageError

from receipt_extraction.config import get_config
from receipt_extraction.utils.logger import get_logger
from receipt_extraction.utils.helpers import ensure_directory
from receipt_extraction.utils.exceptions import CorruptedFileError

# Initialize module logger
logger = get_logger(__name__)


# OCR quality presets → preprocessing steps
QUALITY_PRESETS = {
    'fast': {'enhance': False, 'binarize': False, 'denoise': False},
    'balanced': {'enhance': True, 'binarize': False, 'denoise': False},
    'accurate': {'enhance': True, 'binarize': True, 'denoise': True},
}


class ImageProcessor:
    """
    Processor for receipt photos (JPG, PNG, WEBP, ...).

    Handles image decoding, normalization, enhancement and preview
    generation so OCR sees consistent input.

    Attributes:
        max_width: Maximum image width fed to OCR
        max_height: Maximum image height fed to OCR
        auto_orient: Whether to auto-correct orientation from EXIF
        preview_size: Bounding box of preview thumbnails
        preview_quality: JPEG quality of preview thumbnails

    Example:
        >>> processor = ImageProcessor()
        >>> image = processor.load(data, "receipt.jpg")
        >>> ocr_image = processor.prepare_for_ocr(image, quality="balanced")
    """

    def __init__(self) -> None:
        """Initialize the image processor with configuration."""
        self.max_width = get_config("ocr.image.max_width", 2480)
        self.max_height = get_config("ocr.image.max_height", 3508)
        self.auto_orient = get_config("ocr.image.auto_orient", True)
        self.binarize_threshold = get_config("ocr.image.binarize_threshold", 128)
        self.preview_size = (
            get_config("ingestion.preview.max_width", 800),
            get_config("ingestion.preview.max_height", 800),
        )
        self.preview_quality = get_config("ingestion.preview.quality", 80)

        logger.debug(
            f"ImageProcessor initialized (max_size={self.max_width}x{self.max_height})"
        )

    def load(self, data: bytes, filename: str = "image") -> Image.Image:
        """
        Decode image bytes.

        Args:
            data: Encoded image.
            filename: Name used in error messages.

        Returns:
            Decoded PIL Image.

        Raises:
            CorruptedFileError: If the bytes are not a decodable image.
        """
        try:
            image = Image.open(io.BytesIO(data))
            image.load()
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise CorruptedFileError(filename, str(e))

        return image

    def prepare_for_ocr(
        self,
        image: Image.Image,
        quality: str = "balanced"
    ) -> Image.Image:
        """
        Apply the processing pipeline for a quality preset.

        Processing steps:
            1. Fix orientation from EXIF data
            2. Convert to RGB
            3. Resize if too large
            4. Preset-specific enhancement, binarization, denoising

        Args:
            image: Decoded image.
            quality: One of "fast", "balanced", "accurate".

        Returns:
            Processed PIL Image.
        """
        preset = QUALITY_PRESETS.get(quality, QUALITY_PRESETS['balanced'])

        if self.auto_orient:
            image = self._fix_orientation(image)

        image = self._convert_to_rgb(image)
        image = self._resize_if_needed(image, (self.max_width, self.max_height))

        if preset['enhance']:
            image = self._enhance_image(image)

        if preset['denoise']:
            image = self._denoise(image)

        if preset['binarize']:
            image = self._binarize(image)

        logger.debug(f"Prepared image for OCR (preset={quality}, size={image.size})")
        return image

    def create_preview(
        self,
        image: Image.Image,
        destination: Union[str, Path]
    ) -> Path:
        """
        Write a downscaled JPEG preview of an image.

        Args:
            image: Decoded image.
            destination: Target file path.

        Returns:
            Path of the written preview.
        """
        destination = Path(destination)
        ensure_directory(destination.parent)

        preview = self._fix_orientation(image) if self.auto_orient else image
        preview = self._convert_to_rgb(preview.copy())
        preview.thumbnail(self.preview_size, Image.Resampling.LANCZOS)
        preview.save(destination, format="JPEG", quality=self.preview_quality)

        logger.debug(f"Preview written: {destination.name} ({preview.width}x{preview.height})")
        return destination

    def _fix_orientation(self, image: Image.Image) -> Image.Image:
        """
        Fix image orientation based on EXIF data.

        Phone cameras store rotation in EXIF metadata rather than rotating
        the pixels.
        """
        oriented = ImageOps.exif_transpose(image)
        return image if oriented is None else oriented

    def _convert_to_rgb(self, image: Image.Image) -> Image.Image:
        """
        Convert image to RGB mode.

        Handles various input modes:
            - RGBA: Remove alpha channel (white background)
            - L (grayscale), P (palette), CMYK: Convert to RGB
        """
        if image.mode == 'RGB':
            return image

        original_mode = image.mode

        if image.mode == 'RGBA':
            background = Image.new('RGB', image.size, (255, 255, 255))
            background.paste(image, mask=image.split()[3])
            image = background
        else:
            image = image.convert('RGB')

        logger.debug(f"Converted image from {original_mode} to RGB")
        return image

    def _resize_if_needed(self, image: Image.Image, max_size: tuple) -> Image.Image:
        """
        Resize image if it exceeds maximum dimensions, keeping aspect ratio.
        """
        width, height = image.size
        max_width, max_height = max_size

        if width <= max_width and height <= max_height:
            return image

        ratio = min(max_width / width, max_height / height)
        new_width = int(width * ratio)
        new_height = int(height * ratio)

        image = image.resize((new_width, new_height), Image.Resampling.LANCZOS)

        logger.debug(f"Resized image from {width}x{height} to {new_width}x{new_height}")
        return image

    def _enhance_image(self, image: Image.Image) -> Image.Image:
        """
        Apply image enhancements for better OCR quality.

        Enhancements:
            - Slight contrast increase
            - Slight sharpness increase
        """
        image = ImageEnhance.Contrast(image).enhance(1.2)
        image = ImageEnhance.Sharpness(image).enhance(1.1)

        logger.debug("Applied image enhancements")
        return image

    def _denoise(self, image: Image.Image) -> Image.Image:
        # Median filter removes paper speckle before thresholding
        return image.filter(ImageFilter.MedianFilter(size=3))

    def _binarize(self, image: Image.Image) -> Image.Image:
        """Threshold to pure black and white (kept in RGB for Tesseract)."""
        threshold = self.binarize_threshold
        gray = image.convert('L')
        return gray.point(lambda x: 255 if x > threshold else 0).convert('RGB')
