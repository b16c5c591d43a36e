from __future__ import annotations

import logging
from io import BytesIO
from typing import List, Sequence, Tuple

from PIL import Image, ImageDraw

from photo_reports.errors import ImageProcessingError
from photo_reports.models import CaptureMetadata
from photo_reports.services.coordinates import format_coordinate
from photo_reports.services.image_utils import (
	apply_exif_orientation,
	encode_image,
	load_caption_font,
	resize_within,
)

logger = logging.getLogger(__name__)

DEFAULT_BOX = (1280, 1280)

# Caption panel geometry in absolute pixels; it does not scale with the photo.
PANEL_SIZE = (800, 200)
BAR_TOP = 150
BAR_OPACITY = 0.6
TEXT_X = 20
LINE_BASELINES = (170, 195)


def build_caption(metadata: CaptureMetadata, task: str, location_id: str, author_name: str) -> List[str]:
	coordinates = format_coordinate(metadata.coordinate)
	return [
		f"{metadata.timestamp} | Task: {task} | BS: {location_id}",
		f"Location: {coordinates} | Author: {author_name}",
	]


def render_panel(caption_lines: Sequence[str], font) -> Image.Image:
	"""Transparent overlay holding the dark bar and the caption text."""
	panel = Image.new("RGBA", PANEL_SIZE, (0, 0, 0, 0))
	draw = ImageDraw.Draw(panel)
	draw.rectangle(
		[(0, BAR_TOP), (PANEL_SIZE[0], PANEL_SIZE[1])],
		fill=(0, 0, 0, int(round(255 * BAR_OPACITY))),
	)
	metrics = getattr(font, "getmetrics", None)
	ascent = metrics()[0] if metrics else int(getattr(font, "size", 18) * 0.8)
	for line, baseline in zip(caption_lines, LINE_BASELINES):
		draw.text((TEXT_X, baseline - ascent), line, font=font, fill=(255, 255, 255, 255))
	return panel


def composite_southeast(img: Image.Image, panel: Image.Image) -> Image.Image:
	"""Place `panel` on the bottom-right corner of `img`, clipping what does not fit."""
	base = img.convert("RGBA")
	vis_w = min(panel.width, base.width)
	vis_h = min(panel.height, base.height)
	visible = panel.crop((panel.width - vis_w, panel.height - vis_h, panel.width, panel.height))
	base.alpha_composite(visible, dest=(base.width - vis_w, base.height - vis_h))
	return base


def _decode(image_bytes: bytes) -> Image.Image:
	try:
		img = Image.open(BytesIO(image_bytes))
		img.load()
	except (OSError, ValueError, Image.DecompressionBombError) as e:
		raise ImageProcessingError(f"cannot decode image: {e}") from e
	return img


def annotate(
	image_bytes: bytes,
	caption_lines: Sequence[str],
	bounding_box: Tuple[int, int] = DEFAULT_BOX,
	font=None,
	quality: int = 85,
	fmt: str = "JPEG",
) -> bytes:
	img = _decode(image_bytes)
	try:
		img = apply_exif_orientation(img, img.getexif())
		source_size = img.size
		img = resize_within(img, bounding_box)
	except (OSError, ValueError) as e:
		raise ImageProcessingError(f"cannot resize image: {e}") from e
	logger.debug("Resized %sx%s -> %sx%s", source_size[0], source_size[1], img.width, img.height)
	if font is None:
		font = load_caption_font(18)
	try:
		out = composite_southeast(img, render_panel(caption_lines, font))
		return encode_image(out, fmt=fmt, quality=quality)
	except (OSError, ValueError) as e:
		raise ImageProcessingError(f"cannot annotate image: {e}") from e

