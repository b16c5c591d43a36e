from __future__ import annotations

import logging
from io import BytesIO
from typing import Optional, Tuple

from PIL import ExifTags, Image, ImageFont

logger = logging.getLogger(__name__)


def apply_exif_orientation(img: Image.Image, exif) -> Image.Image:
	orientation = None
	if exif:
		tmp = {}
		for tag_id, value in exif.items():
			tag = ExifTags.TAGS.get(tag_id, tag_id)
			tmp[str(tag)] = value
		orientation = tmp.get("Orientation")
	if orientation is None:
		return img
	try:
		o = int(orientation)
	except (TypeError, ValueError):
		return img
	if o == 1:
		return img
	if o == 2:
		return img.transpose(Image.FLIP_LEFT_RIGHT)
	if o == 3:
		return img.rotate(180, expand=True)
	if o == 4:
		return img.transpose(Image.FLIP_TOP_BOTTOM)
	if o == 5:
		return img.transpose(Image.FLIP_LEFT_RIGHT).rotate(90, expand=True)
	if o == 6:
		return img.rotate(270, expand=True)
	if o == 7:
		return img.transpose(Image.FLIP_LEFT_RIGHT).rotate(270, expand=True)
	if o == 8:
		return img.rotate(90, expand=True)
	return img


def fit_within(size: Tuple[int, int], box: Tuple[int, int]) -> Tuple[int, int]:
	"""Largest size inside `box` with the aspect ratio of `size`, never enlarged."""
	w, h = size
	max_w, max_h = box
	if w <= max_w and h <= max_h:
		return (w, h)
	r = min(max_w / float(w), max_h / float(h))
	return (max(1, int(round(w * r))), max(1, int(round(h * r))))


def resize_within(img: Image.Image, box: Tuple[int, int]) -> Image.Image:
	target = fit_within(img.size, box)
	if target == img.size:
		return img
	return img.resize(target, Image.LANCZOS)


def load_caption_font(size: int, font_path: Optional[str] = None):
	if font_path:
		try:
			return ImageFont.truetype(font_path, size)
		except OSError:
			logger.warning("Caption font %s not loadable, using default font", font_path)
	for name in ("DejaVuSans.ttf", "Arial.ttf", "arial.ttf"):
		try:
			return ImageFont.truetype(name, size)
		except OSError:
			continue
	return ImageFont.load_default(size=size)


def output_format(ext: str) -> str:
	"""Pillow format name that writes files with extension `ext`."""
	fmt = Image.registered_extensions().get("." + ext.lstrip(".").lower())
	if fmt is None or fmt not in Image.SAVE:
		raise ValueError(f"no image encoder for extension {ext!r}")
	return fmt


def encode_image(img: Image.Image, fmt: str = "JPEG", quality: int = 85) -> bytes:
	if img.mode != "RGB":
		img = img.convert("RGB")
	params = {}
	if fmt == "JPEG":
		params = {"quality": quality, "optimize": True}
	elif fmt == "WEBP":
		params = {"quality": quality}
	buf = BytesIO()
	img.save(buf, format=fmt, **params)
	return buf.getvalue()
