"""Estimate package dimensions from a photo and classify the package.

Dimensions are read off an image with Google Gemini when the operator
has not measured the package by hand.
"""

import json
import logging
import math
import os
import re
from pathlib import Path

from google import genai
from google.genai import types
from PIL import Image

from package_sorter import (
    Classification,
    PackageValidationError,
    classify_with_detail,
)

logger = logging.getLogger(__name__)

_MODEL = "gemini-2.5-flash"

_SECRET_NAME = "GOOGLE_API_KEY"

_DIMENSION_KEYS = ("width", "height", "length")

_SUPPORTED_EXTENSIONS = {
    ".bmp", ".gif", ".jpeg", ".jpg", ".png", ".webp",
}

_PROMPT = (
    "The image shows a parcel on a sorting line. Measure its width, "
    "height and length in centimeters.\n\n"
    "Rules:\n"
    "- Answer only if exactly one parcel is visible and every side "
    "can be judged.\n"
    "- Never invent numbers. Report an error instead when the photo "
    "is blurry, dark, shot at an angle that hides a side, shows "
    "several parcels, or shows something that is not a parcel.\n\n"
    "Reply with a single JSON object and nothing else.\n"
    'Measured: {"width": <number>, "height": <number>, '
    '"length": <number>}\n'
    'Not measurable: {"error": "<no package detected | image too '
    "blurry | image too dark | multiple packages detected | cannot "
    'determine dimensions from this angle>"}\n'
)

_FENCE_OPEN = re.compile(r"^```(?:json)?\s*")
_FENCE_CLOSE = re.compile(r"\s*```$")


def _get_api_key():
    """Look up the Gemini API key.

    Sources, first match wins: a local .env file, AWS Secrets Manager,
    then the process environment.

    Raises:
        EnvironmentError: If no source provides the key.
    """
    from dotenv import dotenv_values

    api_key = dotenv_values().get(_SECRET_NAME)
    if api_key:
        logger.info("Gemini API key read from .env")
        return api_key

    try:
        import boto3

        secrets = boto3.client("secretsmanager")
        api_key = secrets.get_secret_value(SecretId=_SECRET_NAME)[
            "SecretString"
        ]
    except Exception:
        logger.debug("Secrets Manager lookup failed, using environment")
        api_key = None
    if api_key:
        logger.info("Gemini API key read from AWS Secrets Manager")
        return api_key

    api_key = os.environ.get(_SECRET_NAME)
    if api_key:
        logger.info("Gemini API key read from environment")
        return api_key

    raise EnvironmentError(
        f"{_SECRET_NAME} is not set in .env, AWS Secrets Manager "
        "or the environment."
    )


def _get_client():
    return genai.Client(api_key=_get_api_key())


def _parse_dimensions(response_text):
    """Turn a Gemini reply into width, height and length floats.

    Raises:
        ValueError: If the reply is not JSON, reports an error, or lacks
            a finite positive number for any dimension.
    """
    cleaned = _FENCE_CLOSE.sub("", _FENCE_OPEN.sub("", response_text.strip()))

    try:
        data = json.loads(cleaned.strip())
    except json.JSONDecodeError as exc:
        raise ValueError(
            f"Could not parse Gemini response as JSON: {response_text!r}"
        ) from exc

    if not isinstance(data, dict):
        raise ValueError(
            f"Expected a JSON object from Gemini, got {response_text!r}"
        )
    if "error" in data:
        raise ValueError(
            f"Gemini could not estimate dimensions: {data['error']}"
        )

    dimensions = {}
    for key in _DIMENSION_KEYS:
        if key not in data:
            raise ValueError(
                f"Missing '{key}' in Gemini response: {response_text!r}"
            )
        value = data[key]
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise ValueError(
                f"'{key}' must be a number, got {type(value).__name__}"
            )
        if not math.isfinite(value):
            raise ValueError(f"'{key}' must be finite, got {value}")
        if value <= 0:
            raise ValueError(f"'{key}' must be positive, got {value}")
        dimensions[key] = float(value)

    return dimensions


def estimate_dimensions(image_path):
    """Ask Gemini for the dimensions of the parcel in an image.

    Args:
        image_path: Path to a BMP, GIF, JPEG, PNG or WebP image.

    Returns:
        A dict with "width", "height" and "length" in centimeters.

    Raises:
        FileNotFoundError: If the image does not exist.
        ValueError: If the format is unsupported or the reply does not
            contain usable dimensions.
        EnvironmentError: If the API key cannot be found.
    """
    path = Path(image_path)
    if not path.is_file():
        raise FileNotFoundError(f"Image file not found: {image_path}")

    suffix = path.suffix.lower()
    if suffix not in _SUPPORTED_EXTENSIONS:
        raise ValueError(
            f"Unsupported image format '{suffix}'. "
            f"Supported: {', '.join(sorted(_SUPPORTED_EXTENSIONS))}"
        )

    with Image.open(path) as image:
        response = _get_client().models.generate_content(
            model=_MODEL,
            contents=[image, _PROMPT],
            config=types.GenerateContentConfig(
                response_mime_type="application/json",
            ),
        )
    return _parse_dimensions(response.text)


def _error_record(mass, reason, width=None, height=None, length=None):
    return {
        "width": width,
        "height": height,
        "length": length,
        "mass": mass,
        "volume": None,
        "classification": Classification.SPECIAL.value,
        "is_bulky": None,
        "is_heavy": None,
        "reason": reason,
        "source": "error",
    }


def classify_with_fallback(
    mass,
    width=None,
    height=None,
    length=None,
    image_path=None,
):
    """Classify a package from measured or photographed dimensions.

    Hand-measured dimensions win when all three are given. With none
    given, the dimensions are estimated from ``image_path``. Anything
    that prevents a normal classification (partial dimensions, no
    image, a failed estimate, invalid values) sends the package to
    SPECIAL with ``source`` set to "error".

    Returns:
        ``PackageResult.to_dict()`` plus a "source" key of "manual" or
        "gemini", or an error record with the same keys.
    """
    provided = [d is not None for d in (width, height, length)]

    if all(provided):
        source = "manual"
    elif any(provided):
        logger.warning("Partial dimensions provided, routing to SPECIAL")
        return _error_record(
            mass, "Partial dimensions provided", width, height, length
        )
    elif image_path is None:
        logger.warning("No dimensions or image provided")
        return _error_record(mass, "No dimensions or image provided")
    else:
        logger.info("Estimating dimensions from %s", image_path)
        try:
            estimated = estimate_dimensions(image_path)
        except (ValueError, FileNotFoundError, EnvironmentError) as exc:
            logger.error("Dimension estimate failed: %s", exc)
            return _error_record(mass, str(exc))
        width = estimated["width"]
        height = estimated["height"]
        length = estimated["length"]
        source = "gemini"

    try:
        result = classify_with_detail(width, height, length, mass)
    except (PackageValidationError, TypeError) as exc:
        logger.warning("Invalid %s package values: %s", source, exc)
        return _error_record(mass, str(exc), width, height, length)

    record = result.to_dict()
    record["source"] = source
    return record
