"""Package classification for the robotic sorting line.

A package is *bulky* when its volume is at least 1,000,000 cm³ or any
single dimension is at least 150 cm, and *heavy* when its mass is at
least 20 kg. Bulky and heavy packages are REJECTED, packages that are
one or the other go to SPECIAL, everything else is STANDARD.
"""

import logging
import math
import numbers
from dataclasses import asdict, dataclass
from decimal import Decimal
from enum import Enum

logger = logging.getLogger(__name__)

VOLUME_THRESHOLD_CM3 = 1_000_000
DIMENSION_THRESHOLD_CM = 150
MASS_THRESHOLD_KG = 20


class Classification(str, Enum):
    """Stack a package is dispatched to."""

    STANDARD = "STANDARD"
    SPECIAL = "SPECIAL"
    REJECTED = "REJECTED"


class ErrorKind(str, Enum):
    INVALID_RANGE = "INVALID_RANGE"
    NOT_FINITE = "NOT_FINITE"


class PackageValidationError(ValueError):
    """Raised when package dimensions or mass cannot be classified."""

    def __init__(self, kind, message):
        super().__init__(message)
        self.kind = kind
        self.message = message


class InvalidRangeError(PackageValidationError):
    """One or more values is zero or negative."""

    MESSAGE = (
        "Package dimensions and mass must be positive values greater than 0"
    )

    def __init__(self):
        super().__init__(ErrorKind.INVALID_RANGE, self.MESSAGE)


class NotFiniteError(PackageValidationError):
    """One or more values is infinite or NaN."""

    MESSAGE = "Package dimensions and mass must be finite numbers"

    def __init__(self):
        super().__init__(ErrorKind.NOT_FINITE, self.MESSAGE)


@dataclass(frozen=True)
class PackageResult:
    """Outcome of a detailed classification."""

    width: float
    height: float
    length: float
    mass: float
    volume: float
    classification: Classification
    is_bulky: bool
    is_heavy: bool
    reason: str

    def to_dict(self):
        data = asdict(self)
        data["classification"] = self.classification.value
        return data


@dataclass(frozen=True)
class ExamplePackage:
    name: str
    width: float
    height: float
    length: float
    mass: float


EXAMPLE_PACKAGES = (
    ExamplePackage("Small Standard Package", 10, 10, 10, 5),
    ExamplePackage("Large Volume (Bulky)", 100, 100, 100, 15),
    ExamplePackage("Long Dimension (Bulky)", 200, 10, 10, 10),
    ExamplePackage("Heavy Package", 50, 50, 50, 25),
    ExamplePackage("Rejected Package", 200, 100, 100, 30),
    ExamplePackage("Edge Case: Exactly 150cm", 150, 10, 10, 10),
    ExamplePackage("Edge Case: Exactly 20kg", 50, 50, 50, 20),
)


def validate(width, height, length, mass):
    """Check that all four values can be classified.

    Every value is checked for positivity before any is checked for
    finiteness. ``nan <= 0`` is false, so NaN is reported as not finite,
    while ``-inf`` is reported as out of range.

    Raises:
        TypeError: If a value is not a real number or Decimal.
        InvalidRangeError: If any value is less than or equal to 0.
        NotFiniteError: If any value is infinite or NaN.
    """
    values = {
        "width": width,
        "height": height,
        "length": length,
        "mass": mass,
    }

    for name, value in values.items():
        if isinstance(value, bool) or not isinstance(
            value, (numbers.Real, Decimal)
        ):
            raise TypeError(
                f"{name} must be a number, got {type(value).__name__}"
            )

    if any(_is_non_positive(value) for value in values.values()):
        raise InvalidRangeError()

    if not all(_is_finite(value) for value in values.values()):
        raise NotFiniteError()


def _is_non_positive(value):
    # Decimal NaN raises on ordering instead of comparing false.
    if isinstance(value, Decimal) and value.is_nan():
        return False
    return value <= 0


def _is_finite(value):
    if isinstance(value, Decimal):
        return value.is_finite()
    if isinstance(value, numbers.Rational):
        # ints past float range would overflow math.isfinite
        return True
    return math.isfinite(value)


def _volume(width, height, length):
    try:
        return width * height * length
    except OverflowError:
        # An int beyond float range multiplied by a float.
        return math.inf


def _volume_exceeded(volume):
    return volume >= VOLUME_THRESHOLD_CM3


def _dimension_exceeded(width, height, length):
    return (
        width >= DIMENSION_THRESHOLD_CM
        or height >= DIMENSION_THRESHOLD_CM
        or length >= DIMENSION_THRESHOLD_CM
    )


def is_bulky(width: float, height: float, length: float) -> bool:
    """Return True if the volume or any single dimension is too large."""
    return _volume_exceeded(
        _volume(width, height, length)
    ) or _dimension_exceeded(width, height, length)


def is_heavy(mass: float) -> bool:
    return mass >= MASS_THRESHOLD_KG


def _decide(bulky, heavy):
    if bulky and heavy:
        return Classification.REJECTED
    if bulky or heavy:
        return Classification.SPECIAL
    return Classification.STANDARD


def classify(
    width: float, height: float, length: float, mass: float
) -> Classification:
    """Dispatch a package to the correct stack.

    Args:
        width: Package width in centimeters.
        height: Package height in centimeters.
        length: Package length in centimeters.
        mass: Package mass in kilograms.

    Returns:
        Classification.STANDARD, SPECIAL or REJECTED.

    Raises:
        TypeError: If a value is not a number.
        PackageValidationError: If a value is non-positive or not finite.
    """
    validate(width, height, length, mass)

    result = _decide(is_bulky(width, height, length), is_heavy(mass))
    logger.debug(
        "Classified %sx%sx%s cm, %s kg as %s",
        width, height, length, mass, result.value,
    )
    return result


def _reason(classification, bulky, heavy, volume, width, height, length):
    if classification is Classification.REJECTED:
        return "Package is both bulky and heavy"

    if bulky and not heavy:
        volume_exceeded = _volume_exceeded(volume)
        dimension_exceeded = _dimension_exceeded(width, height, length)
        if volume_exceeded and dimension_exceeded:
            return "Package is bulky (volume ≥ 1M cm³ and dimension ≥ 150 cm)"
        if volume_exceeded:
            return "Package is bulky (volume ≥ 1,000,000 cm³)"
        return "Package is bulky (dimension ≥ 150 cm)"

    if heavy and not bulky:
        return "Package is heavy (mass ≥ 20 kg)"

    return "Package meets standard criteria"


def classify_with_detail(
    width: float, height: float, length: float, mass: float
) -> PackageResult:
    """Classify a package and explain the decision.

    Validation runs here as well as in ``classify``, so either entry
    point is safe to call on its own.

    Returns:
        A PackageResult carrying the inputs, the computed volume, both
        predicates, the classification and a human-readable reason.

    Raises:
        TypeError: If a value is not a number.
        PackageValidationError: If a value is non-positive or not finite.
    """
    validate(width, height, length, mass)

    volume = _volume(width, height, length)
    bulky = is_bulky(width, height, length)
    heavy = is_heavy(mass)
    classification = _decide(bulky, heavy)

    logger.debug(
        "Classified %sx%sx%s cm, %s kg as %s (bulky=%s, heavy=%s)",
        width, height, length, mass, classification.value, bulky, heavy,
    )

    return PackageResult(
        width=width,
        height=height,
        length=length,
        mass=mass,
        volume=volume,
        classification=classification,
        is_bulky=bulky,
        is_heavy=heavy,
        reason=_reason(
            classification, bulky, heavy, volume, width, height, length
        ),
    )
