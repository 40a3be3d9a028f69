"""Adapter contract shared by every platform implementation."""

import json
import logging
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, ClassVar, Dict, Generic, Optional, TypeVar, Union

from pydantic import ValidationError

from ..models.canonical import (
    CanonicalImage,
    CanonicalProduct,
    CanonicalVariant,
    Platform,
    PlatformId,
    PlatformMeta,
    PlatformMetaEntry,
)

T = TypeVar("T")
V = TypeVar("V")

# Marker kept in a platform's own meta entry when canonical inventory is None
# but the platform can only store a number.
UNTRACKED_MARKER = "untracked"


@dataclass(frozen=True)
class Converted(Generic[V]):
    """Successful conversion."""
    value: V


@dataclass(frozen=True)
class Skipped:
    """A record the adapter cannot represent; callers ignore it."""
    reason: str
    platform: str
    record_id: Optional[PlatformId] = None
    name: Optional[str] = None


ConversionResult = Union[Converted[CanonicalProduct], Skipped]


def new_canonical_id() -> str:
    return str(uuid.uuid4())


def parse_decimal(value: Any) -> Optional[Decimal]:
    """Parse a platform price string; blank or invalid values become None."""
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


def format_decimal(value: Optional[Decimal]) -> Optional[str]:
    return None if value is None else str(value)


def restore_inventory(quantity: Optional[int], untracked: bool) -> Optional[int]:
    """Undo the zero written for untracked inventory unless it changed since."""
    if untracked and not quantity:
        return None
    return quantity


def dump_json(value: Any) -> str:
    return json.dumps(value, sort_keys=True, separators=(",", ":"))


def observe(meta: PlatformMeta, platform: Platform, **fields: Any) -> PlatformMeta:
    """Merge freshly observed platform data into ``meta``; None values are ignored."""
    observed = {key: value for key, value in fields.items() if value is not None}
    if not observed:
        return meta
    return meta.merge(PlatformMeta.model_validate({platform: observed}))


def replace_entry(meta: PlatformMeta, platform: Platform, entry: PlatformMetaEntry) -> PlatformMeta:
    """Swap in ``entry``; an empty entry drops the platform from ``meta``."""
    return meta.model_copy(update={platform: entry if entry.to_wire() else None})


# wire name -> CanonicalVariant field
VARIANT_FLAGS = {
    "manageStock": "manage_stock",
    "taxable": "taxable",
    "requiresShipping": "requires_shipping",
}
FLAGS_KEY = "flags"
UNSET_FLAGS_KEY = "unsetFlags"
IMAGE_KEY = "image"
IMAGES_KEY = "images"


def variant_flags(variant: CanonicalVariant) -> Dict[str, Optional[bool]]:
    return {name: getattr(variant, field) for name, field in VARIANT_FLAGS.items()}


def flag_fields(flags: Dict[str, Optional[bool]]) -> Dict[str, Optional[bool]]:
    """Map wire flag names back to CanonicalVariant keyword arguments."""
    return {VARIANT_FLAGS[name]: value for name, value in flags.items() if name in VARIANT_FLAGS}


def stash_flags(wanted: Dict[str, Optional[bool]], written: Dict[str, bool]) -> Dict[str, Any]:
    """
    Meta entries for the flags a platform will not read back as ``wanted``.

    ``written`` holds what the platform stores for each flag. Unset flags are
    listed by name so no None value lands in platform metadata.
    """
    changed = {name: value for name, value in wanted.items() if value is not None and value != written[name]}
    unset = sorted(name for name, value in wanted.items() if value is None)
    stash: Dict[str, Any] = {}
    if changed:
        stash[FLAGS_KEY] = changed
    if unset:
        stash[UNSET_FLAGS_KEY] = unset
    return stash


def restore_flags(
    native: Dict[str, bool],
    stash: Dict[str, Any],
    written_for: Callable[[str, Optional[bool]], bool],
) -> Dict[str, Optional[bool]]:
    """
    Undo ``stash_flags``.

    A stashed value applies only while the platform still holds what writing
    it produced; a flag edited on the platform since is read as is.
    """
    changed = stash.get(FLAGS_KEY)
    changed = changed if isinstance(changed, dict) else {}
    unset = stash.get(UNSET_FLAGS_KEY)
    unset = unset if isinstance(unset, list) else []
    restored: Dict[str, Optional[bool]] = dict(native)
    for name, value in native.items():
        if name in changed and isinstance(changed[name], bool):
            candidate: Optional[bool] = changed[name]
        elif name in unset:
            candidate = None
        else:
            continue
        if written_for(name, candidate) == value:
            restored[name] = candidate
    return restored


def image_overlay(image: CanonicalImage, platform: Optional[Platform], *fields: str) -> Dict[str, Any]:
    """
    The parts of ``image`` a platform cannot store: the named fields plus the
    meta of every other platform.
    """
    overlay = {name: getattr(image, name) for name in fields if getattr(image, name) is not None}
    meta = image.meta if platform is None else replace_entry(image.meta, platform, PlatformMetaEntry())
    if meta.to_wire():
        overlay["meta"] = meta.to_wire()
    return overlay


def dump_image(image: CanonicalImage) -> Dict[str, Any]:
    return image.model_dump(mode="json", exclude_none=True)


class PlatformAdapter(ABC, Generic[T]):
    """
    Bidirectional mapper between one platform's record type and the
    canonical product.

    Adapters are synchronous and hold no mutable state. Warnings about
    skipped records go to the injected logger.
    """

    platform: ClassVar[Platform]

    def __init__(
        self,
        logger: Optional[logging.Logger] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        """
        Initialize the adapter.

        Args:
            logger: Logger receiving skip warnings and metadata diagnostics
            id_factory: Generator for new canonical variant ids (uuid4 by default)
        """
        self.logger = logger or logging.getLogger(f"catalog_bridge.adapters.{self.platform}")
        self.id_factory = id_factory or new_canonical_id

    @abstractmethod
    def from_platform(self, record: T) -> ConversionResult:
        """Convert a platform record into canonical form, or skip it."""

    @abstractmethod
    def to_platform(self, product: CanonicalProduct) -> T:
        """Convert a canonical product into this platform's record."""

    @abstractmethod
    def parse_record(self, raw: Dict[str, Any]) -> T:
        """Parse a raw JSON payload into this platform's record type."""

    def dump_record(self, record: T) -> Dict[str, Any]:
        """Serialize a record into its JSON wire form."""
        return record.model_dump(mode="json", by_alias=True, exclude_none=True)

    def skip(self, reason: str, record_id: Optional[PlatformId], name: Optional[str]) -> Skipped:
        self.logger.warning(
            "record_skipped",
            extra={
                "platform": self.platform,
                "record_id": record_id,
                "record_name": name,
                "reason": reason,
            },
        )
        return Skipped(reason=reason, platform=self.platform, record_id=record_id, name=name)

    def load_meta(self, value: Any) -> PlatformMeta:
        """
        Parse persisted canonical meta.

        Accepts the decoded object or its JSON string. Malformed values
        degrade to empty meta.
        """
        if value is None or value == "":
            return PlatformMeta()
        if isinstance(value, str):
            try:
                value = json.loads(value)
            except json.JSONDecodeError:
                self.logger.debug("malformed_meta", extra={"platform": self.platform})
                return PlatformMeta()
        if not isinstance(value, dict):
            return PlatformMeta()
        try:
            return PlatformMeta.model_validate(value)
        except ValidationError:
            self.logger.debug("malformed_meta", extra={"platform": self.platform})
            return PlatformMeta()

    def load_image(self, value: Any) -> Optional[CanonicalImage]:
        """Parse a stashed image; malformed values are dropped."""
        if not isinstance(value, dict):
            return None
        try:
            return CanonicalImage.model_validate(value)
        except ValidationError:
            self.logger.debug("malformed_image", extra={"platform": self.platform})
            return None

    def restore_image(self, image: CanonicalImage, overlay: Any) -> CanonicalImage:
        """Apply an ``image_overlay`` to an image read back from the platform."""
        if not isinstance(overlay, dict):
            return image
        update: Dict[str, Any] = {}
        if isinstance(overlay.get("alt"), str):
            update["alt"] = overlay["alt"]
        if isinstance(overlay.get("position"), int):
            update["position"] = overlay["position"]
        if "meta" in overlay:
            update["meta"] = self.load_meta(overlay["meta"]).merge(image.meta)
        return image.model_copy(update=update)
