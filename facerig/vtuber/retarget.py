"""Map tracker blendshape scores onto rig morph-target influences."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from typing import Any

from loguru import logger

from facerig.vtuber.types import ExpressionScore, InfluenceVector

# The tracker under-reports blink and outer brow raise against the rig's morph range.
DEFAULT_GAINS: dict[str, float] = {
    "browOuterUpLeft": 1.2,
    "browOuterUpRight": 1.2,
    "eyeBlinkLeft": 1.2,
    "eyeBlinkRight": 1.2,
}


def _unpack(entry: Any) -> tuple[str, float] | None:
    if isinstance(entry, ExpressionScore):
        name, score = entry.name, entry.score
    elif isinstance(entry, Mapping):
        name, score = entry.get("name"), entry.get("score")
    elif isinstance(entry, (tuple, list)) and len(entry) == 2:
        name, score = entry
    else:
        return None
    if not isinstance(name, str) or isinstance(score, bool):
        return None
    try:
        return name, float(score)
    except (TypeError, ValueError):
        return None


class RetargetMap:
    """
    Retargets expression scores to influences with a per-channel gain.

    Channels missing from the gain table pass through unchanged. Results are
    not clamped, so gained channels can exceed 1.0.
    """

    def __init__(self, gains: Mapping[str, float] | None = None):
        self.gains = dict(DEFAULT_GAINS if gains is None else gains)

    def gain_for(self, name: str) -> float:
        return self.gains.get(name, 1.0)

    def retarget(self, expressions: Iterable[Any] | None) -> InfluenceVector:
        """
        Build the influence vector for one frame.

        Args:
            expressions: Ordered ExpressionScore entries, (name, score) pairs or
                {"name", "score"} mappings. Malformed entries are skipped.

        Returns:
            Mapping of channel name to influence; a repeated name keeps its last value
        """
        influences: InfluenceVector = {}
        if expressions is None:
            return influences

        try:
            entries = list(expressions)
        except TypeError:
            logger.debug(f"vtuber.retarget.retarget skipped=not_iterable type={type(expressions)}")
            return influences
        if len(entries) == 0:
            return influences

        for entry in entries:
            unpacked = _unpack(entry)
            if unpacked is None:
                logger.debug(f"vtuber.retarget.retarget skipped_entry={entry!r}")
                continue
            name, score = unpacked
            influences[name] = score * self.gain_for(name)
        return influences

    __call__ = retarget


_default_map = RetargetMap()


def retarget(expressions: Iterable[Any] | None) -> InfluenceVector:
    """Retarget with the default gain table."""
    return _default_map.retarget(expressions)
