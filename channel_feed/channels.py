"""
Channel Name Classes

Channel names encode their access class through a prefix:
  feed, ticker-BTC          — standard (public) channels
  private-orders            — restricted, requires authorization
  presence-lobby            — restricted, requires authorization

Each ChannelVariant carries the name patterns it refuses. A Channel is
validated against the variant it is constructed with, so a restricted name
only gets through when a caller deliberately picks a restricted variant.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from enum import Enum

from .types import InvalidArgumentError

PRIVATE_PREFIX = "private-"
PRESENCE_PREFIX = "presence-"


class ChannelClass(str, Enum):
    STANDARD = "standard"
    RESTRICTED = "restricted"


@dataclass(frozen=True)
class ChannelVariant:
    """Validation rules for one family of channel names."""

    label: str
    channel_class: ChannelClass
    disallowed_patterns: tuple[re.Pattern[str], ...]

    @property
    def restricted(self) -> bool:
        return self.channel_class is ChannelClass.RESTRICTED

    def validate(self, name: str | None) -> str:
        """
        Return name unchanged if this variant accepts it.

        Raises:
            InvalidArgumentError: If name is None/empty or matches a
                disallowed pattern.
        """
        if not name:
            raise InvalidArgumentError(
                "Cannot subscribe to a channel with an empty name",
                context={"variant": self.label},
            )
        for pattern in self.disallowed_patterns:
            if pattern.match(name):
                raise InvalidArgumentError(
                    f"Channel name {name} is invalid. Private channel names must start "
                    f'with "{PRIVATE_PREFIX}" and presence channel names must start '
                    f'with "{PRESENCE_PREFIX}"',
                    context={"variant": self.label},
                )
        return name


# ── Well-known variants ───────────────────────────────────────────────────────

STANDARD = ChannelVariant(
    label="Public",
    channel_class=ChannelClass.STANDARD,
    disallowed_patterns=(
        re.compile(rf"^{PRIVATE_PREFIX}"),
        re.compile(rf"^{PRESENCE_PREFIX}"),
    ),
)

PRIVATE = ChannelVariant(
    label="Private",
    channel_class=ChannelClass.RESTRICTED,
    disallowed_patterns=(re.compile(rf"^(?!{PRIVATE_PREFIX})"),),
)

PRESENCE = ChannelVariant(
    label="Presence",
    channel_class=ChannelClass.RESTRICTED,
    disallowed_patterns=(re.compile(rf"^(?!{PRESENCE_PREFIX})"),),
)


def variant_for(name: str) -> ChannelVariant:
    """Pick the variant whose naming rules a channel name belongs to."""
    if name.startswith(PRIVATE_PREFIX):
        return PRIVATE
    if name.startswith(PRESENCE_PREFIX):
        return PRESENCE
    return STANDARD
