"""
Channel State Machine

One Channel per subscribed name. It builds the subscribe/unsubscribe frames,
interprets frames the server sends for its name, keeps the resume_after
continuity token and fans application events out to bound listeners through
an injected Dispatcher.

Lifecycle:
    INITIAL ──(subscribe frame sent)──> SUBSCRIBE_SENT
            ──(pusher_internal:subscription_succeeded)──> SUBSCRIBED
    any state ──(unsubscribe)──> UNSUBSCRIBED   (terminal)

SUBSCRIBE_SENT is set by the owner via update_state() once the transport has
accepted the frame; the channel itself never sees the socket.
"""
from __future__ import annotations

import logging
from typing import Optional

from . import serializer
from .channels import STANDARD, ChannelVariant
from .dispatcher import Dispatcher
from .listeners import ListenerRegistry
from .types import (
    ChannelEventListener,
    ChannelState,
    IllegalStateError,
    InvalidArgumentError,
    ProtocolDecodeError,
    SubscriptionEventListener,
)

logger = logging.getLogger(__name__)


class Channel:
    """
    Subscription state and event routing for a single channel.

    Args:
        name:       Channel name, validated against variant.
        dispatcher: Where listener callbacks are submitted.
        variant:    Naming rules; STANDARD rejects private-/presence- names.

    Raises:
        InvalidArgumentError: If the name is empty or not allowed by variant.
    """

    def __init__(
        self,
        name: str,
        dispatcher: Dispatcher,
        variant: ChannelVariant = STANDARD,
    ) -> None:
        self._name = variant.validate(name)
        self._variant = variant
        self._dispatcher = dispatcher
        self._registry = ListenerRegistry()
        # Written from the decode path and the owning manager, read from any thread.
        self._state = ChannelState.INITIAL
        self._resume_after: Optional[str] = None
        self._lifecycle_listener: Optional[ChannelEventListener] = None

    # ── Properties ────────────────────────────────────────────────────────────

    @property
    def name(self) -> str:
        return self._name

    @property
    def variant(self) -> ChannelVariant:
        return self._variant

    @property
    def state(self) -> ChannelState:
        return self._state

    @property
    def resume_after(self) -> Optional[str]:
        """Continuity token sent with the next subscribe frame."""
        return self._resume_after

    @resume_after.setter
    def resume_after(self, token: Optional[str]) -> None:
        self._resume_after = token

    @property
    def lifecycle_listener(self) -> Optional[ChannelEventListener]:
        return self._lifecycle_listener

    @lifecycle_listener.setter
    def lifecycle_listener(self, listener: Optional[ChannelEventListener]) -> None:
        self._lifecycle_listener = listener

    # ── Binding ───────────────────────────────────────────────────────────────

    def bind(self, event_name: str, listener: SubscriptionEventListener) -> None:
        """
        Register listener for event_name. Binding the same pair twice is a no-op.

        Raises:
            InvalidArgumentError: Empty event name, None listener, or an
                internal (pusher_internal:) event name.
            IllegalStateError: The channel has been unsubscribed.
        """
        self._validate_binding(event_name, listener)
        self._registry.add(event_name, listener)

    def unbind(self, event_name: str, listener: SubscriptionEventListener) -> None:
        """Remove a registration; unknown pairs are ignored. Validates like bind()."""
        self._validate_binding(event_name, listener)
        self._registry.remove(event_name, listener)

    def listeners_for(self, event_name: str) -> frozenset[SubscriptionEventListener]:
        return self._registry.listeners_for(event_name)

    def _validate_binding(self, event_name: str, listener: SubscriptionEventListener) -> None:
        if not event_name:
            raise InvalidArgumentError(
                f"Cannot bind or unbind to channel {self._name} with an empty event name"
            )
        if listener is None:
            raise InvalidArgumentError(
                f"Cannot bind or unbind to channel {self._name} with a null listener"
            )
        if event_name.startswith(serializer.INTERNAL_EVENT_PREFIX):
            raise InvalidArgumentError(
                f"Cannot bind or unbind channel {self._name} with an internal event "
                f"name such as {event_name}"
            )
        if self._state is ChannelState.UNSUBSCRIBED:
            raise IllegalStateError(
                "Cannot bind or unbind to events on a channel that has been "
                "unsubscribed. Subscribe again to get a new channel.",
                context={"channel": self._name},
            )

    # ── Outbound frames ───────────────────────────────────────────────────────

    def build_subscribe_message(self) -> str:
        return serializer.encode_subscribe(self._name, self._resume_after)

    def build_unsubscribe_message(self) -> str:
        """Build the unsubscribe frame and move to UNSUBSCRIBED. Listeners are kept."""
        message = serializer.encode_unsubscribe(self._name)
        self.update_state(ChannelState.UNSUBSCRIBED)
        return message

    # ── State ─────────────────────────────────────────────────────────────────

    def update_state(self, state: ChannelState) -> None:
        """
        Move to state. Entering SUBSCRIBED notifies the lifecycle listener.

        Raises:
            IllegalStateError: On any attempt to leave UNSUBSCRIBED.
        """
        previous = self._state
        if previous is ChannelState.UNSUBSCRIBED and state is not ChannelState.UNSUBSCRIBED:
            raise IllegalStateError(
                "Channel has been unsubscribed and cannot change state",
                context={"channel": self._name, "requested": state.value},
            )
        self._state = state
        logger.debug(
            "Channel %s: %s -> %s", self._name, previous.value, state.value
        )

        listener = self._lifecycle_listener
        if state is ChannelState.SUBSCRIBED and listener is not None:
            name = self._name
            self._dispatcher.submit(lambda: listener.on_subscription_succeeded(name))

    # ── Inbound frames ────────────────────────────────────────────────────────

    def on_message(self, event_name: str, raw: str | bytes) -> None:
        """
        Interpret a frame the server sent for this channel.

        Runs on the transport's receive path and never calls listener code
        directly; every callback goes through the dispatcher.

        Raises:
            ProtocolDecodeError: If the frame or its control data is malformed.
        """
        if self._state is ChannelState.UNSUBSCRIBED:
            logger.debug("Channel %s: ignoring %s after unsubscribe", self._name, event_name)
            return

        message = serializer.decode(raw)

        if event_name == serializer.SUBSCRIPTION_SUCCEEDED_EVENT:
            data = serializer.decode_data(message.data)
            token = data.get("resume_after")
            if token is not None and not isinstance(token, str):
                raise ProtocolDecodeError(
                    f"Malformed event data — 'resume_after' must be a string, "
                    f"got {type(token).__name__}",
                    raw=message.data,
                    context={"channel": self._name},
                )
            self._resume_after = token
            self.update_state(ChannelState.SUBSCRIBED)
            return

        listeners = self._registry.listeners_for(event_name)

        # Last seen id wins; redelivered older ids are not detected.
        if message.id is not None:
            self._resume_after = message.id

        if not listeners:
            logger.debug("Channel %s: no listeners for %s", self._name, event_name)
            return

        name = self._name
        data = message.data
        for listener in listeners:
            self._dispatcher.submit(
                lambda listener=listener: listener.on_event(name, event_name, data)
            )

    # ── Ordering / display ────────────────────────────────────────────────────

    def __lt__(self, other: Channel) -> bool:
        if not isinstance(other, Channel):
            return NotImplemented
        return self._name < other._name

    def __repr__(self) -> str:
        return f"[{self._variant.label} Channel: name={self._name}]"
