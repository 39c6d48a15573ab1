"""Multi-packet message assembly for the Ganglion protocol."""

from __future__ import annotations

from ..models.events import MessageReceived


class MultiPacketAssembler:
    """Assembles messages too long for a single BLE frame.

    The board sends a message as:
    - byteId 206: fragment, payload appended to the buffer
    - byteId 207: terminator, payload appended and the whole buffer emitted

    The buffer is None whenever no message is in progress. A terminator
    without preceding fragments is a complete one-frame message.
    """

    def __init__(self) -> None:
        self.buffer: bytes | None = None

    def add_fragment(self, frame: bytes) -> None:
        """Append the payload of a 206 frame."""
        payload = bytes(frame[1:])
        if self.buffer is None:
            self.buffer = payload
        else:
            self.buffer += payload

    def add_terminator(self, frame: bytes) -> MessageReceived:
        """Append the payload of a 207 frame and release the message."""
        self.add_fragment(frame)
        message = self.buffer or b""
        self.buffer = None
        return MessageReceived(data=message)

    def reset(self) -> None:
        """Discard any partial message."""
        self.buffer = None

    @property
    def in_progress(self) -> bool:
        """Check if a fragment has been received without its terminator."""
        return self.buffer is not None
