# protocol_errors.py


class ProtocolError(Exception):
    """Base class for wire protocol failures."""


class TruncatedFrame(ProtocolError):
    """Frame is shorter than its opcode's fixed layout."""

    def __init__(self, opcode, expected, actual):
        self.opcode = opcode
        self.expected = expected
        self.actual = actual
        if opcode is None:
            msg = "empty frame"
        else:
            msg = f"opcode 0x{opcode:02X} needs {expected} bytes, got {actual}"
        super().__init__(msg)


class EncodeRangeError(ProtocolError, ValueError):
    """A value does not fit the field it would be packed into."""


class NoActiveRegion(RuntimeError):
    """The protector was asked to change a region it does not have."""
