from aprs2sondehub.packets.coordinates import (
    decode_latitude,
    decode_longitude,
    encode_latitude,
    encode_longitude,
)
from aprs2sondehub.packets.parsing import (
    DiscardedPacketError,
    DiscardReason,
    PacketParser,
    ParsedPacket,
)

__all__ = [
    'decode_latitude',
    'decode_longitude',
    'encode_latitude',
    'encode_longitude',
    'DiscardedPacketError',
    'DiscardReason',
    'PacketParser',
    'ParsedPacket',
]
