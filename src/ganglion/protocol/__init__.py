"""Ganglion wire protocol implementation."""

from .accelerometer import AccelerometerExtractor, accel_axis_for
from .bitcodec import (
    FIELD_WINDOWS_18BIT,
    FIELD_WINDOWS_19BIT,
    decode18,
    decode19,
    decompress_deltas_18bit,
    decompress_deltas_19bit,
    extract_window,
    interpret_24bit_as_int32,
)
from .commands import (
    ACCEL_SCALE_FACTOR,
    RECEIVE_CHARACTERISTIC_UUID,
    SCALE_FACTOR_PER_COUNT_VOLTS,
    SEND_CHARACTERISTIC_UUID,
    SIMBLEE_SERVICE_UUID,
    BoardCommand,
    build_channel_command,
)
from .decompressor import DecoderState, SampleDecompressor, missing_byte_ids
from .impedance import parse_impedance, parse_impedance_value
from .reassembly import MultiPacketAssembler
from .router import PacketRouter, classify_byte_id

__all__ = [
    "ACCEL_SCALE_FACTOR",
    "AccelerometerExtractor",
    "BoardCommand",
    "DecoderState",
    "FIELD_WINDOWS_18BIT",
    "FIELD_WINDOWS_19BIT",
    "MultiPacketAssembler",
    "PacketRouter",
    "RECEIVE_CHARACTERISTIC_UUID",
    "SCALE_FACTOR_PER_COUNT_VOLTS",
    "SEND_CHARACTERISTIC_UUID",
    "SIMBLEE_SERVICE_UUID",
    "SampleDecompressor",
    "accel_axis_for",
    "build_channel_command",
    "classify_byte_id",
    "decode18",
    "decode19",
    "decompress_deltas_18bit",
    "decompress_deltas_19bit",
    "extract_window",
    "interpret_24bit_as_int32",
    "missing_byte_ids",
    "parse_impedance",
    "parse_impedance_value",
]
