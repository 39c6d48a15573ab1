"""Shared fixtures: frames captured from a Ganglion and a BLED112 dongle."""

import pytest


@pytest.fixture
def payload_18bit():
    """18-bit deltas [[0, 2, 10, 4], [131074, 245760, 114698, 49162]]."""
    return bytes.fromhex("00 00 00 00 20 00 28 00 04 80 00 BC 00 07 00 28 C0 0A")


@pytest.fixture
def payload_18bit_negative():
    """18-bit deltas [[-3, -5, -7, -11], [-262139, -198429, -262137, -4095]]."""
    return bytes.fromhex("FF FF 7F FF BF FF E7 FF F5 00 01 4F 8E 30 00 1F F0 01")


@pytest.fixture
def payload_19bit():
    """19-bit deltas [[0, 2, 10, 4], [262148, 507910, 393222, 8]]."""
    return bytes.fromhex("00 00 00 00 08 00 05 00 00 48 00 09 F0 01 B0 00 30 00 08")


@pytest.fixture
def payload_19bit_negative():
    """19-bit deltas [[-3, -5, -7, -11], [-262139, -198429, -262137, -4095]]."""
    return bytes.fromhex("FF FF BF FF EF FF FC FF FF 58 00 0B 3E 38 E0 00 3F F0 01")


@pytest.fixture
def ganglion_address():
    return bytes.fromhex("E9 53 00 CE 66 D9")


@pytest.fixture
def scan_response_frame():
    """gap_scan_response advertising "Ganglion-54ca"."""
    return bytes.fromhex("80 1A 06 00 CD 00 D9 66 CE 00 53 E9 01 FF 0F 0E 09") + b"Ganglion-54ca"


@pytest.fixture
def connection_status_frame():
    return bytes.fromhex("80 10 03 00 01 05 D9 66 CE 00 53 E9 01 3C 00 64 00 00 00 FF")


@pytest.fixture
def group_found_frame():
    return bytes.fromhex("80 08 04 02 00 17 00 1E 00 02 84 FE")


@pytest.fixture
def find_information_ccc_frame():
    return bytes.fromhex("80 06 04 04 01 1A 00 02 02 29")


@pytest.fixture
def connect_direct_response_frame():
    return bytes.fromhex("00 03 06 03 00 00 01")
