"""
One-Way Channel - Script Primitives
=====================================
Opcode, push minimali e parser degli script Bitcoin.

Security Level: CRITICAL
Version: 1.0.0

Le push sono sempre minimali (BIP62): lo stesso input produce sempre
gli stessi bytes, requisito per lo script hash condiviso tra le parti.
"""

from typing import Iterator, List, Tuple, Union

from one_way_channel.domain.crypto_core import compute_sha256, compute_hash160
from one_way_channel.errors import InvalidTransactionShape


# ============================================================================
# OPCODES
# ============================================================================

OP_0 = 0x00
OP_PUSHDATA1 = 0x4c
OP_PUSHDATA2 = 0x4d
OP_PUSHDATA4 = 0x4e
OP_1NEGATE = 0x4f
OP_1 = 0x51
OP_2 = 0x52
OP_16 = 0x60
OP_IF = 0x63
OP_NOTIF = 0x64
OP_ELSE = 0x67
OP_ENDIF = 0x68
OP_DROP = 0x75
OP_DUP = 0x76
OP_EQUAL = 0x87
OP_EQUALVERIFY = 0x88
OP_HASH160 = 0xa9
OP_CHECKSIG = 0xac
OP_CHECKMULTISIG = 0xae
OP_CHECKLOCKTIMEVERIFY = 0xb1
OP_CHECKSEQUENCEVERIFY = 0xb2

OPCODE_NAMES = {
    OP_0: "OP_0",
    OP_1NEGATE: "OP_1NEGATE",
    OP_IF: "OP_IF",
    OP_NOTIF: "OP_NOTIF",
    OP_ELSE: "OP_ELSE",
    OP_ENDIF: "OP_ENDIF",
    OP_DROP: "OP_DROP",
    OP_DUP: "OP_DUP",
    OP_EQUAL: "OP_EQUAL",
    OP_EQUALVERIFY: "OP_EQUALVERIFY",
    OP_HASH160: "OP_HASH160",
    OP_CHECKSIG: "OP_CHECKSIG",
    OP_CHECKMULTISIG: "OP_CHECKMULTISIG",
    OP_CHECKLOCKTIMEVERIFY: "OP_CHECKLOCKTIMEVERIFY",
    OP_CHECKSEQUENCEVERIFY: "OP_CHECKSEQUENCEVERIFY",
}
OPCODE_NAMES.update({OP_1 + i: f"OP_{i + 1}" for i in range(16)})


# ============================================================================
# PUSH ENCODING
# ============================================================================

def push_data(data: bytes) -> bytes:
    """
    Push minimale di dati.

    Examples:
        >>> push_data(b"\\xab").hex()
        '01ab'
    """
    length = len(data)
    if length < OP_PUSHDATA1:
        return bytes([length]) + data
    elif length <= 0xff:
        return bytes([OP_PUSHDATA1, length]) + data
    elif length <= 0xffff:
        return bytes([OP_PUSHDATA2]) + length.to_bytes(2, 'little') + data
    return bytes([OP_PUSHDATA4]) + length.to_bytes(4, 'little') + data


def encode_script_number(value: int) -> bytes:
    """
    Encoding CScriptNum minimale (little-endian, bit di segno).

    Examples:
        >>> encode_script_number(144).hex()
        '9000'
        >>> encode_script_number(0)
        b''
    """
    if value == 0:
        return b""

    negative = value < 0
    absolute = -value if negative else value
    result = bytearray()
    while absolute:
        result.append(absolute & 0xff)
        absolute >>= 8

    if result[-1] & 0x80:
        result.append(0x80 if negative else 0x00)
    elif negative:
        result[-1] |= 0x80

    return bytes(result)


def decode_script_number(data: bytes) -> int:
    """Inverso di encode_script_number."""
    if not data:
        return 0
    value = int.from_bytes(data, 'little')
    if data[-1] & 0x80:
        return -(value & ~(0x80 << (8 * (len(data) - 1))))
    return value


def push_int(value: int) -> bytes:
    """
    Push minimale di un intero (OP_0, OP_1..OP_16, OP_1NEGATE o dati).

    Examples:
        >>> push_int(2).hex()
        '52'
        >>> push_int(500000).hex()
        '0320a107'
    """
    if value == 0:
        return bytes([OP_0])
    if value == -1:
        return bytes([OP_1NEGATE])
    if 1 <= value <= 16:
        return bytes([OP_1 + value - 1])
    return push_data(encode_script_number(value))


# ============================================================================
# PARSER
# ============================================================================

ScriptOp = Tuple[int, bytes]


def iter_script_ops(script: bytes) -> Iterator[ScriptOp]:
    """
    Itera (opcode, data) sullo script.

    Per le push data e' il payload, altrimenti b"".

    Raises:
        InvalidTransactionShape: Se una push eccede la fine dello script
    """
    offset = 0
    while offset < len(script):
        opcode = script[offset]
        offset += 1

        if 0 < opcode < OP_PUSHDATA1:
            size = opcode
        elif opcode == OP_PUSHDATA1:
            size = script[offset] if offset < len(script) else -1
            offset += 1
        elif opcode == OP_PUSHDATA2:
            size = int.from_bytes(script[offset:offset + 2], 'little') if offset + 2 <= len(script) else -1
            offset += 2
        elif opcode == OP_PUSHDATA4:
            size = int.from_bytes(script[offset:offset + 4], 'little') if offset + 4 <= len(script) else -1
            offset += 4
        else:
            yield opcode, b""
            continue

        if size < 0 or offset + size > len(script):
            raise InvalidTransactionShape(
                "Script push exceeds script length",
                code="MALFORMED_SCRIPT",
                details={"offset": offset}
            )
        yield opcode, script[offset:offset + size]
        offset += size


def disassemble(script: bytes) -> str:
    """
    Rappresentazione ASM leggibile.

    Examples:
        >>> disassemble(bytes.fromhex("5275"))
        'OP_2 OP_DROP'
    """
    parts: List[str] = []
    for opcode, data in iter_script_ops(script):
        if data or (0 < opcode <= OP_PUSHDATA4):
            parts.append(data.hex())
        else:
            parts.append(OPCODE_NAMES.get(opcode, f"0x{opcode:02x}"))
    return " ".join(parts)


def build_script(*elements: Union[int, bytes]) -> bytes:
    """
    Concatena opcode (int) e push di dati (bytes).

    Examples:
        >>> build_script(OP_2, b"\\x01", OP_DROP).hex()
        '52010175'
    """
    script = bytearray()
    for element in elements:
        if isinstance(element, int):
            script.append(element)
        else:
            script += push_data(element)
    return bytes(script)


# ============================================================================
# OUTPUT TEMPLATES
# ============================================================================

def p2wsh_script(witness_script: bytes) -> bytes:
    """scriptPubKey P2WSH: OP_0 <sha256(witness_script)>"""
    return build_script(OP_0, compute_sha256(witness_script))


def p2wpkh_script(pubkey: bytes) -> bytes:
    """scriptPubKey P2WPKH: OP_0 <hash160(pubkey)>"""
    return build_script(OP_0, compute_hash160(pubkey))


def p2pkh_script_code(pubkey_hash: bytes) -> bytes:
    """
    scriptCode BIP143 per spendere un P2WPKH.

    OP_DUP OP_HASH160 <hash> OP_EQUALVERIFY OP_CHECKSIG
    """
    return build_script(OP_DUP, OP_HASH160, pubkey_hash, OP_EQUALVERIFY, OP_CHECKSIG)


__all__ = [
    "OP_0", "OP_1", "OP_2", "OP_16", "OP_1NEGATE",
    "OP_PUSHDATA1", "OP_PUSHDATA2", "OP_PUSHDATA4",
    "OP_IF", "OP_NOTIF", "OP_ELSE", "OP_ENDIF", "OP_DROP", "OP_DUP",
    "OP_EQUAL", "OP_EQUALVERIFY", "OP_HASH160",
    "OP_CHECKSIG", "OP_CHECKMULTISIG",
    "OP_CHECKLOCKTIMEVERIFY", "OP_CHECKSEQUENCEVERIFY",
    "OPCODE_NAMES",
    "push_data",
    "push_int",
    "encode_script_number",
    "decode_script_number",
    "iter_script_ops",
    "disassemble",
    "build_script",
    "p2wsh_script",
    "p2wpkh_script",
    "p2pkh_script_code",
]
