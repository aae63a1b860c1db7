"""Encoding and decoding of ``@p`` point names.

Names are built from 16-bit words, each rendered as a prefix syllable
followed by a suffix syllable. Values between 2^16 and 2^32 are first
scrambled with a four-round Feistel cipher keyed by murmur3 so that
neighbouring planets get unrelated names.
"""

from __future__ import annotations

import re

_PREFIXES = (
    "dozmarbinwansamlitsighidfidlissogdirwacsabwissibrigsoldopmodfoglidhopdardorlorhodfolrintogsil"
    "mirholpaslacrovlivdalsatlibtabhanticpidtorbolfosdotlosdilforpilramtirwintadbicdifrocwidbisdas"
    "midloprilnardapmolsanlocnovsitnidtipsicropwitnatpanminritpodmottamtolsavposnapnopsomfinfonban"
    "morworsipronnorbotwicsocwatdolmagpicdavbidbaltimtasmalligsivtagpadsaldivdactansidfabtarmonran"
    "niswolmispallasdismaprabtobrollatlonnodnavfignomnibpagsopralbilhaddocridmocpacravripfaltodtil"
    "tinhapmicfanpattaclabmogsimsonpinlomrictapfirhasbosbatpochactidhavsaplindibhosdabbitbarracpar"
    "loddosbortochilmactomdigfilfasmithobharmighinradmashalraglagfadtopmophabnilnosmilfopfamdatnol"
    "dinhatnacrisfotribhocnimlarfitwalrapsarnalmoslandondanladdovrivbacpollaptalpitnambonrostonfod"
    "ponsovnocsorlavmatmipfip"
)
_SUFFIXES = (
    "zodnecbudwessevpersutletfulpensytdurwepserwylsunrypsyxdyrnuphebpeglupdepdysputlughecryttyvsyd"
    "nexlunmeplutseppesdelsulpedtemledtulmetwenbynhexfebpyldulhetmevruttylwydtepbesdexsefwycburder"
    "neppurrysrebdennutsubpetrulsynregtydsupsemwynrecmegnetsecmulnymtevwebsummutnyxrextebfushepben"
    "muswyxsymselrucdecwexsyrwetdylmynmesdetbetbeltuxtugmyrpelsyptermebsetdutdegtexsurfeltudnuxrux"
    "renwytnubmedlytdusnebrumtynseglyxpunresredfunrevrefmectedrusbexlebduxrynnumpyxrygryxfeptyrtus"
    "tyclegnemfermertenlusnussyltecmexpubrymtucfyllepdebbermughuttunbylsudpemdevlurdefbusbeprunmel"
    "pexdytbyttyplevmylwedducfurfexnulluclennerlexrupnedlecrydlydfenwelnydhusrelrudneshesfetdesret"
    "dunlernyrsebhulrylludremlysfynwerrycsugnysnyllyndyndemluxfedsedbecmunlyrtesmudnytbyrsenwegfyr"
    "murtelreptegpecnelnevfes"
)

PREFIXES: tuple[str, ...] = tuple(_PREFIXES[i : i + 3] for i in range(0, len(_PREFIXES), 3))
SUFFIXES: tuple[str, ...] = tuple(_SUFFIXES[i : i + 3] for i in range(0, len(_SUFFIXES), 3))

_PREFIX_INDEX = {syllable: index for index, syllable in enumerate(PREFIXES)}
_SUFFIX_INDEX = {syllable: index for index, syllable in enumerate(SUFFIXES)}

_NAME_RE = re.compile(r"^~?[a-z]{3}([a-z]{3})?((-{1,2})[a-z]{6})*$")

_U32 = 0xFFFFFFFF
_U64 = 0xFFFFFFFFFFFFFFFF
_RAKU = (0xB76D5EED, 0xEE281300, 0x85BCAE01, 0x4B387AF7)
_A = 0xFFFF
_B = 0x10000


def _rotl32(value: int, shift: int) -> int:
    return ((value << shift) | (value >> (32 - shift))) & _U32


def murmur3_32(data: bytes, seed: int) -> int:
    """MurmurHash3 (x86, 32-bit) of ``data``."""
    c1 = 0xCC9E2D51
    c2 = 0x1B873593
    h1 = seed & _U32
    length = len(data)
    tail_start = length - (length % 4)

    for offset in range(0, tail_start, 4):
        k1 = int.from_bytes(data[offset : offset + 4], "little")
        k1 = (k1 * c1) & _U32
        k1 = _rotl32(k1, 15)
        k1 = (k1 * c2) & _U32
        h1 ^= k1
        h1 = _rotl32(h1, 13)
        h1 = (h1 * 5 + 0xE6546B64) & _U32

    k1 = 0
    remainder = length % 4
    if remainder == 3:
        k1 ^= data[tail_start + 2] << 16
    if remainder >= 2:
        k1 ^= data[tail_start + 1] << 8
    if remainder >= 1:
        k1 ^= data[tail_start]
        k1 = (k1 * c1) & _U32
        k1 = _rotl32(k1, 15)
        k1 = (k1 * c2) & _U32
        h1 ^= k1

    h1 ^= length
    h1 ^= h1 >> 16
    h1 = (h1 * 0x85EBCA6B) & _U32
    h1 ^= h1 >> 13
    h1 = (h1 * 0xC2B2AE35) & _U32
    h1 ^= h1 >> 16
    return h1


def _round_key(round_index: int, value: int) -> int:
    return murmur3_32((value & 0xFFFF).to_bytes(2, "little"), _RAKU[round_index])


def _fe(rounds: int, value: int) -> int:
    ell = value % _A
    arr = value // _A
    for j in range(1, rounds + 1):
        eff = _round_key(j - 1, arr)
        modulus = _A if j % 2 else _B
        ell, arr = arr, (ell + eff) % modulus
    if rounds % 2 or arr == _A:
        return _A * arr + ell
    return _A * ell + arr


def _fen(rounds: int, value: int) -> int:
    if rounds % 2:
        ahh, ale = value // _A, value % _A
    else:
        ahh, ale = value % _A, value // _A
    ell, arr = (ahh, ale) if ale == _A else (ale, ahh)
    for j in range(rounds, 0, -1):
        eff = _round_key(j - 1, ell)
        if j % 2:
            tmp = (arr + _A - (eff % _A)) % _A
        else:
            tmp = (arr + _B - (eff % _B)) % _B
        ell, arr = tmp, ell
    return _A * arr + ell


def _feis(value: int) -> int:
    scrambled = _fe(4, value)
    return scrambled if scrambled < _U32 else _fe(4, scrambled)


def _tail(value: int) -> int:
    unscrambled = _fen(4, value)
    return unscrambled if unscrambled < _U32 else _fen(4, unscrambled)


def fein(value: int) -> int:
    """Scramble the low 32 bits of a planet-or-larger value."""
    if 0x10000 <= value <= _U32:
        return 0x10000 + _feis(value - 0x10000)
    if _U32 < value <= _U64:
        return (value & ~_U32) | fein(value & _U32)
    return value


def fynd(value: int) -> int:
    """Inverse of :func:`fein`."""
    if 0x10000 <= value <= _U32:
        return 0x10000 + _tail(value - 0x10000)
    if _U32 < value <= _U64:
        return (value & ~_U32) | fynd(value & _U32)
    return value


def _byte_length(value: int) -> int:
    return (value.bit_length() + 7) // 8


def encode(value: int) -> str:
    """Render a non-negative integer as an ``@p`` name (``0`` -> ``~zod``)."""
    if value < 0:
        raise ValueError("point must be non-negative")
    scrambled = fein(value)
    if _byte_length(scrambled) <= 1:
        return "~" + SUFFIXES[scrambled]

    words = []
    remaining = scrambled
    while remaining:
        words.append(remaining & 0xFFFF)
        remaining >>= 16

    rendered = ""
    for index, word in enumerate(words):
        syllables = PREFIXES[word >> 8] + SUFFIXES[word & 0xFF]
        if index == 0:
            separator = ""
        elif index % 4 == 0:
            separator = "--"
        else:
            separator = "-"
        rendered = syllables + separator + rendered
    return "~" + rendered


def decode(name: str) -> int:
    """Parse an ``@p`` name, with or without the leading ``~``."""
    candidate = name.strip().lower()
    if not _NAME_RE.match(candidate):
        raise ValueError(f"not a valid @p name: {name!r}")
    body = candidate.lstrip("~").replace("-", "")

    if len(body) == 3:
        if body not in _SUFFIX_INDEX:
            raise ValueError(f"unknown syllable in {name!r}")
        return _SUFFIX_INDEX[body]

    scrambled = 0
    for offset in range(0, len(body), 6):
        prefix, suffix = body[offset : offset + 3], body[offset + 3 : offset + 6]
        if prefix not in _PREFIX_INDEX or suffix not in _SUFFIX_INDEX:
            raise ValueError(f"unknown syllable in {name!r}")
        scrambled = (scrambled << 16) | (_PREFIX_INDEX[prefix] << 8) | _SUFFIX_INDEX[suffix]
    value = fynd(scrambled)

    if encode(value) != "~" + candidate.lstrip("~"):
        raise ValueError(f"non-canonical @p name: {name!r}")
    return value


def is_valid(name: str) -> bool:
    try:
        decode(name)
    except ValueError:
        return False
    return True
