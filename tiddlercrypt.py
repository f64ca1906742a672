#!/usr/bin/env python3
# tiddlercrypt.py
#
# In-place password encryption of TiddlyWiki .tiddler documents.
# Payload format: SJCL-compatible AES-CCM JSON envelope, hex encoded, optionally
# prefixed with an "Encrypted(<SHA-1 of plaintext>)" checksum line.
#
# Dependencies: stdlib + cryptography

from __future__ import annotations

import argparse
import base64
import binascii
import hashlib
import json
import os
import secrets
import stat
import string
import sys
from dataclasses import dataclass
from enum import IntEnum
from getpass import getpass
from pathlib import Path
from typing import BinaryIO, Callable, Dict, List, Optional, Sequence, Tuple

from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import AESCCM
from cryptography.hazmat.primitives.kdf.pbkdf2 import PBKDF2HMAC


# =========================
# Constants / Limits
# =========================

ENCRYPT_TAG_PREFIX = "SJCLEncrypt"
DECRYPT_TAG_PREFIX = "SJCLDecrypt"

CHECKSUM_PREFIX = "Encrypted("
FINGERPRINT_HEX_LEN = 40  # SHA-1

HEX_WRAP_PAIRS = 32

# Envelope defaults, identical to sjcl.encrypt()
SJCL_VERSION = 1
SJCL_ITER = 10000
SJCL_KS = 128
SJCL_TS = 64
SJCL_MODE = "ccm"
SJCL_CIPHER = "aes"
SJCL_SALT_LEN = 8
SJCL_IV_LEN = 16

SJCL_KEY_SIZES = (128, 192, 256)
SJCL_TAG_SIZES = (64, 96, 128)
SJCL_ENVELOPE_KEYS = ("iv", "v", "iter", "ks", "ts", "mode", "adata", "cipher", "salt", "ct")

# Hardened limits for reading envelopes
MAX_PBKDF2_ITER = 1_000_000

# Container markers
DIV_OPEN = "<div"
DIV_CLOSE = "</div>"
PRE_OPEN = "<pre>"
PRE_CLOSE = "</pre>"
TAGS_ATTR = 'tags="'


# =========================
# Enums / Data
# =========================

class Action(IntEnum):
    ENCRYPT = 1
    DECRYPT = 2

    @staticmethod
    def from_cli(name: str) -> "Action":
        n = name.lower()
        if n == "encrypt":
            return Action.ENCRYPT
        if n == "decrypt":
            return Action.DECRYPT
        raise UsageError(f'Invalid action: {name!r}. Use "encrypt" or "decrypt".')

    def to_cli(self) -> str:
        return "encrypt" if self == Action.ENCRYPT else "decrypt"


class PayloadFormat(IntEnum):
    HEX = 1
    CHECKSUM = 2

    @staticmethod
    def from_cli(name: str) -> "PayloadFormat":
        n = name.lower()
        if n == "hex":
            return PayloadFormat.HEX
        if n == "checksum":
            return PayloadFormat.CHECKSUM
        raise UsageError(f"Unsupported payload format: {name}")


@dataclass(frozen=True)
class ContainerRegion:
    prefix: str  # document start through the opening quote of tags="
    tags: Tuple[str, ...]
    mid: str  # closing quote of tags through <pre>
    payload: str
    suffix: str  # </pre> through end of document


PasswordProvider = Callable[[str], str]


# =========================
# Errors
# =========================

class TiddlerCryptError(Exception):
    pass


class UsageError(TiddlerCryptError):
    pass


class FormatError(TiddlerCryptError):
    pass


class PreconditionError(TiddlerCryptError):
    pass


class AuthenticationError(TiddlerCryptError):
    pass


class IntegrityError(TiddlerCryptError):
    pass


# =========================
# Helpers
# =========================

def eprint(*args: object) -> None:
    print(*args, file=sys.stderr)


def compare_digest(a: bytes, b: bytes) -> bool:
    return secrets.compare_digest(a, b)


def _fsync_fileobj_best_effort(f: BinaryIO) -> None:
    try:
        f.flush()
    except Exception:
        return
    try:
        os.fsync(f.fileno())
    except Exception:
        pass


def _fsync_dir_best_effort(dir_path: Path) -> None:
    if os.name != "posix":
        return
    try:
        fd = os.open(str(dir_path), os.O_RDONLY)
    except Exception:
        return
    try:
        os.fsync(fd)
    except Exception:
        pass
    finally:
        try:
            os.close(fd)
        except Exception:
            pass


def _unlink_best_effort(p: Path) -> None:
    try:
        p.unlink()
    except FileNotFoundError:
        pass
    except Exception:
        pass


def _random_token(nbytes: int = 8) -> str:
    return secrets.token_hex(nbytes)


def _secure_open_exclusive(path: Path, *, mode: int = 0o600) -> int:
    flags = os.O_WRONLY | os.O_CREAT | os.O_EXCL
    if os.name == "posix":
        flags |= getattr(os, "O_NOFOLLOW", 0)
    return os.open(str(path), flags, mode)


def _secure_create_tmp_file(parent_dir: Path, base_name: str) -> Tuple[Path, BinaryIO]:
    for _ in range(128):
        tmp_path = parent_dir / f".{base_name}.{_random_token(8)}.tmp"
        try:
            fd = _secure_open_exclusive(tmp_path)
        except FileExistsError:
            continue
        except OSError as ex:
            raise TiddlerCryptError(f"Failed to create temporary file in {parent_dir}: {ex}") from ex

        try:
            f = os.fdopen(fd, "wb", closefd=True)
        except Exception:
            try:
                os.close(fd)
            except Exception:
                pass
            _unlink_best_effort(tmp_path)
            raise
        return tmp_path, f

    raise TiddlerCryptError(f"Failed to create a unique temporary file in {parent_dir} (too many collisions).")


def read_document(path: Path) -> str:
    # Bytes in, bytes out: line endings outside the payload must survive untouched.
    try:
        raw = path.read_bytes()
    except FileNotFoundError as ex:
        raise TiddlerCryptError(f"File not found: {path}") from ex
    except OSError as ex:
        raise TiddlerCryptError(f"Failed to read {path}: {ex}") from ex
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError as ex:
        raise FormatError(f"{path} is not valid UTF-8: {ex}") from ex


def write_document_atomic(path: Path, text: str) -> None:
    """
    Replace `path` with `text` via a temporary sibling and os.replace().
    The original file is left as-is if anything fails before the rename.
    """
    parent = path.parent
    try:
        orig_mode: Optional[int] = stat.S_IMODE(path.stat().st_mode)
    except OSError:
        orig_mode = None

    tmp_path, tmp_f = _secure_create_tmp_file(parent, path.name)
    try:
        with tmp_f:
            tmp_f.write(text.encode("utf-8"))
            _fsync_fileobj_best_effort(tmp_f)
        if orig_mode is not None and os.name == "posix":
            os.chmod(tmp_path, orig_mode)
        os.replace(tmp_path, path)
    except OSError as ex:
        _unlink_best_effort(tmp_path)
        raise TiddlerCryptError(f"Failed to write {path}: {ex}") from ex
    except Exception:
        _unlink_best_effort(tmp_path)
        raise
    _fsync_dir_best_effort(parent)


# =========================
# Hex codec
# =========================

def encode_hex(text: str, wrap: Optional[int] = HEX_WRAP_PAIRS) -> str:
    """
    Two lowercase hex digits per character. With `wrap`, a newline follows every
    `wrap`-th pair (including the last one when the length is an exact multiple).
    Only code points up to U+00FF are representable.
    """
    if wrap is not None and wrap <= 0:
        raise ValueError("wrap must be a positive number of hex pairs")
    out: List[str] = []
    for i, ch in enumerate(text):
        cp = ord(ch)
        if cp > 0xFF:
            raise FormatError(f"Cannot hex-encode character U+{cp:04X} at offset {i} (above U+00FF).")
        out.append(f"{cp:02x}")
        if wrap and (i + 1) % wrap == 0:
            out.append("\n")
    return "".join(out)


def decode_hex(hex_text: str) -> str:
    compact = "".join(hex_text.split())
    if len(compact) % 2 != 0:
        raise FormatError(f"Hex payload has odd length ({len(compact)} digits).")
    try:
        raw = bytes.fromhex(compact)
    except ValueError as ex:
        raise FormatError("Hex payload contains non-hex characters.") from ex
    return raw.decode("latin-1")


# =========================
# Plaintext checksum
# =========================

def fingerprint(plaintext: str) -> str:
    return hashlib.sha1(plaintext.encode("utf-8")).hexdigest().upper()


def wrap_checksum(ciphertext_hex: str, plaintext: str) -> str:
    return f"{CHECKSUM_PREFIX}{fingerprint(plaintext)})\n{ciphertext_hex}"


def unwrap_checksum(text: str) -> Tuple[str, str]:
    if not text.startswith(CHECKSUM_PREFIX):
        raise FormatError("Payload has no 'Encrypted(<checksum>)' header.")
    close = text.find(")", len(CHECKSUM_PREFIX))
    if close < 0:
        raise FormatError("Unterminated 'Encrypted(' checksum header.")
    digest = text[len(CHECKSUM_PREFIX):close]
    rest = text[close + 1:]
    if rest.startswith("\r\n"):
        body = rest[2:]
    elif rest.startswith("\n"):
        body = rest[1:]
    else:
        raise FormatError("Checksum header must be followed by a newline.")
    if len(digest) != FINGERPRINT_HEX_LEN or any(c not in string.hexdigits for c in digest):
        raise FormatError(f"Invalid checksum in header: expected {FINGERPRINT_HEX_LEN} hex digits.")
    return digest, body


def verify_fingerprint(digest: str, plaintext: str) -> bool:
    return compare_digest(digest.encode("ascii"), fingerprint(plaintext).encode("ascii"))


def detect_payload_format(payload: str) -> PayloadFormat:
    if payload.lstrip().startswith(CHECKSUM_PREFIX):
        return PayloadFormat.CHECKSUM
    return PayloadFormat.HEX


# =========================
# SJCL envelope (AES-CCM)
# =========================

def pbkdf2_derive(password: str, salt: bytes, iterations: int, length: int) -> bytes:
    if not isinstance(password, str):
        raise TypeError("password must be str")
    kdf = PBKDF2HMAC(
        algorithm=hashes.SHA256(),
        length=length,
        salt=salt,
        iterations=iterations,
    )
    return kdf.derive(password.encode("utf-8"))


def ccm_nonce(iv: bytes, message_len: int) -> bytes:
    # Length field grows with the message; the nonce takes what is left of 15 bytes.
    length_size = 2
    while length_size < 4 and message_len >> (8 * length_size):
        length_size += 1
    nonce_len = 15 - length_size
    if len(iv) < nonce_len:
        raise AuthenticationError(f"Envelope IV too short: {len(iv)} bytes (need {nonce_len}).")
    return iv[:nonce_len]


def _b64(data: bytes) -> str:
    return base64.b64encode(data).decode("ascii")


def _envelope_int(env: Dict[str, object], name: str) -> int:
    value = env[name]
    if isinstance(value, bool) or not isinstance(value, int):
        raise AuthenticationError(f"Envelope field {name!r} must be an integer.")
    return value


def _envelope_str(env: Dict[str, object], name: str) -> str:
    value = env[name]
    if not isinstance(value, str):
        raise AuthenticationError(f"Envelope field {name!r} must be a string.")
    return value


def _envelope_b64(env: Dict[str, object], name: str) -> bytes:
    value = _envelope_str(env, name)
    try:
        raw = base64.b64decode(value, validate=True)
    except (binascii.Error, ValueError) as ex:
        raise AuthenticationError(f"Envelope field {name!r} is not valid base64.") from ex
    # Non-canonical spellings would let altered text decode to identical bytes.
    if _b64(raw) != value:
        raise AuthenticationError(f"Envelope field {name!r} is not canonical base64.")
    return raw


class SjclCipher:
    """
    Password-based AES-CCM in the JSON envelope layout written by sjcl.encrypt().

    Every parse or authentication failure on decrypt raises AuthenticationError:
    the envelope is either produced with another password or no longer intact.
    """

    def __init__(
        self,
        iterations: int = SJCL_ITER,
        key_size: int = SJCL_KS,
        tag_size: int = SJCL_TS,
        *,
        random_bytes: Callable[[int], bytes] = os.urandom,
    ) -> None:
        if not (0 < iterations <= MAX_PBKDF2_ITER):
            raise UsageError(f"PBKDF2 iterations must be in [1 .. {MAX_PBKDF2_ITER}], got {iterations}")
        if key_size not in SJCL_KEY_SIZES:
            raise UsageError(f"Unsupported key size: {key_size}")
        if tag_size not in SJCL_TAG_SIZES:
            raise UsageError(f"Unsupported tag size: {tag_size}")
        self.iterations = iterations
        self.key_size = key_size
        self.tag_size = tag_size
        self._random_bytes = random_bytes

    def encrypt(self, password: str, plaintext: str) -> str:
        salt = self._random_bytes(SJCL_SALT_LEN)
        iv = self._random_bytes(SJCL_IV_LEN)
        key = pbkdf2_derive(password, salt, self.iterations, self.key_size // 8)
        data = plaintext.encode("utf-8")
        ccm = AESCCM(key, tag_length=self.tag_size // 8)
        ct = ccm.encrypt(ccm_nonce(iv, len(data)), data, b"")

        envelope = {
            "iv": _b64(iv),
            "v": SJCL_VERSION,
            "iter": self.iterations,
            "ks": self.key_size,
            "ts": self.tag_size,
            "mode": SJCL_MODE,
            "adata": "",
            "cipher": SJCL_CIPHER,
            "salt": _b64(salt),
            "ct": _b64(ct),
        }
        return json.dumps(envelope, separators=(",", ":"))

    def decrypt(self, password: str, envelope: str) -> str:
        try:
            env = json.loads(envelope)
        except ValueError as ex:
            raise AuthenticationError("Envelope is not valid JSON: the data is corrupted.") from ex
        if not isinstance(env, dict) or sorted(env) != sorted(SJCL_ENVELOPE_KEYS):
            raise AuthenticationError("Envelope does not have the expected fields.")

        if _envelope_int(env, "v") != SJCL_VERSION:
            raise AuthenticationError(f"Unsupported envelope version: {env['v']}")
        if _envelope_str(env, "cipher") != SJCL_CIPHER:
            raise AuthenticationError(f"Unsupported envelope cipher: {env['cipher']}")
        if _envelope_str(env, "mode") != SJCL_MODE:
            raise AuthenticationError(f"Unsupported envelope mode: {env['mode']}")
        iterations = _envelope_int(env, "iter")
        if not (0 < iterations <= MAX_PBKDF2_ITER):
            raise AuthenticationError(f"Unreasonable PBKDF2 iteration count in envelope: {iterations}")
        key_size = _envelope_int(env, "ks")
        if key_size not in SJCL_KEY_SIZES:
            raise AuthenticationError(f"Unsupported key size in envelope: {key_size}")
        tag_size = _envelope_int(env, "ts")
        if tag_size not in SJCL_TAG_SIZES:
            raise AuthenticationError(f"Unsupported tag size in envelope: {tag_size}")

        iv = _envelope_b64(env, "iv")
        salt = _envelope_b64(env, "salt")
        adata = _envelope_b64(env, "adata")
        ct = _envelope_b64(env, "ct")
        if not salt:
            raise AuthenticationError("Envelope salt is empty.")

        tag_len = tag_size // 8
        if len(ct) < tag_len:
            raise AuthenticationError("Envelope ciphertext is shorter than its tag.")

        nonce = ccm_nonce(iv, len(ct) - tag_len)
        key = pbkdf2_derive(password, salt, iterations, key_size // 8)
        try:
            data = AESCCM(key, tag_length=tag_len).decrypt(nonce, ct, adata)
        except InvalidTag as ex:
            raise AuthenticationError(
                "Decryption failed. The password might be incorrect or the data is corrupted."
            ) from ex

        try:
            return data.decode("utf-8")
        except UnicodeDecodeError as ex:
            raise AuthenticationError("Decrypted data is not valid UTF-8.") from ex


# =========================
# Container parsing
# =========================

def _find_div_open(document: str, start: int) -> int:
    pos = start
    while True:
        idx = document.find(DIV_OPEN, pos)
        if idx < 0:
            return -1
        after = idx + len(DIV_OPEN)
        if after < len(document) and (document[after].isspace() or document[after] in ">/"):
            return idx
        pos = after


def _find_tags_value(document: str, start: int, end: int) -> int:
    """Start index of the tags attribute value inside [start, end), or -1."""
    pos = start
    while True:
        idx = document.find(TAGS_ATTR, pos, end)
        if idx < 0:
            return -1
        if document[idx - 1].isspace():
            return idx + len(TAGS_ATTR)
        pos = idx + 1


def split_tags(tags_string: str) -> Tuple[str, ...]:
    return tuple(t for t in tags_string.split(" ") if t)


def parse_container(document: str) -> ContainerRegion:
    """
    Locate the first <div> whose opening tag carries a non-empty tags="..."
    attribute and split the document around its tag list and <pre> payload.
    """
    pos = 0
    while True:
        div_at = _find_div_open(document, pos)
        if div_at < 0:
            raise FormatError(
                "Tiddler file is not in the expected format (no <div> with a non-empty tags attribute)."
            )
        pos = div_at + len(DIV_OPEN)

        open_end = document.find(">", pos)
        if open_end < 0:
            raise FormatError("Tiddler file is not in the expected format (unterminated <div> tag).")

        tags_start = _find_tags_value(document, pos, open_end)
        if tags_start < 0:
            continue
        tags_end = document.find('"', tags_start)
        if tags_end <= tags_start:
            # Empty or unterminated tags value; keep looking.
            continue
        break

    open_end = document.find(">", tags_end + 1)
    if open_end < 0:
        raise FormatError("Tiddler file is not in the expected format (unterminated <div> tag).")

    pre_at = document.find(PRE_OPEN, open_end + 1)
    if pre_at < 0:
        raise FormatError("Tiddler file is not in the expected format (missing <pre>).")
    payload_start = pre_at + len(PRE_OPEN)

    payload_end = document.find(PRE_CLOSE, payload_start)
    if payload_end < 0:
        raise FormatError("Tiddler file is not in the expected format (missing </pre>).")

    if document.find(DIV_CLOSE, payload_end + len(PRE_CLOSE)) < 0:
        raise FormatError("Tiddler file is not in the expected format (missing </div>).")

    return ContainerRegion(
        prefix=document[:tags_start],
        tags=split_tags(document[tags_start:tags_end]),
        mid=document[tags_end:payload_start],
        payload=document[payload_start:payload_end],
        suffix=document[payload_end:],
    )


def render_container(region: ContainerRegion, tags: Sequence[str], payload: str) -> str:
    return f"{region.prefix}{' '.join(tags)}{region.mid}{payload}{region.suffix}"


# =========================
# Encrypt / Decrypt
# =========================

def encrypt_tag(identifier: str) -> str:
    return f"{ENCRYPT_TAG_PREFIX}({identifier})"


def decrypt_tag(identifier: str) -> str:
    return f"{DECRYPT_TAG_PREFIX}({identifier})"


def validate_identifier(identifier: str) -> None:
    if not identifier:
        raise UsageError("Identifier must not be empty.")
    if any(ch.isspace() for ch in identifier) or '"' in identifier:
        raise UsageError(f"Identifier must not contain whitespace or quotes: {identifier!r}")


def check_state(tags: Sequence[str], action: Action, identifier: str) -> None:
    """Exactly one of the two state tags for `identifier` must be present."""
    if action == Action.ENCRYPT:
        required, conflicting = encrypt_tag(identifier), decrypt_tag(identifier)
    else:
        required, conflicting = decrypt_tag(identifier), encrypt_tag(identifier)

    if required not in tags:
        raise PreconditionError(f"Tiddler does not have the tag '{required}'.")
    if conflicting in tags:
        raise PreconditionError(f"Tiddler has both '{required}' and '{conflicting}'; state is ambiguous.")


def _toggle_tag(tags: Sequence[str], old: str, new: str) -> List[str]:
    return [new if tag == old else tag for tag in tags]


def encrypt_region(
    region: ContainerRegion,
    identifier: str,
    password: str,
    *,
    cipher: SjclCipher,
    payload_format: PayloadFormat = PayloadFormat.CHECKSUM,
) -> str:
    check_state(region.tags, Action.ENCRYPT, identifier)

    plaintext = region.payload.strip()
    envelope = cipher.encrypt(password, plaintext)
    ciphertext_hex = encode_hex(envelope)
    if payload_format == PayloadFormat.CHECKSUM:
        new_payload = wrap_checksum(ciphertext_hex, plaintext)
    else:
        new_payload = ciphertext_hex

    new_tags = _toggle_tag(region.tags, encrypt_tag(identifier), decrypt_tag(identifier))
    return render_container(region, new_tags, new_payload)


def decrypt_region(
    region: ContainerRegion,
    identifier: str,
    password: str,
    *,
    cipher: SjclCipher,
) -> str:
    check_state(region.tags, Action.DECRYPT, identifier)

    payload = region.payload.strip()
    digest: Optional[str] = None
    if detect_payload_format(payload) == PayloadFormat.CHECKSUM:
        digest, payload = unwrap_checksum(payload)

    envelope = decode_hex(payload)
    plaintext = cipher.decrypt(password, envelope)

    if digest is not None and not verify_fingerprint(digest, plaintext):
        raise IntegrityError("Checksum mismatch: wrong password or corrupted data.")

    new_tags = _toggle_tag(region.tags, decrypt_tag(identifier), encrypt_tag(identifier))
    return render_container(region, new_tags, plaintext)


def transform_region(
    region: ContainerRegion,
    action: Action,
    identifier: str,
    password: str,
    *,
    cipher: Optional[SjclCipher] = None,
    payload_format: PayloadFormat = PayloadFormat.CHECKSUM,
) -> str:
    cipher = cipher or SjclCipher()
    if action == Action.ENCRYPT:
        return encrypt_region(region, identifier, password, cipher=cipher, payload_format=payload_format)
    return decrypt_region(region, identifier, password, cipher=cipher)


def transform_document(
    document: str,
    action: Action,
    identifier: str,
    password: str,
    *,
    cipher: Optional[SjclCipher] = None,
    payload_format: PayloadFormat = PayloadFormat.CHECKSUM,
) -> str:
    validate_identifier(identifier)
    region = parse_container(document)
    return transform_region(region, action, identifier, password, cipher=cipher, payload_format=payload_format)


def prompt_password(prompt: str) -> str:
    return getpass(prompt)


def transform_file(
    path: Path,
    action: Action,
    identifier: str,
    password_provider: PasswordProvider = prompt_password,
    *,
    cipher: Optional[SjclCipher] = None,
    payload_format: PayloadFormat = PayloadFormat.CHECKSUM,
) -> str:
    """
    Read, transform in memory, then atomically replace `path`.
    Shape and tag problems are reported before asking for a password.
    """
    validate_identifier(identifier)
    document = read_document(path)
    region = parse_container(document)
    check_state(region.tags, action, identifier)

    password = password_provider(f"Enter password for '{identifier}': ")
    if password == "":
        raise UsageError("Empty password is not allowed.")

    new_document = transform_region(
        region, action, identifier, password, cipher=cipher, payload_format=payload_format
    )
    write_document_atomic(path, new_document)
    return new_document


# =========================
# CLI
# =========================

def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="tiddlercrypt",
        description="Encrypt/decrypt the text of a .tiddler file in place (SJCL-compatible envelope).",
        formatter_class=argparse.RawTextHelpFormatter,
    )
    p.add_argument("action", choices=["encrypt", "decrypt"], help="Direction of the transform.")
    p.add_argument("file", help="Path to the .tiddler file (rewritten in place).")
    p.add_argument(
        "identifier",
        help="Password identifier; selects the SJCLEncrypt(<identifier>) / SJCLDecrypt(<identifier>) tags.",
    )
    p.add_argument("--password", default=None, help="Password string (if omitted, will prompt).")
    p.add_argument(
        "--format",
        choices=["checksum", "hex"],
        default=None,
        help=(
            "Encrypt-only: payload format (default checksum).\n"
            "checksum: Encrypted(<SHA-1 of plaintext>) header + hex envelope\n"
            "hex: bare hex envelope (legacy). Decrypt detects the format."
        ),
    )
    p.add_argument(
        "--iter",
        type=int,
        default=None,
        help=f"Encrypt-only: PBKDF2 iterations (default {SJCL_ITER}). Decrypt reads it from the envelope.",
    )
    return p


def main(argv: Optional[Sequence[str]] = None, *, password_provider: Optional[PasswordProvider] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    action = Action.from_cli(args.action)
    path = Path(args.file)

    if action == Action.DECRYPT:
        if args.format is not None:
            raise UsageError("--format is not allowed for decrypt (format is detected from the payload).")
        if args.iter is not None:
            raise UsageError("--iter is not allowed for decrypt (iterations are read from the envelope).")

    payload_format = PayloadFormat.from_cli(args.format or "checksum")
    cipher = SjclCipher(iterations=args.iter) if args.iter is not None else SjclCipher()

    if args.password is not None:
        password = args.password
        provider: PasswordProvider = lambda _prompt: password
    else:
        provider = password_provider or prompt_password

    transform_file(
        path,
        action,
        args.identifier,
        provider,
        cipher=cipher,
        payload_format=payload_format,
    )
    print(f"Successfully {action.to_cli()}ed file: {path}")
    return 0


def run(argv: Optional[Sequence[str]] = None) -> int:
    try:
        return main(argv)
    except TiddlerCryptError as ex:
        eprint(f"Error: {ex}")
        return 2
    except KeyboardInterrupt:
        eprint("Interrupted.")
        return 130


if __name__ == "__main__":
    raise SystemExit(run())
