from __future__ import annotations

import os
import stat

import pytest

import tiddlercrypt
from tiddlercrypt import (
    Action,
    AuthenticationError,
    PreconditionError,
    UsageError,
    main,
    parse_container,
    run,
    transform_file,
)


class FakePrompt:
    """Records prompts and answers with a fixed password."""

    def __init__(self, password: str = "pw") -> None:
        self.password = password
        self.prompts = []

    def __call__(self, prompt: str) -> str:
        self.prompts.append(prompt)
        return self.password


@pytest.fixture
def tiddler_file(tmp_path, make_tiddler):
    path = tmp_path / "Secret.tiddler"
    path.write_bytes(make_tiddler("SJCLEncrypt(site) journal", "dear diary").encode("utf-8"))
    return path


def test_transform_file_round_trip(tiddler_file, cipher):
    original = tiddler_file.read_bytes()
    prompt = FakePrompt()

    transform_file(tiddler_file, Action.ENCRYPT, "site", prompt, cipher=cipher)
    assert prompt.prompts == ["Enter password for 'site': "]
    encrypted = tiddler_file.read_text(encoding="utf-8")
    assert "dear diary" not in encrypted
    assert parse_container(encrypted).tags == ("SJCLDecrypt(site)", "journal")

    transform_file(tiddler_file, Action.DECRYPT, "site", prompt, cipher=cipher)
    assert tiddler_file.read_bytes() == original


def test_precondition_failure_leaves_file_untouched_and_skips_prompt(tiddler_file, cipher):
    original = tiddler_file.read_bytes()
    prompt = FakePrompt()

    with pytest.raises(PreconditionError):
        transform_file(tiddler_file, Action.DECRYPT, "site", prompt, cipher=cipher)

    assert prompt.prompts == []
    assert tiddler_file.read_bytes() == original
    assert os.listdir(tiddler_file.parent) == [tiddler_file.name]


def test_wrong_password_leaves_file_untouched(tiddler_file, cipher):
    transform_file(tiddler_file, Action.ENCRYPT, "site", FakePrompt("right"), cipher=cipher)
    encrypted = tiddler_file.read_bytes()

    with pytest.raises(AuthenticationError):
        transform_file(tiddler_file, Action.DECRYPT, "site", FakePrompt("wrong"), cipher=cipher)

    assert tiddler_file.read_bytes() == encrypted
    assert os.listdir(tiddler_file.parent) == [tiddler_file.name]


def test_empty_password_is_refused(tiddler_file, cipher):
    original = tiddler_file.read_bytes()
    with pytest.raises(UsageError):
        transform_file(tiddler_file, Action.ENCRYPT, "site", FakePrompt(""), cipher=cipher)
    assert tiddler_file.read_bytes() == original


def test_missing_file_is_reported(tmp_path, cipher):
    with pytest.raises(tiddlercrypt.TiddlerCryptError, match="File not found"):
        transform_file(tmp_path / "nope.tiddler", Action.ENCRYPT, "site", FakePrompt(), cipher=cipher)


def test_crlf_line_endings_survive(tmp_path, make_tiddler, cipher):
    path = tmp_path / "crlf.tiddler"
    doc = make_tiddler("SJCLEncrypt(site)", "text", before="<!-- x -->\n").replace("\n", "\r\n")
    path.write_bytes(doc.encode("utf-8"))

    transform_file(path, Action.ENCRYPT, "site", FakePrompt(), cipher=cipher)
    transform_file(path, Action.DECRYPT, "site", FakePrompt(), cipher=cipher)
    assert path.read_bytes() == doc.encode("utf-8")


@pytest.mark.skipif(os.name != "posix", reason="POSIX permissions")
def test_file_mode_is_preserved(tiddler_file, cipher):
    os.chmod(tiddler_file, 0o640)
    transform_file(tiddler_file, Action.ENCRYPT, "site", FakePrompt(), cipher=cipher)
    assert stat.S_IMODE(tiddler_file.stat().st_mode) == 0o640


def test_main_with_password_flag(tiddler_file, capsys):
    assert main(["encrypt", str(tiddler_file), "site", "--password", "pw", "--iter", "1000"]) == 0
    assert capsys.readouterr().out.strip() == f"Successfully encrypted file: {tiddler_file}"

    assert main(["decrypt", str(tiddler_file), "site", "--password", "pw"]) == 0
    assert capsys.readouterr().out.strip() == f"Successfully decrypted file: {tiddler_file}"
    assert parse_container(tiddler_file.read_text(encoding="utf-8")).payload == "dear diary"


def test_main_uses_injected_password_provider(tiddler_file):
    prompt = FakePrompt()
    assert main(["encrypt", str(tiddler_file), "site", "--iter", "1000"], password_provider=prompt) == 0
    assert prompt.prompts == ["Enter password for 'site': "]


def test_main_hex_format(tiddler_file):
    main(["encrypt", str(tiddler_file), "site", "--password", "pw", "--iter", "1000", "--format", "hex"])
    assert parse_container(tiddler_file.read_text(encoding="utf-8")).payload.startswith("7b22")


@pytest.mark.parametrize("extra", [["--format", "hex"], ["--iter", "1000"]])
def test_encrypt_only_flags_rejected_for_decrypt(tiddler_file, extra):
    with pytest.raises(UsageError):
        main(["decrypt", str(tiddler_file), "site", "--password", "pw", *extra])


def test_missing_arguments_is_a_usage_error(capsys):
    with pytest.raises(SystemExit) as exc:
        main(["encrypt", "only-a-file.tiddler"])
    assert exc.value.code != 0
    assert "usage:" in capsys.readouterr().err


def test_run_reports_errors_with_nonzero_exit(tiddler_file, capsys):
    original = tiddler_file.read_bytes()
    code = run(["decrypt", str(tiddler_file), "site", "--password", "pw"])

    assert code == 2
    assert capsys.readouterr().err.strip() == "Error: Tiddler does not have the tag 'SJCLDecrypt(site)'."
    assert tiddler_file.read_bytes() == original
