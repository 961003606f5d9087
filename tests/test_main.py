"""
Tests for the command line entry point.
"""

import pytest

from lamport_forge.codec import key_to_hex, public_key_from_hex, signature_from_hex
from lamport_forge.crypto import digest_message, generate_keypair
from lamport_forge.main import main
from lamport_forge.services.verifier import verify


@pytest.fixture
def toy_key_files(tmp_path):
    """Generate an 8-bit key pair through the CLI."""
    secret_path = tmp_path / "secret.hex"
    public_path = tmp_path / "public.hex"
    code = main([
        "keygen", "--bits", "8",
        "--secret-out", str(secret_path),
        "--public-out", str(public_path),
    ])
    assert code == 0
    return secret_path, public_path


def _sign(secret_path, text, out_path):
    return main([
        "sign", "--bits", "8", "--secret-key", str(secret_path),
        "--message", text, "--out", str(out_path),
    ])


class TestKeygenSignVerify:
    """Tests for the keygen, sign and verify subcommands."""

    def test_keygen_files(self, toy_key_files):
        _, public_path = toy_key_files
        public_key = public_key_from_hex(public_path.read_text(), bits=8)
        assert public_key.bits == 8

    def test_sign_and_verify(self, tmp_path, toy_key_files, capsys):
        secret_path, public_path = toy_key_files
        sig_path = tmp_path / "sig.hex"

        assert _sign(secret_path, "hello", sig_path) == 0
        code = main([
            "verify", "--bits", "8", "--public-key", str(public_path),
            "--message", "hello", "--signature", str(sig_path),
        ])

        assert code == 0
        assert "ok: True" in capsys.readouterr().out

    def test_verify_rejects_other_message(self, tmp_path, toy_key_files, capsys):
        secret_path, public_path = toy_key_files
        sig_path = tmp_path / "sig.hex"
        _sign(secret_path, "hello", sig_path)

        # An 8-bit digest may collide; pick a message with a different digest
        other = next(
            text for text in (f"other {i}" for i in range(1000))
            if digest_message(text, bits=8) != digest_message("hello", bits=8)
        )
        code = main([
            "verify", "--bits", "8", "--public-key", str(public_path),
            "--message", other, "--signature", str(sig_path),
        ])

        assert code == 1
        assert "ok: False" in capsys.readouterr().out

    def test_malformed_public_key(self, tmp_path, capsys):
        bad = tmp_path / "bad.hex"
        bad.write_text("abcd")
        sig = tmp_path / "sig.hex"
        sig.write_text("00" * 32 * 8)

        code = main([
            "verify", "--bits", "8", "--public-key", str(bad),
            "--message", "x", "--signature", str(sig),
        ])

        assert code == 2
        assert "public key" in capsys.readouterr().err

    def test_missing_file(self, tmp_path):
        code = main([
            "verify", "--bits", "8", "--public-key", str(tmp_path / "nope.hex"),
            "--message", "x", "--signature", str(tmp_path / "nope.hex"),
        ])
        assert code == 2


class TestForgeCommand:
    """Tests for the forge subcommand."""

    def test_forge_from_reused_key(self, tmp_path, toy_key_files, capsys):
        """Test the full flow: four signatures in, verified forgery out."""
        secret_path, public_path = toy_key_files
        known_args = []
        for text in ("1", "2", "3", "4"):
            sig_path = tmp_path / f"sig{text}.hex"
            assert _sign(secret_path, text, sig_path) == 0
            known_args += ["--known", f"{text}={sig_path}"]

        forged_path = tmp_path / "forged.hex"
        capsys.readouterr()
        code = main([
            "forge", "--bits", "8", "--public-key", str(public_path),
            *known_args,
            "--prefix", "forge; cli test;",
            "--max-iterations", "50000",
            "--workers", "1",
            "--out", str(forged_path),
        ])

        assert code == 0
        out = capsys.readouterr().out
        message = next(line[len("message: "):] for line in out.splitlines() if line.startswith("message: "))
        assert message.startswith("forge; cli test;")

        public_key = public_key_from_hex(public_path.read_text(), bits=8)
        signature = signature_from_hex(forged_path.read_text(), bits=8)
        assert verify(digest_message(message, bits=8), public_key, signature)

    def test_forge_exhausted(self, tmp_path, toy_key_files, capsys):
        """Test that a forge with no usable leaks exits with status 1."""
        _, public_path = toy_key_files

        # Signed under an unrelated key, so it is rejected and nothing leaks
        other_secret, _ = generate_keypair(bits=8)
        other_path = tmp_path / "other_secret.hex"
        other_path.write_text(key_to_hex(other_secret))
        sig_path = tmp_path / "sig.hex"
        _sign(other_path, "1", sig_path)

        code = main([
            "forge", "--bits", "8", "--public-key", str(public_path),
            "--known", f"1={sig_path}",
            "--prefix", "forge;",
            "--max-iterations", "20",
            "--workers", "1",
        ])

        assert code == 1
        assert "Forgery failed" in capsys.readouterr().err

    def test_forge_bad_known_entry(self, toy_key_files):
        _, public_path = toy_key_files
        code = main([
            "forge", "--bits", "8", "--public-key", str(public_path),
            "--known", "no-separator",
            "--workers", "1",
        ])
        assert code == 2

    def test_forge_prefix_without_marker(self, tmp_path, toy_key_files):
        secret_path, public_path = toy_key_files
        sig_path = tmp_path / "sig.hex"
        _sign(secret_path, "1", sig_path)

        code = main([
            "forge", "--bits", "8", "--public-key", str(public_path),
            "--known", f"1={sig_path}",
            "--prefix", "hello;",
            "--workers", "1",
        ])
        assert code == 2


class TestEntryPoint:
    """Tests for top-level options and failure exit codes."""

    def test_random_source_failure_exit_code(self, monkeypatch, capsys):
        def broken(n):
            raise OSError("getrandom failed")

        monkeypatch.setattr("lamport_forge.crypto.secrets.token_bytes", broken)

        code = main(["keygen", "--bits", "8"])

        assert code == 3
        assert "error: " in capsys.readouterr().err

    def test_version_from_settings(self, monkeypatch, capsys):
        monkeypatch.setenv("LAMPORT_APP_VERSION", "9.9.9")

        with pytest.raises(SystemExit) as exc_info:
            main(["--version"])

        assert exc_info.value.code == 0
        assert "lamport-forge 9.9.9" in capsys.readouterr().out

    def test_debug_setting_enables_debug_logging(self, monkeypatch):
        levels = []
        monkeypatch.setenv("LAMPORT_DEBUG", "true")
        monkeypatch.setattr("lamport_forge.main.configure_logging", levels.append)

        assert main(["keygen", "--bits", "8"]) == 0
        assert levels == ["DEBUG"]

    def test_log_level_setting(self, monkeypatch):
        levels = []
        monkeypatch.delenv("LAMPORT_DEBUG", raising=False)
        monkeypatch.setenv("LAMPORT_LOG_LEVEL", "WARNING")
        monkeypatch.setattr("lamport_forge.main.configure_logging", levels.append)

        assert main(["keygen", "--bits", "8"]) == 0
        assert levels == ["WARNING"]
