"""
Unit Tests for mqauth-pw
========================
"""

import pytest


class TestPasswordUtility:
    """Tests for the hash generation utility."""

    def test_default_pbkdf2(self, capsys):
        """Should print a verifiable PBKDF2 hash."""
        from mqauth_core.cli import main
        from mqauth_core.hashing import verify_password

        assert main(["-p", "testpw", "-i", "1000"]) == 0

        stored = capsys.readouterr().out.strip()
        assert stored.startswith("PBKDF2$sha512$1000$")
        assert verify_password("testpw", stored) is True

    def test_pbkdf2_options(self, capsys):
        """Should honor digest, key length and salt encoding."""
        from mqauth_core.cli import main
        from mqauth_core.hashing import parse_hash, verify_password

        assert main(["-p", "testpw", "-a", "pbkdf2", "-d", "sha256", "-i", "500",
                     "-s", "12", "-l", "32", "-e", "utf-8"]) == 0

        stored = capsys.readouterr().out.strip()
        descriptor = parse_hash(stored, "utf-8")
        assert descriptor.digest == "sha256"
        assert descriptor.key_length == 32
        assert len(descriptor.salt) == 12
        assert verify_password("testpw", stored, "utf-8") is True

    def test_bcrypt(self, capsys):
        """Should print a bcrypt hash with the requested cost."""
        from mqauth_core.cli import main
        from mqauth_core.hashing import verify_password

        assert main(["-p", "testpw", "-a", "bcrypt", "-c", "4"]) == 0

        stored = capsys.readouterr().out.strip()
        assert stored.startswith("$2b$04$")
        assert verify_password("testpw", stored) is True

    def test_invalid_digest(self, capsys):
        """Should report unsupported digests as usage errors."""
        from mqauth_core.cli import EXIT_USAGE, main

        assert main(["-p", "testpw", "-d", "md5"]) == EXIT_USAGE
        assert "md5" in capsys.readouterr().err

    def test_password_required(self):
        """Should exit when no password is given."""
        from mqauth_core.cli import main

        with pytest.raises(SystemExit):
            main([])
