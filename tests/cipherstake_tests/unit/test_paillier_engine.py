"""
Tests for the reference Paillier engine and the stateless ciphertext helpers.
"""

import pytest

from cipherstake.core.exceptions import CiphertextWidthError, EmptyInputError, ValidationError
from cipherstake.fhe.ops import add64, sum32
from cipherstake.fhe.types import EUINT32, EUINT64, Ciphertext, HomomorphicEngine


class TestPaillierEngine:
    """Tests for PaillierEngine."""

    def test_satisfies_engine_protocol(self, engine):
        assert isinstance(engine, HomomorphicEngine)

    def test_encrypt_decrypt(self, engine):
        assert engine.decrypt(engine.encrypt(42, EUINT32)) == 42

    def test_encryption_is_randomized(self, engine):
        a = engine.encrypt(5, EUINT32)
        b = engine.encrypt(5, EUINT32)
        assert a.payload != b.payload
        assert a.handle != b.handle

    def test_zero_decrypts_to_zero(self, engine):
        zero = engine.zero(EUINT64)
        assert zero.width == EUINT64
        assert engine.decrypt(zero) == 0

    def test_add(self, engine):
        total = engine.add(engine.encrypt(20, EUINT32), engine.encrypt(22, EUINT32))
        assert engine.decrypt(total) == 42

    def test_add_wraps_at_width(self, engine):
        total = engine.add(engine.encrypt(2**32 - 1, EUINT32), engine.encrypt(2, EUINT32))
        assert engine.decrypt(total) == 1

    def test_add_rejects_mixed_widths(self, engine):
        with pytest.raises(CiphertextWidthError):
            engine.add(engine.encrypt(1, EUINT32), engine.encrypt(1, EUINT64))

    def test_promote_preserves_value_and_rerandomizes(self, engine):
        ct = engine.encrypt(2**32 - 1, EUINT32)
        wide = engine.promote(ct, EUINT32, EUINT64)
        assert wide.width == EUINT64
        assert wide.payload != ct.payload
        assert engine.decrypt(wide) == 2**32 - 1

    def test_promoted_values_do_not_wrap_at_32_bits(self, engine):
        a = engine.promote(engine.encrypt(2**32 - 1, EUINT32), EUINT32, EUINT64)
        b = engine.promote(engine.encrypt(2**32 - 1, EUINT32), EUINT32, EUINT64)
        assert engine.decrypt(engine.add(a, b)) == 2 * (2**32 - 1)

    def test_promote_rejects_wrong_source_width(self, engine):
        with pytest.raises(CiphertextWidthError, match="not 64-bit"):
            engine.promote(engine.encrypt(1, EUINT32), EUINT64, EUINT64)

    def test_promote_rejects_narrowing(self, engine):
        with pytest.raises(CiphertextWidthError, match="narrow"):
            engine.promote(engine.encrypt(1, EUINT64), EUINT64, EUINT32)

    def test_unsupported_width(self, engine):
        with pytest.raises(CiphertextWidthError):
            engine.zero(24)

    def test_encrypt_rejects_out_of_range(self, engine):
        with pytest.raises(ValidationError):
            engine.encrypt(2**32, EUINT32)
        with pytest.raises(ValidationError):
            engine.encrypt(-1, EUINT32)

    def test_handle_roundtrip(self, engine):
        ct = engine.encrypt(9, EUINT32)
        handle = engine.to_handle(ct)
        assert handle == ct.handle
        assert handle.startswith("0x") and len(handle) == 66
        assert engine.resolve(handle) == ct

    def test_resolve_unknown_handle(self, engine):
        with pytest.raises(ValidationError, match="Unknown ciphertext handle"):
            engine.resolve("0x" + "ab" * 32)

    def test_repr_hides_payload(self, engine):
        ct = engine.encrypt(9, EUINT32)
        assert str(ct.payload) not in repr(ct)


class TestCiphertextOps:
    """Tests for add64 and sum32."""

    def test_add64(self, engine):
        total = add64(engine, engine.encrypt(2**40, EUINT64), engine.encrypt(1, EUINT64))
        assert engine.decrypt(total) == 2**40 + 1

    def test_add64_rejects_32_bit(self, engine):
        with pytest.raises(CiphertextWidthError):
            add64(engine, engine.encrypt(1, EUINT32), engine.encrypt(1, EUINT64))

    def test_sum32(self, engine):
        values = [engine.encrypt(v, EUINT32) for v in (3, 5, 7)]
        assert engine.decrypt(sum32(engine, values)) == 15

    def test_sum32_single_element_is_identity(self, engine):
        ct = engine.encrypt(11, EUINT32)
        assert sum32(engine, [ct]) is ct

    def test_sum32_empty_fails(self, engine):
        with pytest.raises(EmptyInputError):
            sum32(engine, [])

    def test_sum32_rejects_64_bit(self, engine):
        with pytest.raises(CiphertextWidthError):
            sum32(engine, [engine.encrypt(1, EUINT32), engine.encrypt(1, EUINT64)])

    def test_ciphertext_is_immutable(self, engine):
        ct = engine.encrypt(1, EUINT32)
        with pytest.raises(AttributeError):
            ct.width = EUINT64
        assert isinstance(ct, Ciphertext)
