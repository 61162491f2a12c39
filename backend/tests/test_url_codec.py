"""
URL codec tests

Run:
    cd backend
    pytest tests/test_url_codec.py -v
"""

import base64

import pytest

from image_proxy.errors import ClientError
from image_proxy.url_codec import (
    INVALID_TOKEN_MESSAGE,
    URL_NOT_ALLOWED_MESSAGE,
    decode,
    decode_source_url,
    encode,
    validate_source_url,
)


# ============================================
# 1. decode
# ============================================

class TestDecode:
    """Token -> URL"""

    @pytest.mark.parametrize("url", [
        "https://example.com/a.jpg",
        "http://cdn.example.org/path/to/image.png?w=1&h=2",
        "https://example.com/~user/photo%20one.webp",
        "https://例子.测试/图片.jpg",
    ])
    def test_decode_inverts_encode(self, url):
        assert decode(encode(url)) == url

    def test_decode_accepts_padded_token(self):
        token = base64.urlsafe_b64encode(b"https://example.com/ab.jpg").decode()
        assert token.endswith("=")
        assert decode(token) == "https://example.com/ab.jpg"

    def test_decode_translates_urlsafe_alphabet(self):
        # "???" on a 3-byte boundary encodes to "Pz8/" in the standard alphabet
        url = "https://example.com/a???"
        assert "/" in base64.b64encode(url.encode()).decode()
        token = encode(url)
        assert "/" not in token and "_" in token
        assert decode(token) == url

    def test_encode_has_no_padding(self):
        assert "=" not in encode("https://example.com/a.jpg")

    def test_decode_rejects_invalid_characters(self):
        with pytest.raises(ClientError) as exc:
            decode("not*base64!")
        assert exc.value.status_code == 400
        assert exc.value.message == INVALID_TOKEN_MESSAGE

    def test_decode_rejects_non_utf8(self):
        token = base64.urlsafe_b64encode(b"\xff\xfe\xfd").decode()
        with pytest.raises(ClientError):
            decode(token)

    def test_decode_rejects_empty_token(self):
        with pytest.raises(ClientError):
            decode("")


# ============================================
# 2. validate_source_url
# ============================================

class TestValidateSourceUrl:
    """Decoded URL policy"""

    def test_public_https_url_passes(self):
        assert validate_source_url("https://example.com/a.jpg") == "https://example.com/a.jpg"

    @pytest.mark.parametrize("url", [
        "file:///etc/passwd",
        "ftp://example.com/a.jpg",
        "example.com/a.jpg",
        "https:///a.jpg",
    ])
    def test_rejects_non_http_or_hostless(self, url):
        with pytest.raises(ClientError) as exc:
            validate_source_url(url)
        assert exc.value.message == URL_NOT_ALLOWED_MESSAGE

    @pytest.mark.parametrize("url", [
        "http://localhost/a.jpg",
        "http://127.0.0.1:8080/a.jpg",
        "http://10.0.0.5/a.jpg",
        "http://192.168.1.1/a.jpg",
        "http://169.254.169.254/latest/meta-data",
        "http://[::1]/a.jpg",
        "http://0.0.0.0/a.jpg",
    ])
    def test_rejects_internal_addresses(self, url):
        with pytest.raises(ClientError):
            validate_source_url(url)

    def test_allowlist_accepts_host_and_subdomains(self):
        allowed = ("example.com",)
        validate_source_url("https://example.com/a.jpg", allowed)
        validate_source_url("https://cdn.example.com/a.jpg", allowed)

    def test_allowlist_rejects_other_hosts(self):
        with pytest.raises(ClientError):
            validate_source_url("https://badexample.com/a.jpg", ("example.com",))

    def test_decode_source_url_combines_both_steps(self):
        assert decode_source_url(encode("https://example.com/a.jpg")) == "https://example.com/a.jpg"
        with pytest.raises(ClientError):
            decode_source_url(encode("http://127.0.0.1/a.jpg"))
