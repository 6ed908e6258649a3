"""Tests for access/refresh token issuance and verification."""
import jwt
import pytest

from core.config import Settings
from core.tokens import (
    ACCESS_TTL_UNITS,
    REFRESH_KEY_SUFFIX,
    REFRESH_TTL_UNITS,
    ExpiredTokenError,
    MalformedTokenError,
    TokenClass,
    TokenIssuer,
    TokenVerificationError,
    derive_refresh_key,
    parse_duration,
)

SECRET = "unit-test-secret-key-with-plenty-of-bytes"
ACCESS_TTL = 24 * 3600
REFRESH_TTL = 7 * 86400


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_700_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def issuer(clock: FakeClock) -> TokenIssuer:
    return TokenIssuer(SECRET, ACCESS_TTL, REFRESH_TTL, clock=clock)


class TestParseDuration:
    """Tests for parse_duration."""

    @pytest.mark.parametrize(("value", "expected"), [
        ("24h", 86400),
        ("15m", 900),
        ("1h", 3600),
        ("90", 90),
        ("  2h ", 7200),
    ])
    def test__parse_duration__access_units(self, value: str, expected: int) -> None:
        """Hours and minutes are supported; bare numbers are seconds."""
        assert parse_duration(value, ACCESS_TTL_UNITS) == expected

    @pytest.mark.parametrize(("value", "expected"), [
        ("7d", 604800),
        ("12h", 43200),
        ("3600", 3600),
    ])
    def test__parse_duration__refresh_units(self, value: str, expected: int) -> None:
        """Days and hours are supported for refresh TTLs."""
        assert parse_duration(value, REFRESH_TTL_UNITS) == expected

    @pytest.mark.parametrize("value", ["", "abc", "h", "-5h", "soon"])
    def test__parse_duration__unparseable_is_zero(self, value: str) -> None:
        """Parsing never raises; garbage becomes 0."""
        assert parse_duration(value, ACCESS_TTL_UNITS) == 0

    def test__parse_duration__leading_integer_is_used(self) -> None:
        """Trailing junk after the leading integer is ignored."""
        assert parse_duration("10xh", ACCESS_TTL_UNITS) == 36000

    def test__parse_duration__unit_not_allowed_reads_as_seconds(self) -> None:
        """A unit outside the allowed set falls back to the leading integer as seconds."""
        assert parse_duration("7d", ACCESS_TTL_UNITS) == 7

    def test__parse_duration__non_string_is_zero(self) -> None:
        """Non-string input is treated as unparseable."""
        assert parse_duration(None, ACCESS_TTL_UNITS) == 0  # type: ignore[arg-type]


class TestIssueAndVerify:
    """Tests for TokenIssuer round trips."""

    @pytest.mark.parametrize(("subject_id", "subject_name"), [
        (1, "alice"),
        (42, "bob_the_builder"),
        (2**31, "ünïcødé"),
    ])
    def test__verify__access_token_round_trip(
        self, issuer: TokenIssuer, subject_id: int, subject_name: str,
    ) -> None:
        """An issued access token verifies with matching claims."""
        token = issuer.issue_access_token(subject_id, subject_name)
        claims = issuer.verify(token, TokenClass.ACCESS)

        assert claims.subject_id == subject_id
        assert claims.subject_name == subject_name

    def test__verify__refresh_token_round_trip(self, issuer: TokenIssuer) -> None:
        """An issued refresh token verifies as a refresh token."""
        token = issuer.issue_refresh_token(7, "carol")
        claims = issuer.verify(token, TokenClass.REFRESH)

        assert claims.subject_id == 7
        assert claims.subject_name == "carol"

    def test__issue__expiry_is_issued_at_plus_ttl(
        self, issuer: TokenIssuer, clock: FakeClock,
    ) -> None:
        """expires_at - issued_at equals the configured TTL for each class."""
        access = issuer.verify(issuer.issue_access_token(1, "a"), TokenClass.ACCESS)
        refresh = issuer.verify(issuer.issue_refresh_token(1, "a"), TokenClass.REFRESH)

        assert access.issued_at.timestamp() == int(clock.now)
        assert (access.expires_at - access.issued_at).total_seconds() == ACCESS_TTL
        assert (refresh.expires_at - refresh.issued_at).total_seconds() == REFRESH_TTL

    def test__issue__produces_compact_hs256_jwt(self, issuer: TokenIssuer) -> None:
        """Tokens are three-part compact JWTs signed with HS256."""
        token = issuer.issue_access_token(1, "alice")

        assert token.count(".") == 2
        assert jwt.get_unverified_header(token)["alg"] == "HS256"


class TestKeyClassSeparation:
    """Access and refresh tokens are not interchangeable."""

    def test__verify__access_token_rejected_as_refresh(self, issuer: TokenIssuer) -> None:
        token = issuer.issue_access_token(1, "alice")
        with pytest.raises(MalformedTokenError):
            issuer.verify(token, TokenClass.REFRESH)

    def test__verify__refresh_token_rejected_as_access(self, issuer: TokenIssuer) -> None:
        token = issuer.issue_refresh_token(1, "alice")
        with pytest.raises(MalformedTokenError):
            issuer.verify(token, TokenClass.ACCESS)

    def test__derive_refresh_key__appends_fixed_suffix(self) -> None:
        """Operators provision one secret; the refresh key is derived from it."""
        assert derive_refresh_key("base") == "base" + REFRESH_KEY_SUFFIX
        assert derive_refresh_key("base") != "base"

    def test__verify__token_from_other_secret_rejected(self, clock: FakeClock) -> None:
        """A token signed with a different secret fails."""
        other = TokenIssuer("another-secret-key-with-plenty-of-bytes", 60, 60, clock=clock)
        mine = TokenIssuer(SECRET, 60, 60, clock=clock)
        with pytest.raises(MalformedTokenError):
            mine.verify(other.issue_access_token(1, "alice"), TokenClass.ACCESS)


class TestExpiry:
    """Expiry is strict, with no grace period."""

    def test__verify__expired_one_second_after_ttl(
        self, issuer: TokenIssuer, clock: FakeClock,
    ) -> None:
        """A token fails at T + ttl + 1."""
        token = issuer.issue_access_token(1, "alice")
        issuer.verify(token, TokenClass.ACCESS)

        clock.advance(ACCESS_TTL + 1)
        with pytest.raises(ExpiredTokenError):
            issuer.verify(token, TokenClass.ACCESS)

    def test__verify__valid_just_before_expiry(
        self, issuer: TokenIssuer, clock: FakeClock,
    ) -> None:
        token = issuer.issue_access_token(1, "alice")
        clock.advance(ACCESS_TTL - 1)
        assert issuer.verify(token, TokenClass.ACCESS).subject_id == 1

    def test__verify__expired_exactly_at_expiry(
        self, issuer: TokenIssuer, clock: FakeClock,
    ) -> None:
        """expires_at must be strictly in the future."""
        token = issuer.issue_access_token(1, "alice")
        clock.advance(ACCESS_TTL)
        with pytest.raises(ExpiredTokenError):
            issuer.verify(token, TokenClass.ACCESS)

    def test__verify__refresh_expires_on_its_own_ttl(
        self, issuer: TokenIssuer, clock: FakeClock,
    ) -> None:
        token = issuer.issue_refresh_token(1, "alice")
        clock.advance(ACCESS_TTL + 1)
        issuer.verify(token, TokenClass.REFRESH)

        clock.advance(REFRESH_TTL)
        with pytest.raises(ExpiredTokenError):
            issuer.verify(token, TokenClass.REFRESH)

    def test__verify__zero_ttl_token_is_never_valid(self, clock: FakeClock) -> None:
        """A misconfigured TTL of 0 yields tokens that are already expired."""
        zero = TokenIssuer(SECRET, 0, 0, clock=clock)
        with pytest.raises(ExpiredTokenError):
            zero.verify(zero.issue_access_token(1, "alice"), TokenClass.ACCESS)


class TestMalformedTokens:
    """Structurally bad tokens raise MalformedTokenError."""

    @pytest.mark.parametrize("token", ["", "garbage", "a.b.c", "Bearer xyz"])
    def test__verify__garbage_rejected(self, issuer: TokenIssuer, token: str) -> None:
        with pytest.raises(MalformedTokenError):
            issuer.verify(token, TokenClass.ACCESS)

    def test__verify__missing_username_claim_rejected(
        self, issuer: TokenIssuer, clock: FakeClock,
    ) -> None:
        token = jwt.encode(
            {"sub": "1", "iat": int(clock.now), "exp": int(clock.now) + 60},
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(MalformedTokenError):
            issuer.verify(token, TokenClass.ACCESS)

    def test__verify__non_numeric_subject_rejected(
        self, issuer: TokenIssuer, clock: FakeClock,
    ) -> None:
        token = jwt.encode(
            {
                "sub": "not-a-number",
                "username": "alice",
                "iat": int(clock.now),
                "exp": int(clock.now) + 60,
            },
            SECRET,
            algorithm="HS256",
        )
        with pytest.raises(MalformedTokenError):
            issuer.verify(token, TokenClass.ACCESS)

    def test__verify__unsigned_token_rejected(
        self, issuer: TokenIssuer, clock: FakeClock,
    ) -> None:
        """alg=none tokens are never accepted."""
        token = jwt.encode(
            {
                "sub": "1",
                "username": "alice",
                "iat": int(clock.now),
                "exp": int(clock.now) + 60,
            },
            None,
            algorithm="none",
        )
        with pytest.raises(MalformedTokenError):
            issuer.verify(token, TokenClass.ACCESS)

    def test__errors__share_a_base_class(self) -> None:
        """Callers can treat every failure as one 'invalid token' outcome."""
        assert issubclass(MalformedTokenError, TokenVerificationError)
        assert issubclass(ExpiredTokenError, TokenVerificationError)


class TestFromSettings:
    """Tests for building the issuer from configuration."""

    def _settings(self, **overrides: str) -> Settings:
        return Settings(
            _env_file=None,
            database_url="sqlite+aiosqlite://",
            JWT_SECRET=SECRET,
            **overrides,
        )

    def test__from_settings__default_ttls(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Defaults are 24 hours for access and 7 days for refresh."""
        monkeypatch.delenv("JWT_EXPIRES_IN", raising=False)
        monkeypatch.delenv("REFRESH_TOKEN_EXPIRES_IN", raising=False)
        issuer = TokenIssuer.from_settings(self._settings())

        assert issuer.ttl(TokenClass.ACCESS) == 86400
        assert issuer.ttl(TokenClass.REFRESH) == 604800

    def test__from_settings__custom_ttls(self) -> None:
        issuer = TokenIssuer.from_settings(
            self._settings(JWT_EXPIRES_IN="15m", REFRESH_TOKEN_EXPIRES_IN="2d"),
        )

        assert issuer.ttl(TokenClass.ACCESS) == 900
        assert issuer.ttl(TokenClass.REFRESH) == 172800

    def test__from_settings__invalid_ttl_logs_warning(
        self, caplog: pytest.LogCaptureFixture,
    ) -> None:
        """An unparseable TTL becomes 0 and is reported once at build time."""
        with caplog.at_level("WARNING", logger="core.tokens"):
            issuer = TokenIssuer.from_settings(self._settings(JWT_EXPIRES_IN="forever"))

        assert issuer.ttl(TokenClass.ACCESS) == 0
        assert [r.message for r in caplog.records] == ["token_ttl_invalid"]
