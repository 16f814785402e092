from functools import lru_cache
from urllib.parse import urlparse

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


LOCAL_SESSION_URL = "http://localhost:3000/api/auth/session"


def _normalize_url(value: str) -> str:
	parsed = urlparse(value.strip())
	if parsed.scheme not in {"http", "https"} or not parsed.netloc:
		raise ValueError(f"Invalid session URL: {value!r}")
	return parsed.geturl()


class Settings(BaseSettings):
	"""Runtime configuration for the session endpoint the cache sits in front of."""

	model_config = SettingsConfigDict(
		env_file=".env",
		env_prefix="SESSION_CACHE_",
		extra="ignore",
	)

	app_env: str = "development"
	session_url: str | None = None
	session_token: SecretStr | None = None
	fetch_timeout_seconds: float = 10.0

	@property
	def is_production(self) -> bool:
		return self.app_env.strip().lower() == "production"

	def session_url_value(self) -> str:
		if self.session_url and self.session_url.strip():
			return _normalize_url(self.session_url)

		return LOCAL_SESSION_URL

	def session_token_value(self) -> str | None:
		if self.session_token is None:
			return None

		token = self.session_token.get_secret_value().strip()
		return token or None

	def validate_runtime(self) -> None:
		if self.is_production and not (self.session_url and self.session_url.strip()):
			raise ValueError("Production mode requires SESSION_CACHE_SESSION_URL.")

		if self.fetch_timeout_seconds <= 0:
			raise ValueError("SESSION_CACHE_FETCH_TIMEOUT_SECONDS must be positive.")

		self.session_url_value()


@lru_cache
def get_settings() -> Settings:
	return Settings()
