from dataclasses import dataclass
from typing import Literal, Union


@dataclass
class KeyConfig:
    name: str
    token: str


@dataclass(frozen=True)
class AuthConfig:
    # Gemini: header="x-goog-api-key", scheme="" (or in_="query", query_param="key")
    # BytePlus ModelArk: the defaults
    header: str = "Authorization"
    scheme: str = "Bearer"
    in_: Literal["header", "query"] = "header"
    query_param: str = "key"


@dataclass(frozen=True)
class RetryConfig:
    # attempts per request, each one acquires a fresh key
    max_attempts: int = 3
    # linear backoff between attempts: backoff * attempt (1s, 2s, 3s, ...)
    backoff: float = 1.0
    # cooldown applied on quota errors; None uses the pool default
    cooldown: Union[float, None] = None

    def delay_for(self, attempt: int) -> float:
        return max(0.0, self.backoff * attempt)
